"""
Value resolver for parameter references

A parameter can take its value from a resource group generated earlier
in the same pass, or from a live object in the cluster. Groups are
resolved in blueprint order, so a reference to a group further down the
blueprint is reported as not found.
"""

from aeto.core.cluster import ClusterClient
from aeto.core.models import GroupVersionKind, NamespacedName, ValueRef
from aeto.kernel.errors import InvalidValueReference, ValueReferenceNotFound
from aeto.kernel.logging import get_logger
from aeto.tenant.resources import ResourceGroupList, query_json_path

logger = get_logger(__name__)

TENANT_NAME = "$TENANT_NAME"
TENANT_NAMESPACE = "$TENANT_NAMESPACE"
OPERATOR_NAMESPACE = "$OPERATOR_NAMESPACE"


class ValueResolver:
    def __init__(
        self,
        tenant_name: str,
        tenant_namespace: str,
        operator_namespace: str,
        resource_groups: ResourceGroupList,
        cluster: ClusterClient,
    ) -> None:
        self.tenant_name = tenant_name
        self.tenant_namespace = tenant_namespace
        self.operator_namespace = operator_namespace
        self.resource_groups = resource_groups
        self.cluster = cluster

    def __call__(self, ref: ValueRef) -> str:
        return self.resolve(ref)

    def resolve(self, ref: ValueRef) -> str:
        """
        Resolve a value reference to a string

        Raises:
            InvalidValueReference: If the reference is malformed or the path fails
            ValueReferenceNotFound: If the referenced group or object does not exist
        """
        if ref.blueprint is None and ref.resource is None:
            raise InvalidValueReference(
                "invalid value reference, blueprint or resource is required"
            )
        if ref.blueprint is not None and ref.resource is not None:
            raise InvalidValueReference(
                "invalid value reference, multiple references not allowed"
            )

        if ref.blueprint is not None:
            value = self._resolve_from_blueprint(ref)
        else:
            value = self._resolve_from_resource(ref)

        if value == "":
            raise ValueReferenceNotFound("invalid value reference, resolved to an empty value")
        return value

    def _resolve_from_blueprint(self, ref: ValueRef) -> str:
        blueprint_ref = ref.blueprint
        group = self.resource_groups.group(blueprint_ref.resource_group)
        if group is None:
            raise ValueReferenceNotFound(
                f'invalid value reference, resource group "{blueprint_ref.resource_group}" '
                "not found in resource set"
            )

        try:
            return group.json_path(blueprint_ref.json_path)
        except InvalidValueReference as e:
            raise type(e)(
                f'invalid value reference for "{blueprint_ref.resource_group}" '
                f"{blueprint_ref.json_path}, {e}"
            ) from e

    def _resolve_from_resource(self, ref: ValueRef) -> str:
        resource_ref = ref.resource
        name = resource_ref.name
        namespace = resource_ref.namespace
        if name == TENANT_NAME:
            name = self.tenant_name
        if namespace == TENANT_NAMESPACE:
            namespace = self.tenant_namespace
        elif namespace == OPERATOR_NAMESPACE:
            namespace = self.operator_namespace

        nn = NamespacedName(namespace=namespace, name=name)
        gvk = GroupVersionKind.from_api_version_and_kind(resource_ref.api_version, resource_ref.kind)

        logger.debug("resolving value from live resource", nn=str(nn), gvk=str(gvk))
        manifest = self.cluster.dynamic_get(nn, gvk)
        if manifest is None:
            raise ValueReferenceNotFound(
                f'invalid value reference, resource "{nn}" {gvk} not found'
            )

        try:
            return query_json_path(manifest, resource_ref.json_path)
        except InvalidValueReference as e:
            raise type(e)(f'invalid value reference for "{nn}" {gvk}, {e}') from e
