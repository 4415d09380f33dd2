"""
Test Helper Functions - Builders and an in-memory cluster

FakeCluster implements the ClusterClient protocol with plain dicts. It
honours finalizers the way a real API server does: deleting an object
that still has finalizers only marks it, and the object disappears once
an update leaves it with none.

Fun fact: Kubernetes finalizers were added in 1.7 so that garbage
collection could wait for cleanup - before that a delete was simply gone.
"""

import copy
from typing import Any

from aeto.core.models import (
    Blueprint,
    BlueprintResourceGroup,
    BlueprintSpec,
    ClusterObject,
    GroupVersionKind,
    NamespacedName,
    ObjectMeta,
    Parameter,
    ParameterValue,
    ResourceNameRule,
    ResourceNamespaceRule,
    ResourceTemplate,
    ResourceTemplateRules,
    ResourceTemplateSpec,
    Tenant,
    TenantSpec,
    manifest_identifier,
)
from aeto.kernel.errors import AetoError, ResourceNotFound

DELETION_TIMESTAMP = "2025-01-15T12:00:00.000000Z"

NAMESPACE_TEMPLATE = """\
apiVersion: v1
kind: Namespace
metadata:
  name: {{ prefixed_name }}
"""

CONFIG_MAP_TEMPLATE = """\
apiVersion: v1
kind: ConfigMap
metadata:
  name: settings
data:
  region: "{{ string('region') }}"
  display: "{{ display_name }}"
"""


class FakeCluster:
    """In-memory ClusterClient"""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], ClusterObject] = {}
        self.manifests: dict[tuple[str, str, str, str], dict[str, Any]] = {}
        self.applied: list[tuple[str, str]] = []
        self.dynamic_deleted: list[tuple[str, str]] = []
        self.stuck: set[tuple[str, str, str, str]] = set()
        self.fail_on: set[str] = set()

    # Typed objects

    def _key(self, kind: str, nn: NamespacedName) -> tuple[str, str, str]:
        return (kind, nn.namespace, nn.name)

    def add(self, obj: ClusterObject) -> ClusterObject:
        """Store an object as if a user had created it"""
        if obj.metadata.generation == 0:
            obj.metadata.generation = 1
        self.objects[self._key(obj.KIND, obj.namespaced_name)] = obj.model_copy(deep=True)
        return obj

    def stored(self, model_cls: type, nn: NamespacedName) -> ClusterObject | None:
        return self.objects.get(self._key(model_cls.KIND, nn))

    def get(self, model_cls, nn):
        obj = self.objects.get(self._key(model_cls.KIND, nn))
        if obj is None:
            raise ResourceNotFound(model_cls.KIND, str(nn))
        return obj.model_copy(deep=True)

    def list(self, model_cls, namespace=""):
        return [
            obj.model_copy(deep=True)
            for (kind, ns, _), obj in sorted(self.objects.items())
            if kind == model_cls.KIND and (not namespace or ns == namespace)
        ]

    def create(self, obj: ClusterObject) -> None:
        self._check("create")
        key = self._key(obj.KIND, obj.namespaced_name)
        if key in self.objects:
            raise AetoError(f"{obj.KIND} {obj.namespaced_name} already exists")
        self.add(obj)

    def update(self, obj: ClusterObject) -> None:
        self._check("update")
        key = self._key(obj.KIND, obj.namespaced_name)
        existing = self.objects.get(key)
        if existing is None:
            raise ResourceNotFound(obj.KIND, str(obj.namespaced_name))

        if existing.deleting and not obj.metadata.finalizers:
            del self.objects[key]
            return

        updated = obj.model_copy(deep=True)
        updated.metadata.deletion_timestamp = existing.metadata.deletion_timestamp
        if hasattr(existing, "status"):
            updated.status = existing.status.model_copy(deep=True)
        self.objects[key] = updated

    def update_status(self, obj: ClusterObject) -> None:
        self._check("update_status")
        key = self._key(obj.KIND, obj.namespaced_name)
        existing = self.objects.get(key)
        if existing is None:
            raise ResourceNotFound(obj.KIND, str(obj.namespaced_name))
        existing.status = obj.status.model_copy(deep=True)

    def delete(self, obj: ClusterObject) -> None:
        self._check("delete")
        key = self._key(obj.KIND, obj.namespaced_name)
        existing = self.objects.get(key)
        if existing is None:
            raise ResourceNotFound(obj.KIND, str(obj.namespaced_name))
        if existing.metadata.finalizers:
            existing.metadata.deletion_timestamp = DELETION_TIMESTAMP
            return
        del self.objects[key]

    # Dynamic objects

    def _dynamic_key(self, nn: NamespacedName, gvk: GroupVersionKind) -> tuple[str, str, str, str]:
        return (gvk.group, gvk.kind, nn.namespace, nn.name)

    def put_manifest(self, manifest: dict[str, Any]) -> None:
        """Store a live object as if something else had created it"""
        nn, gvk = manifest_identifier(manifest)
        self.manifests[self._dynamic_key(nn, gvk)] = copy.deepcopy(manifest)

    def manifest(self, kind: str, name: str, namespace: str = "", group: str = "") -> dict[str, Any] | None:
        return self.manifests.get((group, kind, namespace, name))

    def dynamic_get(self, nn, gvk):
        manifest = self.manifests.get(self._dynamic_key(nn, gvk))
        return copy.deepcopy(manifest) if manifest is not None else None

    def dynamic_apply(self, nn, manifest):
        self._check("dynamic_apply")
        _, gvk = manifest_identifier(manifest)
        key = self._dynamic_key(nn, gvk)
        existing = self.manifests.get(key)
        applied = copy.deepcopy(manifest)
        if existing is not None and "status" in existing:
            applied["status"] = existing["status"]
        self.manifests[key] = applied
        self.applied.append((gvk.kind, str(nn)))

    def dynamic_delete(self, nn, gvk):
        self._check("dynamic_delete")
        key = self._dynamic_key(nn, gvk)
        if key not in self.manifests:
            raise ResourceNotFound(gvk.kind, str(nn))
        self.dynamic_deleted.append((gvk.kind, str(nn)))
        if key not in self.stuck:
            del self.manifests[key]

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise AetoError(f"{operation} failed")


def make_tenant(
    name: str = "acme",
    namespace: str = "default",
    display_name: str = "Acme Inc",
    blueprint: str = "",
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
) -> Tenant:
    """Builder for tenants"""
    return Tenant(
        metadata=ObjectMeta(
            name=name,
            namespace=namespace,
            labels=labels or {},
            annotations=annotations or {},
        ),
        spec=TenantSpec(name=display_name, blueprint=blueprint),
    )


def make_template(
    name: str,
    raw: list[str] | None = None,
    resources: list[dict[str, Any]] | None = None,
    parameters: list[Parameter] | None = None,
    name_rule: ResourceNameRule = ResourceNameRule.KEEP,
    namespace_rule: ResourceNamespaceRule = ResourceNamespaceRule.KEEP,
    namespace: str = "aeto",
) -> ResourceTemplate:
    """Builder for resource templates"""
    return ResourceTemplate(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=ResourceTemplateSpec(
            rules=ResourceTemplateRules(name=name_rule, namespace=namespace_rule),
            parameters=parameters or [],
            raw=raw or [],
            resources=resources or [],
        ),
    )


def make_blueprint(
    groups: list[BlueprintResourceGroup],
    name: str = "default",
    prefix: str = "t-",
    namespace: str = "aeto",
    labels: dict[str, str] | None = None,
) -> Blueprint:
    """Builder for blueprints"""
    return Blueprint(
        metadata=ObjectMeta(name=name, namespace=namespace, labels=labels or {}),
        spec=BlueprintSpec(resource_name_prefix=prefix, resources=groups),
    )


def group(name: str, template: str, **parameters: str) -> BlueprintResourceGroup:
    """Blueprint resource group with literal parameter values"""
    return BlueprintResourceGroup(
        name=name,
        template=template,
        parameters=[ParameterValue(name=k, value=v) for k, v in parameters.items()],
    )


def standard_cluster(cluster: FakeCluster, region: str = "eu-north-1") -> Blueprint:
    """Namespace + ConfigMap templates and the default blueprint using them"""
    cluster.add(make_template("tenant-namespace", raw=[NAMESPACE_TEMPLATE]))
    cluster.add(
        make_template(
            "tenant-settings",
            raw=[CONFIG_MAP_TEMPLATE],
            parameters=[Parameter(name="region", required=True)],
            namespace_rule=ResourceNamespaceRule.TENANT,
        )
    )
    blueprint = make_blueprint(
        [
            group("namespace", "tenant-namespace"),
            group("settings", "tenant-settings", region=region),
        ]
    )
    cluster.add(blueprint)
    return blueprint
