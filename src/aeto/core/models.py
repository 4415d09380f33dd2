"""
Cluster object models - the typed objects aeto reads and writes

Tenants, Blueprints, ResourceTemplates and ResourceSets are stored in the
cluster as custom resources. Field names follow the cluster's camelCase
wire format through aliases, so a manifest dumped from the API can be
validated straight into these models.

Fun fact: A Blueprint is to a Tenant what a cookie cutter is to dough -
every tenant stamped from the same blueprint gets the same shape, only the
name on it changes.
"""

from enum import Enum
from typing import Any, Callable, ClassVar

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel

from aeto.kernel.errors import ParameterValidationFailed, RequiredParameterMissing

TENANT_LABEL = "aeto.net/tenant"
CONTROLLED_ANNOTATION = "aeto.net/controlled"
LAST_APPLIED_ANNOTATION = "kubectl.kubernetes.io/last-applied-configuration"

CONDITION_READY = "Ready"
CONDITION_ACTIVE = "Active"
CONDITION_RECONCILING = "Reconciling"
CONDITION_TERMINATING = "Terminating"


class CamelModel(BaseModel):
    """Base for cluster types: snake_case in Python, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_manifest(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Identity
# ============================================================================


class NamespacedName(BaseModel):
    """Namespace plus name, written as "namespace/name" """

    namespace: str = ""
    name: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, value: str) -> "NamespacedName":
        """Parse "namespace/name" (or a bare name)"""
        if "/" in value:
            namespace, name = value.split("/", 1)
            return cls(namespace=namespace, name=name)
        return cls(name=value)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class GroupVersionKind(BaseModel):
    """API group, version and kind of a cluster object"""

    group: str = ""
    version: str
    kind: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_api_version_and_kind(cls, api_version: str, kind: str) -> "GroupVersionKind":
        """Split "apps/v1" into group and version; core kinds have no group"""
        if "/" in api_version:
            group, version = api_version.split("/", 1)
        else:
            group, version = "", api_version
        return cls(group=group, version=version, kind=kind)

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def group_kind_key(self) -> str:
        """Version independent key of the kind, used for resource identity"""
        return f"{self.group}/* , Kind={self.kind}"

    def __str__(self) -> str:
        return f"{self.api_version}, Kind={self.kind}"


NAMESPACE_GVK = GroupVersionKind(group="", version="v1", kind="Namespace")


def manifest_identifier(manifest: dict[str, Any]) -> tuple[NamespacedName, GroupVersionKind]:
    """Read name, namespace, apiVersion and kind out of a manifest"""
    metadata = manifest.get("metadata") or {}
    nn = NamespacedName(
        namespace=metadata.get("namespace") or "",
        name=metadata.get("name") or "",
    )
    gvk = GroupVersionKind.from_api_version_and_kind(
        manifest.get("apiVersion", ""), manifest.get("kind", "")
    )
    return nn, gvk


class ObjectMeta(CamelModel):
    """Standard object metadata"""

    name: str
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    generation: int = 0
    resource_version: str = ""
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: str | None = None


class ClusterObject(CamelModel):
    """Any typed object stored in the cluster"""

    KIND: ClassVar[str] = ""

    metadata: ObjectMeta

    @property
    def namespaced_name(self) -> NamespacedName:
        return NamespacedName(namespace=self.metadata.namespace, name=self.metadata.name)

    @property
    def deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None


# ============================================================================
# Conditions
# ============================================================================


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(CamelModel):
    """
    A single status condition

    last_transition_time only moves when status changes, so a condition
    that is re-set with the same status keeps its original timestamp.
    """

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""
    observed_generation: int = 0


def find_status_condition(conditions: list[Condition], condition_type: str) -> Condition | None:
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def set_status_condition(conditions: list[Condition], new: Condition, now: str = "") -> None:
    """Add or update a condition in place"""
    existing = find_status_condition(conditions, new.type)
    if existing is None:
        if not new.last_transition_time:
            new = new.model_copy(update={"last_transition_time": now})
        conditions.append(new)
        return

    if existing.status != new.status:
        existing.status = new.status
        existing.last_transition_time = new.last_transition_time or now
    existing.reason = new.reason
    existing.message = new.message
    existing.observed_generation = new.observed_generation


# ============================================================================
# Parameters and value references
# ============================================================================


class BlueprintValueRef(CamelModel):
    """Reference to a value in a resource group generated earlier in the same pass"""

    resource_group: str
    json_path: str


class ResourceValueRef(CamelModel):
    """Reference to a value in a live cluster object"""

    api_version: str
    kind: str
    name: str
    namespace: str = ""
    json_path: str


class ValueRef(CamelModel):
    """Exactly one of blueprint or resource must be set"""

    blueprint: BlueprintValueRef | None = None
    resource: ResourceValueRef | None = None


class ParameterValue(CamelModel):
    """A value (literal or referenced) supplied for a template parameter"""

    name: str
    value: str = ""
    value_from: ValueRef | None = None


class Parameter(CamelModel):
    """
    A template parameter

    The value set for a rendering pass is held privately and never
    serialized back to the cluster.
    """

    name: str
    required: bool = False
    default: str = ""

    _value: str = PrivateAttr(default="")

    def set_value(self, value: str) -> None:
        self._value = value

    def value(self) -> str:
        """
        Effective value: the set value, else the default

        Raises:
            RequiredParameterMissing: If required and neither is present
        """
        if self._value:
            return self._value
        if self.default:
            return self.default
        if self.required:
            raise RequiredParameterMissing(self.name)
        return ""


class ParameterList(list[Parameter]):
    """The parameters of a template, with bulk value assignment and validation"""

    def find(self, name: str) -> Parameter | None:
        for parameter in self:
            if parameter.name == name:
                return parameter
        return None

    def set_values(
        self,
        values: list[ParameterValue],
        resolver: Callable[[ValueRef], str],
    ) -> None:
        """
        Assign supplied values to matching parameters

        A literal value wins; an empty literal with a value_from reference
        is resolved through resolver. Resolution errors propagate.
        """
        for parameter in self:
            for pv in values:
                if pv.name != parameter.name:
                    continue
                value = pv.value
                if not value and pv.value_from is not None:
                    value = resolver(pv.value_from)
                parameter.set_value(value)

    def validate(self) -> None:
        """
        Check every parameter has a usable value

        Raises:
            ParameterValidationFailed: Listing every failing parameter
        """
        errors = []
        for parameter in self:
            try:
                parameter.value()
            except RequiredParameterMissing as e:
                errors.append(e)
        if errors:
            raise ParameterValidationFailed(errors)


# ============================================================================
# ResourceTemplate
# ============================================================================


class ResourceNameRule(str, Enum):
    KEEP = "keep"
    TENANT = "tenant"


class ResourceNamespaceRule(str, Enum):
    KEEP = "keep"
    TENANT = "tenant"
    OPERATOR = "operator"


class ResourceTemplateRules(CamelModel):
    name: ResourceNameRule = ResourceNameRule.KEEP
    namespace: ResourceNamespaceRule = ResourceNamespaceRule.KEEP


class ResourceTemplateSpec(CamelModel):
    rules: ResourceTemplateRules = Field(default_factory=ResourceTemplateRules)
    parameters: list[Parameter] = Field(default_factory=list)
    resources: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Embedded manifests; string values may contain template expressions",
    )
    raw: list[str] = Field(
        default_factory=list,
        description="Raw (possibly multi-document) YAML template strings",
    )


class ResourceTemplate(ClusterObject):
    """A parameterized set of manifest templates plus naming rules"""

    KIND: ClassVar[str] = "ResourceTemplate"

    spec: ResourceTemplateSpec = Field(default_factory=ResourceTemplateSpec)

    def parameter_list(self) -> ParameterList:
        """Parameters as a ParameterList sharing the same Parameter objects"""
        return ParameterList(self.spec.parameters)


# ============================================================================
# Tenant and Blueprint
# ============================================================================


class TenantSpec(CamelModel):
    name: str = Field(..., description="Display name of the tenant")
    blueprint: str = Field(default="", description="Blueprint to use; empty means 'default'")


class TenantStatus(CamelModel):
    status: str = ""
    blueprint: str = ""
    namespace: str = ""
    resource_set: str = ""
    events: int = 0
    conditions: list[Condition] = Field(default_factory=list)


class Tenant(ClusterObject):
    KIND: ClassVar[str] = "Tenant"

    spec: TenantSpec
    status: TenantStatus = Field(default_factory=TenantStatus)

    def blueprint(self) -> str:
        return self.spec.blueprint or "default"


class BlueprintResourceGroup(CamelModel):
    name: str
    template: str
    parameters: list[ParameterValue] = Field(default_factory=list)


class BlueprintSpec(CamelModel):
    resource_name_prefix: str = ""
    resources: list[BlueprintResourceGroup] = Field(default_factory=list)


class Blueprint(ClusterObject):
    """Named, ordered set of resource groups, each bound to a template"""

    KIND: ClassVar[str] = "Blueprint"

    spec: BlueprintSpec = Field(default_factory=BlueprintSpec)

    def common_labels(self, tenant: Tenant) -> dict[str, str]:
        """Tenant labels, then blueprint labels, then the tenant marker label"""
        labels = dict(tenant.metadata.labels)
        labels.update(self.metadata.labels)
        labels[TENANT_LABEL] = tenant.metadata.name
        return labels

    def common_annotations(self, tenant: Tenant) -> dict[str, str]:
        annotations = dict(tenant.metadata.annotations)
        annotations.update(self.metadata.annotations)
        annotations[CONTROLLED_ANNOTATION] = "true"
        annotations.pop(LAST_APPLIED_ANNOTATION, None)
        return annotations


# ============================================================================
# ResourceSet
# ============================================================================


class ResourceSetPhase(str, Enum):
    RECONCILING = "Reconciling"
    PAUSED = "Paused"
    TERMINATING = "Terminating"


class ResourceSetResource(CamelModel):
    id: str
    order: int
    embedded: dict[str, Any] = Field(default_factory=dict)


class ResourceSetSpec(CamelModel):
    active: bool = False
    resources: list[ResourceSetResource] = Field(default_factory=list)

    def find(self, resource_id: str) -> int:
        """Index of the resource with the given id, or -1"""
        for i, resource in enumerate(self.resources):
            if resource.id == resource_id:
                return i
        return -1


class ResourceSetStatus(CamelModel):
    phase: ResourceSetPhase | None = None
    observed_generation: int = 0
    resource_version: str = ""
    conditions: list[Condition] = Field(default_factory=list)


class ResourceSet(ClusterObject):
    """One generation of a tenant's resources; at most one is active"""

    KIND: ClassVar[str] = "ResourceSet"

    spec: ResourceSetSpec = Field(default_factory=ResourceSetSpec)
    status: ResourceSetStatus = Field(default_factory=ResourceSetStatus)
