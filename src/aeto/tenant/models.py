"""
Tenant projection state

State is what the tenant aggregate knows about its tenant after replaying
the stream. It is only ever changed by `on`, one event at a time.
"""

from pydantic import BaseModel, Field

from aeto.kernel.events import Event
from aeto.tenant.events import (
    AnnotationsChanged,
    BlueprintSet,
    LabelsChanged,
    ResourceAdded,
    ResourceGenerationFailed,
    ResourceGenerationSuccessful,
    ResourceNamespaceNameChanged,
    ResourceRemoved,
    ResourceSetActivated,
    ResourceSetCreated,
    ResourceSetDeactivated,
    ResourceSetNameChanged,
    ResourceSetVersionChanged,
    ResourceUpdated,
    TenantCreated,
    TenantDeleted,
    TenantNameSet,
)
from aeto.tenant.resources import (
    Resource,
    ResourceGroup,
    ResourceGroupList,
    ResourceList,
    query_json_path,
)

__all__ = [
    "Resource",
    "ResourceGroup",
    "ResourceGroupList",
    "ResourceList",
    "State",
    "query_json_path",
]


class State(BaseModel):
    """Tenant aggregate state"""

    tenant_name: str = ""
    tenant_namespace: str = ""
    tenant_display_name: str = ""

    blueprint_name: str = ""
    blueprint_namespace: str = ""

    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    tenant_prefixed_name: str = ""
    tenant_prefixed_namespace: str = ""

    resource_generation_failed: bool = False
    resource_generation_sum: str = ""

    resource_set_version: int = 0
    resource_set_name: str = ""
    resource_set_namespace: str = ""
    resources: list[Resource] = Field(default_factory=list)

    resource_set_active: dict[str, bool] = Field(default_factory=dict)

    deleted: bool = False

    def resource_list(self) -> ResourceList:
        return ResourceList(self.resources)

    def on(self, event: Event) -> None:
        """Apply a single event"""
        if isinstance(event, TenantCreated):
            self.tenant_name = event.name
            self.tenant_namespace = event.namespace

        elif isinstance(event, TenantNameSet):
            self.tenant_display_name = event.name

        elif isinstance(event, BlueprintSet):
            self.blueprint_name = event.name
            self.blueprint_namespace = event.namespace

        elif isinstance(event, LabelsChanged):
            self.labels = dict(event.labels)

        elif isinstance(event, AnnotationsChanged):
            self.annotations = dict(event.annotations)

        elif isinstance(event, ResourceNamespaceNameChanged):
            self.tenant_prefixed_name = event.name
            self.tenant_prefixed_namespace = event.namespace

        elif isinstance(event, ResourceGenerationFailed):
            self.resource_generation_failed = True
            self.resource_generation_sum = event.sum

        elif isinstance(event, ResourceGenerationSuccessful):
            self.resource_generation_failed = False
            self.resource_generation_sum = event.sum

        elif isinstance(event, ResourceSetVersionChanged):
            self.resource_set_version = event.version

        elif isinstance(event, (ResourceSetCreated, ResourceSetNameChanged)):
            self.resource_set_name = event.name
            self.resource_set_namespace = event.namespace

        elif isinstance(event, ResourceAdded):
            self.resources = self.resources + [event.resource]

        elif isinstance(event, ResourceUpdated):
            index, _ = self.resource_list().find(event.resource.id)
            if index >= 0:
                resources = list(self.resources)
                resources[index] = event.resource
                self.resources = resources

        elif isinstance(event, ResourceRemoved):
            index, _ = self.resource_list().find(event.resource_id)
            self.resources = list(self.resource_list().remove_at(index))

        elif isinstance(event, ResourceSetActivated):
            self.resource_set_active[event.name] = True

        elif isinstance(event, ResourceSetDeactivated):
            self.resource_set_active[event.name] = False

        elif isinstance(event, TenantDeleted):
            self.deleted = True
