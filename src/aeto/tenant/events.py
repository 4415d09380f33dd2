"""
Tenant event vocabulary

These class names are the wire tags written into every stored record.
Renaming one makes existing streams unreadable, so the names are frozen.
A new event must be added to tenant_events() before any stream holding it
can be read back.
"""

from pydantic import Field

from aeto.kernel.events import Event
from aeto.tenant.resources import Resource


class TenantCreated(Event):
    name: str
    namespace: str


class TenantDeleted(Event):
    pass


class TenantNameSet(Event):
    """Display name of the tenant changed"""

    name: str


class BlueprintSet(Event):
    name: str
    namespace: str = ""


class LabelsChanged(Event):
    labels: dict[str, str] = Field(default_factory=dict)


class AnnotationsChanged(Event):
    annotations: dict[str, str] = Field(default_factory=dict)


class ResourceNamespaceNameChanged(Event):
    """Prefixed name and namespace used for the tenant's resources changed"""

    name: str
    namespace: str


class ResourceSetVersionChanged(Event):
    version: int = Field(..., ge=1)


class ResourceSetNameChanged(Event):
    name: str
    namespace: str = ""


class ResourceSetCreated(Event):
    name: str
    namespace: str


class ResourceSetActivated(Event):
    name: str


class ResourceSetDeactivated(Event):
    name: str


class ResourceAdded(Event):
    resource: Resource


class ResourceUpdated(Event):
    resource: Resource


class ResourceRemoved(Event):
    resource_id: str = Field(..., alias="resourceId")


class ResourceGenerationFailed(Event):
    sum: str = ""


class ResourceGenerationSuccessful(Event):
    sum: str = ""


def tenant_events() -> list[type[Event]]:
    """Every tenant event class, for serializer registration"""
    return [
        TenantCreated,
        TenantDeleted,
        TenantNameSet,
        BlueprintSet,
        LabelsChanged,
        AnnotationsChanged,
        ResourceNamespaceNameChanged,
        ResourceSetVersionChanged,
        ResourceSetNameChanged,
        ResourceSetCreated,
        ResourceSetActivated,
        ResourceSetDeactivated,
        ResourceAdded,
        ResourceUpdated,
        ResourceRemoved,
        ResourceGenerationFailed,
        ResourceGenerationSuccessful,
    ]
