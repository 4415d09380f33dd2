"""
Tenant projections - read models rebuilt from the tenant stream

Every reconcile pass replays the full stream into fresh projections. Each
one is a pure function of the event list, so it can be thrown away and
rebuilt at any time.

Fun fact: Projections are like "materialized views" in traditional databases,
but better - they're versioned, rebuildable, and can be customized per use case!
"""

from aeto.core.models import (
    CONDITION_READY,
    CONDITION_RECONCILING,
    CONDITION_TERMINATING,
    Condition,
    ConditionStatus,
    NamespacedName,
    ObjectMeta,
    ResourceSet,
    ResourceSetResource,
    ResourceSetSpec,
    TenantStatus,
    set_status_condition,
)
from aeto.kernel.events import Event
from aeto.kernel.reconcile import Result
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
    ResourceUpdated,
    TenantCreated,
    TenantDeleted,
)
from aeto.tenant.models import Resource, ResourceList

GENERATION_FAILURE_BACKOFF_SECONDS = 15


class ResourceSetBuilder:
    """
    Projection: resource-set drafts

    A new resource set starts as a copy of the current draft, so each set
    holds the full resource list of its generation. Resources of every
    draft are kept sorted by order.
    """

    def __init__(self) -> None:
        self.current = ""
        self.labels: dict[str, str] = {}
        self.annotations: dict[str, str] = {}
        self.resource_sets: dict[str, ResourceSet] = {}

    def current_set(self) -> ResourceSet | None:
        return self.resource_sets.get(self.current)

    def active(self) -> list[ResourceSet]:
        return [rs for rs in self.resource_sets.values() if rs.spec.active]

    def on(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if isinstance(event, LabelsChanged):
            self.labels = dict(event.labels)

        elif isinstance(event, AnnotationsChanged):
            self.annotations = dict(event.annotations)

        elif isinstance(event, ResourceSetCreated):
            current = self.current_set()
            spec = current.spec.model_copy(deep=True) if current else ResourceSetSpec()
            self.resource_sets[event.name] = ResourceSet(
                metadata=ObjectMeta(
                    name=event.name,
                    namespace=event.namespace,
                    labels=dict(self.labels),
                    annotations=dict(self.annotations),
                ),
                spec=spec,
            )
            self.current = event.name

        elif isinstance(event, ResourceSetNameChanged):
            current = self.resource_sets.pop(self.current, None)
            if current is not None:
                current.metadata.name = event.name
                if event.namespace:
                    current.metadata.namespace = event.namespace
                self.resource_sets[event.name] = current
            self.current = event.name

        elif isinstance(event, ResourceAdded):
            current = self.current_set()
            if current is not None:
                current.spec.resources.append(_to_resource_set_resource(event.resource))

        elif isinstance(event, ResourceUpdated):
            current = self.current_set()
            if current is not None:
                index = current.spec.find(event.resource.id)
                if index >= 0:
                    current.spec.resources[index] = _to_resource_set_resource(event.resource)

        elif isinstance(event, ResourceRemoved):
            current = self.current_set()
            if current is not None:
                index = current.spec.find(event.resource_id)
                if index >= 0:
                    del current.spec.resources[index]

        elif isinstance(event, ResourceSetActivated):
            if event.name in self.resource_sets:
                self.resource_sets[event.name].spec.active = True

        elif isinstance(event, ResourceSetDeactivated):
            if event.name in self.resource_sets:
                self.resource_sets[event.name].spec.active = False

        for rs in self.resource_sets.values():
            rs.spec.resources.sort(key=lambda r: r.order)


def _to_resource_set_resource(resource: Resource) -> ResourceSetResource:
    return ResourceSetResource(
        id=resource.id,
        order=resource.order,
        embedded=resource.model_copy(deep=True).embedded,
    )


class TenantStatusBuilder:
    """
    Projection: tenant status

    Starts from Ready=False/Initializing. Condition transition times come
    from event timestamps so the same stream always yields the same status.
    """

    def __init__(self, status: TenantStatus | None = None) -> None:
        self.status = status.model_copy(deep=True) if status else TenantStatus()
        self.status.events = 0
        set_status_condition(
            self.status.conditions,
            Condition(
                type=CONDITION_READY,
                status=ConditionStatus.FALSE,
                reason="Initializing",
                message="Initializing Tenant",
            ),
        )

    def _set(self, condition_type: str, status: ConditionStatus, reason: str, message: str, now: str) -> None:
        set_status_condition(
            self.status.conditions,
            Condition(type=condition_type, status=status, reason=reason, message=message),
            now=now,
        )

    def on(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if isinstance(event, TenantCreated):
            self._set(CONDITION_RECONCILING, ConditionStatus.TRUE, "TenantCreated", "Reconciling Tenant", event.timestamp)
            self._set(CONDITION_READY, ConditionStatus.FALSE, "TenantCreated", "Reconciling Tenant", event.timestamp)
            self.status.status = CONDITION_RECONCILING

        elif isinstance(event, ResourceNamespaceNameChanged):
            self.status.namespace = event.namespace

        elif isinstance(event, BlueprintSet):
            self.status.blueprint = str(NamespacedName(namespace=event.namespace, name=event.name))

        elif isinstance(event, (ResourceSetCreated, ResourceSetNameChanged)):
            self.status.resource_set = str(NamespacedName(namespace=event.namespace, name=event.name))

        elif isinstance(event, TenantDeleted):
            self._set(CONDITION_RECONCILING, ConditionStatus.FALSE, "TenantDeleted", "Performing cleanup", event.timestamp)
            self._set(CONDITION_READY, ConditionStatus.FALSE, "TenantDeleted", "Performing cleanup", event.timestamp)
            self._set(CONDITION_TERMINATING, ConditionStatus.TRUE, "TenantDeleted", "Performing cleanup", event.timestamp)
            self.status.status = CONDITION_TERMINATING

        self.status.events += 1


class OrphanDetector:
    """
    Projection: resources that were generated once and later removed

    delete_allowed follows the most recent generation outcome. Orphans are
    only deleted while it is True.
    """

    def __init__(self) -> None:
        self.delete_allowed = False
        self.active = ResourceList()
        self.deleted = ResourceList()

    def on(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if isinstance(event, ResourceAdded):
            self.active.append(event.resource)
            index, _ = self.deleted.find(event.resource.id)
            if index >= 0:
                self.deleted = self.deleted.remove_at(index)

        elif isinstance(event, ResourceUpdated):
            index, _ = self.active.find(event.resource.id)
            if index >= 0:
                self.active[index] = event.resource

        elif isinstance(event, ResourceRemoved):
            index, resource = self.active.find(event.resource_id)
            if resource is not None:
                self.active = self.active.remove_at(index)
                self.deleted.append(resource)

        elif isinstance(event, ResourceGenerationFailed):
            self.delete_allowed = False

        elif isinstance(event, ResourceGenerationSuccessful):
            self.delete_allowed = True


class RequeueDecisionBuilder:
    """Projection: requeue after a failed generation, nothing after a successful one"""

    def __init__(self, backoff_seconds: int = GENERATION_FAILURE_BACKOFF_SECONDS) -> None:
        self.backoff_seconds = backoff_seconds
        self.result = Result()
        self.reason = ""

    def on(self, event: Event) -> None:
        """Apply an event to update projection state"""
        if isinstance(event, ResourceGenerationFailed):
            self.result = Result(requeue_in=self.backoff_seconds)
            self.reason = "resource generation failed"

        elif isinstance(event, ResourceGenerationSuccessful):
            self.result = Result()
            self.reason = ""


class DeleteTracker:
    """Projection: every resource set ever created, for teardown"""

    def __init__(self) -> None:
        self.resource_sets: list[str] = []

    def on(self, event: Event) -> None:
        if isinstance(event, ResourceSetCreated):
            self.resource_sets.append(event.name)
