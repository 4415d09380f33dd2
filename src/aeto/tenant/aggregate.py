"""
Tenant aggregate - decides which events a reconcile pass produces

The aggregate is rebuilt from the tenant's stream on every pass. Each
decision method compares the desired state it is handed with what the
replayed State already says, and applies an event only when something
actually changed. Running the same pass twice therefore produces no new
events the second time.
"""

from aeto.core.models import Blueprint, Tenant
from aeto.kernel.aggregate import AggregateRoot
from aeto.kernel.config import OperatorConfig
from aeto.kernel.errors import GenerateError
from aeto.kernel.events import Event
from aeto.kernel.ids import commit_id
from aeto.kernel.stream import Commit, Stream
from aeto.kernel.time import TimeProvider
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
    ResourceSetVersionChanged,
    ResourceUpdated,
    TenantCreated,
    TenantDeleted,
    TenantNameSet,
)
from aeto.tenant.generator import GenerationResult, ResourceGenerator
from aeto.tenant.models import Resource, ResourceList, State


def resource_set_name(tenant_name: str, version: int) -> str:
    return f"rs-{tenant_name}-{version:06d}"


def diff_resources(
    previous: list[Resource],
    generated: list[Resource],
    partial: bool = False,
) -> list[Event]:
    """
    Events that turn the previous resource list into the generated one

    - ResourceUpdated when a known id changed sum or order
    - ResourceAdded when the id is new
    - ResourceRemoved for previous ids no longer generated

    A partial result comes from a generation where some groups failed, so
    the orders of the resources that did render are shifted. Nothing is
    removed then, known resources keep their order and new ones are placed
    after every known one. Orders are renumbered by the next complete
    generation.
    """
    known = ResourceList(previous)
    fresh = ResourceList(generated)
    events: list[Event] = []
    next_order = max((r.order for r in known), default=0)

    for resource in fresh:
        _, existing = known.find(resource.id)
        if partial:
            if existing is None:
                next_order += 1
                events.append(ResourceAdded(resource=resource.model_copy(update={"order": next_order})))
            elif existing.sum != resource.sum:
                events.append(ResourceUpdated(resource=resource.model_copy(update={"order": existing.order})))
        elif existing is None:
            events.append(ResourceAdded(resource=resource))
        elif existing.sum != resource.sum or existing.order != resource.order:
            events.append(ResourceUpdated(resource=resource))

    if not partial:
        for resource in known:
            _, found = fresh.find(resource.id)
            if found is None:
                events.append(ResourceRemoved(resource_id=resource.id))

    return events


class TenantAggregate:
    """Event-sourced tenant"""

    def __init__(
        self,
        aggregate_id: str,
        config: OperatorConfig | None = None,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.state = State()
        self.config = config or OperatorConfig()
        self.root = AggregateRoot(aggregate_id, self.state, time_provider)

    @classmethod
    def new(
        cls,
        aggregate_id: str,
        config: OperatorConfig | None = None,
        time_provider: TimeProvider | None = None,
    ) -> "TenantAggregate":
        return cls(aggregate_id, config, time_provider)

    @classmethod
    def from_stream(
        cls,
        stream: Stream,
        config: OperatorConfig | None = None,
        time_provider: TimeProvider | None = None,
    ) -> "TenantAggregate":
        aggregate = cls(stream.id, config, time_provider)
        aggregate.root.load_from_historical_events(stream)
        return aggregate

    @property
    def id(self) -> str:
        return self.root.id

    @property
    def version(self) -> int:
        return self.root.version

    @property
    def uncommitted(self) -> list[Event]:
        return list(self.root.uncommitted)

    def create(self, name: str, namespace: str) -> None:
        self.root.apply(TenantCreated(name=name, namespace=namespace))

    def set_display_name(self, name: str) -> None:
        if self.state.tenant_display_name != name:
            self.root.apply(TenantNameSet(name=name))

    def set_blueprint(self, tenant: Tenant, blueprint: Blueprint) -> None:
        """Record blueprint, prefixed naming and common labels/annotations"""
        if (
            self.state.blueprint_name != blueprint.metadata.name
            or self.state.blueprint_namespace != blueprint.metadata.namespace
        ):
            self.root.apply(
                BlueprintSet(name=blueprint.metadata.name, namespace=blueprint.metadata.namespace)
            )

        prefixed = blueprint.spec.resource_name_prefix + self.state.tenant_name
        if (
            self.state.tenant_prefixed_name != prefixed
            or self.state.tenant_prefixed_namespace != prefixed
        ):
            self.root.apply(ResourceNamespaceNameChanged(name=prefixed, namespace=prefixed))

        labels = blueprint.common_labels(tenant)
        if self.state.labels != labels:
            self.root.apply(LabelsChanged(labels=labels))

        annotations = blueprint.common_annotations(tenant)
        if self.state.annotations != annotations:
            self.root.apply(AnnotationsChanged(annotations=annotations))

    def generate_resources(self, generator: ResourceGenerator, blueprint: Blueprint) -> None:
        """
        Generate resources and apply the events needed to converge on them

        When some groups fail, events for the groups that rendered are
        still applied but nothing is removed, and the GenerateError is
        re-raised afterwards. When no group rendered at all, only the
        failure is recorded.

        Raises:
            GenerateError: If any resource group failed to generate
        """
        error: GenerateError | None = None
        try:
            result = generator.generate(self.state, blueprint)
        except GenerateError as e:
            error = e
            result = e.result if isinstance(e.result, GenerationResult) else GenerationResult()

        changed = self.state.resource_generation_sum != result.sum

        if error is not None:
            if not self.state.resource_generation_failed or changed:
                self.root.apply(ResourceGenerationFailed(sum=result.sum))
            if not result.resource_groups:
                raise error
        elif self.state.resource_generation_failed or changed:
            self.root.apply(ResourceGenerationSuccessful(sum=result.sum))

        if changed:
            version = self.state.resource_set_version + 1
            self.root.apply(ResourceSetVersionChanged(version=version))
            self.root.apply(
                ResourceSetCreated(
                    name=resource_set_name(self.state.tenant_name, version),
                    namespace=self.config.namespace,
                )
            )

        for event in diff_resources(
            self.state.resources, result.resources(), partial=error is not None
        ):
            self.root.apply(event)

        current = self.state.resource_set_name
        for name, active in sorted(self.state.resource_set_active.items()):
            if active and name != current:
                self.root.apply(ResourceSetDeactivated(name=name))

        if current and not self.state.resource_set_active.get(current, False):
            self.root.apply(ResourceSetActivated(name=current))

        if error is not None:
            raise error

    def delete(self) -> None:
        if not self.state.deleted:
            self.root.apply(TenantDeleted())

    def commit(self) -> Commit:
        """Flush pending events into a commit named after the new version"""
        commit = Commit("", 0)
        self.root.commit_events(commit.append)
        commit.id = commit_id(self.id, self.version)
        commit.sequence = self.version
        commit.timestamp = self.root.now()
        return commit
