"""
Tenant reconcilers - turn the tenant stream into cluster state

TenantReconciler runs one pass per tenant key:

1. Load the stream and rebuild the TenantAggregate from it
2. Let the aggregate decide (create, display name, blueprint, resources)
3. Commit the new events and load the extended stream back
4. Replay the stream through each projection and act on the result:
   resource sets, orphaned resources, tenant status, requeue decision

Each step returns a Result; the context folds them into a single
RequeueDirective for the controller runtime.
"""

from aeto.core.cluster import ClusterClient
from aeto.core.finalizer import TENANT_FINALIZER, with_finalizer
from aeto.core.models import (
    CONDITION_READY,
    Blueprint,
    Condition,
    ConditionStatus,
    NamespacedName,
    ResourceSet,
    Tenant,
    find_status_condition,
    set_status_condition,
)
from aeto.kernel.aggregate import EventConsumer
from aeto.kernel.config import OperatorConfig
from aeto.kernel.errors import AetoError, GenerateError, InvariantViolation, ResourceNotFound
from aeto.kernel.logging import LogOperation
from aeto.kernel.metrics import (
    replay_duration_seconds,
    resource_sets_retired_total,
    track_reconcile_duration,
)
from aeto.kernel.reconcile import ReconcileContext, RequeueDirective, Result
from aeto.kernel.replay import replay
from aeto.kernel.repository import Repository, stream_id
from aeto.kernel.stream import Stream
from aeto.kernel.time import TimeProvider
from aeto.tenant.aggregate import TenantAggregate
from aeto.tenant.generator import ResourceGenerator
from aeto.tenant.invariants import select_retired_resource_sets, validate_single_active
from aeto.tenant.projections import (
    DeleteTracker,
    OrphanDetector,
    RequeueDecisionBuilder,
    ResourceSetBuilder,
    TenantStatusBuilder,
)


def _replay(ctx: ReconcileContext, consumer: EventConsumer, stream: Stream, projection: str) -> Result | None:
    """Replay the stream into consumer; a Result is returned only on failure"""
    with LogOperation(ctx.log, f"replay_{projection}", stream_id=stream.id):
        with replay_duration_seconds.labels(projection_name=projection).time():
            result = replay(consumer, stream.events())
    if result.failed:
        ctx.log.error(f"failed to replay {projection} from events", error=str(result.error))
        return ctx.error(result.error)
    return None


def reconcile_resource_set(ctx: ReconcileContext, cluster: ClusterClient, stream: Stream) -> Result:
    """
    Write the replayed resource sets to the cluster

    Retained sets are created or updated with the active set written last.
    Retired sets are deleted, unless the live copy is still active.
    """
    builder = ResourceSetBuilder()
    failed = _replay(ctx, builder, stream, "resource_set")
    if failed is not None:
        return failed

    sets = list(builder.resource_sets.values())
    try:
        validate_single_active(sets)
    except InvariantViolation as e:
        ctx.log.error("resource set invariant violated", error=str(e))
        return ctx.error(e)

    retired = select_retired_resource_sets(sets, ctx.config.max_tenant_resource_sets)
    retired_names = {rs.metadata.name for rs in retired}
    retained = sorted(
        (rs for rs in sets if rs.metadata.name not in retired_names),
        key=lambda rs: (rs.spec.active, rs.metadata.name),
    )
    ctx.log.debug(
        "replayed events onto ResourceSets",
        count=len(sets),
        retained=[rs.metadata.name for rs in retained],
        retired=sorted(retired_names),
    )

    try:
        for rs in retained:
            try:
                existing = cluster.get(ResourceSet, rs.namespaced_name)
            except ResourceNotFound:
                ctx.log.info("creating ResourceSet", resource_set=str(rs.namespaced_name))
                cluster.create(rs)
                continue

            existing.metadata.labels = dict(rs.metadata.labels)
            existing.metadata.annotations = dict(rs.metadata.annotations)
            existing.spec = rs.spec.model_copy(deep=True)
            cluster.update(existing)

        for rs in retired:
            try:
                existing = cluster.get(ResourceSet, rs.namespaced_name)
            except ResourceNotFound:
                continue
            if existing.spec.active:
                ctx.log.debug(
                    "skipping delete of old ResourceSet as it is currently set to active",
                    resource_set=str(rs.namespaced_name),
                )
                continue

            ctx.log.info("deleting old ResourceSet", resource_set=str(rs.namespaced_name))
            try:
                cluster.delete(existing)
            except ResourceNotFound:
                continue
            resource_sets_retired_total.inc()
    except AetoError as e:
        ctx.log.error("failed to write ResourceSets", error=str(e))
        return ctx.error(e)

    return ctx.done()


def reconcile_status(ctx: ReconcileContext, cluster: ClusterClient, tenant: Tenant, stream: Stream) -> Result:
    """
    Replay the tenant status and mirror readiness of the current resource set

    The tenant is Ready only once the resource set it points at reports a
    Ready condition of its own. Until then a requeue is requested.
    """
    builder = TenantStatusBuilder(tenant.status)
    failed = _replay(ctx, builder, stream, "tenant_status")
    if failed is not None:
        return failed

    status = builder.status
    resource_set_ready = False
    if status.resource_set:
        nn = NamespacedName.parse(status.resource_set)
        try:
            rs = cluster.get(ResourceSet, nn)
        except AetoError as e:
            ctx.log.debug("failed to fetch ResourceSet, unable to check readiness", error=str(e))
            rs = None

        rs_ready = find_status_condition(rs.status.conditions, CONDITION_READY) if rs else None
        if rs_ready is not None:
            resource_set_ready = rs_ready.status == ConditionStatus.TRUE
            if resource_set_ready:
                reason, message = "ResourceSetReady", "ResourceSet reconciled and ready"
            else:
                reason, message = "ResourceSetNotReady", "ResourceSet reconciled but not ready"
            set_status_condition(
                status.conditions,
                Condition(
                    type=CONDITION_READY,
                    status=rs_ready.status,
                    reason=reason,
                    message=message,
                    last_transition_time=rs_ready.last_transition_time,
                ),
            )

    for condition in status.conditions:
        condition.observed_generation = tenant.metadata.generation

    tenant.status = status
    try:
        cluster.update_status(tenant)
    except AetoError as e:
        ctx.log.error("failed to update Tenant status", error=str(e))
        return ctx.error(e)

    if not resource_set_ready:
        return ctx.requeue_in(
            ctx.config.generation_failure_backoff_seconds,
            "waiting for active ResourceSet to become ready",
        )
    return ctx.done()


def reconcile_orphaned_resources(ctx: ReconcileContext, cluster: ClusterClient, stream: Stream) -> Result:
    """Delete resources that are no longer generated, while the last generation succeeded"""
    detector = OrphanDetector()
    failed = _replay(ctx, detector, stream, "orphaned_resources")
    if failed is not None:
        return failed

    if not detector.delete_allowed:
        if detector.deleted:
            ctx.log.info("orphaned resources kept, last resource generation failed", count=len(detector.deleted))
        return ctx.done()

    errors: list[Exception] = []
    for resource in detector.deleted:
        nn, gvk = resource.identifier()
        ctx.log.debug("making sure orphaned resource is deleted", nn=str(nn), gvk=str(gvk))
        try:
            cluster.dynamic_delete(nn, gvk)
        except ResourceNotFound:
            continue
        except AetoError as e:
            ctx.log.error("failed to delete orphaned resource", nn=str(nn), gvk=str(gvk), error=str(e))
            errors.append(e)

    if errors:
        return ctx.error(errors[0])
    return ctx.done()


def reconcile_requeue_request(ctx: ReconcileContext, stream: Stream) -> Result:
    """Requeue after a failed resource generation"""
    builder = RequeueDecisionBuilder(ctx.config.generation_failure_backoff_seconds)
    failed = _replay(ctx, builder, stream, "requeue_request")
    if failed is not None:
        return failed

    if builder.result.requeue:
        return ctx.requeue_in(builder.result.requeue_in, builder.reason)
    return ctx.done()


def reconcile_delete(
    ctx: ReconcileContext,
    cluster: ClusterClient,
    repository: Repository,
    stream: Stream,
) -> Result:
    """
    Tear down every resource set the tenant ever created, then its stream

    A set counts as deleted only once the cluster no longer has it, so
    the stream outlives every set by at least one pass.
    """
    tracker = DeleteTracker()
    failed = _replay(ctx, tracker, stream, "delete_tracker")
    if failed is not None:
        return failed

    deleted = 0
    for name in tracker.resource_sets:
        nn = NamespacedName(namespace=ctx.config.namespace, name=name)
        try:
            existing = cluster.get(ResourceSet, nn)
        except ResourceNotFound:
            deleted += 1
            continue
        except AetoError as e:
            ctx.log.warning("failed to fetch ResourceSet", resource_set=str(nn), error=str(e))
            continue

        try:
            cluster.delete(existing)
        except ResourceNotFound:
            pass
        except AetoError as e:
            ctx.log.warning("failed to delete ResourceSet", resource_set=str(nn), error=str(e))

    total = len(tracker.resource_sets)
    if deleted != total:
        return ctx.requeue_in(
            ctx.config.generation_failure_backoff_seconds,
            f"{deleted} out of {total} ResourceSets deleted",
        )

    try:
        repository.delete(stream)
    except AetoError as e:
        ctx.log.error("failed to delete event stream chunks", error=str(e))
        return ctx.error(e)
    return ctx.done()


class TenantReconciler:
    """Reconciles one Tenant per call, keyed by "namespace/name" """

    def __init__(
        self,
        cluster: ClusterClient,
        repository: Repository,
        config: OperatorConfig,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.cluster = cluster
        self.repository = repository
        self.config = config
        self.time_provider = time_provider
        self.generator = ResourceGenerator(cluster, config)

    @track_reconcile_duration("tenant")
    def reconcile(self, key: str) -> RequeueDirective:
        ctx = ReconcileContext("tenant", key, self.config)
        ctx.log.info("reconciling")

        try:
            tenant = self.cluster.get(Tenant, NamespacedName.parse(key))
        except ResourceNotFound:
            ctx.log.info("Tenant not found")
            return RequeueDirective(requeue_after=0)

        sid = stream_id(key)
        try:
            stream = self.repository.get(sid)
        except AetoError as e:
            ctx.log.error("failed to load tenant event stream", error=str(e))
            return ctx.complete(ctx.error(e))

        def finalize(c: ReconcileContext) -> Result:
            return self._reconcile_deleted(c, tenant, stream)

        try:
            finalized = with_finalizer(self.cluster, ctx, tenant, TENANT_FINALIZER, finalize)
        except AetoError as e:
            return ctx.complete(ctx.error(e))
        if finalized is not None:
            return ctx.complete(finalized)

        aggregate = TenantAggregate.from_stream(stream, self.config, self.time_provider)
        if stream.length() == 0:
            aggregate.create(tenant.metadata.name, tenant.metadata.namespace)
        aggregate.set_display_name(tenant.spec.name)

        blueprint_nn = NamespacedName(namespace=self.config.namespace, name=tenant.blueprint())
        try:
            blueprint = self.cluster.get(Blueprint, blueprint_nn)
        except ResourceNotFound as e:
            ctx.log.info("Blueprint not found", blueprint=str(blueprint_nn))
            failed = self._save(ctx, aggregate)
            return ctx.complete(failed if failed is not None else ctx.error(e))

        aggregate.set_blueprint(tenant, blueprint)
        try:
            aggregate.generate_resources(self.generator, blueprint)
        except GenerateError as e:
            for error in e.errors:
                ctx.log.warning("failed to generate resources for tenant", error=str(error))

        failed = self._save(ctx, aggregate)
        if failed is not None:
            return ctx.complete(failed)

        try:
            stream = self.repository.get(sid)
        except AetoError as e:
            return ctx.complete(ctx.error(e))

        return ctx.complete(
            reconcile_resource_set(ctx, self.cluster, stream),
            reconcile_orphaned_resources(ctx, self.cluster, stream),
            reconcile_status(ctx, self.cluster, tenant, stream),
            reconcile_requeue_request(ctx, stream),
        )

    def _save(self, ctx: ReconcileContext, aggregate: TenantAggregate) -> Result | None:
        try:
            self.repository.save(aggregate)
        except AetoError as e:
            ctx.log.error("failed to commit tenant events", error=str(e))
            return ctx.error(e)
        return None

    def _reconcile_deleted(self, ctx: ReconcileContext, tenant: Tenant, stream: Stream) -> Result:
        if stream.length() == 0:
            return ctx.done()

        aggregate = TenantAggregate.from_stream(stream, self.config, self.time_provider)
        aggregate.delete()
        failed = self._save(ctx, aggregate)
        if failed is not None:
            return failed

        try:
            stream = self.repository.get(stream.id)
        except AetoError as e:
            return ctx.error(e)

        status = reconcile_status(ctx, self.cluster, tenant, stream)
        if status.failed:
            return status
        return reconcile_delete(ctx, self.cluster, self.repository, stream)
