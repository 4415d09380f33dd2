"""
ResourceSet controller - applies the active resource set to the cluster

Only the active set of a tenant is applied. Inactive sets are kept
around (paused) so a previous generation can be inspected or restored.
When an active set is deleted its resources are removed in reverse
order, and the set is held by its finalizer until every one is gone.
"""

import copy
from typing import Any

from aeto.core.cluster import ClusterClient
from aeto.core.finalizer import RESOURCE_SET_FINALIZER, with_finalizer
from aeto.core.models import (
    CONDITION_ACTIVE,
    CONDITION_READY,
    Condition,
    ConditionStatus,
    NamespacedName,
    ResourceSet,
    ResourceSetPhase,
    ResourceSetResource,
    manifest_identifier,
    set_status_condition,
)
from aeto.kernel.config import OperatorConfig
from aeto.kernel.errors import AetoError, ResourceNotFound
from aeto.kernel.metrics import track_reconcile_duration
from aeto.kernel.reconcile import ReconcileContext, RequeueDirective, Result, ResultList
from aeto.kernel.time import TimeProvider, default_time_provider, format_timestamp
from aeto.tenant.resources import format_value

TERMINATION_REQUEUE_SECONDS = 5


def resource_ready(manifest: dict[str, Any] | None) -> bool:
    """
    Readiness of a live resource

    - missing resource: not ready
    - no status: ready
    - status.ready present: ready unless it is false
    - a single Ready condition: ready when its status is true
    - anything else: ready
    """
    if manifest is None:
        return False

    status = manifest.get("status")
    if not isinstance(status, dict):
        return True

    if "ready" in status:
        return format_value(status["ready"]).lower() != "false"

    ready = [
        c.get("status")
        for c in status.get("conditions") or []
        if isinstance(c, dict) and c.get("type") == CONDITION_READY
    ]
    if len(ready) == 1:
        return format_value(ready[0]).lower() == "true"
    return True


class ResourceSetReconciler:
    """Reconciles one ResourceSet per call, keyed by "namespace/name" """

    def __init__(
        self,
        cluster: ClusterClient,
        config: OperatorConfig,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.cluster = cluster
        self.config = config
        self.time_provider = time_provider or default_time_provider

    @track_reconcile_duration("resourceset")
    def reconcile(self, key: str) -> RequeueDirective:
        ctx = ReconcileContext("resourceset", key, self.config)
        ctx.log.info("reconciling")

        try:
            resource_set = self.cluster.get(ResourceSet, NamespacedName.parse(key))
        except ResourceNotFound:
            ctx.log.info("ResourceSet not found")
            return RequeueDirective(requeue_after=0)

        def finalize(c: ReconcileContext) -> Result:
            if not resource_set.spec.active:
                c.log.info("ResourceSet inactive, skipping cleanup before delete")
                return c.done()
            if resource_set.status.phase != ResourceSetPhase.TERMINATING:
                result = self.update_status(c, resource_set, ResourceSetPhase.TERMINATING, False)
                if result.failed:
                    return result
                return c.requeue_in(TERMINATION_REQUEUE_SECONDS, "status updated, terminating")
            return self.reconcile_delete(c, resource_set)

        try:
            finalized = with_finalizer(self.cluster, ctx, resource_set, RESOURCE_SET_FINALIZER, finalize)
        except AetoError as e:
            return ctx.complete(ctx.error(e))
        if finalized is not None:
            return ctx.complete(finalized)

        results = ResultList()
        if resource_set.spec.active:
            for resource in resource_set.spec.resources:
                results.append(self.apply_resource(ctx, resource))
        else:
            ctx.log.info("ResourceSet inactive, skipping reconcile of resources")

        results.append(
            self.update_status(ctx, resource_set, ResourceSetPhase.RECONCILING, results.all_done())
        )
        return ctx.complete(*results)

    def apply_resource(self, ctx: ReconcileContext, resource: ResourceSetResource) -> Result:
        nn, _ = manifest_identifier(resource.embedded)
        try:
            self.cluster.dynamic_apply(nn, copy.deepcopy(resource.embedded))
        except AetoError as e:
            ctx.log.error("failed to apply resource from ResourceSet", id=resource.id, error=str(e))
            return ctx.error(e)
        return ctx.done()

    def reconcile_delete(self, ctx: ReconcileContext, resource_set: ResourceSet) -> Result:
        """Delete resources in reverse order; requeue while any still exists"""
        results = ResultList()
        for resource in reversed(resource_set.spec.resources):
            nn, gvk = manifest_identifier(resource.embedded)
            ctx.log.debug("deleting resource belonging to ResourceSet", id=resource.id, nn=str(nn), gvk=str(gvk))
            try:
                self.cluster.dynamic_delete(nn, gvk)
            except ResourceNotFound:
                pass
            except AetoError as e:
                results.append(ctx.error(e))
                continue

            if self.cluster.dynamic_get(nn, gvk) is not None:
                results.append(
                    ctx.requeue_in(
                        TERMINATION_REQUEUE_SECONDS,
                        f"resource is still being terminated ({nn} {gvk})",
                    )
                )
                continue
            results.append(ctx.done())

        for result in results:
            if result.requeue:
                ctx.log.debug("one or more resources belonging to the ResourceSet are being terminated")
                return result

        ctx.log.debug("all resources belonging to the ResourceSet have been deleted")
        return ctx.done()

    def check_resource_ready(self, ctx: ReconcileContext, resource: ResourceSetResource) -> bool:
        nn, gvk = manifest_identifier(resource.embedded)
        try:
            live = self.cluster.dynamic_get(nn, gvk)
        except AetoError as e:
            ctx.log.debug("failed to fetch resource, treating as not ready", nn=str(nn), error=str(e))
            return False
        return resource_ready(live)

    def update_status(
        self,
        ctx: ReconcileContext,
        resource_set: ResourceSet,
        phase: ResourceSetPhase,
        resources_applied: bool,
    ) -> Result:
        now = format_timestamp(self.time_provider.now())
        status = resource_set.status
        status.phase = phase
        status.observed_generation = resource_set.metadata.generation
        status.resource_version = resource_set.metadata.resource_version

        if not resource_set.spec.active and status.phase == ResourceSetPhase.RECONCILING:
            status.phase = ResourceSetPhase.PAUSED

        set_status_condition(
            status.conditions,
            Condition(
                type=CONDITION_ACTIVE,
                status=ConditionStatus.TRUE if resource_set.spec.active else ConditionStatus.FALSE,
                reason=status.phase.value,
            ),
            now=now,
        )

        ready_status = ConditionStatus.FALSE
        ready_reason = status.phase.value
        ready_message = ""
        if status.phase == ResourceSetPhase.RECONCILING:
            desired = len(resource_set.spec.resources)
            ready_count = sum(1 for r in resource_set.spec.resources if self.check_resource_ready(ctx, r))
            all_ready = ready_count == desired
            if resources_applied and all_ready:
                ready_status = ConditionStatus.TRUE
                ready_reason = "ResourcesReady"
            elif resources_applied:
                ready_reason = "ResourcesNotReady"
            ready_message = f"{ready_count}/{desired}"
        elif status.phase == ResourceSetPhase.PAUSED:
            ready_status = ConditionStatus.UNKNOWN

        set_status_condition(
            status.conditions,
            Condition(
                type=CONDITION_READY,
                status=ready_status,
                reason=ready_reason,
                message=ready_message,
            ),
            now=now,
        )

        ctx.log.debug("updating ResourceSet status", phase=status.phase.value)
        try:
            self.cluster.update_status(resource_set)
        except AetoError as e:
            ctx.log.error("failed to update ResourceSet status", error=str(e))
            return ctx.error(e)
        return ctx.done()
