"""
Finalizers - cleanup that must finish before the cluster forgets an object

While an object is live the finalizer is only ensured to be present. Once
deletion has been requested the handler runs on every pass until it
reports done, then the finalizer is removed and the cluster may finish
the delete.
"""

from typing import Callable

from aeto.core.cluster import ClusterClient
from aeto.core.models import ClusterObject
from aeto.kernel.reconcile import ReconcileContext, Result

TENANT_FINALIZER = "tenant.core.aeto.net/finalizer"
RESOURCE_SET_FINALIZER = "resourceset.core.aeto.net/finalizer"


def with_finalizer(
    cluster: ClusterClient,
    ctx: ReconcileContext,
    obj: ClusterObject,
    finalizer: str,
    handler: Callable[[ReconcileContext], Result],
) -> Result | None:
    """
    Run finalizer bookkeeping for obj

    Returns:
        None when the object is live and the pass should continue,
        otherwise the Result that ends the pass
    """
    kind = obj.KIND or type(obj).__name__

    if not obj.deleting:
        if finalizer not in obj.metadata.finalizers:
            ctx.log.debug(f"ensuring finalizer is present on {kind}", finalizer=finalizer)
            obj.metadata.finalizers.append(finalizer)
            cluster.update(obj)
        return None

    if finalizer not in obj.metadata.finalizers:
        return ctx.done()

    ctx.log.info(f"{kind} is being deleted, finalizer is present", finalizer=finalizer)
    result = handler(ctx)
    if result.requeue:
        ctx.log.debug(f"finalizer requires requeue for {kind}", finalizer=finalizer)
        return result

    obj.metadata.finalizers = [f for f in obj.metadata.finalizers if f != finalizer]
    cluster.update(obj)
    ctx.log.info(f"finalizer removed for {kind}", finalizer=finalizer)
    return ctx.done()
