"""
Resource-set invariants - checks run on replayed drafts before anything
is written to the cluster

Like the rest of the reconcile pass these are pure functions of the
replayed state. A violation stops the pass; nothing is auto-corrected.
"""

from aeto.core.models import ResourceSet
from aeto.kernel.errors import MultipleActiveResourceSets


def validate_single_active(sets: list[ResourceSet]) -> None:
    """
    At most one resource set of a tenant may be active

    Raises:
        MultipleActiveResourceSets: If more than one set is active
    """
    active = sum(1 for rs in sets if rs.spec.active)
    if active > 1:
        raise MultipleActiveResourceSets(active)


def select_retired_resource_sets(
    sets: list[ResourceSet],
    max_retained: int,
) -> list[ResourceSet]:
    """
    Sets to delete so that at most max_retained remain

    Names embed a zero padded version, so sorting by name sorts oldest
    first. The active set is never retired, even when it is among the
    oldest.
    """
    surplus = len(sets) - max_retained
    if surplus <= 0:
        return []

    retired = []
    for rs in sorted(sets, key=lambda s: s.metadata.name):
        if len(retired) == surplus:
            break
        if rs.spec.active:
            continue
        retired.append(rs)
    return retired
