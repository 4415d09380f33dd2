"""
Tenant - the event-sourced tenant aggregate and everything replayed from it

Tenant streams record every decision made about a tenant. Resource sets,
tenant status, orphan cleanup and requeue timing are all projections of
that one stream.
"""

from aeto.tenant.aggregate import TenantAggregate, diff_resources, resource_set_name
from aeto.tenant.events import tenant_events
from aeto.tenant.generator import GenerationResult, ResourceGenerator
from aeto.tenant.models import Resource, ResourceGroup, ResourceGroupList, ResourceList, State
from aeto.tenant.reconcilers import (
    TenantReconciler,
    reconcile_delete,
    reconcile_orphaned_resources,
    reconcile_requeue_request,
    reconcile_resource_set,
    reconcile_status,
)
from aeto.tenant.resolver import ValueResolver

__all__ = [
    "TenantAggregate",
    "diff_resources",
    "resource_set_name",
    "tenant_events",
    "GenerationResult",
    "ResourceGenerator",
    "Resource",
    "ResourceGroup",
    "ResourceGroupList",
    "ResourceList",
    "State",
    "TenantReconciler",
    "reconcile_delete",
    "reconcile_orphaned_resources",
    "reconcile_requeue_request",
    "reconcile_resource_set",
    "reconcile_status",
    "ValueResolver",
]
