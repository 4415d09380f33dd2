"""
aeto - Event-sourced multi-tenancy control plane core

Tenants are described by a Blueprint of resource templates. Every decision
made about a tenant is recorded as an event, and everything the operator
writes to the cluster is replayed from that history.

Fun fact: "Aeto" is Greek for eagle - the operator keeps watch over every
tenant from above and swoops in whenever one drifts.
"""

from aeto.kernel.config import OperatorConfig
from aeto.resourceset.controller import ResourceSetReconciler
from aeto.tenant.reconcilers import TenantReconciler

__version__ = "0.1.0"
__all__ = ["OperatorConfig", "ResourceSetReconciler", "TenantReconciler", "__version__"]
