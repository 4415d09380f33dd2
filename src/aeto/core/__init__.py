"""
Core - cluster object models and the cluster collaborator interface
"""

from aeto.core.cluster import ClusterClient
from aeto.core.models import (
    Blueprint,
    BlueprintResourceGroup,
    Condition,
    ConditionStatus,
    GroupVersionKind,
    NamespacedName,
    ObjectMeta,
    Parameter,
    ParameterValue,
    ResourceSet,
    ResourceTemplate,
    Tenant,
    ValueRef,
)

__all__ = [
    "ClusterClient",
    "Blueprint",
    "BlueprintResourceGroup",
    "Condition",
    "ConditionStatus",
    "GroupVersionKind",
    "NamespacedName",
    "ObjectMeta",
    "Parameter",
    "ParameterValue",
    "ResourceSet",
    "ResourceTemplate",
    "Tenant",
    "ValueRef",
]
