"""
ResourceSet - applies generated resource sets to the cluster
"""

from aeto.resourceset.controller import ResourceSetReconciler, resource_ready

__all__ = ["ResourceSetReconciler", "resource_ready"]
