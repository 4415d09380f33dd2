"""
Cluster collaborator interface

aeto never talks to a cluster API directly. Reconcilers and the
generator receive an object implementing ClusterClient: typed CRUD for
aeto's own objects plus dynamic get/apply/delete for arbitrary manifests.
"""

from typing import Any, Protocol, TypeVar

from aeto.core.models import ClusterObject, GroupVersionKind, NamespacedName

T = TypeVar("T", bound=ClusterObject)


class ClusterClient(Protocol):
    """Operations aeto needs from a cluster"""

    def get(self, model_cls: type[T], nn: NamespacedName) -> T:
        """
        Fetch a typed object

        Raises:
            ResourceNotFound: If no such object exists
        """
        ...

    def list(self, model_cls: type[T], namespace: str = "") -> list[T]:
        ...

    def create(self, obj: ClusterObject) -> None:
        ...

    def update(self, obj: ClusterObject) -> None:
        ...

    def update_status(self, obj: ClusterObject) -> None:
        ...

    def delete(self, obj: ClusterObject) -> None:
        """
        Delete a typed object

        Raises:
            ResourceNotFound: If no such object exists
        """
        ...

    def dynamic_get(self, nn: NamespacedName, gvk: GroupVersionKind) -> dict[str, Any] | None:
        """Fetch any object as a manifest dict; None when it does not exist"""
        ...

    def dynamic_apply(self, nn: NamespacedName, manifest: dict[str, Any]) -> None:
        ...

    def dynamic_delete(self, nn: NamespacedName, gvk: GroupVersionKind) -> None:
        """
        Delete any object

        Raises:
            ResourceNotFound: If no such object exists
        """
        ...
