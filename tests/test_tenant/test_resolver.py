"""
Tests for the value resolver

References fail closed: a missing group, a missing live object, a path
that matches nothing or an empty value are all errors.
"""

import pytest

from aeto.core.models import BlueprintValueRef, ResourceValueRef, ValueRef
from aeto.kernel.errors import InvalidValueReference, ValueReferenceNotFound
from aeto.tenant.models import Resource, ResourceGroup, ResourceGroupList
from aeto.tenant.resolver import ValueResolver
from tests.helpers import FakeCluster


@pytest.fixture
def groups() -> ResourceGroupList:
    return ResourceGroupList(
        [
            ResourceGroup(
                name="namespace",
                source_template="tenant-namespace",
                resources=[
                    Resource(
                        id="ns",
                        order=1,
                        sum="s",
                        embedded={"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "t-acme"}},
                    )
                ],
            )
        ]
    )


@pytest.fixture
def resolver(cluster: FakeCluster, groups: ResourceGroupList) -> ValueResolver:
    return ValueResolver(
        tenant_name="t-acme",
        tenant_namespace="t-acme",
        operator_namespace="aeto",
        resource_groups=groups,
        cluster=cluster,
    )


def blueprint_ref(group: str, path: str) -> ValueRef:
    return ValueRef(blueprint=BlueprintValueRef(resource_group=group, json_path=path))


def resource_ref(name: str, namespace: str, path: str) -> ValueRef:
    return ValueRef(
        resource=ResourceValueRef(api_version="v1", kind="Secret", name=name, namespace=namespace, json_path=path)
    )


def test_resolve_from_earlier_group(resolver: ValueResolver) -> None:
    assert resolver(blueprint_ref("namespace", ".resources[0].embedded.metadata.name")) == "t-acme"


def test_forward_reference_is_not_found(resolver: ValueResolver) -> None:
    with pytest.raises(ValueReferenceNotFound, match='resource group "settings" not found'):
        resolver.resolve(blueprint_ref("settings", ".resources[0].id"))


def test_path_matching_nothing_is_not_found(resolver: ValueResolver) -> None:
    with pytest.raises(ValueReferenceNotFound):
        resolver.resolve(blueprint_ref("namespace", ".resources[0].embedded.spec.missing"))


def test_invalid_path_is_rejected(resolver: ValueResolver) -> None:
    with pytest.raises(InvalidValueReference):
        resolver.resolve(blueprint_ref("namespace", ".resources[[["))


def test_resolve_from_live_resource_with_sentinels(resolver: ValueResolver, cluster: FakeCluster) -> None:
    cluster.put_manifest(
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": "t-acme", "namespace": "aeto"},
            "data": {"token": "c2VjcmV0"},
        }
    )

    assert resolver.resolve(resource_ref("$TENANT_NAME", "$OPERATOR_NAMESPACE", ".data.token")) == "c2VjcmV0"


def test_missing_live_resource_is_not_found(resolver: ValueResolver) -> None:
    with pytest.raises(ValueReferenceNotFound, match="not found"):
        resolver.resolve(resource_ref("db", "$TENANT_NAMESPACE", ".data.password"))


def test_empty_value_fails_closed(resolver: ValueResolver, cluster: FakeCluster) -> None:
    cluster.put_manifest(
        {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "db", "namespace": "t-acme"}, "data": {"password": ""}}
    )

    with pytest.raises(ValueReferenceNotFound, match="empty"):
        resolver.resolve(resource_ref("db", "$TENANT_NAMESPACE", ".data.password"))


def test_reference_needs_exactly_one_source(resolver: ValueResolver) -> None:
    with pytest.raises(InvalidValueReference, match="blueprint or resource is required"):
        resolver.resolve(ValueRef())

    both = ValueRef(
        blueprint=BlueprintValueRef(resource_group="namespace", json_path=".resources"),
        resource=ResourceValueRef(api_version="v1", kind="Secret", name="x", json_path=".data"),
    )
    with pytest.raises(InvalidValueReference, match="multiple references not allowed"):
        resolver.resolve(both)


def test_multiple_matches_are_returned_as_json(resolver: ValueResolver) -> None:
    assert resolver.resolve(blueprint_ref("namespace", ".resources[*].order")) == "1"
