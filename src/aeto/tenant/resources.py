"""
Generated resources and resource groups

A Resource is one rendered manifest. Its id is derived from what the
manifest IS (kind, namespace, name), its sum from what it CONTAINS, so a
content edit keeps the id and changes the sum.
"""

import json
from typing import Any

from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError
from jsonpath_ng.ext import parse as parse_json_path
from pydantic import Field

from aeto.core.models import CamelModel, GroupVersionKind, NamespacedName, manifest_identifier
from aeto.kernel.errors import InvalidValueReference, ValueReferenceNotFound


class Resource(CamelModel):
    """A rendered, content-addressed manifest"""

    id: str = Field(..., description="sha256 of group/kind, namespace and name")
    order: int = Field(..., ge=0, description="Position across the whole blueprint, 1-based")
    sum: str = Field(default="", description="sha256 of the rendered manifest")
    embedded: dict[str, Any] = Field(default_factory=dict)

    def identifier(self) -> tuple[NamespacedName, GroupVersionKind]:
        return manifest_identifier(self.embedded)


class ResourceList(list[Resource]):
    """Ordered resources with id lookup"""

    def find(self, resource_id: str) -> tuple[int, Resource | None]:
        for i, resource in enumerate(self):
            if resource.id == resource_id:
                return i, resource
        return -1, None

    def remove_at(self, index: int) -> "ResourceList":
        """Copy of the list without the resource at index (unchanged for -1)"""
        if index < 0:
            return ResourceList(self)
        return ResourceList(self[:index] + self[index + 1 :])


class ResourceGroup(CamelModel):
    """The resources rendered from one blueprint resource group"""

    name: str
    source_template: str
    resources: list[Resource] = Field(default_factory=list)

    def json_path(self, path: str) -> str:
        """Query the JSON form of the group; path is relative to the root ($)"""
        return query_json_path(self.to_manifest(), path)


class ResourceGroupList(list[ResourceGroup]):
    def resources(self) -> ResourceList:
        return ResourceList(r for group in self for r in group.resources)

    def group(self, name: str) -> ResourceGroup | None:
        for group in self:
            if group.name == name:
                return group
        return None


def format_value(value: Any) -> str:
    """Render a queried value as a parameter string"""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def query_json_path(document: Any, path: str) -> str:
    """
    Evaluate "$" + path against document

    A single match is returned as a string, several matches as a JSON
    list. No match is an error; values are never silently defaulted.

    Raises:
        InvalidValueReference: If the path does not parse
        ValueReferenceNotFound: If the path matches nothing
    """
    expression = f"${path}"
    try:
        compiled = parse_json_path(expression)
    except (JsonPathLexerError, JsonPathParserError) as e:
        raise InvalidValueReference(f"invalid jsonpath {expression}: {e}") from e

    matches = [m.value for m in compiled.find(document)]
    if not matches:
        raise ValueReferenceNotFound(f"jsonpath {expression} matched nothing")
    if len(matches) == 1:
        return format_value(matches[0])
    return format_value(matches)
