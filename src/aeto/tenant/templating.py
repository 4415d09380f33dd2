"""
Resource templates

Templates are YAML documents with Jinja2 expressions. Embedded manifests
arrive as JSON and are converted to YAML first, so expressions render the
same way whichever form the template author used.
Every string of a converted manifest is single-quoted and expression output
is escaped to match, so rendered values may contain quotes or colons.
Rendered documents are parsed without timestamp resolution, dates stay
strings and every manifest remains plain JSON.

Example raw template:

    apiVersion: v1
    kind: ConfigMap
    metadata:
      name: {{ prefixed_name }}-settings
    data:
      region: {{ string("region") }}
"""

import json
from enum import Enum
from typing import Any

import jinja2
import yaml

from aeto.core.models import ParameterList
from aeto.kernel.errors import ManifestParseError, ParameterError, TemplateRenderError


class InputFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


class Namespaces:
    def __init__(self, tenant: str, operator: str) -> None:
        self.tenant = tenant
        self.operator = operator


class UtilityFunctions:
    """Helpers exposed to templates as utils.*"""

    @staticmethod
    def replace(s: str, old: str, new: str, n: int = -1) -> str:
        return s.replace(old, new, n)

    @staticmethod
    def replace_all(s: str, old: str, new: str) -> str:
        return s.replace(old, new)

    @staticmethod
    def contains_string(haystack: list[str], needle: str) -> bool:
        return needle in haystack


class TemplateData:
    """Everything a template can see while rendering"""

    def __init__(
        self,
        name: str,
        prefixed_name: str,
        display_name: str,
        namespaces: Namespaces,
        labels: dict[str, str],
        annotations: dict[str, str],
        parameters: ParameterList,
    ) -> None:
        self.name = name
        self.prefixed_name = prefixed_name
        self.display_name = display_name
        self.namespaces = namespaces
        self.labels = labels
        self.annotations = annotations
        self.parameters = parameters
        self.utils = UtilityFunctions()

    def string(self, name: str) -> str:
        """Value of a named parameter"""
        parameter = self.parameters.find(name)
        if parameter is None:
            raise ParameterError(f"parameter {name} not found")
        return parameter.value()

    def int(self, name: str) -> int:
        return int(self.string(name))

    def bool(self, name: str) -> bool:
        value = self.string(name).strip().lower()
        if value in ("1", "t", "true"):
            return True
        if value in ("0", "f", "false"):
            return False
        raise ValueError(f"parameter {name} is not a boolean: {value!r}")

    def context(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "prefixed_name": self.prefixed_name,
            "display_name": self.display_name,
            "namespaces": self.namespaces,
            "labels": self.labels,
            "annotations": self.annotations,
            "parameters": self.parameters,
            "utils": self.utils,
            "string": self.string,
            "int": self.int,
            "bool": self.bool,
        }


_environment = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,
)


def _escape_single_quoted(value: Any) -> str:
    return str(value).replace("'", "''")


# converted JSON keeps every string single-quoted, so expression output is escaped for that
_json_environment = _environment.overlay(finalize=_escape_single_quoted)


class _SingleQuotedDumper(yaml.SafeDumper):
    pass


def _represent_single_quoted(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", value, style="'")


_SingleQuotedDumper.add_representer(str, _represent_single_quoted)


class YamlTemplate:
    """A YAML template, converted from JSON when needed"""

    def __init__(self, source: str, input_format: InputFormat = InputFormat.YAML) -> None:
        self.format = input_format
        if input_format == InputFormat.JSON:
            try:
                document = json.loads(source)
            except ValueError as e:
                raise TemplateRenderError(f"failed to convert template to yaml, {e}") from e
            # no line wrapping, a folded scalar could split an expression
            source = yaml.dump(
                document,
                Dumper=_SingleQuotedDumper,
                sort_keys=False,
                default_flow_style=False,
                allow_unicode=True,
                width=float("inf"),
            )
        self.yaml = source

    def execute(self, data: TemplateData) -> str:
        """
        Render the template

        Raises:
            TemplateRenderError: If the template cannot be parsed or anything fails while it renders
        """
        environment = _json_environment if self.format == InputFormat.JSON else _environment
        try:
            template = environment.from_string(self.yaml)
        except jinja2.TemplateSyntaxError as e:
            raise TemplateRenderError(f"failed to parse template, {e}") from e

        try:
            return template.render(**data.context())
        except Exception as e:
            raise TemplateRenderError(f"failed to execute template, {e}") from e


class _ManifestLoader(yaml.SafeLoader):
    """SafeLoader that leaves timestamps as strings, so manifests stay JSON"""


_ManifestLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def split_documents(text: str) -> list[dict[str, Any]]:
    """
    Parse multi-document YAML into manifests, skipping empty documents

    Raises:
        ManifestParseError: If a document is not valid YAML or not a mapping
    """
    try:
        documents = list(yaml.load_all(text, Loader=_ManifestLoader))
    except yaml.YAMLError as e:
        raise ManifestParseError(f"failed to parse rendered yaml, {e}") from e

    manifests = []
    for document in documents:
        if document is None:
            continue
        if not isinstance(document, dict):
            raise ManifestParseError(
                f"rendered document is not a mapping (got {type(document).__name__})"
            )
        manifests.append(document)
    return manifests
