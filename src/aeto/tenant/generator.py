"""
Resource generator - turns a Blueprint into content-addressed resources

For every resource group of the blueprint, in order:

1. Fetch the group's ResourceTemplate from the operator namespace
2. Assign parameter values (literal or resolved reference) and validate
3. Render raw templates, then embedded manifests, and split the documents
4. Apply the template's name/namespace rules
5. Merge the tenant's common labels and annotations (tenant values win)
6. Derive Id from kind, namespace and name, and Sum from the content

A failing group does not stop the others. Every failure is collected and
reported together once all groups have been attempted.
"""

import copy
import json
from typing import Any

from pydantic import BaseModel, Field

from aeto.core.cluster import ClusterClient
from aeto.core.models import (
    NAMESPACE_GVK,
    Blueprint,
    BlueprintResourceGroup,
    NamespacedName,
    ResourceNameRule,
    ResourceNamespaceRule,
    ResourceTemplate,
    manifest_identifier,
)
from aeto.kernel.config import OperatorConfig
from aeto.kernel.errors import GenerateError
from aeto.kernel.ids import as_sha256, canonical_json, sha256_sum
from aeto.kernel.logging import get_logger
from aeto.kernel.metrics import generated_resources, resource_generation_failures_total
from aeto.tenant.models import Resource, ResourceGroup, ResourceGroupList, ResourceList, State
from aeto.tenant.resolver import ValueResolver
from aeto.tenant.templating import InputFormat, Namespaces, TemplateData, YamlTemplate, split_documents

logger = get_logger(__name__)


class GenerationResult(BaseModel):
    """Rendered groups plus one sum over every (Id, Order, Sum)"""

    resource_groups: list[ResourceGroup] = Field(default_factory=list)
    sum: str = ""

    def groups(self) -> ResourceGroupList:
        return ResourceGroupList(self.resource_groups)

    def resources(self) -> ResourceList:
        return self.groups().resources()


def resource_id(manifest: dict[str, Any]) -> str:
    """Identity of a manifest: group/kind plus namespace/name, never content"""
    nn, gvk = manifest_identifier(manifest)
    return as_sha256(f"{gvk.group_kind_key()} {nn.namespace}/{nn.name}")


def generation_sum(blueprint_name: str, resources: list[Resource]) -> str:
    return as_sha256(
        {
            "BlueprintName": blueprint_name,
            "Resources": [{"Id": r.id, "Order": r.order, "Sum": r.sum} for r in resources],
        }
    )


class ResourceGenerator:
    def __init__(self, cluster: ClusterClient, config: OperatorConfig) -> None:
        self.cluster = cluster
        self.config = config

    def generate(self, state: State, blueprint: Blueprint) -> GenerationResult:
        """
        Render every resource group of the blueprint

        Raises:
            GenerateError: If any group failed; carries the partial result
        """
        groups = ResourceGroupList()
        errors: list[Exception] = []
        index = 0

        for blueprint_group in blueprint.spec.resources:
            try:
                manifests = self._generate_group(blueprint_group, state, groups)
            except Exception as e:
                logger.warning(
                    "resource group failed to generate",
                    group=blueprint_group.name,
                    template=blueprint_group.template,
                    error=str(e),
                )
                errors.append(e)
                continue

            group = ResourceGroup(name=blueprint_group.name, source_template=blueprint_group.template)
            for manifest in manifests:
                index += 1
                try:
                    group.resources.append(
                        Resource(
                            id=resource_id(manifest),
                            order=index,
                            sum=sha256_sum(canonical_json(manifest)),
                            embedded=manifest,
                        )
                    )
                except Exception as e:
                    logger.warning("resource failed to serialize", group=blueprint_group.name, error=str(e))
                    errors.append(e)
            groups.append(group)

        result = GenerationResult(
            resource_groups=list(groups),
            sum=generation_sum(blueprint.metadata.name, groups.resources()),
        )
        generated_resources.labels(tenant=state.tenant_name).set(len(result.resources()))

        if errors:
            resource_generation_failures_total.labels(tenant=state.tenant_name).inc()
            raise GenerateError(errors, result)
        return result

    def _generate_group(
        self,
        blueprint_group: BlueprintResourceGroup,
        state: State,
        groups: ResourceGroupList,
    ) -> list[dict[str, Any]]:
        template = self.cluster.get(
            ResourceTemplate,
            NamespacedName(namespace=self.config.namespace, name=blueprint_group.template),
        )

        resolver = ValueResolver(
            tenant_name=state.tenant_prefixed_name,
            tenant_namespace=state.tenant_prefixed_namespace,
            operator_namespace=self.config.namespace,
            resource_groups=groups,
            cluster=self.cluster,
        )

        logger.debug("applying parameter overrides", group=blueprint_group.name)
        parameters = template.parameter_list()
        parameters.set_values(blueprint_group.parameters, resolver)
        parameters.validate()

        data = TemplateData(
            name=state.tenant_name,
            prefixed_name=state.tenant_prefixed_name,
            display_name=state.tenant_display_name,
            namespaces=Namespaces(
                tenant=state.tenant_prefixed_namespace,
                operator=self.config.namespace,
            ),
            labels=state.labels,
            annotations=state.annotations,
            parameters=parameters,
        )

        logger.debug("building resources from resource template", template=blueprint_group.template)
        manifests: list[dict[str, Any]] = []
        for raw in template.spec.raw:
            manifests.extend(self._render(raw, InputFormat.YAML, data))
        for embedded in template.spec.resources:
            manifests.extend(self._render(json.dumps(embedded), InputFormat.JSON, data))

        for manifest in manifests:
            self._apply_rules(manifest, template, state)
            kind = manifest.get("kind", "")
            logger.debug(
                "all changes applied to resource",
                template=blueprint_group.template,
                resource=manifest if self.config.is_loggable(kind) else kind,
            )

        return manifests

    def _render(self, source: str, input_format: InputFormat, data: TemplateData) -> list[dict[str, Any]]:
        rendered = YamlTemplate(source, input_format).execute(data)
        return split_documents(rendered)

    def _apply_rules(self, manifest: dict[str, Any], template: ResourceTemplate, state: State) -> None:
        """Rewrite name and namespace, then merge common labels and annotations"""
        metadata = manifest.setdefault("metadata", {})
        _, gvk = manifest_identifier(manifest)
        is_namespace = gvk == NAMESPACE_GVK
        rules = template.spec.rules

        if rules.namespace == ResourceNamespaceRule.OPERATOR:
            namespace = self.config.namespace
        elif rules.namespace == ResourceNamespaceRule.TENANT:
            namespace = state.tenant_prefixed_namespace
        else:
            namespace = metadata.get("name", "") if is_namespace else metadata.get("namespace", "")

        if rules.name == ResourceNameRule.TENANT:
            name = state.tenant_prefixed_name
        else:
            name = metadata.get("name", "")

        if is_namespace:
            metadata["name"] = namespace
            metadata.pop("namespace", None)
        else:
            metadata["name"] = name
            if namespace:
                metadata["namespace"] = namespace
            else:
                metadata.pop("namespace", None)

        metadata["labels"] = {**(metadata.get("labels") or {}), **copy.deepcopy(state.labels)}
        metadata["annotations"] = {
            **(metadata.get("annotations") or {}),
            **copy.deepcopy(state.annotations),
        }
