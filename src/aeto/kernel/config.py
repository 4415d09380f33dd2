"""
Operator configuration

Everything that used to be process-wide operator state (namespace,
reconcile interval, retention) lives in one validated model that is passed
explicitly to the repository, generator and reconcilers.
"""

import os

from pydantic import BaseModel, Field


class OperatorConfig(BaseModel):
    """Operator-wide settings"""

    namespace: str = Field(
        default="aeto",
        min_length=1,
        description="Namespace the operator runs in; templates and resource sets live here",
    )

    reconcile_interval_seconds: int = Field(
        default=3600,
        ge=1,
        description="Steady-state requeue interval when nothing else asked for one",
    )

    max_tenant_resource_sets: int = Field(
        default=3,
        ge=1,
        description="Number of resource sets retained per tenant (active one included)",
    )

    non_loggable_kinds: list[str] = Field(
        default_factory=lambda: ["Secret"],
        description="Resource kinds whose rendered content is never logged",
    )

    generation_failure_backoff_seconds: int = Field(
        default=15,
        ge=1,
        description="Requeue delay after a failed generation or an unready resource set",
    )

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        """Build a config from AETO_* environment variables, falling back to defaults"""
        values: dict[str, object] = {}
        if namespace := os.getenv("AETO_OPERATOR_NAMESPACE"):
            values["namespace"] = namespace
        if interval := os.getenv("AETO_RECONCILE_INTERVAL"):
            values["reconcile_interval_seconds"] = int(interval)
        if max_sets := os.getenv("AETO_MAX_TENANT_RESOURCE_SETS"):
            values["max_tenant_resource_sets"] = int(max_sets)
        return cls(**values)

    def is_loggable(self, kind: str) -> bool:
        return kind not in self.non_loggable_kinds
