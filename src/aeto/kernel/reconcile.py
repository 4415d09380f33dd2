"""
Reconcile results and per-pass context

A reconcile pass is a series of steps that each produce a Result. The
context folds them into one requeue directive for the controller runtime.
"""

import structlog
from pydantic import BaseModel, ConfigDict

from aeto.kernel.config import OperatorConfig
from aeto.kernel.logging import bind_correlation_id, get_logger


class Result(BaseModel):
    """Outcome of one reconcile step"""

    error: Exception | None = None
    requeue_in: float = 0

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def requeue(self) -> bool:
        """True when the step failed or asked to be retried later"""
        return self.error is not None or self.requeue_in > 0

    @property
    def failed(self) -> bool:
        return self.error is not None


class ResultList(list[Result]):
    """Results of several reconcile steps"""

    def all_done(self) -> bool:
        return not any(r.requeue for r in self)

    def all_successful(self) -> bool:
        return not any(r.failed for r in self)


class RequeueDirective(BaseModel):
    """What the controller runtime should do after a pass"""

    requeue_after: float
    error: Exception | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class ReconcileContext:
    """
    Context for a single reconcile pass

    Creating a context sets a fresh 7 character correlation id for the
    current execution context, so every log line of the pass carries it.
    """

    def __init__(self, name: str, key: str, config: OperatorConfig) -> None:
        self.name = name
        self.key = key
        self.config = config
        self.correlation_id = bind_correlation_id()
        self.log: structlog.stdlib.BoundLogger = get_logger(name).bind(key=key)

    def done(self) -> Result:
        return Result()

    def requeue_in(self, seconds: float, reason: str = "") -> Result:
        if reason:
            self.log.info("requeue requested", reason=reason, requeue_in=seconds)
        return Result(requeue_in=seconds)

    def error(self, exc: Exception) -> Result:
        return Result(error=exc)

    def complete(self, *results: Result) -> RequeueDirective:
        """
        Fold step results into a requeue directive

        The first result that asks for a requeue wins. When none does the
        pass finishes on the steady-state reconcile interval.
        """
        for result in results:
            if result.requeue:
                if result.error is None:
                    self.log.info("reconciliation in progress", requeue_in=result.requeue_in)
                else:
                    self.log.warning("reconciliation failed", error=str(result.error))
                return RequeueDirective(requeue_after=result.requeue_in, error=result.error)

        interval = self.config.reconcile_interval_seconds
        self.log.info("finished reconciliation", requeue_interval=interval)
        return RequeueDirective(requeue_after=interval)
