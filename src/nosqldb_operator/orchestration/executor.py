"""Two-phase executor: validate the whole tree, then execute it."""

from __future__ import annotations

from typing import Protocol

from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.result import Ok, Result
from nosqldb_operator.orchestration.execution_context import ExecutionContext
from nosqldb_operator.orchestration.steps import Step, step_name

logger = get_logger(__name__)


class Executor(Protocol):
    def run(self, step: Step, ctx: ExecutionContext) -> Result[None]: ...


class DefaultExecutor:
    """Validate every step of the tree first; execute only if that passed.

    Validation and execution are never interleaved per step, so a tree with
    a bad precondition anywhere does no work at all.
    """

    def run(self, step: Step, ctx: ExecutionContext) -> Result[None]:
        name = step_name(step)

        logger.debug("executor.validate", tree=name)
        validated = step.validate(ctx)
        if validated.is_err():
            logger.warning("executor.validation_failed", tree=name, error=str(validated.error))
            return validated

        logger.debug("executor.execute", tree=name)
        executed = step.execute(ctx)
        if executed.is_err():
            return executed
        return Ok(None)


__all__ = ["Executor", "DefaultExecutor"]
