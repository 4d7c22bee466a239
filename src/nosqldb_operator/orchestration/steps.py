"""
Step protocol and composition shapes.

A step is the unit of deployment logic: create the volume claims, recycle
old volumes, move a password into Vault, register with Consul.  Every step
answers three questions for the pass it runs in:

- ``validate(ctx)``: are my preconditions met?  Runs for the whole tree
  before anything executes.
- ``condition(ctx)``: should I take part in this pass?  ``Ok(False)`` skips
  the step silently; ``Err`` aborts the enclosing sequence.
- ``execute(ctx)``: do the work.

All three return ``Result`` values.  A failing step returns ``Err``; it
does not raise across the tree.

Manifesto:
    - **Explicit defaults:** ``BaseStep`` spells out validate=Ok and
      condition=Ok(True); ``trivial_step`` builds a step from plain functions
    - **Skipping is not failing:** A false condition moves on to the next child
    - **Stack discipline:** ``MicroServiceSequence`` scopes the deploy type
      to its children and restores the outer value on every exit path,
      including raised exceptions

Architecture:
    ::

        Step (Protocol)
        ├── BaseStep                 explicit default validate/condition
        │   ├── FunctionStep         trivial_step(execute=..., ...)
        │   └── Sequence             ordered children, first error wins
        │       └── MicroServiceSequence
        │              1. remember outer deploy type
        │              2. classify own deploy type
        │              3. publish it, run children
        │              4. restore outer type (finally)
        │              5. wrap child error as "Microservice ... exception"

Examples:
    >>> from nosqldb_operator.orchestration.execution_context import ExecutionContext
    >>> seen = []
    >>> seq = Sequence(
    ...     trivial_step(lambda ctx: Ok(seen.append("a")), condition=lambda ctx: Ok(False)),
    ...     trivial_step(lambda ctx: Ok(seen.append("b"))),
    ... )
    >>> seq.execute(ExecutionContext()).is_ok(), seen
    (True, ['b'])

Tags:
    step, composite, sequence, deploy-type, operator-core

Doc-Types:
    - API Reference
    - Step Authoring Guide
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable, Protocol, runtime_checkable

from nosqldb_operator.core.errors import DRExecutionError, ExecutionError
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import MICROSERVICE_SUCCESS
from nosqldb_operator.core.result import Err, Ok, Result, try_result
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.deploy_type import (
    DeployType,
    current_deploy_type,
    set_deploy_type,
)
from nosqldb_operator.orchestration.execution_context import ExecutionContext

logger = get_logger(__name__)

StepFn = Callable[[ExecutionContext], Result[None]]
ConditionFn = Callable[[ExecutionContext], Result[bool]]
Classifier = Callable[[ExecutionContext], Result[DeployType]]


@runtime_checkable
class Step(Protocol):
    """Contract every unit of deployment logic implements."""

    def validate(self, ctx: ExecutionContext) -> Result[None]: ...

    def condition(self, ctx: ExecutionContext) -> Result[bool]: ...

    def execute(self, ctx: ExecutionContext) -> Result[None]: ...


def step_name(step: object) -> str:
    """Human-readable name used in logs."""
    name = getattr(step, "name", None)
    return name if isinstance(name, str) and name else type(step).__name__


class BaseStep(ABC):
    """Base class with explicit default validate and condition."""

    name: str = ""

    def validate(self, ctx: ExecutionContext) -> Result[None]:
        return Ok(None)

    def condition(self, ctx: ExecutionContext) -> Result[bool]:
        return Ok(True)

    @abstractmethod
    def execute(self, ctx: ExecutionContext) -> Result[None]: ...


class FunctionStep(BaseStep):
    """Step assembled from plain callables. Build it with ``trivial_step``."""

    def __init__(
        self,
        execute: StepFn,
        *,
        validate: StepFn | None = None,
        condition: ConditionFn | None = None,
        name: str = "",
    ):
        self._execute = execute
        self._validate = validate
        self._condition = condition
        self.name = name or getattr(execute, "__name__", "FunctionStep")

    def validate(self, ctx: ExecutionContext) -> Result[None]:
        if self._validate is None:
            return Ok(None)
        return self._validate(ctx)

    def condition(self, ctx: ExecutionContext) -> Result[bool]:
        if self._condition is None:
            return Ok(True)
        return self._condition(ctx)

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        return self._execute(ctx)


def trivial_step(
    execute: StepFn,
    *,
    validate: StepFn | None = None,
    condition: ConditionFn | None = None,
    name: str = "",
) -> FunctionStep:
    """Build a step whose missing operations default to always-ok / always-run."""
    return FunctionStep(execute, validate=validate, condition=condition, name=name)


class GuardedStep(BaseStep):
    """Wrapper turning exceptions raised by the inner step into ``Err`` results."""

    def __init__(self, step: Step):
        self.step = step
        self.name = step_name(step)

    def validate(self, ctx: ExecutionContext) -> Result[None]:
        return try_result(lambda: self.step.validate(ctx)).flat_map(lambda result: result)

    def condition(self, ctx: ExecutionContext) -> Result[bool]:
        return try_result(lambda: self.step.condition(ctx)).flat_map(lambda result: result)

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        return try_result(lambda: self.step.execute(ctx)).flat_map(lambda result: result)


def guarded(step: Step) -> GuardedStep:
    """Wrap ``step`` so a raise inside it fails only the enclosing phase, not the pass."""
    return GuardedStep(step)


# =============================================================================
# COMPOSITION
# =============================================================================


class Sequence(BaseStep):
    """Ordered list of child steps; the first error stops the sequence."""

    def __init__(self, *steps: Step, name: str = ""):
        self.steps: list[Step] = list(steps)
        self.name = name

    def add(self, step: Step) -> Sequence:
        self.steps.append(step)
        return self

    def extend(self, steps: Iterable[Step]) -> Sequence:
        self.steps.extend(steps)
        return self

    def __len__(self) -> int:
        return len(self.steps)

    def validate(self, ctx: ExecutionContext) -> Result[None]:
        for step in self.steps:
            result = step.validate(ctx)
            if result.is_err():
                logger.debug("step.validation_failed", step=step_name(step), error=str(result.error))
                return result
        return Ok(None)

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        for step in self.steps:
            name = step_name(step)
            run = step.condition(ctx)
            if run.is_err():
                logger.warning("step.condition_failed", step=name, error=str(run.error))
                return Err(run.error)
            if not run.value:
                logger.debug("step.skipped", step=name)
                continue

            logger.info("step.started", step=name)
            result = step.execute(ctx)
            if result.is_err():
                logger.error("step.failed", step=name, error=str(result.error))
                return result
            logger.info("step.finished", step=name)
        return Ok(None)


class MicroServiceSequence(Sequence):
    """
    Sequence that classifies and scopes a deploy type for its children.

    The classifier decides CleanDeploy vs Update for this micro-service.
    While the children run, ``current_deploy_type(ctx)`` returns that
    value; afterwards the outer value is back in place, whether the
    children succeeded, failed or raised.  Failures come back wrapped as a
    single "Microservice validation/execution exception" error.
    """

    def __init__(self, service_name: str, classifier: Classifier, *steps: Step):
        super().__init__(*steps, name=service_name)
        self.service_name = service_name
        self.classifier = classifier

    def validate(self, ctx: ExecutionContext) -> Result[None]:
        return self._scoped(ctx, super().validate, "Microservice validation exception: ")

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        result = self._scoped(ctx, super().execute, "Microservice execution exception: ")
        self._record_outcome(ctx, result)
        return result

    def _scoped(
        self,
        ctx: ExecutionContext,
        run: Callable[[ExecutionContext], Result[None]],
        prefix: str,
    ) -> Result[None]:
        previous = current_deploy_type(ctx)
        try:
            classified = self.classifier(ctx)
            if classified.is_err():
                return Err(_wrap(classified.error, prefix))

            deploy_type = classified.value
            logger.debug(
                "microservice.deploy_type",
                service=self.service_name,
                deploy_type=deploy_type.value,
                previous=previous.value,
            )
            set_deploy_type(ctx, deploy_type)
            return run(ctx).map_err(lambda error: _wrap(error, prefix))
        finally:
            set_deploy_type(ctx, previous)

    def _record_outcome(self, ctx: ExecutionContext, result: Result[None]) -> None:
        info = ctx.get(keys.SERVICE_DEPLOYMENT_INFO)
        if info is None:
            info = {}
            ctx.set(keys.SERVICE_DEPLOYMENT_INFO, info)
        info[self.service_name] = MICROSERVICE_SUCCESS if result.is_ok() else str(result.error)


def _wrap(error: Exception, prefix: str) -> ExecutionError:
    # DR failures keep their kind so the controller can still recognise them
    error_type = DRExecutionError if isinstance(error, DRExecutionError) else ExecutionError
    return error_type(prefix + str(error), cause=error)


__all__ = [
    "Step",
    "BaseStep",
    "FunctionStep",
    "trivial_step",
    "GuardedStep",
    "guarded",
    "step_name",
    "Sequence",
    "MicroServiceSequence",
    "StepFn",
    "ConditionFn",
    "Classifier",
]
