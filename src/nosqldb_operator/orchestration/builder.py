"""Builders turn the desired state held in the context into a step tree."""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

from nosqldb_operator.orchestration.execution_context import ExecutionContext
from nosqldb_operator.orchestration.steps import Step


@runtime_checkable
class StepBuilder(Protocol):
    def build(self, ctx: ExecutionContext) -> Step: ...


class FunctionBuilder:
    """Adapt a plain ``ctx -> Step`` callable to ``StepBuilder``."""

    def __init__(self, build: Callable[[ExecutionContext], Step]):
        self._build = build

    def build(self, ctx: ExecutionContext) -> Step:
        return self._build(ctx)


def as_builder(builder: StepBuilder | Callable[[ExecutionContext], Step] | None) -> StepBuilder | None:
    if builder is None or isinstance(builder, StepBuilder):
        return builder
    return FunctionBuilder(builder)


__all__ = ["StepBuilder", "FunctionBuilder", "as_builder"]
