"""
Step trees and the per-pass state they share.

Architecture::

    execution_context.py  ExecutionContext + typed ContextKey
    context_keys.py       keys the controller publishes
    steps.py              Step protocol, BaseStep, trivial_step, guarded, Sequence,
                          MicroServiceSequence
    deploy_type.py        CleanDeploy / Update classification
    spec_change.py        compare-and-advance spec digests
    executor.py           validate-then-execute executor
    builder.py            StepBuilder protocol
"""

from nosqldb_operator.orchestration.builder import FunctionBuilder, StepBuilder
from nosqldb_operator.orchestration.deploy_type import DeployType, current_deploy_type, pvc_classifier
from nosqldb_operator.orchestration.execution_context import ContextKey, ExecutionContext
from nosqldb_operator.orchestration.executor import DefaultExecutor, Executor
from nosqldb_operator.orchestration.spec_change import SpecChangeDetector, check_spec_change, reset_spec
from nosqldb_operator.orchestration.steps import (
    BaseStep,
    MicroServiceSequence,
    Sequence,
    Step,
    guarded,
    trivial_step,
)

__all__ = [
    "ContextKey",
    "ExecutionContext",
    "Step",
    "BaseStep",
    "trivial_step",
    "guarded",
    "Sequence",
    "MicroServiceSequence",
    "DeployType",
    "current_deploy_type",
    "pvc_classifier",
    "SpecChangeDetector",
    "check_spec_change",
    "reset_spec",
    "Executor",
    "DefaultExecutor",
    "StepBuilder",
    "FunctionBuilder",
]
