"""Core primitives shared by every layer: errors, Result, logging, settings, hashing, models."""

from nosqldb_operator.core.errors import (
    DRExecutionError,
    ExecutionError,
    NotFoundError,
    OperatorError,
    StepValidationError,
)
from nosqldb_operator.core.result import Err, Ok, Result

__all__ = [
    "OperatorError",
    "ExecutionError",
    "DRExecutionError",
    "StepValidationError",
    "NotFoundError",
    "Ok",
    "Err",
    "Result",
]
