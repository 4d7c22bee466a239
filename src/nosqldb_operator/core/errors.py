"""
Structured error types for the operator core.

Every failure the reconciliation engine can observe is expressed as an
``OperatorError`` subclass carrying a category, a retry hint and a small
structured context.  Steps wrap these in ``Err`` results; only the
reconciliation controller catches everything.

Manifesto:
    - **Typed hierarchy:** Cluster, secret-store and registry failures are
      distinct types, so callers can tell a missing object from a conflict
    - **Explicit retry semantics:** Optimistic-concurrency conflicts and
      polling timeouts are retryable, validation failures never are
    - **Rich context:** Errors carry resource, namespace, step and key
    - **Error chaining:** The original ``ApiException`` / ``httpx`` error is
      kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                       OperatorError                           │
        │  (category, retryable, retry_after, context, cause)          │
        ├──────────────────────────────────────────────────────────────┤
        │  ExecutionError        StepValidationError   ConfigError      │
        │       │                MissingContextValueError               │
        │  DRExecutionError                                             │
        │                                                               │
        │  ClusterError          SecretStoreError   ServiceRegistryError│
        │       │                                                       │
        │  NotFoundError  ConflictError  TransientError                 │
        │                                   │                           │
        │                              WaitTimeoutError                 │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> err = ConflictError("configmap changed underneath us")
    >>> err.retryable
    True
    >>> ExecutionError("boom").with_context(step="create-pvc").context.step
    'create-pvc'

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    operator-core

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for log routing and retry decisions."""

    # Cluster and infrastructure
    CLUSTER = "CLUSTER"           # Kubernetes API failures
    NETWORK = "NETWORK"           # Connection, DNS, timeouts
    SECRET_STORE = "SECRET_STORE"  # Vault
    REGISTRY = "REGISTRY"         # Consul

    # Engine
    VALIDATION = "VALIDATION"     # Step preconditions not met
    EXECUTION = "EXECUTION"       # Leaf step failures
    DISASTER_RECOVERY = "DISASTER_RECOVERY"

    # Configuration
    CONFIG = "CONFIG"

    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        resource: Name of the custom resource being reconciled
        namespace: Namespace of the resource
        step: Step name where the error was raised
        phase: Reconciliation phase (pre-deploy, main, dr)
        key: Context or spec-change key involved
        url: URL being accessed (secret store, registry)
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    resource: str | None = None
    namespace: str | None = None
    step: str | None = None
    phase: str | None = None
    key: str | None = None
    url: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["resource", "namespace", "step", "phase", "key", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OperatorError(Exception):
    """
    Base exception for all operator-core errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.

    Examples:
        >>> error = OperatorError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OperatorError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("ConfigMap missing").with_context(
                resource="spec-hash", namespace="db"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# ENGINE ERRORS
# =============================================================================


class ExecutionError(OperatorError):
    """A leaf step (or the pass as a whole) failed while executing."""

    default_category = ErrorCategory.EXECUTION


class DRExecutionError(ExecutionError):
    """
    Disaster-recovery specific failure.

    When it reaches the pass boundary only the DR status is marked failed;
    the main condition is left as it was.
    """

    default_category = ErrorCategory.DISASTER_RECOVERY


class StepValidationError(OperatorError):
    """A step's preconditions are not met. Never retryable."""

    default_category = ErrorCategory.VALIDATION


class MissingContextValueError(ExecutionError):
    """A required execution-context value is absent."""

    def __init__(self, key: str, **kwargs: Any):
        super().__init__(f"Element {key} not found", **kwargs)
        self.context.key = key


class ConfigError(OperatorError):
    """Missing or invalid operator configuration."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# CLUSTER ERRORS
# =============================================================================


class ClusterError(OperatorError):
    """Kubernetes API call failed."""

    default_category = ErrorCategory.CLUSTER


class NotFoundError(ClusterError):
    """The targeted cluster object does not exist."""


class ConflictError(ClusterError):
    """Write rejected by server-side optimistic concurrency."""

    default_retryable = True


class TransientError(ClusterError):
    """Temporary failure that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class WaitTimeoutError(TransientError):
    """A polling wait passed its deadline before the condition held."""


# =============================================================================
# EXTERNAL SERVICE ERRORS
# =============================================================================


class SecretStoreError(OperatorError):
    """Vault request failed."""

    default_category = ErrorCategory.SECRET_STORE


class ServiceRegistryError(OperatorError):
    """Consul request failed."""

    default_category = ErrorCategory.REGISTRY


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, OperatorError):
        return error.retryable
    return isinstance(error, (ConnectionError, OSError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, OperatorError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(error, (KeyError, AttributeError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


def execution_error(message: str, error: BaseException) -> ExecutionError:
    """Wrap ``error`` as a step failure, keeping its retryability."""
    return ExecutionError(f"{message}: {error}", retryable=is_retryable(error), cause=error)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "OperatorError",
    "ExecutionError",
    "DRExecutionError",
    "StepValidationError",
    "MissingContextValueError",
    "ConfigError",
    "ClusterError",
    "NotFoundError",
    "ConflictError",
    "TransientError",
    "WaitTimeoutError",
    "SecretStoreError",
    "ServiceRegistryError",
    "is_retryable",
    "categorize_error",
    "execution_error",
]
