"""Tests for nosqldb_operator.core.errors."""

import pytest

from nosqldb_operator.core.errors import (
    ClusterError,
    ConflictError,
    DRExecutionError,
    ErrorCategory,
    ExecutionError,
    MissingContextValueError,
    NotFoundError,
    OperatorError,
    SecretStoreError,
    StepValidationError,
    TransientError,
    WaitTimeoutError,
    categorize_error,
    execution_error,
    is_retryable,
)


class TestHierarchy:
    """Categories and retry defaults per error type."""

    @pytest.mark.parametrize(
        ("error_type", "category", "retryable"),
        [
            (ExecutionError, ErrorCategory.EXECUTION, False),
            (DRExecutionError, ErrorCategory.DISASTER_RECOVERY, False),
            (StepValidationError, ErrorCategory.VALIDATION, False),
            (NotFoundError, ErrorCategory.CLUSTER, False),
            (ConflictError, ErrorCategory.CLUSTER, True),
            (TransientError, ErrorCategory.NETWORK, True),
            (WaitTimeoutError, ErrorCategory.NETWORK, True),
            (SecretStoreError, ErrorCategory.SECRET_STORE, False),
        ],
    )
    def test_defaults(self, error_type, category, retryable):
        error = error_type("boom")
        assert error.category is category
        assert error.retryable is retryable
        assert isinstance(error, OperatorError)

    def test_dr_error_is_execution_error(self):
        assert isinstance(DRExecutionError("x"), ExecutionError)

    def test_not_found_is_cluster_error(self):
        assert isinstance(NotFoundError("x"), ClusterError)

    def test_missing_context_value_names_key(self):
        error = MissingContextValueError("pvcNames")
        assert str(error) == "Element pvcNames not found"
        assert error.context.key == "pvcNames"


class TestOperatorError:
    """Context, chaining and serialization."""

    def test_with_context_known_and_extra_fields(self):
        error = ExecutionError("failed").with_context(step="create-pvc", attempt=2)
        assert error.context.step == "create-pvc"
        assert error.context.metadata == {"attempt": 2}

    def test_cause_is_chained(self):
        cause = ValueError("low level")
        error = ExecutionError("high level", cause=cause)
        assert error.__cause__ is cause

    def test_to_dict(self):
        error = ConflictError("changed", retry_after=3, cause=RuntimeError("409"))
        error.with_context(resource="mongo-spec-hash")
        data = error.to_dict()
        assert data["error_type"] == "ConflictError"
        assert data["retryable"] is True
        assert data["retry_after"] == 3
        assert data["context"] == {"resource": "mongo-spec-hash"}
        assert data["cause"] == "409"

    def test_explicit_retryable_overrides_default(self):
        assert ExecutionError("x", retryable=True).retryable is True


class TestHelpers:
    """Module-level helper functions."""

    def test_is_retryable(self):
        assert is_retryable(ConflictError("x")) is True
        assert is_retryable(StepValidationError("x")) is False
        assert is_retryable(ConnectionError()) is True
        assert is_retryable(KeyError("x")) is False

    def test_categorize_error(self):
        assert categorize_error(SecretStoreError("x")) is ErrorCategory.SECRET_STORE
        assert categorize_error(OSError()) is ErrorCategory.NETWORK
        assert categorize_error(ValueError()) is ErrorCategory.VALIDATION
        assert categorize_error(KeyError()) is ErrorCategory.CONFIG
        assert categorize_error(RuntimeError()) is ErrorCategory.UNKNOWN

    def test_execution_error_keeps_retryability(self):
        cause = ConflictError("conflict")
        wrapped = execution_error("Creating of PVC data-0 failed", cause)
        assert isinstance(wrapped, ExecutionError)
        assert str(wrapped) == "Creating of PVC data-0 failed: conflict"
        assert wrapped.retryable is True
        assert wrapped.cause is cause
