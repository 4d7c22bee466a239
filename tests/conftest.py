"""
Shared pytest fixtures for nosqldb-operator tests.

This module provides:
- An in-memory cluster client and spec-hash store
- An execution context pre-populated the way the controller does it
- Operator settings that never read the process environment

Usage:
    Fixtures are auto-discovered by pytest:

    def test_something(ctx, cluster):
        ...
"""

from __future__ import annotations

from pathlib import Path

import pytest

from nosqldb_operator.core.models import ReconcileRequest
from nosqldb_operator.core.settings import OperatorSettings
from nosqldb_operator.kube.helper import KubernetesHelper
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.execution_context import ExecutionContext
from nosqldb_operator.orchestration.spec_change import SpecChangeDetector
from nosqldb_operator.testing import FakeClusterClient, InMemoryConfigMapStore

NAMESPACE = "db"
NAME = "mongo"


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    path = tmp_path / "token"
    path.write_text("sa-jwt\n", encoding="utf-8")
    return path


@pytest.fixture
def settings(token_file: Path) -> OperatorSettings:
    return OperatorSettings(
        _env_file=None,
        deployment_version="",
        reconciliation_delay_seconds=0,
        host_ip="10.0.0.5",
        poll_interval_seconds=0.01,
        config_map_delete_timeout_seconds=1,
        service_account_token_path=token_file,
        telepresence_root="",
    )


# =============================================================================
# Cluster
# =============================================================================


@pytest.fixture
def cluster() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture
def store() -> InMemoryConfigMapStore:
    return InMemoryConfigMapStore()


@pytest.fixture
def reconcile_request() -> ReconcileRequest:
    return ReconcileRequest(name=NAME, namespace=NAMESPACE)


@pytest.fixture
def ctx(cluster: FakeClusterClient, store: InMemoryConfigMapStore, reconcile_request: ReconcileRequest) -> ExecutionContext:
    """Context with the handles the controller publishes before any step runs."""
    return ExecutionContext(
        {
            keys.CLIENT: cluster,
            keys.REQUEST: reconcile_request,
            keys.KUBE_HELPER: KubernetesHelper(cluster, interval=0.01),
            keys.SPEC_CHANGE_DETECTOR: SpecChangeDetector(store, NAMESPACE, NAME + "-spec-hash"),
        }
    )
