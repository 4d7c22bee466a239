"""Well-known execution-context keys published by the reconciliation controller."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from nosqldb_operator.orchestration.execution_context import ContextKey

if TYPE_CHECKING:
    from nosqldb_operator.core.models import (
        AgentServiceRegistration,
        ConsulRegistration,
        ReconcileRequest,
    )
    from nosqldb_operator.core.protocols import ClusterClient, SecretStore, ServiceRegistry
    from nosqldb_operator.core.settings import OperatorSettings
    from nosqldb_operator.kube.helper import KubernetesHelper
    from nosqldb_operator.kube.resources import ResourceKind
    from nosqldb_operator.orchestration.deploy_type import DeployType
    from nosqldb_operator.orchestration.spec_change import SpecChangeDetector


# ── Resource being reconciled ───────────────────────────────────
SPEC: ContextKey[dict[str, Any]] = ContextKey("spec", "custom resource manifest")
SCHEMA: ContextKey[ResourceKind] = ContextKey("schema", "kind coordinates of the custom resource")
REQUEST: ContextKey[ReconcileRequest] = ContextKey("request")
SPEC_HAS_CHANGES: ContextKey[bool] = ContextKey("specHasChanges")
HASH_CONFIG_MAP: ContextKey[str] = ContextKey("hashConfigMap", "name of the spec-hash record")

# ── Cluster handles ─────────────────────────────────────────────
CLIENT: ContextKey[ClusterClient] = ContextKey("client")
KUBE_HELPER: ContextKey[KubernetesHelper] = ContextKey("kubernetesHelper")
LOGGER: ContextKey[Any] = ContextKey("logger")
SETTINGS: ContextKey[OperatorSettings] = ContextKey("settings")

# ── External systems ────────────────────────────────────────────
VAULT: ContextKey[SecretStore] = ContextKey("vault")
CONSUL: ContextKey[ServiceRegistry] = ContextKey("consul")
CONSUL_REGISTRATION: ContextKey[ConsulRegistration] = ContextKey("consulRegistration")
CONSUL_SERVICE_REGISTRATIONS: ContextKey[dict[str, AgentServiceRegistration]] = ContextKey(
    "consulServiceRegistrations"
)

# ── Micro-service bookkeeping ───────────────────────────────────
DEPLOY_TYPE: ContextKey[DeployType] = ContextKey("serviceDeployType")
SERVICE_DEPLOYMENT_INFO: ContextKey[dict[str, str]] = ContextKey(
    "serviceDeploymentInfo", "service name -> 'success' or the failure message"
)

# ── Change detection ────────────────────────────────────────────
SPEC_CHANGE_DETECTOR: ContextKey[SpecChangeDetector] = ContextKey("specChangeDetector")
