"""
The resource-specific half of a reconciliation.

``ReconcileCommonService`` drives the pass; a ``CommonReconciler`` tells it
what is being reconciled: the instance and its spec, where the status
lives, which Vault/Consul settings apply and which admin secret to watch.
Each database operator supplies one.

``CustomResourceReconciler`` covers the usual layout of a custom resource
and only needs overriding where a resource keeps its settings elsewhere:

    ::

        spec:
          deploymentVersion: "1.4.0"
          vaultRegistration:   {enabled, url, method, role, path}
          consulRegistration:  {enabled, host, port, aclEnabled, authMethod}
          consulServiceRegistrations:
            <settings name>:   {ID, name, address, port, checks, ...}
        status:
          conditions: [ {type, status, lastTransitionTime, reason, message} ]
          disasterRecoveryStatus: {status}

Tags:
    reconciler, custom-resource, status

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any

from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import (
    AgentServiceRegistration,
    ConsulRegistration,
    DisasterRecoveryStatus,
    ReconcileRequest,
    ServiceStatusCondition,
    VaultRegistration,
)
from nosqldb_operator.core.protocols import ClusterClient, Manifest
from nosqldb_operator.core.result import Ok
from nosqldb_operator.kube.resources import ResourceKind
from nosqldb_operator.orchestration.steps import Step, trivial_step

logger = get_logger(__name__)

SPEC_HASH_SUFFIX = "-spec-hash"


class CommonReconciler(ABC):
    """Resource-specific contract used by the reconciliation controller."""

    # ── Instance ────────────────────────────────────────────────

    @abstractmethod
    def load(self, client: ClusterClient, request: ReconcileRequest) -> None:
        """Fetch the instance named by ``request``."""

    @abstractmethod
    def instance(self) -> Manifest: ...

    def refresh(self, manifest: Manifest | None) -> None:
        """Adopt the server's copy after a status write."""

    def resource_kind(self) -> ResourceKind | None:
        return None

    @abstractmethod
    def spec(self) -> Any: ...

    @abstractmethod
    def config_map_name(self) -> str:
        """Name of the spec-hash record."""

    @abstractmethod
    def deployment_version(self) -> str: ...

    # ── Status ──────────────────────────────────────────────────

    @abstractmethod
    def current_status(self) -> ServiceStatusCondition | None: ...

    @abstractmethod
    def update_status(self, condition: ServiceStatusCondition) -> None: ...

    @abstractmethod
    def update_dr_status(self, status: DisasterRecoveryStatus) -> None: ...

    def message(self) -> str:
        condition = self.current_status()
        return condition.message if condition is not None else ""

    # ── External systems ────────────────────────────────────────

    @abstractmethod
    def vault_registration(self) -> VaultRegistration | None: ...

    @abstractmethod
    def consul_registration(self) -> ConsulRegistration | None: ...

    @abstractmethod
    def service_registrations(self) -> dict[str, AgentServiceRegistration]: ...

    # ── Credentials ─────────────────────────────────────────────

    def admin_secret_name(self) -> str:
        return ""

    def full_reconcile_on_password_change(self) -> bool:
        return True

    def update_password_step(self) -> Step:
        """Step run when the admin secret rotates and no full reconcile is wanted."""
        return trivial_step(lambda ctx: Ok(None), name="noop-update-password")


class CustomResourceReconciler(CommonReconciler):
    """``CommonReconciler`` over a custom-resource dict fetched from the cluster."""

    def __init__(
        self,
        kind: ResourceKind,
        *,
        admin_secret_name: str = "",
        full_reconcile_on_password_change: bool = True,
        update_password_step: Step | None = None,
    ):
        self.kind = kind
        self._admin_secret_name = admin_secret_name
        self._full_reconcile = full_reconcile_on_password_change
        self._update_password_step = update_password_step
        self._instance: Manifest = {}

    # ── Instance ────────────────────────────────────────────────

    def load(self, client: ClusterClient, request: ReconcileRequest) -> None:
        self._instance = client.get(self.kind.kind, request.name, request.namespace)
        logger.debug("reconciler.loaded", kind=self.kind.kind, name=request.name)

    def instance(self) -> Manifest:
        return self._instance

    def refresh(self, manifest: Manifest | None) -> None:
        if manifest:
            self._instance = manifest

    def resource_kind(self) -> ResourceKind:
        return self.kind

    def spec(self) -> dict[str, Any]:
        return self._instance.get("spec") or {}

    def config_map_name(self) -> str:
        return self._instance["metadata"]["name"] + SPEC_HASH_SUFFIX

    def deployment_version(self) -> str:
        return str(self.spec().get("deploymentVersion") or "")

    # ── Status ──────────────────────────────────────────────────

    def _status(self) -> dict[str, Any]:
        status = self._instance.get("status")
        if not isinstance(status, dict):
            status = {}
            self._instance["status"] = status
        return status

    def current_status(self) -> ServiceStatusCondition | None:
        conditions = (self._instance.get("status") or {}).get("conditions") or []
        if not conditions:
            return None
        return ServiceStatusCondition.model_validate(conditions[0])

    def update_status(self, condition: ServiceStatusCondition) -> None:
        self._status()["conditions"] = [condition.model_dump(mode="json", by_alias=True)]

    def update_dr_status(self, status: DisasterRecoveryStatus) -> None:
        self._status()["disasterRecoveryStatus"] = status.model_dump(mode="json", by_alias=True)

    # ── External systems ────────────────────────────────────────

    def vault_registration(self) -> VaultRegistration | None:
        raw = self.spec().get("vaultRegistration")
        return VaultRegistration.model_validate(raw) if raw else None

    def consul_registration(self) -> ConsulRegistration | None:
        raw = self.spec().get("consulRegistration")
        return ConsulRegistration.model_validate(raw) if raw else None

    def service_registrations(self) -> dict[str, AgentServiceRegistration]:
        raw = self.spec().get("consulServiceRegistrations") or {}
        return {name: AgentServiceRegistration.model_validate(copy.deepcopy(value)) for name, value in raw.items()}

    # ── Credentials ─────────────────────────────────────────────

    def admin_secret_name(self) -> str:
        return self._admin_secret_name

    def full_reconcile_on_password_change(self) -> bool:
        return self._full_reconcile

    def update_password_step(self) -> Step:
        if self._update_password_step is None:
            return super().update_password_step()
        return self._update_password_step


__all__ = ["CommonReconciler", "CustomResourceReconciler", "SPEC_HASH_SUFFIX"]
