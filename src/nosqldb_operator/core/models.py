"""
Domain types shared by the controller, clients and steps.

Custom-resource fragments arrive as camelCase JSON, so every model accepts
both the camelCase alias and the snake_case field name and dumps by alias.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ── Status vocabulary ───────────────────────────────────────────
STATUS_IN_PROGRESS = "In Progress"
STATUS_SUCCESSFUL = "Successful"
STATUS_FAILED = "Failed"

REASON_IN_PROGRESS = "ReconcileCycleInProgress"
REASON_SUCCEEDED = "ReconcileCycleSucceeded"
REASON_FAILED = "ReconcileCycleFailed"

DR_RUNNING = "running"
DR_DONE = "done"
DR_FAILED = "failed"

MICROSERVICE_SUCCESS = "success"

# ── Labels ──────────────────────────────────────────────────────
LABEL_APP = "app"
LABEL_MICROSERVICE = "microservice"
LABEL_KUBE_HOSTNAME = "kubernetes.io/hostname"
RECYCLER_POD = "recycler-pod"
RECYCLER_NAME_TEMPLATE = "pv-recycler-pvc-{}"
SERVICE_CLUSTER_DOMAIN_TEMPLATE = "{}.{}.svc.cluster.local"
PASSWORD_KEY = "password"


class OperatorModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ServiceStatusCondition(OperatorModel):
    """Main condition of the managed resource."""

    type: str
    status: bool = True
    last_transition_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: str = ""
    message: str = ""


class DisasterRecoveryStatus(OperatorModel):
    status: str = ""


class VaultRegistration(OperatorModel):
    enabled: bool = False
    url: str = ""
    method: str = "kubernetes"
    role: str = ""
    path: str = "secret"


class ConsulRegistration(OperatorModel):
    enabled: bool = False
    host: str = ""
    port: str = ""
    acl_enabled: bool = False
    auth_method: str = ""


class ServiceCheck(OperatorModel):
    name: str = ""
    tcp: str | None = Field(default=None, alias="TCP")
    http: str | None = Field(default=None, alias="HTTP")
    interval: str = "10s"
    timeout: str = "5s"
    deregister_critical_service_after: str | None = None


class AgentServiceRegistration(OperatorModel):
    """A service descriptor as accepted by the Consul agent API."""

    id: str = Field(default="", alias="ID")
    name: str = ""
    address: str = ""
    port: int = 0
    tags: list[str] = Field(default_factory=list)
    meta: dict[str, str] = Field(default_factory=dict)
    checks: list[ServiceCheck] = Field(default_factory=list)
    enabled: bool = True
    direct_checks: bool = False

    def to_agent_payload(self) -> dict[str, Any]:
        """Body for ``PUT /v1/agent/service/register`` (PascalCase keys)."""
        payload: dict[str, Any] = {
            "ID": self.id,
            "Name": self.name,
            "Address": self.address,
            "Port": self.port,
            "Tags": self.tags,
            "Meta": self.meta,
        }
        checks = []
        for check in self.checks:
            item: dict[str, Any] = {
                "Name": check.name,
                "Interval": check.interval,
                "Timeout": check.timeout,
            }
            if check.tcp:
                item["TCP"] = check.tcp
            if check.http:
                item["HTTP"] = check.http
            if check.deregister_critical_service_after:
                item["DeregisterCriticalServiceAfter"] = check.deregister_critical_service_after
            checks.append(item)
        if checks:
            payload["Checks"] = checks
        return payload


class StorageRequirements(OperatorModel):
    size: list[str] = Field(default_factory=list)
    storage_classes: list[str] | None = None
    volumes: list[str] | None = None
    match_label_selectors: list[dict[str, str]] | None = None
    node_labels: list[dict[str, str]] = Field(default_factory=list)


class ReconcileRequest(OperatorModel):
    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class ReconcileResult(OperatorModel):
    requeue_after: float | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None
