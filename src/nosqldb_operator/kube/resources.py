"""Kind coordinates for the resources the operator touches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ResourceKind:
    """apiVersion/kind/plural of a resource type.

    ``api`` and ``resource`` name the kubernetes client API class and the
    snake-case stem of its methods for built-in kinds; both stay empty for
    custom resources, which go through ``CustomObjectsApi``.
    """

    api_version: str
    kind: str
    plural: str
    namespaced: bool = True
    api: str = ""
    resource: str = ""

    @property
    def group(self) -> str:
        return self.api_version.rpartition("/")[0]

    @property
    def version(self) -> str:
        return self.api_version.rpartition("/")[2]

    @property
    def is_custom(self) -> bool:
        return not self.api

    def manifest(self, name: str, namespace: str | None = None, **body: Any) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": name}
        if namespace and self.namespaced:
            metadata["namespace"] = namespace
        return {"apiVersion": self.api_version, "kind": self.kind, "metadata": metadata, **body}


CONFIG_MAP = ResourceKind("v1", "ConfigMap", "configmaps", api="CoreV1Api", resource="config_map")
SECRET = ResourceKind("v1", "Secret", "secrets", api="CoreV1Api", resource="secret")
SERVICE = ResourceKind("v1", "Service", "services", api="CoreV1Api", resource="service")
POD = ResourceKind("v1", "Pod", "pods", api="CoreV1Api", resource="pod")
PVC = ResourceKind(
    "v1",
    "PersistentVolumeClaim",
    "persistentvolumeclaims",
    api="CoreV1Api",
    resource="persistent_volume_claim",
)
PV = ResourceKind(
    "v1",
    "PersistentVolume",
    "persistentvolumes",
    namespaced=False,
    api="CoreV1Api",
    resource="persistent_volume",
)
STATEFUL_SET = ResourceKind("apps/v1", "StatefulSet", "statefulsets", api="AppsV1Api", resource="stateful_set")
DEPLOYMENT = ResourceKind("apps/v1", "Deployment", "deployments", api="AppsV1Api", resource="deployment")

BUILTIN_KINDS: dict[str, ResourceKind] = {
    kind.kind: kind
    for kind in (CONFIG_MAP, SECRET, SERVICE, POD, PVC, PV, STATEFUL_SET, DEPLOYMENT)
}


def name_of(manifest: dict[str, Any]) -> str:
    return manifest.get("metadata", {}).get("name", "")


def namespace_of(manifest: dict[str, Any]) -> str | None:
    return manifest.get("metadata", {}).get("namespace")


def labels_of(manifest: dict[str, Any]) -> dict[str, str]:
    return manifest.get("metadata", {}).get("labels") or {}


def selector_string(labels: dict[str, str] | None) -> str | None:
    """``{"app": "db", "tier": "x"}`` -> ``"app=db,tier=x"``."""
    if not labels:
        return None
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


__all__ = [
    "ResourceKind",
    "CONFIG_MAP",
    "SECRET",
    "SERVICE",
    "POD",
    "PVC",
    "PV",
    "STATEFUL_SET",
    "DEPLOYMENT",
    "BUILTIN_KINDS",
    "name_of",
    "namespace_of",
    "labels_of",
    "selector_string",
]
