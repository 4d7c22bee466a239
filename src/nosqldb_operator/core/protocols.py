"""
Protocol definitions for the collaborators of the reconciliation engine.

The engine talks to the cluster, the spec-hash store, the secret store and
the service registry only through these shapes.  Production code plugs in
``kube.client.KubeClient``, ``kube.configmap_store.ConfigMapStore``,
``vault.helper.VaultHelper`` and ``consul.client.ConsulClient``; tests plug
in the in-memory fakes from ``nosqldb_operator.testing``.

Manifesto:
    - **Decoupling:** The engine depends on shape, not on the kubernetes
      client or httpx
    - **Testability:** Any object matching the protocol works

Architecture:
    ::

        protocols.py
        ├── ClusterClient      : get/create/update/delete/list manifests
        ├── SmallObjectStore   : spec-hash record (get-or-create, read, write, delete)
        ├── SecretStore        : Vault-like helper used by leaf steps
        ├── ServiceRegistry    : Consul-like agent used by leaf steps
        └── CredentialWatcher  : admin secret watch / rotation detection

Tags:
    protocol, contracts, operator-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, runtime_checkable

Manifest = dict[str, Any]


@runtime_checkable
class ClusterClient(Protocol):
    """Typed-resource CRUD over dict manifests.

    Raises ``NotFoundError`` for missing objects and ``ConflictError`` for
    optimistic-concurrency rejections.
    """

    def get(self, kind: str, name: str, namespace: str | None = None) -> Manifest: ...

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: Mapping[str, str] | None = None,
    ) -> list[Manifest]: ...

    def create(self, manifest: Manifest) -> Manifest: ...

    def update(self, manifest: Manifest) -> Manifest: ...

    def delete(self, kind: str, name: str, namespace: str | None = None) -> None: ...

    def update_status(self, manifest: Manifest) -> Manifest: ...


@runtime_checkable
class SmallObjectStore(Protocol):
    """Durable key/value record (a ConfigMap in production)."""

    def get_or_create(self, name: str, namespace: str) -> dict[str, str]: ...

    def read(self, name: str, namespace: str, key: str) -> str | None: ...

    def write(self, name: str, namespace: str, key: str, value: str) -> None: ...

    def delete_with_confirm(self, name: str, namespace: str, timeout: float | None = None) -> None: ...


@runtime_checkable
class SecretStore(Protocol):
    def read(self, path: str) -> dict[str, Any] | None: ...

    def write(self, path: str, data: Mapping[str, Any] | None) -> dict[str, Any] | None: ...

    def list(self, path: str) -> list[str]: ...

    def generate_password(self, policy: str) -> str: ...

    def store_password(self, secret_name: str, password: str) -> None: ...

    def check_secret_exists(self, secret_name: str) -> tuple[bool, dict[str, Any] | None]: ...

    def create_database_config(self, config_name: str, settings: Mapping[str, Any]) -> None: ...

    def create_static_role(self, role_path: str, settings: Mapping[str, Any]) -> None: ...

    def static_role_exists(self, role_name: str) -> bool: ...

    def static_role_credentials(self, role_name: str) -> dict[str, Any]: ...

    def close(self) -> None: ...


@runtime_checkable
class ServiceRegistry(Protocol):
    def register(self, registration: Any) -> None: ...

    def deregister(self, service_id: str) -> None: ...

    def maintenance(self, service_id: str, enabled: bool, *reasons: str) -> None: ...

    def logout(self) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class CredentialWatcher(Protocol):
    def watch(self, secret_names: list[str], namespace: str, callback: Callable[[], None]) -> None: ...

    def are_creds_changed(self, secret_names: list[str], namespace: str) -> bool: ...

    def actualize_creds(self, secret_name: str, namespace: str) -> None: ...


__all__ = [
    "Manifest",
    "ClusterClient",
    "SmallObjectStore",
    "SecretStore",
    "ServiceRegistry",
    "CredentialWatcher",
]
