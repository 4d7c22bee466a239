"""
Admin secret watch and rotation detection.

The operator remembers a digest of each watched secret's data in an
annotation on the secret itself.  A secret whose current data no longer
matches that digest has been rotated out of band; the controller then
either re-runs the full reconciliation or only the password-update step.

``watch`` starts at most one background thread per secret.  The thread
follows a kubernetes watch stream and invokes the callback whenever a
modification turns out to be a real rotation.  It never blocks the pass
that registered it.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator

from kubernetes import client as k8s
from kubernetes import watch as k8s_watch

from nosqldb_operator.core.hashing import compute_digest
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.protocols import ClusterClient
from nosqldb_operator.kube.resources import SECRET

logger = get_logger(__name__)

CREDS_HASH_ANNOTATION = "nosqldb.operator/last-applied-creds-hash"

EventStream = Callable[[str, str], Iterator[dict[str, Any]]]


def secret_digest(secret: dict[str, Any]) -> str:
    return compute_digest(secret.get("data") or {})


class SecretWatcher:
    """``CredentialWatcher`` implementation over the cluster client."""

    def __init__(
        self,
        client: ClusterClient,
        *,
        api_client: k8s.ApiClient | None = None,
        stream: EventStream | None = None,
    ):
        self.client = client
        self._api_client = api_client
        self._stream = stream or self._watch_stream
        self._watched: set[tuple[str, str]] = set()
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []

    # ------------------------------------------------------------------
    # Rotation detection
    # ------------------------------------------------------------------

    def _stored_digest(self, secret: dict[str, Any]) -> str | None:
        return ((secret.get("metadata") or {}).get("annotations") or {}).get(CREDS_HASH_ANNOTATION)

    def are_creds_changed(self, secret_names: list[str], namespace: str) -> bool:
        """True when any secret's data differs from its recorded digest.

        A secret that was never actualized has no recorded digest and
        counts as unchanged.
        """
        for name in secret_names:
            secret = self.client.get(SECRET.kind, name, namespace)
            stored = self._stored_digest(secret)
            if stored is not None and stored != secret_digest(secret):
                logger.info("credentials.changed", secret=name, namespace=namespace)
                return True
        return False

    def actualize_creds(self, secret_name: str, namespace: str) -> None:
        """Record the current data digest on the secret."""
        secret = self.client.get(SECRET.kind, secret_name, namespace)
        digest = secret_digest(secret)
        if self._stored_digest(secret) == digest:
            return
        metadata = secret.setdefault("metadata", {})
        annotations = dict(metadata.get("annotations") or {})
        annotations[CREDS_HASH_ANNOTATION] = digest
        metadata["annotations"] = annotations
        self.client.update(secret)
        logger.debug("credentials.actualized", secret=secret_name, namespace=namespace)

    # ------------------------------------------------------------------
    # Watch
    # ------------------------------------------------------------------

    def watch(self, secret_names: list[str], namespace: str, callback: Callable[[], None]) -> None:
        """Register a background watch per secret (idempotent across passes)."""
        for name in secret_names:
            key = (namespace, name)
            with self._lock:
                if key in self._watched:
                    continue
                # fail registration early when the secret is unreadable
                self.client.get(SECRET.kind, name, namespace)
                self._watched.add(key)
            thread = threading.Thread(
                target=self._follow,
                args=(name, namespace, callback),
                name=f"secret-watch-{namespace}-{name}",
                daemon=True,
            )
            with self._lock:
                self._threads = [t for t in self._threads if t.is_alive()]
                self._threads.append(thread)
            thread.start()
            logger.debug("credentials.watch_started", secret=name, namespace=namespace)

    def _follow(self, name: str, namespace: str, callback: Callable[[], None]) -> None:
        try:
            for event in self._stream(name, namespace):
                if event.get("type") != "MODIFIED":
                    continue
                if self.are_creds_changed([name], namespace):
                    logger.info("credentials.rotation_detected", secret=name, namespace=namespace)
                    callback()
        except Exception as e:
            logger.error("credentials.watch_failed", secret=name, namespace=namespace, error=str(e))
        finally:
            # allow the next pass to register again
            with self._lock:
                self._watched.discard((namespace, name))

    def _watch_stream(self, name: str, namespace: str) -> Iterator[dict[str, Any]]:
        api = k8s.CoreV1Api(self._api_client)
        return k8s_watch.Watch().stream(
            api.list_namespaced_secret,
            namespace,
            field_selector=f"metadata.name={name}",
        )

    def join(self, timeout: float | None = None) -> None:
        """Wait for watch threads to end (tests and shutdown)."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)


__all__ = ["SecretWatcher", "CREDS_HASH_ANNOTATION", "secret_digest"]
