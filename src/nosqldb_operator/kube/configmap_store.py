"""
ConfigMap-backed small-object store holding the spec-hash record.

One ConfigMap per managed resource, one data entry per spec-change key.
Writes are read-modify-write with the object's ``resourceVersion``; a
``ConflictError`` from a concurrent writer is retried a few times on a
fresh read before it propagates (still as a retryable error).
"""

from __future__ import annotations

from nosqldb_operator.core.errors import ConflictError, NotFoundError
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.protocols import ClusterClient
from nosqldb_operator.kube.helper import KubernetesHelper
from nosqldb_operator.kube.polling import DEFAULT_INTERVAL
from nosqldb_operator.kube.resources import CONFIG_MAP

logger = get_logger(__name__)

WRITE_ATTEMPTS = 3


class ConfigMapStore:
    """``SmallObjectStore`` over ConfigMaps."""

    def __init__(
        self,
        client: ClusterClient,
        *,
        interval: float = DEFAULT_INTERVAL,
        delete_timeout: float = 60,
    ):
        self.client = client
        self.helper = KubernetesHelper(client, interval=interval)
        self.delete_timeout = delete_timeout

    def _get_or_create_manifest(self, name: str, namespace: str) -> dict:
        try:
            return self.client.get(CONFIG_MAP.kind, name, namespace)
        except NotFoundError:
            pass

        logger.debug("configmap.creating", name=name, namespace=namespace)
        try:
            return self.client.create(CONFIG_MAP.manifest(name, namespace, data={}))
        except ConflictError:
            # created concurrently
            return self.client.get(CONFIG_MAP.kind, name, namespace)

    def get_or_create(self, name: str, namespace: str) -> dict[str, str]:
        return dict(self._get_or_create_manifest(name, namespace).get("data") or {})

    def read(self, name: str, namespace: str, key: str) -> str | None:
        try:
            manifest = self.client.get(CONFIG_MAP.kind, name, namespace)
        except NotFoundError:
            return None
        return (manifest.get("data") or {}).get(key)

    def write(self, name: str, namespace: str, key: str, value: str) -> None:
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            manifest = self._get_or_create_manifest(name, namespace)
            data = dict(manifest.get("data") or {})
            if data.get(key) == value:
                return
            data[key] = value
            manifest["data"] = data
            try:
                self.client.update(manifest)
            except ConflictError:
                if attempt == WRITE_ATTEMPTS:
                    raise
                logger.debug("configmap.write_conflict", name=name, key=key, attempt=attempt)
                continue
            logger.debug("configmap.written", name=name, namespace=namespace, key=key)
            return

    def delete_with_confirm(self, name: str, namespace: str, timeout: float | None = None) -> None:
        self.helper.delete_with_check(
            CONFIG_MAP.kind,
            name,
            namespace,
            timeout=timeout if timeout is not None else self.delete_timeout,
        )


__all__ = ["ConfigMapStore", "WRITE_ATTEMPTS"]
