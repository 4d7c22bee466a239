"""
Cluster helpers used by leaf steps.

Create-or-update with owner references, and the blocking waits steps need
between actions (claim bound, pods ready or completed, pods gone, object
deleted).  Every wait is a ``poll_until`` with a fixed interval and a
caller-supplied timeout, so a wait that never finishes becomes an
ordinary ``WaitTimeoutError``.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping

from nosqldb_operator.core.errors import NotFoundError
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.protocols import ClusterClient
from nosqldb_operator.kube.polling import DEFAULT_INTERVAL, poll_until
from nosqldb_operator.kube.resources import name_of, namespace_of

logger = get_logger(__name__)

Manifest = dict[str, Any]

_IGNORED_TOP_LEVEL = {"apiVersion", "kind", "metadata", "status"}


def owner_reference(owner: Manifest) -> dict[str, Any]:
    metadata = owner.get("metadata", {})
    return {
        "apiVersion": owner["apiVersion"],
        "kind": owner["kind"],
        "name": metadata["name"],
        "uid": metadata.get("uid", ""),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def contains(current: Any, desired: Any) -> bool:
    """True when every field set in ``desired`` has the same value in ``current``.

    Fields only the server fills in (defaults, uids, timestamps) are ignored
    because they are absent from ``desired``.
    """
    if isinstance(desired, Mapping):
        if not isinstance(current, Mapping):
            return False
        return all(key in current and contains(current[key], value) for key, value in desired.items())
    if isinstance(desired, list):
        if not isinstance(current, list) or len(current) != len(desired):
            return False
        return all(contains(c, d) for c, d in zip(current, desired))
    return current == desired


def needs_update(current: Manifest, desired: Manifest) -> bool:
    for key, value in desired.items():
        if key in _IGNORED_TOP_LEVEL:
            continue
        if not contains(current.get(key), value):
            return True
    desired_meta = desired.get("metadata", {})
    current_meta = current.get("metadata", {})
    for field in ("labels", "annotations", "ownerReferences"):
        if field in desired_meta and not contains(current_meta.get(field) or {}, desired_meta[field]):
            return True
    return False


def _pod_ready(pod: Manifest) -> bool:
    status = pod.get("status") or {}
    if status.get("phase") != "Running":
        return False
    return any(
        condition.get("type") == "Ready" and condition.get("status") == "True"
        for condition in status.get("conditions") or []
    )


class KubernetesHelper:
    """Higher-level cluster operations on top of a ``ClusterClient``."""

    def __init__(self, client: ClusterClient, *, interval: float = DEFAULT_INTERVAL):
        self.client = client
        self.interval = interval

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_or_update(
        self,
        manifest: Manifest,
        owner: Manifest | None = None,
        *,
        wait: bool = False,
        timeout: float = 60,
    ) -> Manifest:
        """Create the object, or replace it only when it differs from ``manifest``."""
        desired = copy.deepcopy(manifest)
        if owner is not None:
            desired.setdefault("metadata", {})["ownerReferences"] = [owner_reference(owner)]

        kind, name, namespace = desired["kind"], name_of(desired), namespace_of(desired)
        try:
            current = self.client.get(kind, name, namespace)
        except NotFoundError:
            logger.debug("kube.creating", kind=kind, name=name, namespace=namespace)
            result = self.client.create(desired)
        else:
            if not needs_update(current, desired):
                logger.debug("kube.unchanged", kind=kind, name=name, namespace=namespace)
                return current
            resource_version = current.get("metadata", {}).get("resourceVersion")
            if resource_version:
                desired["metadata"]["resourceVersion"] = resource_version
            logger.debug("kube.updating", kind=kind, name=name, namespace=namespace)
            result = self.client.update(desired)

        if wait:
            poll_until(
                lambda: self._reflects(kind, name, namespace, desired),
                timeout=timeout,
                interval=self.interval,
                description=f"{kind} {name} to be updated",
            )
        return result

    def _reflects(self, kind: str, name: str, namespace: str | None, desired: Manifest) -> bool:
        try:
            current = self.client.get(kind, name, namespace)
        except NotFoundError:
            return False
        return not needs_update(current, desired)

    def delete_with_check(self, kind: str, name: str, namespace: str | None, *, timeout: float = 60) -> None:
        """Delete the object and wait until the API no longer returns it."""
        try:
            self.client.delete(kind, name, namespace)
        except NotFoundError:
            logger.debug("kube.already_deleted", kind=kind, name=name, namespace=namespace)
            return

        def gone() -> bool:
            try:
                self.client.get(kind, name, namespace)
            except NotFoundError:
                return True
            return False

        poll_until(gone, timeout=timeout, interval=self.interval, description=f"{kind} {name} deletion")

    # ------------------------------------------------------------------
    # Waits
    # ------------------------------------------------------------------

    def wait_for_pvc_bound(self, name: str, namespace: str, timeout: float) -> None:
        def bound() -> bool:
            claim = self.client.get("PersistentVolumeClaim", name, namespace)
            return (claim.get("status") or {}).get("phase") == "Bound"

        poll_until(bound, timeout=timeout, interval=self.interval, description=f"PVC {name} to be Bound")

    def wait_for_pods_ready(self, labels: Mapping[str, str], namespace: str, count: int, timeout: float) -> None:
        def ready() -> bool:
            pods = self.client.list("Pod", namespace, labels)
            return sum(1 for pod in pods if _pod_ready(pod)) >= count

        poll_until(ready, timeout=timeout, interval=self.interval, description=f"{count} pods {dict(labels)} ready")

    def wait_for_pods_completed(self, labels: Mapping[str, str], namespace: str, count: int, timeout: float) -> None:
        def completed() -> bool:
            pods = self.client.list("Pod", namespace, labels)
            failed = [name_of(pod) for pod in pods if (pod.get("status") or {}).get("phase") == "Failed"]
            if failed:
                logger.warning("kube.pods_failed", pods=failed)
            return sum(1 for pod in pods if (pod.get("status") or {}).get("phase") == "Succeeded") >= count

        poll_until(
            completed,
            timeout=timeout,
            interval=self.interval,
            description=f"{count} pods {dict(labels)} completed",
        )

    def wait_for_pods_count(self, labels: Mapping[str, str], namespace: str, count: int, timeout: float) -> None:
        poll_until(
            lambda: len(self.client.list("Pod", namespace, labels)) == count,
            timeout=timeout,
            interval=self.interval,
            description=f"pod count {dict(labels)} == {count}",
        )


__all__ = ["KubernetesHelper", "owner_reference", "contains", "needs_update"]
