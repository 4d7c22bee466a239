"""
In-memory fakes for exercising step trees and the controller without a cluster.

Examples:
    >>> client = FakeClusterClient()
    >>> _ = client.create({"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "a", "namespace": "db"}})
    >>> client.get("ConfigMap", "a", "db")["metadata"]["resourceVersion"]
    '1'

Tags:
    testing, fakes
"""

from __future__ import annotations

import copy
import itertools
from typing import Any, Mapping

from nosqldb_operator.controller.reconciler import CustomResourceReconciler
from nosqldb_operator.core.errors import ConflictError, NotFoundError
from nosqldb_operator.core.models import ReconcileRequest
from nosqldb_operator.core.protocols import ClusterClient, Manifest
from nosqldb_operator.core.result import Ok, Result
from nosqldb_operator.kube.resources import ResourceKind
from nosqldb_operator.orchestration.execution_context import ExecutionContext
from nosqldb_operator.orchestration.steps import BaseStep

FAKE_KIND = ResourceKind("nosqldb.example.com/v1", "NoSQLDBService", "nosqldbservices")


class InMemoryConfigMapStore:
    """``SmallObjectStore`` backed by a dict; set ``fail_*`` to inject errors."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], dict[str, str]] = {}
        self.writes: list[tuple[str, str, str]] = []
        self.deletes: list[tuple[str, str]] = []
        self.fail_get: Exception | None = None
        self.fail_write: Exception | None = None
        self.fail_delete: Exception | None = None

    def get_or_create(self, name: str, namespace: str) -> dict[str, str]:
        if self.fail_get is not None:
            raise self.fail_get
        return dict(self.records.setdefault((namespace, name), {}))

    def read(self, name: str, namespace: str, key: str) -> str | None:
        return self.records.get((namespace, name), {}).get(key)

    def write(self, name: str, namespace: str, key: str, value: str) -> None:
        if self.fail_write is not None:
            raise self.fail_write
        self.records.setdefault((namespace, name), {})[key] = value
        self.writes.append((name, key, value))

    def delete_with_confirm(self, name: str, namespace: str, timeout: float | None = None) -> None:
        if self.fail_delete is not None:
            raise self.fail_delete
        self.records.pop((namespace, name), None)
        self.deletes.append((namespace, name))


class FakeClusterClient:
    """``ClusterClient`` over a dict of manifests keyed by (kind, namespace, name).

    ``errors[(verb, kind)]`` makes the matching call raise.  Deletion is
    immediate, so delete-then-wait flows complete on the first poll.
    """

    def __init__(self, objects: list[Manifest] | None = None):
        self.objects: dict[tuple[str, str | None, str], Manifest] = {}
        self.errors: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str, str]] = []
        self._versions = itertools.count(1)
        for manifest in objects or []:
            self.create(manifest)

    @staticmethod
    def _key(kind: str, name: str, namespace: str | None) -> tuple[str, str | None, str]:
        return kind, namespace, name

    def _check(self, verb: str, kind: str, name: str = "") -> None:
        self.calls.append((verb, kind, name))
        error = self.errors.get((verb, kind))
        if error is not None:
            raise error

    def _stamp(self, manifest: Manifest) -> Manifest:
        stored = copy.deepcopy(manifest)
        stored.setdefault("metadata", {})["resourceVersion"] = str(next(self._versions))
        return stored

    def get(self, kind: str, name: str, namespace: str | None = None) -> Manifest:
        self._check("get", kind, name)
        try:
            return copy.deepcopy(self.objects[self._key(kind, name, namespace)])
        except KeyError:
            raise NotFoundError(f"{kind} {name} not found") from None

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: Mapping[str, str] | None = None,
    ) -> list[Manifest]:
        self._check("list", kind)
        selector = dict(label_selector or {})
        found = []
        for (item_kind, item_namespace, _), manifest in self.objects.items():
            if item_kind != kind or (namespace is not None and item_namespace != namespace):
                continue
            labels = manifest.get("metadata", {}).get("labels") or {}
            if all(labels.get(k) == v for k, v in selector.items()):
                found.append(copy.deepcopy(manifest))
        return found

    def create(self, manifest: Manifest) -> Manifest:
        metadata = manifest.get("metadata", {})
        self._check("create", manifest["kind"], metadata.get("name", ""))
        key = self._key(manifest["kind"], metadata["name"], metadata.get("namespace"))
        if key in self.objects:
            raise ConflictError(f"{manifest['kind']} {metadata['name']} already exists")
        self.objects[key] = self._stamp(manifest)
        return copy.deepcopy(self.objects[key])

    def update(self, manifest: Manifest) -> Manifest:
        metadata = manifest.get("metadata", {})
        self._check("update", manifest["kind"], metadata.get("name", ""))
        key = self._key(manifest["kind"], metadata["name"], metadata.get("namespace"))
        current = self.objects.get(key)
        if current is None:
            raise NotFoundError(f"{manifest['kind']} {metadata['name']} not found")
        expected = metadata.get("resourceVersion")
        if expected and expected != current["metadata"]["resourceVersion"]:
            raise ConflictError(f"{manifest['kind']} {metadata['name']} was modified")
        self.objects[key] = self._stamp(manifest)
        return copy.deepcopy(self.objects[key])

    def delete(self, kind: str, name: str, namespace: str | None = None) -> None:
        self._check("delete", kind, name)
        if self.objects.pop(self._key(kind, name, namespace), None) is None:
            raise NotFoundError(f"{kind} {name} not found")

    def update_status(self, manifest: Manifest) -> Manifest:
        metadata = manifest.get("metadata", {})
        self._check("update_status", manifest["kind"], metadata.get("name", ""))
        key = self._key(manifest["kind"], metadata["name"], metadata.get("namespace"))
        current = self.objects.get(key)
        if current is None:
            raise NotFoundError(f"{manifest['kind']} {metadata['name']} not found")
        current = copy.deepcopy(current)
        current["status"] = copy.deepcopy(manifest.get("status") or {})
        self.objects[key] = self._stamp(current)
        return copy.deepcopy(self.objects[key])


class FakeReconciler(CustomResourceReconciler):
    """``CustomResourceReconciler`` for a custom resource stored in a ``FakeClusterClient``."""

    def __init__(self, kind: ResourceKind = FAKE_KIND, **kwargs: Any):
        super().__init__(kind, **kwargs)
        self.loads: list[ReconcileRequest] = []

    def load(self, client: ClusterClient, request: ReconcileRequest) -> None:
        self.loads.append(request)
        super().load(client, request)


def custom_resource(
    name: str = "mongo",
    namespace: str = "db",
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
    kind: ResourceKind = FAKE_KIND,
) -> Manifest:
    manifest = kind.manifest(name, namespace, spec=spec or {})
    if status is not None:
        manifest["status"] = status
    return manifest


class RecordingStep(BaseStep):
    """Step that appends ``(name, phase)`` to a shared journal and returns canned results."""

    def __init__(
        self,
        name: str,
        journal: list[tuple[str, str]] | None = None,
        *,
        validate_result: Result[None] | None = None,
        condition_result: Result[bool] | None = None,
        execute_result: Result[None] | None = None,
        raises: Exception | None = None,
    ):
        self.name = name
        self.journal = journal if journal is not None else []
        self.validate_result = validate_result or Ok(None)
        self.condition_result = condition_result or Ok(True)
        self.execute_result = execute_result or Ok(None)
        self.raises = raises

    def validate(self, ctx: ExecutionContext) -> Result[None]:
        self.journal.append((self.name, "validate"))
        return self.validate_result

    def condition(self, ctx: ExecutionContext) -> Result[bool]:
        self.journal.append((self.name, "condition"))
        return self.condition_result

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        self.journal.append((self.name, "execute"))
        if self.raises is not None:
            raise self.raises
        return self.execute_result

    @property
    def executed(self) -> bool:
        return (self.name, "execute") in self.journal


__all__ = [
    "InMemoryConfigMapStore",
    "FakeClusterClient",
    "FakeReconciler",
    "RecordingStep",
    "custom_resource",
    "FAKE_KIND",
]
