"""Tests for nosqldb_operator.kube.credentials."""

import threading

import pytest

from nosqldb_operator.core.errors import NotFoundError
from nosqldb_operator.kube.credentials import CREDS_HASH_ANNOTATION, SecretWatcher, secret_digest
from nosqldb_operator.kube.resources import SECRET


def _secret(data, annotations=None):
    manifest = SECRET.manifest("admin", "db", data=data)
    if annotations is not None:
        manifest["metadata"]["annotations"] = annotations
    return manifest


class TestRotationDetection:
    def test_never_actualized_is_unchanged(self, cluster):
        cluster.create(_secret({"password": "YQ=="}))
        assert SecretWatcher(cluster).are_creds_changed(["admin"], "db") is False

    def test_actualize_then_unchanged(self, cluster):
        cluster.create(_secret({"password": "YQ=="}))
        watcher = SecretWatcher(cluster)
        watcher.actualize_creds("admin", "db")
        stored = cluster.get("Secret", "admin", "db")
        assert stored["metadata"]["annotations"][CREDS_HASH_ANNOTATION] == secret_digest(stored)
        assert watcher.are_creds_changed(["admin"], "db") is False

    def test_rotation_detected(self, cluster):
        cluster.create(_secret({"password": "Yg=="}, {CREDS_HASH_ANNOTATION: "stale"}))
        assert SecretWatcher(cluster).are_creds_changed(["admin"], "db") is True

    def test_actualize_is_idempotent(self, cluster):
        cluster.create(_secret({"password": "YQ=="}))
        watcher = SecretWatcher(cluster)
        watcher.actualize_creds("admin", "db")
        watcher.actualize_creds("admin", "db")
        assert len([c for c in cluster.calls if c[0] == "update"]) == 1

    def test_missing_secret_raises(self, cluster):
        with pytest.raises(NotFoundError):
            SecretWatcher(cluster).are_creds_changed(["admin"], "db")


class TestWatch:
    def test_callback_on_rotation(self, cluster):
        cluster.create(_secret({"password": "Yg=="}, {CREDS_HASH_ANNOTATION: "stale"}))
        fired = threading.Event()

        def stream(name, namespace):
            yield {"type": "ADDED"}
            yield {"type": "MODIFIED"}

        watcher = SecretWatcher(cluster, stream=stream)
        watcher.watch(["admin"], "db", fired.set)
        watcher.join(timeout=5)
        assert fired.is_set()

    def test_modification_without_rotation_is_ignored(self, cluster):
        cluster.create(_secret({"password": "YQ=="}))
        calls = []

        def stream(name, namespace):
            yield {"type": "MODIFIED"}

        watcher = SecretWatcher(cluster, stream=stream)
        watcher.watch(["admin"], "db", lambda: calls.append(1))
        watcher.join(timeout=5)
        assert calls == []

    def test_registers_once_while_running(self, cluster):
        cluster.create(_secret({"password": "YQ=="}))
        release = threading.Event()
        started = []

        def stream(name, namespace):
            started.append(name)
            release.wait(5)
            return
            yield

        watcher = SecretWatcher(cluster, stream=stream)
        watcher.watch(["admin"], "db", lambda: None)
        watcher.watch(["admin"], "db", lambda: None)
        release.set()
        watcher.join(timeout=5)
        assert len(watcher._threads) == 1

    def test_finished_threads_are_dropped_on_reregistration(self, cluster):
        cluster.create(_secret({"password": "YQ=="}))
        watcher = SecretWatcher(cluster, stream=lambda name, namespace: iter(()))
        for _ in range(3):
            watcher.watch(["admin"], "db", lambda: None)
            watcher.join(timeout=5)
        assert len(watcher._threads) == 1

    def test_unreadable_secret_fails_registration(self, cluster):
        watcher = SecretWatcher(cluster, stream=lambda name, namespace: iter(()))
        with pytest.raises(NotFoundError):
            watcher.watch(["admin"], "db", lambda: None)
