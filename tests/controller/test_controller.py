"""Scenario tests for nosqldb_operator.controller.controller.

Each test drives ``ReconcileCommonService.reconcile`` against the in-memory
cluster and reads the outcome from the stored resource status, the way an
observer of the custom resource would.
"""

from unittest.mock import MagicMock

import pytest

from nosqldb_operator.controller.controller import (
    FAILURE_PREFIX,
    WATCH_RETRY_SECONDS,
    ReconcileCommonService,
    default_consul_factory,
    default_vault_factory,
)
from nosqldb_operator.core.errors import (
    ClusterError,
    ConflictError,
    DRExecutionError,
    ExecutionError,
    StepValidationError,
)
from nosqldb_operator.core.models import ConsulRegistration, ReconcileRequest, ReconcileResult, VaultRegistration
from nosqldb_operator.core.result import Err, Ok
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.testing import FAKE_KIND, FakeReconciler, RecordingStep, custom_resource
from nosqldb_operator.vault.helper import VaultHelper

REQUEST = ReconcileRequest(name="mongo", namespace="db")
SPEC = {"deploymentVersion": "1.4.0", "replicas": 3}


class Harness:
    """Service under test plus everything it touched."""

    def __init__(self, cluster, store, settings, **kwargs):
        self.cluster = cluster
        self.store = store
        self.journal = []
        self.main = kwargs.pop("main", None) or RecordingStep("main", self.journal)
        self.sleeps = []
        self.exits = []
        self.reconciler = kwargs.pop("reconciler", None) or FakeReconciler()
        self.contexts = []

        def build(ctx):
            self.contexts.append(ctx)
            return self.main

        options = {
            "settings": settings,
            "store": store,
            "vault_factory": lambda registration: None,
            "consul_factory": lambda node_ip, registration: None,
            "sleep": self.sleeps.append,
            "exit": self.exits.append,
        }
        options.update(kwargs)
        self.service = ReconcileCommonService(cluster, self.reconciler, build, **options)

    def run(self) -> ReconcileResult:
        return self.service.reconcile(REQUEST)

    @property
    def status(self):
        return self.cluster.get(FAKE_KIND.kind, "mongo", "db").get("status") or {}

    @property
    def condition(self):
        return (self.status.get("conditions") or [{}])[0]

    @property
    def main_runs(self):
        return self.journal.count(("main", "execute"))

    def set_spec(self, spec):
        manifest = self.cluster.get(FAKE_KIND.kind, "mongo", "db")
        manifest["spec"] = spec
        self.cluster.update(manifest)


@pytest.fixture
def harness_factory(cluster, store, settings):
    cluster.create(custom_resource(spec=dict(SPEC)))

    def make(**kwargs):
        return Harness(cluster, store, settings, **kwargs)

    return make


class TestHappyPath:
    def test_first_pass_runs_main_phase(self, harness_factory):
        harness = harness_factory()
        assert harness.run() == ReconcileResult()
        assert harness.main_runs == 1
        assert harness.condition["type"] == "Successful"
        assert harness.condition["reason"] == "ReconcileCycleSucceeded"
        assert harness.status["disasterRecoveryStatus"] == {"status": "running"}

    def test_status_passes_through_in_progress(self, harness_factory, cluster):
        harness = harness_factory()
        harness.run()
        status_writes = [call for call in cluster.calls if call[0] == "update_status"]
        assert len(status_writes) == 2

    def test_unchanged_spec_is_a_no_op(self, harness_factory, cluster, store):
        harness = harness_factory()
        harness.run()
        writes = len([call for call in cluster.calls if call[0] == "update_status"])
        record_writes, record_deletes = list(store.writes), list(store.deletes)
        harness.run()
        assert harness.main_runs == 1
        assert len([call for call in cluster.calls if call[0] == "update_status"]) == writes
        assert store.writes == record_writes
        assert store.deletes == record_deletes

    def test_changed_spec_runs_again(self, harness_factory):
        harness = harness_factory()
        harness.run()
        harness.set_spec({**SPEC, "replicas": 5})
        harness.run()
        assert harness.main_runs == 2

    def test_context_is_bootstrapped(self, harness_factory, cluster, settings):
        harness = harness_factory()
        harness.run()
        ctx = harness.contexts[0]
        assert ctx.get(keys.REQUEST) == REQUEST
        assert ctx.get(keys.CLIENT) is cluster
        assert ctx.get(keys.SETTINGS) is settings
        assert ctx.get(keys.HASH_CONFIG_MAP) == "mongo-spec-hash"
        assert ctx.get(keys.SCHEMA) is FAKE_KIND
        assert ctx.get(keys.SPEC_HAS_CHANGES) is True
        assert ctx.get(keys.SPEC)["spec"] == SPEC

    def test_missing_resource_is_ignored(self, cluster, store, settings):
        harness = Harness(cluster, store, settings)
        assert harness.run() == ReconcileResult()
        assert harness.main_runs == 0
        assert not [call for call in cluster.calls if call[0] == "update_status"]


class TestFailures:
    def test_leaf_error_marks_failed(self, harness_factory):
        harness = harness_factory(main=RecordingStep("main", execute_result=Err(ExecutionError("disk full"))))
        assert harness.run() == ReconcileResult()
        assert harness.condition["type"] == "Failed"
        assert harness.condition["reason"] == "ReconcileCycleFailed"
        assert harness.condition["message"] == FAILURE_PREFIX + "disk full"
        assert harness.status["disasterRecoveryStatus"] == {"status": "failed"}

    def test_unexpected_exception_is_trapped(self, harness_factory):
        harness = harness_factory(main=RecordingStep("main", raises=RuntimeError("kaboom")))
        assert harness.run() == ReconcileResult()
        assert harness.condition["type"] == "Failed"
        assert harness.condition["message"].startswith(FAILURE_PREFIX + "kaboom\n")
        assert "Traceback" in harness.condition["message"]

    def test_validation_error_executes_nothing(self, harness_factory):
        harness = harness_factory(main=RecordingStep("main", validate_result=Err(StepValidationError("no storage"))))
        harness.run()
        assert not harness.main.executed
        assert harness.condition["message"] == FAILURE_PREFIX + "no storage"

    def test_stale_failure_resets_record_on_next_change(self, harness_factory, store):
        failing = RecordingStep("main", execute_result=Err(ExecutionError("disk full")))
        harness = harness_factory(main=failing)
        harness.run()
        store.records[("db", "mongo-spec-hash")]["mongo-consul-settings-hash"] = "old"

        failing.execute_result = Ok(None)
        harness.set_spec({**SPEC, "replicas": 5})
        harness.run()
        assert ("db", "mongo-spec-hash") in store.deletes
        assert "mongo-consul-settings-hash" not in store.records[("db", "mongo-spec-hash")]
        assert harness.condition["type"] == "Successful"

    def test_failed_pass_with_unchanged_spec_stays_failed(self, harness_factory):
        harness = harness_factory(main=RecordingStep("main", execute_result=Err(ExecutionError("disk full"))))
        harness.run()
        harness.run()
        assert harness.main.journal.count(("main", "execute")) == 1
        assert harness.condition["type"] == "Failed"

    def test_reset_failure_fails_pass(self, harness_factory, store):
        harness = harness_factory(main=RecordingStep("main", execute_result=Err(ExecutionError("disk full"))))
        harness.run()
        store.fail_delete = ClusterError("timeout")
        harness.set_spec({**SPEC, "replicas": 5})
        harness.run()
        assert harness.condition["message"].startswith(FAILURE_PREFIX + "Failed to delete Spec config map")

    def test_status_commit_failure_is_not_raised(self, harness_factory, cluster):
        harness = harness_factory()
        cluster.errors[("update_status", FAKE_KIND.kind)] = ClusterError("forbidden")
        assert harness.run() == ReconcileResult()
        assert harness.main_runs == 1

    def test_spec_record_unavailable_fails_pass(self, harness_factory, store):
        harness = harness_factory()
        harness.run()
        harness.set_spec({**SPEC, "replicas": 5})
        store.fail_get = ConflictError("spec-hash record was modified")
        assert harness.run() == ReconcileResult()
        assert harness.main_runs == 1
        assert harness.condition["type"] == "Failed"
        assert harness.condition["message"] == FAILURE_PREFIX + "spec-hash record was modified"
        assert harness.status["disasterRecoveryStatus"] == {"status": "failed"}

    def test_unhashable_spec_fails_pass(self, harness_factory):
        harness = harness_factory()
        harness.set_spec({"extra": {1: "a", "b": 2}})
        harness.run()
        assert harness.main_runs == 0
        assert harness.condition["type"] == "Failed"
        assert "Can't hash value" in harness.condition["message"]


class TestGates:
    def test_version_mismatch_sleeps_and_exits(self, harness_factory, settings, cluster):
        settings.deployment_version = "2.0.0"
        settings.deployment_version_mismatch_sleep_seconds = 300
        harness = harness_factory()
        assert harness.run() == ReconcileResult()
        assert harness.sleeps == [300]
        assert harness.exits == [0]
        assert harness.main_runs == 0
        assert harness.status == {}

    def test_matching_version_proceeds(self, harness_factory, settings):
        settings.deployment_version = "1.4.0"
        harness = harness_factory()
        harness.run()
        assert harness.exits == []
        assert harness.main_runs == 1

    def test_delay_gate(self, harness_factory, settings):
        settings.reconciliation_delay_seconds = 3
        harness = harness_factory()
        harness.run()
        assert harness.sleeps == [3]


class TestPhases:
    def test_predeploy_runs_every_pass(self, harness_factory):
        journal = []
        harness = harness_factory(predeploy_builder=lambda ctx: RecordingStep("predeploy", journal))
        harness.run()
        harness.run()
        assert journal.count(("predeploy", "execute")) == 2
        assert harness.main_runs == 1

    def test_predeploy_sees_change_flag(self, harness_factory):
        seen = []

        def build(ctx):
            seen.append(ctx.get(keys.SPEC_HAS_CHANGES))
            return RecordingStep("predeploy")

        harness = harness_factory(predeploy_builder=build)
        harness.run()
        harness.run()
        assert seen == [True, False]

    def test_predeploy_error_fails_pass(self, harness_factory):
        harness = harness_factory(
            predeploy_builder=lambda ctx: RecordingStep("predeploy", execute_result=Err(ExecutionError("no quota")))
        )
        harness.run()
        assert harness.main_runs == 0
        assert harness.condition["message"] == FAILURE_PREFIX + "no quota"

    def test_dr_success(self, harness_factory):
        harness = harness_factory(dr_builder=lambda ctx: RecordingStep("dr"))
        harness.run()
        assert harness.condition["type"] == "Successful"
        assert harness.status["disasterRecoveryStatus"] == {"status": "done"}

    def test_dr_failure_leaves_main_condition(self, harness_factory):
        harness = harness_factory(
            dr_builder=lambda ctx: RecordingStep("dr", execute_result=Err(ExecutionError("site unreachable")))
        )
        harness.run()
        assert harness.condition["type"] == "Successful"
        assert harness.status["disasterRecoveryStatus"] == {"status": "failed"}

    def test_dr_error_from_main_phase(self, harness_factory):
        harness = harness_factory(main=RecordingStep("main", execute_result=Err(DRExecutionError("switchover"))))
        harness.run()
        assert harness.condition["type"] == "In Progress"
        assert harness.status["disasterRecoveryStatus"] == {"status": "failed"}

    def test_consul_client_published_and_logged_out(self, harness_factory):
        consul = MagicMock()
        harness = harness_factory(consul_factory=lambda node_ip, registration: consul)
        harness.run()
        assert harness.contexts[0].get(keys.CONSUL) is consul
        consul.logout.assert_called_once_with()
        consul.close.assert_called_once_with()

    def test_consul_logout_after_failure(self, harness_factory):
        consul = MagicMock()
        harness = harness_factory(
            main=RecordingStep("main", raises=RuntimeError("kaboom")),
            consul_factory=lambda node_ip, registration: consul,
        )
        harness.run()
        consul.logout.assert_called_once_with()
        consul.close.assert_called_once_with()


    def test_vault_client_closed_after_pass(self, harness_factory, settings):
        created = []
        build_vault = default_vault_factory(settings)

        def vault_factory(registration):
            vault = build_vault(registration)
            created.append(vault)
            return vault

        harness = harness_factory(vault_factory=vault_factory)
        harness.set_spec({**SPEC, "vaultRegistration": {"enabled": True, "url": "http://vault:8200"}})
        harness.run()
        assert isinstance(created[0], VaultHelper)
        assert created[0].client._http.is_closed

    def test_vault_closed_after_failure(self, harness_factory):
        vault = MagicMock()
        harness = harness_factory(
            main=RecordingStep("main", raises=RuntimeError("kaboom")),
            vault_factory=lambda registration: vault,
        )
        harness.run()
        vault.close.assert_called_once_with()

    def test_vault_closed_on_no_op_pass(self, harness_factory):
        vaults = []

        def vault_factory(registration):
            vault = MagicMock()
            vaults.append(vault)
            return vault

        harness = harness_factory(vault_factory=vault_factory)
        harness.run()
        harness.run()
        assert len(vaults) == 2
        for vault in vaults:
            vault.close.assert_called_once_with()


class TestAdminCredentials:
    def _watcher(self, changed=False):
        watcher = MagicMock()
        watcher.are_creds_changed.return_value = changed
        return watcher

    def _reconciler(self, **kwargs):
        return FakeReconciler(admin_secret_name="mongo-admin", **kwargs)

    def _vault_factory(self, vaults):
        def build(registration):
            vault = MagicMock()
            vaults.append(vault)
            return vault

        return build

    def test_registers_watch_and_actualizes(self, harness_factory):
        watcher = self._watcher()
        harness = harness_factory(reconciler=self._reconciler(), secret_watcher=watcher)
        harness.run()
        watcher.watch.assert_called_once()
        assert watcher.watch.call_args.args[:2] == (["mongo-admin"], "db")
        assert watcher.actualize_creds.call_count == 2

    def test_watch_failure_requeues(self, harness_factory):
        watcher = self._watcher()
        watcher.watch.side_effect = ClusterError("secret not found")
        harness = harness_factory(reconciler=self._reconciler(), secret_watcher=watcher)
        assert harness.run() == ReconcileResult(requeue_after=WATCH_RETRY_SECONDS)
        assert harness.main_runs == 0

    def test_rotated_credentials_force_main_phase(self, harness_factory):
        watcher = self._watcher()
        harness = harness_factory(reconciler=self._reconciler(), secret_watcher=watcher)
        harness.run()
        watcher.are_creds_changed.return_value = True
        harness.run()
        assert harness.main_runs == 2

    def test_callback_full_reconcile(self, harness_factory, store):
        watcher = self._watcher()
        harness = harness_factory(reconciler=self._reconciler(), secret_watcher=watcher)
        harness.run()
        callback = watcher.watch.call_args.args[2]
        callback()
        assert ("db", "mongo-spec-hash") in store.deletes
        assert harness.main_runs == 2

    def test_callback_password_update_only(self, harness_factory):
        vaults = []
        update = RecordingStep("update-password")
        watcher = self._watcher()
        reconciler = self._reconciler(full_reconcile_on_password_change=False, update_password_step=update)
        harness = harness_factory(
            reconciler=reconciler, secret_watcher=watcher, vault_factory=self._vault_factory(vaults)
        )
        harness.run()
        actualized = watcher.actualize_creds.call_count
        watcher.watch.call_args.args[2]()
        assert update.executed
        assert len(vaults) == 2
        vaults[-1].close.assert_called_once_with()
        assert harness.main_runs == 1
        assert watcher.actualize_creds.call_count == actualized + 1


class TestDefaultFactories:
    def test_vault_factory(self, settings):
        build = default_vault_factory(settings)
        assert build(None) is None
        assert build(VaultRegistration(enabled=False)) is None
        assert isinstance(build(VaultRegistration(enabled=True, url="http://vault:8200")), VaultHelper)

    def test_consul_factory_disabled(self, settings):
        assert default_consul_factory(settings)("10.0.0.5", ConsulRegistration(enabled=False)) is None
