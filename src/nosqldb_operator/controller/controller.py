"""
Reconciliation controller: one forward pass per invocation.

``ReconcileCommonService.reconcile`` is what the host framework calls for
every event on a managed resource.  It decides whether anything changed,
runs the configured step trees and records the outcome on the resource's
status.  It never raises to the host: every failure ends up as a status
condition and a log line, and the host only ever sees a ``ReconcileResult``.

Manifesto:
    - **Status is the API:** Observers read the resource's condition, not
      the return value of ``reconcile``
    - **Resume without partial state:** A changed spec after a failed pass
      drops the spec-hash record so the next run is a full one
    - **Own retry policy:** The version gate sleeps and exits the process,
      the delay gate waits, everything else waits for the next event
    - **One trap:** Returned errors and unexpected exceptions are folded
      into one failure path at this boundary

Architecture:
    ::

        reconcile(request)
          │
          ├── 1 bootstrap      load instance, build ExecutionContext
          ├── 2 version gate   mismatch ─▶ sleep, exit(0)
          ├── 3 delay gate     sleep(reconciliation_delay_seconds)
          ├── 4 change check   spec digest  +  admin secret rotation
          │                    record or digest error ─▶ Failed
          ├── 5 stale failure  changed and last status != Successful
          │                       ─▶ reset record, check again
          ├── 6 pre-deploy     (optional, runs on every pass)
          ├── 7 main           only when changed: In Progress ─▶ Successful
          ├── 8 DR             (optional) running ─▶ done | failed
          └── 9 status         committed at every phase boundary;
                               commit failures are logged only

        failure ──▶ DRExecutionError ? DR status "failed"
                                     : condition Failed + DR "failed"

Examples:
    >>> service = ReconcileCommonService(client, reconciler, builder)  # doctest: +SKIP
    >>> service.reconcile(ReconcileRequest(name="mongo", namespace="db"))  # doctest: +SKIP
    ReconcileResult(requeue_after=None)

Tags:
    controller, reconciliation, state-machine, operator-core

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import sys
import time
import traceback
from typing import Any, Callable

from nosqldb_operator.consul.client import create_consul_client
from nosqldb_operator.controller.reconciler import CommonReconciler
from nosqldb_operator.controller.status import CRStatusHandler
from nosqldb_operator.core.errors import DRExecutionError, ExecutionError, NotFoundError, categorize_error
from nosqldb_operator.core.hashing import canonical_json
from nosqldb_operator.core.logging import LogContext, get_logger
from nosqldb_operator.core.models import (
    DR_DONE,
    DR_FAILED,
    DR_RUNNING,
    REASON_FAILED,
    REASON_IN_PROGRESS,
    REASON_SUCCEEDED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    STATUS_SUCCESSFUL,
    ConsulRegistration,
    ReconcileRequest,
    ReconcileResult,
    VaultRegistration,
)
from nosqldb_operator.core.protocols import (
    ClusterClient,
    CredentialWatcher,
    SecretStore,
    ServiceRegistry,
    SmallObjectStore,
)
from nosqldb_operator.core.result import Result
from nosqldb_operator.core.settings import OperatorSettings, get_settings
from nosqldb_operator.kube.configmap_store import ConfigMapStore
from nosqldb_operator.kube.helper import KubernetesHelper
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.builder import StepBuilder, as_builder
from nosqldb_operator.orchestration.execution_context import ExecutionContext
from nosqldb_operator.orchestration.executor import DefaultExecutor, Executor
from nosqldb_operator.orchestration.spec_change import SPEC_SUMMARY_KEY, SpecChangeDetector
from nosqldb_operator.vault.client import VaultClient
from nosqldb_operator.vault.helper import VaultHelper

logger = get_logger(__name__)

WATCH_RETRY_SECONDS = 60.0
FAILURE_PREFIX = "Reconciliation exception: "

VaultFactory = Callable[[VaultRegistration | None], SecretStore | None]
ConsulFactory = Callable[[str, ConsulRegistration | None], ServiceRegistry | None]


def default_vault_factory(settings: OperatorSettings) -> VaultFactory:
    def build(registration: VaultRegistration | None) -> SecretStore | None:
        if registration is None or not registration.enabled:
            return None
        return VaultHelper(VaultClient(registration, token_reader=settings.read_service_account_token))

    return build


def default_consul_factory(settings: OperatorSettings) -> ConsulFactory:
    def build(node_ip: str, registration: ConsulRegistration | None) -> ServiceRegistry | None:
        return create_consul_client(node_ip, registration, settings)

    return build


class ReconcileCommonService:
    """Drive one reconciliation pass for the resource named by a request."""

    def __init__(
        self,
        client: ClusterClient,
        reconciler: CommonReconciler,
        builder: StepBuilder | Callable[[ExecutionContext], Any],
        *,
        predeploy_builder: StepBuilder | Callable[[ExecutionContext], Any] | None = None,
        dr_builder: StepBuilder | Callable[[ExecutionContext], Any] | None = None,
        executor: Executor | None = None,
        settings: OperatorSettings | None = None,
        store: SmallObjectStore | None = None,
        secret_watcher: CredentialWatcher | None = None,
        vault_factory: VaultFactory | None = None,
        consul_factory: ConsulFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
        exit: Callable[[int], Any] = sys.exit,
    ):
        self.client = client
        self.reconciler = reconciler
        self.builder = as_builder(builder)
        self.predeploy_builder = as_builder(predeploy_builder)
        self.dr_builder = as_builder(dr_builder)
        self.executor = executor or DefaultExecutor()
        self.settings = settings or get_settings()
        self.helper = KubernetesHelper(client, interval=self.settings.poll_interval_seconds)
        self.store = store or ConfigMapStore(
            client,
            interval=self.settings.poll_interval_seconds,
            delete_timeout=self.settings.config_map_delete_timeout_seconds,
        )
        self.secret_watcher = secret_watcher
        self.vault_factory = vault_factory or default_vault_factory(self.settings)
        self.consul_factory = consul_factory or default_consul_factory(self.settings)
        self._sleep = sleep
        self._exit = exit

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        """Run one pass. Never raises; the outcome is written to the resource status."""
        status = CRStatusHandler(self.reconciler, self.client)
        with LogContext(resource=request.name, namespace=request.namespace):
            try:
                return self._reconcile(request, status)
            except Exception as e:
                return self._fail(status, e, trace=traceback.format_exc())

    # =========================================================================
    # PASS
    # =========================================================================

    def _reconcile(self, request: ReconcileRequest, status: CRStatusHandler) -> ReconcileResult:
        reconciler = self.reconciler

        # 1. bootstrap
        try:
            reconciler.load(self.client, request)
        except NotFoundError:
            logger.info("reconcile.resource_not_found")
            return ReconcileResult()
        ctx = self._bootstrap(request)
        try:
            return self._run_pass(request, ctx, status)
        finally:
            self._close_vault(ctx.get(keys.VAULT))

    def _run_pass(self, request: ReconcileRequest, ctx: ExecutionContext, status: CRStatusHandler) -> ReconcileResult:
        reconciler = self.reconciler
        settings = self.settings
        detector: SpecChangeDetector = ctx.require(keys.SPEC_CHANGE_DETECTOR)

        # 2. version gate
        expected = settings.deployment_version
        if expected:
            actual = reconciler.deployment_version()
            logger.debug("reconcile.deployment_version", expected=expected, actual=actual)
            if expected != actual:
                logger.info(
                    "reconcile.deployment_version_mismatch",
                    expected=expected,
                    actual=actual,
                    sleep_seconds=settings.deployment_version_mismatch_sleep_seconds,
                )
                self._sleep(settings.deployment_version_mismatch_sleep_seconds)
                self._exit(0)
                return ReconcileResult()

        # 3. delay gate
        if settings.reconciliation_delay_seconds > 0:
            logger.info("reconcile.delayed", seconds=settings.reconciliation_delay_seconds)
            self._sleep(settings.reconciliation_delay_seconds)

        # 4. change detection
        checked = detector.check(ctx, reconciler.spec(), SPEC_SUMMARY_KEY)
        if checked.is_err():
            return self._fail(status, checked.error)
        spec_changed = checked.value

        admin_secret = reconciler.admin_secret_name()
        if admin_secret and self.secret_watcher is not None:
            try:
                self.secret_watcher.watch(
                    [admin_secret],
                    request.namespace,
                    lambda: self._on_credentials_rotated(request, ctx),
                )
            except Exception as e:
                logger.error("reconcile.secret_watch_failed", secret=admin_secret, error=str(e))
                return ReconcileResult(requeue_after=WATCH_RETRY_SECONDS)

            if self._creds_changed(admin_secret, request.namespace):
                spec_changed = True
            else:
                self._actualize_creds(admin_secret, request.namespace)

        # 5. stale failure recovery
        if spec_changed and not self._is_current_status(STATUS_SUCCESSFUL):
            logger.info("reconcile.previous_pass_incomplete", record=reconciler.config_map_name())
            logger.info("reconcile.resource_spec", spec=canonical_json(reconciler.spec()))
            reset = detector.reset(ctx)
            detector.check(ctx, reconciler.spec(), SPEC_SUMMARY_KEY)
            if reset.is_err():
                return self._fail(status, reset.error)

        ctx.set(keys.SPEC_HAS_CHANGES, spec_changed)

        # 6. pre-deploy
        if self.predeploy_builder is not None:
            logger.info("reconcile.predeploy_started")
            result = self._run_phase(self.predeploy_builder, ctx)
            if result.is_err():
                return self._fail(status, result.error)
            logger.info("reconcile.predeploy_finished")

        if not spec_changed:
            logger.info("reconcile.no_changes")
            return ReconcileResult()

        # 7. main
        status.set_condition(True, STATUS_IN_PROGRESS, None, REASON_IN_PROGRESS).set_dr_status(DR_RUNNING)
        self._commit(status)

        consul = self.consul_factory(settings.host_ip, reconciler.consul_registration())
        ctx.set(keys.CONSUL, consul)
        try:
            logger.info("reconcile.started")
            result = self._run_phase(self.builder, ctx)
        finally:
            self._logout(consul)
        if result.is_err():
            return self._fail(status, result.error)

        status.set_condition(True, STATUS_SUCCESSFUL, None, REASON_SUCCEEDED)
        self._commit(status)
        logger.info("reconcile.succeeded")
        if admin_secret and self.secret_watcher is not None:
            self._actualize_creds(admin_secret, request.namespace)

        # 8. disaster recovery
        if self.dr_builder is not None:
            result = self._run_phase(self.dr_builder, ctx)
            if result.is_err():
                error = result.error
                if not isinstance(error, DRExecutionError):
                    error = DRExecutionError(str(error), cause=error)
                return self._fail(status, error)
            status.set_dr_status(DR_DONE)
            self._commit(status)
            logger.info("reconcile.dr_succeeded")

        return ReconcileResult()

    def _bootstrap(self, request: ReconcileRequest) -> ExecutionContext:
        reconciler = self.reconciler
        ctx = ExecutionContext(
            {
                keys.SPEC: reconciler.instance(),
                keys.REQUEST: request,
                keys.CLIENT: self.client,
                keys.KUBE_HELPER: self.helper,
                keys.LOGGER: logger,
                keys.SETTINGS: self.settings,
                keys.VAULT: self.vault_factory(reconciler.vault_registration()),
                keys.CONSUL_REGISTRATION: reconciler.consul_registration(),
                keys.CONSUL_SERVICE_REGISTRATIONS: reconciler.service_registrations(),
                keys.HASH_CONFIG_MAP: reconciler.config_map_name(),
                keys.SPEC_CHANGE_DETECTOR: SpecChangeDetector(
                    self.store,
                    request.namespace,
                    reconciler.config_map_name(),
                    delete_timeout=self.settings.config_map_delete_timeout_seconds,
                ),
            }
        )
        kind = reconciler.resource_kind()
        if kind is not None:
            ctx.set(keys.SCHEMA, kind)
        return ctx

    def _run_phase(self, builder: StepBuilder, ctx: ExecutionContext) -> Result[None]:
        return self.executor.run(builder.build(ctx), ctx)

    # =========================================================================
    # CREDENTIALS
    # =========================================================================

    def _creds_changed(self, secret: str, namespace: str) -> bool:
        try:
            return self.secret_watcher.are_creds_changed([secret], namespace)
        except Exception as e:
            logger.error("reconcile.creds_check_failed", secret=secret, error=str(e))
            return False

    def _actualize_creds(self, secret: str, namespace: str) -> None:
        try:
            self.secret_watcher.actualize_creds(secret, namespace)
        except Exception as e:
            logger.error("reconcile.creds_actualize_failed", secret=secret, error=str(e))

    def _on_credentials_rotated(self, request: ReconcileRequest, ctx: ExecutionContext) -> None:
        """Watch callback: full re-run or the narrower password update."""
        if self.reconciler.full_reconcile_on_password_change():
            reset = ctx.require(keys.SPEC_CHANGE_DETECTOR).reset(ctx)
            if reset.is_err():
                logger.error("credentials.spec_reset_failed", error=str(reset.error))
            self.reconcile(request)
            return

        vault = self.vault_factory(self.reconciler.vault_registration())
        ctx.set(keys.VAULT, vault)
        try:
            result = self.executor.run(self.reconciler.update_password_step(), ctx)
        finally:
            self._close_vault(vault)
        if result.is_err():
            logger.error("credentials.password_update_failed", error=str(result.error))
            return
        logger.info("credentials.password_updated")
        self._actualize_creds(self.reconciler.admin_secret_name(), request.namespace)

    # =========================================================================
    # STATUS
    # =========================================================================

    def _is_current_status(self, condition_type: str) -> bool:
        condition = self.reconciler.current_status()
        return condition is not None and condition.type == condition_type

    def _commit(self, status: CRStatusHandler) -> None:
        committed = status.commit()
        if committed.is_err():
            logger.error("reconcile.status_commit_failed", error=str(committed.error))

    def _fail(self, status: CRStatusHandler, error: BaseException, *, trace: str | None = None) -> ReconcileResult:
        if isinstance(error, DRExecutionError):
            logger.error("reconcile.dr_failed", error=str(error), category=categorize_error(error).value, trace=trace)
            status.set_dr_status(DR_FAILED)
            self._commit(status)
            return ReconcileResult()

        message = FAILURE_PREFIX + str(error)
        if trace:
            message += "\n" + trace
        logger.error("reconcile.failed", error=message, category=categorize_error(error).value)
        status.set_condition(True, STATUS_FAILED, ExecutionError(message), REASON_FAILED).set_dr_status(DR_FAILED)
        self._commit(status)
        return ReconcileResult()

    @staticmethod
    def _logout(consul: ServiceRegistry | None) -> None:
        if consul is None:
            return
        try:
            consul.logout()
        except Exception as e:
            logger.warning("consul.logout_failed", error=str(e))
        finally:
            consul.close()

    @staticmethod
    def _close_vault(vault: SecretStore | None) -> None:
        if vault is not None:
            vault.close()


__all__ = [
    "ReconcileCommonService",
    "default_vault_factory",
    "default_consul_factory",
    "WATCH_RETRY_SECONDS",
    "FAILURE_PREFIX",
]
