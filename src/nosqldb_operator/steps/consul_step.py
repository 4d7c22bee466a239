"""
Consul service registration steps.

``ConsulSettingsStep`` wraps one named entry of the resource's
``consulServiceRegistrations`` and runs an action against the Consul agent
only when that entry (or the global Consul registration) changed since
the last successful pass.

Architecture:
    ::

        condition(ctx)
          ├── no Consul client / registration in ctx ──▶ skip
          ├── settings name empty ─────────────────────▶ Err(ExecutionError)
          ├── entry not found ─────────────────────────▶ skip (warning)
          ├── changed = check("<name>-consul-settings-hash")
          │           or check("consul-registration-hash")
          ├── not changed and not skip_changes_check ──▶ skip
          └── additional_condition(ctx, registration)

        execute(ctx)
          └── action(ctx, consul, enabled, proxy_checks, registration)

    Factories:
        register_consul_service_step     proxy checks, register / deregister
        maintenance_consul_service_step  toggle maintenance (always evaluated)

Guardrails:
    ❌ DON'T: Mutate the registration published in the context
    ✅ DO: Let ``cast`` build the agent payload from a copy

Tags:
    consul, service-registry, steps

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import uuid
from typing import Callable

from nosqldb_operator.core.errors import ExecutionError, OperatorError, execution_error
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import SERVICE_CLUSTER_DOMAIN_TEMPLATE, AgentServiceRegistration
from nosqldb_operator.core.protocols import ServiceRegistry
from nosqldb_operator.core.result import Err, Ok, Result
from nosqldb_operator.kube.resources import SERVICE, name_of
from nosqldb_operator.kube.templates import proxy_service_template
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.execution_context import ExecutionContext
from nosqldb_operator.orchestration.spec_change import check_spec_change
from nosqldb_operator.orchestration.steps import BaseStep

logger = get_logger(__name__)

SETTINGS_HASH_KEY = "{}-consul-settings-hash"
REGISTRATION_HASH_KEY = "consul-registration-hash"
CHECK_SERVICE_NAME = "consul-check-{}-{}-{}"
CHECK_PROXY_LABEL = "consul-check-proxy"

CastFn = Callable[[ExecutionContext, AgentServiceRegistration], AgentServiceRegistration]
ConsulAction = Callable[
    [ExecutionContext, ServiceRegistry, bool, bool, AgentServiceRegistration],
    Result[None],
]
AdditionalCondition = Callable[[ExecutionContext, AgentServiceRegistration], Result[bool]]


def find_service_registration(ctx: ExecutionContext, settings_name: str) -> AgentServiceRegistration | None:
    return (ctx.get(keys.CONSUL_SERVICE_REGISTRATIONS) or {}).get(settings_name)


def _default_cast(ctx: ExecutionContext, registration: AgentServiceRegistration) -> AgentServiceRegistration:
    return registration.model_copy(deep=True)


class ConsulSettingsStep(BaseStep):
    """Run ``action`` for one service registration entry when it changed."""

    def __init__(
        self,
        name: str,
        settings_name: str,
        action: ConsulAction,
        *,
        cast: CastFn | None = None,
        additional_condition: AdditionalCondition | None = None,
        skip_changes_check: bool = False,
    ):
        self.name = name
        self.settings_name = settings_name
        self.action = action
        self.cast = cast or _default_cast
        self.additional_condition = additional_condition
        self.skip_changes_check = skip_changes_check

    def condition(self, ctx: ExecutionContext) -> Result[bool]:
        consul_registration = ctx.get(keys.CONSUL_REGISTRATION)
        if consul_registration is None or ctx.get(keys.CONSUL) is None:
            logger.debug("consul.client_not_set", step=self.name)
            return Ok(False)

        if not self.settings_name:
            return Err(ExecutionError("Service Registration settings name is not set"))

        registration = find_service_registration(ctx, self.settings_name)
        if registration is None:
            logger.warning("consul.settings_not_found", settings=self.settings_name)
            return Ok(False)

        settings_changed = check_spec_change(ctx, registration, SETTINGS_HASH_KEY.format(self.settings_name))
        if settings_changed.is_err():
            return Err(settings_changed.error)
        registration_changed = check_spec_change(ctx, consul_registration, REGISTRATION_HASH_KEY)
        if registration_changed.is_err():
            return Err(registration_changed.error)

        if not (settings_changed.value or registration_changed.value):
            if not self.skip_changes_check:
                logger.debug("consul.settings_unchanged", settings=self.settings_name)
                return Ok(False)
            logger.debug("consul.changes_check_skipped", settings=self.settings_name)

        if self.additional_condition is not None:
            return self.additional_condition(ctx, registration)
        return Ok(True)

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        logger.debug("consul.step_started", step=self.name)
        registration = find_service_registration(ctx, self.settings_name)
        if registration is None:
            return Err(ExecutionError(f"Service Registration settings not found for '{self.settings_name}'"))
        try:
            consul = ctx.require(keys.CONSUL)
        except OperatorError as e:
            return Err(e)

        payload = self.cast(ctx, registration)
        result = self.action(ctx, consul, registration.enabled, not registration.direct_checks, payload)
        logger.debug("consul.step_finished", step=self.name, ok=result.is_ok())
        return result


# =============================================================================
# FACTORIES
# =============================================================================


def _remove_proxy_services(ctx: ExecutionContext, labels: dict[str, str]) -> None:
    client = ctx.require(keys.CLIENT)
    namespace = ctx.require(keys.REQUEST).namespace
    for service in client.list(SERVICE.kind, namespace, labels):
        name = name_of(service)
        logger.debug("consul.proxy_service_removing", service=name)
        try:
            client.delete(SERVICE.kind, name, namespace)
        except OperatorError as e:
            logger.error("consul.proxy_service_remove_failed", service=name, error=str(e))


def _proxy_checks(ctx: ExecutionContext, settings_name: str, labels: dict[str, str], payload: AgentServiceRegistration) -> None:
    helper = ctx.require(keys.KUBE_HELPER)
    namespace = ctx.require(keys.REQUEST).namespace
    for check in payload.checks:
        if not check.tcp:
            continue
        suffix = str(uuid.uuid4()).split("-")[0]
        service_name = CHECK_SERVICE_NAME.format(settings_name, check.name, suffix)
        service_host = SERVICE_CLUSTER_DOMAIN_TEMPLATE.format(service_name, namespace)
        host, _, port = check.tcp.partition(":")

        logger.debug("consul.proxying_check", target=host, via=service_host)
        helper.create_or_update(proxy_service_template(service_name, namespace, labels, host))
        check.tcp = f"{service_host}:{port}" if port else service_host
        logger.debug("consul.check_replaced", tcp=check.tcp)


def register_consul_service_step(settings_name: str, cast: CastFn | None = None) -> ConsulSettingsStep:
    """Register the service (proxying TCP checks through in-cluster services) or deregister it."""

    def register(
        ctx: ExecutionContext,
        consul: ServiceRegistry,
        enabled: bool,
        proxy_checks: bool,
        payload: AgentServiceRegistration,
    ) -> Result[None]:
        labels = {CHECK_PROXY_LABEL: settings_name}
        try:
            _remove_proxy_services(ctx, labels)
        except OperatorError as e:
            logger.error("consul.proxy_services_list_failed", error=str(e))

        if not enabled:
            logger.debug("consul.deregistering", service_id=payload.id)
            try:
                consul.deregister(payload.id)
            except OperatorError as e:
                logger.warning("consul.deregister_failed", service_id=payload.id, error=str(e))
            return Ok(None)

        logger.debug("consul.registering", service_id=payload.id)
        try:
            if proxy_checks:
                _proxy_checks(ctx, settings_name, labels, payload)
            consul.register(payload)
        except OperatorError as e:
            return Err(execution_error(f"Consul registration of {payload.id} failed", e))
        return Ok(None)

    return ConsulSettingsStep(f"{settings_name} registration/deregistration", settings_name, register, cast=cast)


def maintenance_consul_service_step(
    settings_name: str,
    enabled: bool,
    *reasons: str,
    cast: CastFn | None = None,
) -> ConsulSettingsStep:
    """Switch maintenance mode for an enabled registration, changed or not."""

    def only_registered(ctx: ExecutionContext, registration: AgentServiceRegistration) -> Result[bool]:
        if not registration.enabled:
            logger.debug("consul.maintenance_skipped", service_id=registration.id)
            return Ok(False)
        return Ok(True)

    def maintenance(
        ctx: ExecutionContext,
        consul: ServiceRegistry,
        registered: bool,
        proxy_checks: bool,
        payload: AgentServiceRegistration,
    ) -> Result[None]:
        try:
            consul.maintenance(payload.id, enabled, *reasons)
        except OperatorError as e:
            return Err(execution_error(f"Consul maintenance of {payload.id} failed", e))
        return Ok(None)

    return ConsulSettingsStep(
        f"{settings_name} maintenance",
        settings_name,
        maintenance,
        cast=cast,
        additional_condition=only_registered,
        skip_changes_check=True,
    )


__all__ = [
    "ConsulSettingsStep",
    "register_consul_service_step",
    "maintenance_consul_service_step",
    "find_service_registration",
    "SETTINGS_HASH_KEY",
    "REGISTRATION_HASH_KEY",
    "CHECK_SERVICE_NAME",
    "CHECK_PROXY_LABEL",
]
