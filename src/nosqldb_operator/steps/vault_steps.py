"""
Vault-backed credential steps.

    ::

        MoveSecretToVaultStep         password in Vault?  yes ─▶ skip, publish it
                                                          no  ─▶ generate/store, publish
        CreateDBEngineStep            database/config/<name> (retried) + static role
        SetPasswordFromVaultRoleStep  static role exists ─▶ publish its password

Settings values given as zero-argument callables are resolved right
before they are sent, so they may depend on values earlier steps
published.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping

from nosqldb_operator.core.errors import OperatorError, execution_error
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import PASSWORD_KEY
from nosqldb_operator.core.protocols import SecretStore
from nosqldb_operator.core.result import Err, Ok, Result
from nosqldb_operator.kube.polling import poll_until
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.execution_context import ContextKey, ExecutionContext
from nosqldb_operator.orchestration.steps import BaseStep

logger = get_logger(__name__)

DB_CONFIG_INTERVAL = 5.0
DB_CONFIG_TIMEOUT = 120.0


def resolve_settings(settings: Mapping[str, Any]) -> dict[str, Any]:
    """Call every zero-argument callable value."""
    return {key: value() if callable(value) else value for key, value in settings.items()}


class MoveSecretToVaultStep(BaseStep):
    """Make sure a password for ``secret_name`` is stored in Vault."""

    name = "move-secret-to-vault"

    def __init__(
        self,
        secret_name: str,
        *,
        password: str = "",
        policy: str = "",
        context_key: ContextKey[str] | None = None,
        condition_fn: Callable[[ExecutionContext], Result[bool]] | None = None,
    ):
        self.secret_name = secret_name
        self.password = password
        self.policy = policy
        self.context_key = context_key
        self.condition_fn = condition_fn

    def condition(self, ctx: ExecutionContext) -> Result[bool]:
        if self.condition_fn is not None:
            return self.condition_fn(ctx)
        try:
            vault: SecretStore = ctx.require(keys.VAULT)
            exists, secret = vault.check_secret_exists(self.secret_name)
        except OperatorError as e:
            return Err(execution_error(f"Reading secret {self.secret_name} in vault failed", e))

        password = (secret or {}).get(PASSWORD_KEY) if exists else None
        if password is None:
            return Ok(True)

        logger.info("vault.secret_present", secret=self.secret_name)
        if self.context_key is not None:
            ctx.set(self.context_key, password)
        return Ok(False)

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        try:
            vault: SecretStore = ctx.require(keys.VAULT)
        except OperatorError as e:
            return Err(e)

        password = self.password
        if not password:
            try:
                password = vault.generate_password(self.policy)
            except OperatorError as e:
                return Err(execution_error(f"Failed to generate password for secret {self.secret_name}", e))
        try:
            vault.store_password(self.secret_name, password)
        except OperatorError as e:
            return Err(execution_error(f"Failed to store password for secret {self.secret_name}", e))

        if self.context_key is not None:
            ctx.set(self.context_key, password)
        logger.info("vault.secret_moved", secret=self.secret_name)
        return Ok(None)


class CreateDBEngineStep(BaseStep):
    """Configure a Vault database connection and its static role."""

    name = "create-db-engine"

    def __init__(
        self,
        config_name: str,
        config_settings: Mapping[str, Any],
        role_name: str,
        role_path: str,
        role_settings: Mapping[str, Any],
        *,
        interval: float = DB_CONFIG_INTERVAL,
        timeout: float = DB_CONFIG_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config_name = config_name
        self.config_settings = config_settings
        self.role_name = role_name
        self.role_path = role_path
        self.role_settings = role_settings
        self.interval = interval
        self.timeout = timeout
        self.sleep = sleep

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        try:
            vault: SecretStore = ctx.require(keys.VAULT)
        except OperatorError as e:
            return Err(e)

        config_settings = resolve_settings(self.config_settings)
        last_error: list[OperatorError] = []

        def configured() -> bool:
            logger.debug("vault.configuring_database", config=self.config_name)
            try:
                vault.create_database_config(self.config_name, config_settings)
            except OperatorError as e:
                logger.debug("vault.database_config_failed", config=self.config_name, error=str(e))
                last_error[:] = [e]
                return False
            return True

        try:
            poll_until(
                configured,
                timeout=self.timeout,
                interval=self.interval,
                description=f"database config {self.config_name}",
                sleep=self.sleep,
            )
        except OperatorError as e:
            cause = last_error[0] if last_error else e
            return Err(execution_error(f"All attempts to configure DB engine {self.config_name} failed", cause))

        try:
            vault.create_static_role(self.role_path + self.role_name, resolve_settings(self.role_settings))
        except OperatorError as e:
            return Err(execution_error(f"Could not create role for DB engine {self.role_name}", e))
        logger.info("vault.db_engine_created", config=self.config_name, role=self.role_name)
        return Ok(None)


class SetPasswordFromVaultRoleStep(BaseStep):
    """Publish the current password of an existing static role."""

    name = "set-password-from-vault-role"

    def __init__(self, role_name: str, context_key: ContextKey[str]):
        self.role_name = role_name
        self.context_key = context_key

    def condition(self, ctx: ExecutionContext) -> Result[bool]:
        vault = ctx.get(keys.VAULT)
        if vault is None:
            return Ok(False)
        try:
            return Ok(vault.static_role_exists(self.role_name))
        except OperatorError as e:
            logger.debug("vault.role_lookup_failed", role=self.role_name, error=str(e))
            return Ok(False)

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        try:
            credentials = ctx.require(keys.VAULT).static_role_credentials(self.role_name)
        except OperatorError as e:
            return Err(execution_error(f"Reading credentials of role {self.role_name} failed", e))
        ctx.set(self.context_key, credentials.get(PASSWORD_KEY))
        return Ok(None)


__all__ = [
    "MoveSecretToVaultStep",
    "CreateDBEngineStep",
    "SetPasswordFromVaultRoleStep",
    "resolve_settings",
]
