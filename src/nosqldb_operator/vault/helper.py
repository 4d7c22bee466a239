"""
Vault operations the leaf steps need.

``VaultHelper`` is the ``SecretStore`` the engine puts in the execution
context.  It maps database-engine and password concepts onto Vault paths:

    ::

        database/config/<name>          database engine connection
        database/static-roles           static role listing
        database/static-creds/<role>    current static-role credentials
        database/rotate-role/<role>     forced rotation
        <registration.path>/<secret>    stored passwords ({"password": ...})

Passwords referenced from workloads use the ``vault:<path>#<key>`` form.

Tags:
    vault, secrets, passwords

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Any, Mapping

from nosqldb_operator.core.errors import SecretStoreError
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import PASSWORD_KEY
from nosqldb_operator.vault.client import VaultClient

logger = get_logger(__name__)

VAULT_URL_PREFIX = "vault:"
DATABASE_CONFIG_PATH = "database/config/"
STATIC_ROLES_PATH = "database/static-roles"
STATIC_CREDS_PATH = "database/static-creds/"
ROTATE_ROLE_PATH = "database/rotate-role/"


def is_vault_url(value: str) -> bool:
    return value.startswith(VAULT_URL_PREFIX)


def vault_reference(vault_path: str, secret_name: str, key: str = PASSWORD_KEY) -> str:
    """``vault:<path>/<secret>#<key>``, the form workload env vars carry."""
    return f"{VAULT_URL_PREFIX}{vault_path}/{secret_name}#{key}"


def role_name(cloud_public_host: str, namespace: str, service_account: str, user: str) -> str:
    return f"nc-{cloud_public_host}_{namespace}_{service_account}_{user}"


class VaultHelper:
    """``SecretStore`` backed by a ``VaultClient``."""

    def __init__(self, client: VaultClient):
        self.client = client

    def close(self) -> None:
        self.client.close()

    @property
    def secret_path(self) -> str:
        return self.client.registration.path

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def read(self, path: str) -> dict[str, Any] | None:
        return self.client.read(path)

    def write(self, path: str, data: Mapping[str, Any] | None) -> dict[str, Any] | None:
        return self.client.write(path, data)

    def list(self, path: str) -> list[str]:
        return self.client.list(path)

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    def generate_password(self, policy: str) -> str:
        return self.client.generate_password(policy)

    def create_password_policy(self, name: str, policy: str) -> None:
        self.client.create_password_policy(name, policy)

    def store_password(self, secret_name: str, password: str) -> None:
        self.client.write(f"{self.secret_path}/{secret_name}", {PASSWORD_KEY: password})
        logger.debug("vault.password_stored", secret=secret_name)

    def check_secret_exists(self, secret_name: str) -> tuple[bool, dict[str, Any] | None]:
        secret = self.client.read(f"{self.secret_path}/{secret_name}")
        return bool(secret), secret

    def resolve_password(self, reference: str) -> str:
        """Password stored at a ``vault:<path>#<key>`` reference."""
        start, end = reference.find(":"), reference.find("#")
        if start < 0 or end < 0:
            raise SecretStoreError(f"Vault reference {reference!r} does not contain ':' or '#' delimiter")
        data = self.client.read(reference[start + 1 : end]) or {}
        if PASSWORD_KEY not in data:
            raise SecretStoreError(f"No password stored at {reference[start + 1 : end]}")
        return data[PASSWORD_KEY]

    def is_vault_url(self, value: str) -> bool:
        return is_vault_url(value)

    def env_reference(self, env_name: str, secret_name: str) -> dict[str, str]:
        """Container env var pointing at a stored password."""
        return {"name": env_name, "value": vault_reference(self.secret_path, secret_name)}

    # ------------------------------------------------------------------
    # Database engine
    # ------------------------------------------------------------------

    def create_database_config(self, config_name: str, settings: Mapping[str, Any]) -> None:
        self.client.write(DATABASE_CONFIG_PATH + config_name, settings)

    def database_config_exists(self, config_name: str) -> bool:
        return bool(self.client.read(DATABASE_CONFIG_PATH + config_name))

    def create_static_role(self, role_path: str, settings: Mapping[str, Any]) -> None:
        self.client.write(role_path, settings)

    def static_role_exists(self, role_name: str) -> bool:
        return role_name in self.client.list(STATIC_ROLES_PATH)

    def static_role_credentials(self, role_name: str) -> dict[str, Any]:
        return self.client.read(STATIC_CREDS_PATH + role_name) or {}

    def rotate_role(self, role_name: str) -> None:
        self.client.write(ROTATE_ROLE_PATH + role_name, None)
        logger.info("vault.role_rotated", role=role_name)


__all__ = [
    "VaultHelper",
    "is_vault_url",
    "vault_reference",
    "role_name",
    "DATABASE_CONFIG_PATH",
    "STATIC_ROLES_PATH",
    "STATIC_CREDS_PATH",
    "ROTATE_ROLE_PATH",
]
