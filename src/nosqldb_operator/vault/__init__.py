"""Vault secret store."""

from nosqldb_operator.vault.client import VaultClient
from nosqldb_operator.vault.helper import VaultHelper

__all__ = ["VaultClient", "VaultHelper"]
