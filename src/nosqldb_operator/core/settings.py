"""Operator settings read from the environment.

The reconciliation loop reads a handful of operability knobs from the pod
environment (usually set by the Helm chart).  ``OperatorSettings`` declares
them in one validated place so the controller receives an explicit
instance rather than calling ``os.getenv`` mid-pass.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** A malformed number fails at startup
    - **Environment-driven:** Reads env vars and an optional ``.env`` file
    - **No prefix:** Variable names match what the deployment already sets
      (``DEPLOYMENT_VERSION``, ``DEBUG_LOG``, ``HOST_IP`` ...)
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> settings = OperatorSettings(deployment_version="1.2.0")
    >>> settings.deployment_version_mismatch_sleep_seconds
    300

Tags:
    settings, configuration, pydantic, environment, operator-core

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SERVICE_ACCOUNT_TOKEN_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/token"


class OperatorSettings(BaseSettings):
    """Environment knobs consumed by the reconciliation controller.

    Fields
    ──────
    deployment_version                         : Expected CR deployment version ("" disables the gate)
    deployment_version_mismatch_sleep_seconds  : Sleep before exiting on a version mismatch
    reconciliation_delay_seconds               : Fixed delay before each pass
    debug_log                                  : DEBUG level logging when true
    log_json                                   : Force JSON (true) / console (false) output
    host_ip                                    : Node IP, fallback Consul agent address
    poll_interval_seconds                      : Interval for cluster polling waits
    config_map_delete_timeout_seconds          : Deadline for spec-hash record deletion
    service_account_token_path                 : Token used for Vault / Consul login
    telepresence_root                          : Filesystem prefix for local development
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Reconciliation gates ────────────────────────────────────
    deployment_version: str = ""
    deployment_version_mismatch_sleep_seconds: int = Field(default=300, ge=0)
    reconciliation_delay_seconds: int = Field(default=0, ge=0)

    # ── Observability ───────────────────────────────────────────
    debug_log: bool = True
    log_json: bool | None = None

    # ── Cluster ─────────────────────────────────────────────────
    host_ip: str = ""
    poll_interval_seconds: float = Field(default=1.0, gt=0)
    config_map_delete_timeout_seconds: int = Field(default=60, gt=0)

    # ── Credentials ─────────────────────────────────────────────
    service_account_token_path: Path = Path(SERVICE_ACCOUNT_TOKEN_PATH)
    telepresence_root: str = ""

    def token_path(self) -> Path:
        """Service-account token location, honouring the telepresence prefix."""
        if self.telepresence_root:
            return Path(self.telepresence_root + str(self.service_account_token_path))
        return self.service_account_token_path

    def read_service_account_token(self) -> str:
        return self.token_path().read_text(encoding="utf-8").strip()


@lru_cache(maxsize=1)
def get_settings() -> OperatorSettings:
    """Process-wide settings, read once."""
    return OperatorSettings()


__all__ = ["OperatorSettings", "get_settings", "SERVICE_ACCOUNT_TOKEN_PATH"]
