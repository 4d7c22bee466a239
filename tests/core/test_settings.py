"""Tests for nosqldb_operator.core.settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from nosqldb_operator.core.settings import SERVICE_ACCOUNT_TOKEN_PATH, OperatorSettings, get_settings


class TestOperatorSettings:
    def test_defaults(self, monkeypatch):
        for name in ("DEPLOYMENT_VERSION", "RECONCILIATION_DELAY_SECONDS", "DEBUG_LOG", "HOST_IP"):
            monkeypatch.delenv(name, raising=False)
        settings = OperatorSettings(_env_file=None)
        assert settings.deployment_version == ""
        assert settings.deployment_version_mismatch_sleep_seconds == 300
        assert settings.reconciliation_delay_seconds == 0
        assert settings.debug_log is True
        assert settings.service_account_token_path == Path(SERVICE_ACCOUNT_TOKEN_PATH)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DEPLOYMENT_VERSION", "1.4.0")
        monkeypatch.setenv("RECONCILIATION_DELAY_SECONDS", "7")
        monkeypatch.setenv("DEBUG_LOG", "false")
        settings = OperatorSettings(_env_file=None)
        assert settings.deployment_version == "1.4.0"
        assert settings.reconciliation_delay_seconds == 7
        assert settings.debug_log is False

    def test_rejects_negative_delay(self):
        with pytest.raises(ValidationError):
            OperatorSettings(_env_file=None, reconciliation_delay_seconds=-1)

    def test_token_path_with_telepresence_root(self):
        settings = OperatorSettings(_env_file=None, telepresence_root="/tmp/tel")
        assert settings.token_path() == Path("/tmp/tel" + SERVICE_ACCOUNT_TOKEN_PATH)

    def test_read_service_account_token_strips(self, settings):
        assert settings.read_service_account_token() == "sa-jwt"

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
