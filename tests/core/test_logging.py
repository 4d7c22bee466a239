"""Tests for nosqldb_operator.core.logging."""

import structlog

from nosqldb_operator.core.logging import LogContext, configure_logging, get_logger, level_for


class TestLogging:
    def test_level_for(self):
        assert level_for(True) == "DEBUG"
        assert level_for(False) == "INFO"

    def test_json_output(self, capsys):
        configure_logging(level="DEBUG", json_format=True, service="test-operator")
        try:
            get_logger("tests").info("reconcile.started", resource="mongo")
            out = capsys.readouterr().out
            assert '"event": "reconcile.started"' in out
            assert '"service": "test-operator"' in out
        finally:
            structlog.reset_defaults()

    def test_log_context_binds_and_unbinds(self):
        with LogContext(resource="mongo", namespace="db"):
            assert structlog.contextvars.get_contextvars() == {"resource": "mongo", "namespace": "db"}
        assert structlog.contextvars.get_contextvars() == {}
