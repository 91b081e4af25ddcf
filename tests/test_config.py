"""
Tests for environment configuration and structured logging
"""

import json
import logging

from recaudo import config as config_module
from recaudo.config import RecaudoConfig, get_config, reload_config
from recaudo.logging_config import JSONFormatter, log_action, setup_logging


class TestConfig:

    def test_defaults(self):
        cfg = RecaudoConfig()
        assert cfg.default_timezone == "America/Bogota"
        assert cfg.lock_timeout_seconds == 5.0
        assert cfg.advisory_fallback == "Regular"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RECAUDO_API_PORT", "9100")
        monkeypatch.setenv("RECAUDO_STORAGE_BACKEND", "memory")
        try:
            cfg = reload_config()
            assert cfg.api_port == 9100
            assert cfg.storage_backend == "memory"
            assert get_config() is cfg
        finally:
            monkeypatch.delenv("RECAUDO_API_PORT")
            monkeypatch.delenv("RECAUDO_STORAGE_BACKEND")
            reload_config()

        assert config_module.config.api_port == 8090


class TestStructuredLogging:

    def test_json_formatter(self):
        record = logging.LogRecord("recaudo.test", logging.INFO, __file__, 1, "Payment registered", (), None)
        record.action = "register_payment"
        record.resource = "credit:CR001"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Payment registered"
        assert entry["level"] == "INFO"
        assert entry["action"] == "register_payment"
        assert entry["resource"] == "credit:CR001"
        assert "user_id" not in entry

    def test_log_action_attaches_fields(self):
        logger = setup_logging(level="DEBUG", logger_name="recaudo.test_actions")
        captured = []

        class Collector(logging.Handler):
            def emit(self, record):
                captured.append(record)

        logger.addHandler(Collector())
        log_action(logger, "info", "Credit created", user_id="admin",
                   action="create_credit", resource="credit:CR001", extra={"principal": "1000000"})

        assert len(captured) == 1
        assert captured[0].user_id == "admin"
        assert captured[0].extra == {"principal": "1000000"}

    def test_log_action_respects_level(self):
        logger = setup_logging(level="ERROR", logger_name="recaudo.test_quiet")
        captured = []

        class Collector(logging.Handler):
            def emit(self, record):
                captured.append(record)

        logger.addHandler(Collector())
        log_action(logger, "info", "ignored")
        assert captured == []
