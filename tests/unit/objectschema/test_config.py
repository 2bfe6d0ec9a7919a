"""Tests for configuration and structured logging."""

from __future__ import annotations

import json
import logging

import pytest
from pydantic import ValidationError

from objectschema.config import ObjectSchemaConfig, get_config, reset_config
from objectschema.errors import Violation
from objectschema.logger import SchemaEventLogger, configure_logging
from objectschema.types import ViolationCode


class TestConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OBJECTSCHEMA_LOG_LEVEL", raising=False)
        monkeypatch.delenv("OBJECTSCHEMA_LOG_FORMAT", raising=False)
        config = ObjectSchemaConfig()
        assert config.log_level == "info"
        assert config.log_format == "json"
        assert config.max_resolution_depth == 64

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("OBJECTSCHEMA_MAX_RESOLUTION_DEPTH", "5")
        reset_config()
        config = get_config()
        assert config.max_resolution_depth == 5
        assert config.log_level == "debug"

    def test_singleton(self):
        assert get_config() is get_config()

    def test_overrides_replace_singleton(self):
        first = get_config()
        second = get_config(log_format="text")
        assert second is not first
        assert get_config() is second
        assert second.log_format == "text"

    def test_depth_must_be_positive(self):
        with pytest.raises(ValidationError):
            ObjectSchemaConfig(max_resolution_depth=0)

    def test_depth_is_bounded(self):
        assert ObjectSchemaConfig(max_resolution_depth=128).max_resolution_depth == 128
        with pytest.raises(ValidationError):
            ObjectSchemaConfig(max_resolution_depth=200)

    def test_depth_bound_applies_to_environment(self, monkeypatch):
        monkeypatch.setenv("OBJECTSCHEMA_MAX_RESOLUTION_DEPTH", "500")
        with pytest.raises(ValidationError):
            ObjectSchemaConfig()

    def test_unknown_level_rejected(self):
        with pytest.raises(ValidationError):
            ObjectSchemaConfig(log_level="verbose")


class TestSchemaEventLogger:
    def test_validation_failed_is_json_warning(self, caplog):
        caplog.set_level(logging.INFO, logger="objectschema.events")
        violations = [
            Violation(path="age", message="is required", code=ViolationCode.REQUIRED),
            Violation(path="name", message="must not be empty", code=ViolationCode.EMPTY),
        ]
        SchemaEventLogger().log_validation_failed("Person", violations)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        entry = json.loads(record.getMessage())
        assert entry["event"] == "validation.failed"
        assert entry["service"] == "objectschema"
        assert entry["type_name"] == "Person"
        assert entry["error_count"] == 2
        assert entry["paths"] == ["age", "name"]

    def test_schema_registered(self, caplog):
        caplog.set_level(logging.INFO, logger="objectschema.events")
        SchemaEventLogger(service_name="svc").log_schema_registered("ns://a/1.0.0", ("A",))
        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["event"] == "schema.registered"
        assert entry["service"] == "svc"
        assert entry["type_names"] == ["A"]


class TestConfigureLogging:
    def _installed(self) -> list:
        return [
            h for h in logging.getLogger("objectschema").handlers
            if getattr(h, "_objectschema", False)
        ]

    def test_uses_configured_level(self):
        configure_logging()
        assert logging.getLogger("objectschema").level == logging.DEBUG
        assert len(self._installed()) == 1

    def test_repeated_calls_replace_handler(self):
        configure_logging(level="error")
        configure_logging(level="warning", log_format="text")
        assert len(self._installed()) == 1
        assert logging.getLogger("objectschema").level == logging.WARNING
