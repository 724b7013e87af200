"""
Unit tests for logging modules.

Tests cover:
1. Correlation ID management and request_context
2. JSON formatter and structured adapter
3. Logging configuration (yaml + env overrides)
"""

import json
import logging

import pytest

from resonance.common.logging import (
    CorrelationLogFilter,
    JSONFormatter,
    LoggingConfig,
    StructuredLogAdapter,
    get_correlation_id,
    get_user_id,
    request_context,
    set_correlation_id,
)
from resonance.common.logging.correlation import generate_correlation_id


def _record(name="resonance.modules.similarity.engine", msg="Test message"):
    return logging.LogRecord(
        name=name, level=logging.INFO, pathname="engine.py", lineno=10,
        msg=msg, args=(), exc_info=None,
    )


# =============================================================================
# Correlation ID Tests
# =============================================================================

@pytest.mark.unit
class TestCorrelationID:
    """Tests for correlation ID management."""

    def test_set_and_get_correlation_id(self):
        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

    def test_correlation_id_uniqueness(self):
        ids = [generate_correlation_id() for _ in range(10)]
        assert len(set(ids)) == len(ids)

    def test_request_context_binds_and_restores(self):
        """
        ЧТО ПРОВЕРЯЕМ:
            request_context sets IDs inside the block and restores them after
        """
        set_correlation_id("outer")
        user_before = get_user_id()

        with request_context(user_id="u1") as cid:
            assert get_correlation_id() == cid
            assert cid != "outer"
            assert get_user_id() == "u1"

        assert get_correlation_id() == "outer"
        assert get_user_id() == user_before

    def test_filter_injects_context(self):
        record = _record()
        with request_context(user_id="u1", job_id="j1", correlation_id="c1"):
            CorrelationLogFilter().filter(record)

        assert (record.correlation_id, record.user_id, record.job_id) == ("c1", "u1", "j1")


# =============================================================================
# JSONFormatter Tests
# =============================================================================

@pytest.mark.unit
class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_json_formatter_basic(self):
        parsed = json.loads(JSONFormatter().format(_record()))

        assert parsed["message"] == "Test message"
        assert parsed["level"] == "INFO"
        assert parsed["component"] == "similarity.engine"

    @pytest.mark.parametrize("name,component", [
        ("resonance.services.arq_worker", "services.arq_worker"),
        ("resonance.core.errors", "core.errors"),
        ("__main__", "main"),
        ("redis", "redis"),
    ])
    def test_component_extraction(self, name, component):
        assert JSONFormatter._extract_component(name) == component

    def test_structured_data_and_context(self):
        record = _record()
        record.structured_data = {"key": "similarity:A:combined:10"}
        record.correlation_id = "c1"

        parsed = json.loads(JSONFormatter(extra_fields={"service": "resonance"}).format(record))

        assert parsed["data"] == {"key": "similarity:A:combined:10"}
        assert parsed["correlation_id"] == "c1"
        assert parsed["service"] == "resonance"

    def test_adapter_moves_data_into_record(self, caplog):
        adapter = StructuredLogAdapter(logging.getLogger("resonance.test"))

        with caplog.at_level(logging.INFO, logger="resonance.test"):
            adapter.info("Cache miss", data={"key": "k"})

        assert caplog.records[-1].structured_data == {"key": "k"}


# =============================================================================
# LoggingConfig Tests
# =============================================================================

@pytest.mark.unit
class TestLoggingConfig:
    """Tests for yaml-driven logging configuration."""

    @pytest.fixture
    def config(self, tmp_path):
        path = tmp_path / "logging-config.yaml"
        path.write_text(
            "default_level: INFO\n"
            "components:\n"
            "  worker:\n"
            "    level: debug\n"
            "    json_format: false\n"
            "  cli: WARNING\n"
            "frameworks:\n"
            "  arq: warning\n"
        )
        return LoggingConfig(str(path))

    def test_component_levels(self, config, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_LEVEL_WORKER", raising=False)

        assert config.get_level("worker") == "DEBUG"
        assert config.get_level("cli") == "WARNING"
        assert config.get_level("api") == "INFO"

    def test_env_override(self, config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL_WORKER", "error")
        assert config.get_level("worker") == "ERROR"

    def test_json_format(self, config, monkeypatch):
        monkeypatch.delenv("LOG_JSON_FORMAT_WORKER", raising=False)
        assert config.get_json_format("worker") is False
        assert config.get_json_format("api") is True

    def test_frameworks(self, config):
        assert config.frameworks() == {"arq": "WARNING"}
        assert config.get_framework_level("arq") == "WARNING"
        assert config.get_framework_level("sklearn") is None

    def test_missing_file_defaults(self, tmp_path):
        config = LoggingConfig(str(tmp_path / "nope.yaml"))
        assert config.frameworks() == {}

    def test_project_config_found(self, project_root):
        config = LoggingConfig(str(project_root / "logging-config.yaml"))
        assert config.get_framework_level("redis") == "WARNING"
