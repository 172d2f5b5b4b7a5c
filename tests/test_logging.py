"""Tests for smartctx.core.logging module."""

from __future__ import annotations

import gzip
import json
import logging
from pathlib import Path

import pytest

from smartctx.core.config import LogConfig
from smartctx.core.logging import (
    SENSITIVE_PATTERNS,
    CompressingRotatingFileHandler,
    ContextLogger,
    RequestContext,
    _add_context,
    _sanitize_event_dict,
    _sanitize_value,
    clear_context,
    configure_logging,
    get_current_context,
    get_current_log_path,
    get_logger,
    with_context,
)


class TestSanitization:
    """Tests for sensitive field redaction."""

    def test_known_sensitive_patterns(self) -> None:
        assert "api_key" in SENSITIVE_PATTERNS
        assert "password" in SENSITIVE_PATTERNS
        assert "secret" in SENSITIVE_PATTERNS

    def test_token_budget_is_not_redacted(self) -> None:
        """Budget fields mention tokens but carry no secrets."""
        assert _sanitize_value("token_budget", 6000) == 6000

    def test_compound_keys_are_redacted(self) -> None:
        assert _sanitize_value("DB_PASSWORD", "hunter2") == "[REDACTED]"
        assert _sanitize_value("anthropic_api_key", "sk-1") == "[REDACTED]"

    def test_nested_dicts_are_redacted(self) -> None:
        result = _sanitize_event_dict(
            None, "info", {"event": "x", "headers": {"authorization": "Bearer a", "host": "h"}}
        )
        assert result["headers"] == {"authorization": "[REDACTED]", "host": "h"}
        assert result["event"] == "x"


class TestContextLogger:
    """Tests for ContextLogger."""

    def test_get_logger_binds_component(self) -> None:
        logger = get_logger("engine", project_hash="abc")
        assert isinstance(logger, ContextLogger)
        assert logger._context == {"component": "engine", "project_hash": "abc"}

    def test_bind_returns_new_logger(self) -> None:
        logger = get_logger("store")
        bound = logger.bind(session_id=3)
        assert bound is not logger
        assert bound._context["session_id"] == 3
        assert "session_id" not in logger._context


class TestRequestContext:
    """Tests for RequestContext and the context variable."""

    def test_defaults(self) -> None:
        ctx = RequestContext(project_hash="abc")
        assert ctx.component == "unknown"
        assert ctx.session_id is None
        assert len(ctx.request_id) == 36

    def test_to_dict_omits_unset_session(self) -> None:
        ctx = RequestContext(project_hash="abc", request_id="r1", component="engine")
        assert ctx.to_dict() == {"project_hash": "abc", "request_id": "r1", "component": "engine"}
        assert ctx.with_session(7).to_dict()["session_id"] == 7

    def test_with_component(self) -> None:
        ctx = RequestContext(project_hash="abc", request_id="r1")
        mcp_ctx = ctx.with_component("mcp")
        assert mcp_ctx.component == "mcp"
        assert mcp_ctx.request_id == "r1"
        assert ctx.component == "unknown"

    def test_with_context_restores_previous(self) -> None:
        outer = RequestContext(project_hash="outer")
        inner = RequestContext(project_hash="inner")
        with with_context(outer):
            with with_context(inner):
                assert get_current_context() is inner
            assert get_current_context() is outer
        assert get_current_context() is None

    def test_with_context_restores_on_exception(self) -> None:
        with pytest.raises(RuntimeError):
            with with_context(RequestContext(project_hash="abc")):
                raise RuntimeError("boom")
        assert get_current_context() is None

    def test_clear_context(self) -> None:
        with with_context(RequestContext(project_hash="abc")):
            clear_context()
            assert get_current_context() is None

    def test_add_context_keeps_explicit_fields(self) -> None:
        ctx = RequestContext(project_hash="abc", request_id="r1", component="engine")
        with with_context(ctx):
            result = _add_context(None, "info", {"event": "x", "component": "store"})
        assert result["component"] == "store"
        assert result["project_hash"] == "abc"
        assert result["request_id"] == "r1"


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_console_format(self) -> None:
        configure_logging(level="DEBUG", format="console")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_both_requires_file_path(self) -> None:
        with pytest.raises(ValueError, match="file_path is required"):
            configure_logging(format="both")

    def test_json_to_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "smartctx.log"
        configure_logging(level="INFO", format="json", file_path=log_file)
        assert get_current_log_path() == log_file

        ctx = RequestContext(project_hash="abc", request_id="r1", component="engine")
        with with_context(ctx):
            get_logger("engine").info("context_selected", included=3, api_key="sk-1")
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["event"] == "context_selected"
        assert entry["included"] == 3
        assert entry["api_key"] == "[REDACTED]"
        assert entry["project_hash"] == "abc"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_level_filters_entries(self, tmp_path: Path) -> None:
        log_file = tmp_path / "smartctx.log"
        configure_logging(level="WARNING", format="json", file_path=log_file)
        logger = get_logger("engine")
        logger.info("hidden")
        logger.warning("shown")
        for handler in logging.getLogger().handlers:
            handler.flush()

        events = [json.loads(line)["event"] for line in log_file.read_text().splitlines()]
        assert events == ["shown"]

    def test_replaces_existing_handlers(self) -> None:
        configure_logging(format="console")
        configure_logging(format="console")
        assert len(logging.getLogger().handlers) == 1


class TestCompressingRotatingFileHandler:
    def test_rollover_compresses(self, tmp_path: Path) -> None:
        log_file = tmp_path / "smartctx.log"
        handler = CompressingRotatingFileHandler(log_file, maxBytes=10, backupCount=2)
        try:
            handler.emit(logging.makeLogRecord({"msg": "first entry"}))
            handler.doRollover()
        finally:
            handler.close()

        archive = tmp_path / "smartctx.log.1.gz"
        assert archive.exists()
        with gzip.open(archive, "rt") as f:
            assert "first entry" in f.read()


class TestLogConfig:
    """Tests for LogConfig validation."""

    def test_defaults(self) -> None:
        config = LogConfig()
        assert config.level == "WARNING"
        assert config.format == "console"
        assert config.file_path is None

    def test_both_requires_file_path(self) -> None:
        with pytest.raises(ValueError):
            LogConfig(format="both")

    def test_rejects_unknown_level(self) -> None:
        with pytest.raises(ValueError):
            LogConfig(level="TRACE")
