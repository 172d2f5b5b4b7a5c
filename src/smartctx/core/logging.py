"""Structured logging infrastructure for smartctx.

Provides structured logging using structlog with request context such as
project_hash, request_id and session_id. Supports console output, JSON
output and a rotating file handler that gzip-compresses old files.

Example usage:
    from smartctx.core.logging import get_logger, configure_logging, with_context

    configure_logging(level="DEBUG", format="console")

    logger = get_logger("engine")
    logger.info("context_selected", included=12)

    ctx = RequestContext(project_hash="ab12cd34ef56ab78")
    with with_context(ctx):
        logger.info("session_created")  # includes project_hash, request_id
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field name fragments whose values are never written to logs
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "token_secret",
    "secret",
    "password",
    "credential",
    "bearer",
    "authorization",
})

_current_log_path: Path | None = None


def get_current_log_path() -> Path | None:
    """Get the currently configured log file path, or None without file logging."""
    return _current_log_path


class CompressingRotatingFileHandler(RotatingFileHandler):
    """Rotating file handler that compresses rotated files with gzip.

    ``smartctx.log.1`` becomes ``smartctx.log.1.gz``; older archives shift
    up by one on each rollover.
    """

    def __init__(
        self,
        filename: str | Path,
        mode: str = "a",
        maxBytes: int = 0,
        backupCount: int = 0,
        encoding: str | None = None,
        delay: bool = False,
        compress_level: int = 9,
    ) -> None:
        self.compress_level = compress_level
        super().__init__(
            filename,
            mode=mode,
            maxBytes=maxBytes,
            backupCount=backupCount,
            encoding=encoding,
            delay=delay,
        )

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None  # type: ignore[assignment]

        for i in range(self.backupCount - 1, 0, -1):
            src = f"{self.baseFilename}.{i}.gz"
            dst = f"{self.baseFilename}.{i + 1}.gz"
            if os.path.exists(src):
                if os.path.exists(dst):
                    os.remove(dst)
                os.rename(src, dst)

        if os.path.exists(self.baseFilename):
            compressed_path = f"{self.baseFilename}.1.gz"
            try:
                with (
                    open(self.baseFilename, "rb") as f_in,
                    gzip.open(
                        compressed_path, "wb", compresslevel=self.compress_level
                    ) as f_out,
                ):
                    shutil.copyfileobj(f_in, f_out)
                os.remove(self.baseFilename)
            except OSError:
                # Keep an uncompressed backup rather than losing the file
                if os.path.exists(compressed_path):
                    os.remove(compressed_path)
                os.replace(self.baseFilename, f"{self.baseFilename}.1")

        if not self.delay:
            self.stream = self._open()


@dataclass(frozen=True)
class RequestContext:
    """Immutable context correlating the log entries of one engine request.

    Attributes:
        project_hash: Stable hash of the project root the request targets.
        request_id: Unique id for the request (UUID4 by default).
        session_id: Session ledger id, once the session has been created.
        component: Component handling the request (e.g. "engine", "mcp").
    """

    project_hash: str
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    session_id: int | None = None
    component: str = "unknown"

    def with_session(self, session_id: int) -> RequestContext:
        """Return a copy of this context bound to a session id."""
        return replace(self, session_id=session_id)

    def with_component(self, component: str) -> RequestContext:
        """Return a copy of this context for another component."""
        return replace(self, component=component)

    def to_dict(self) -> dict[str, Any]:
        """Context fields for logging, omitting an unset session id."""
        result: dict[str, Any] = {
            "project_hash": self.project_hash,
            "request_id": self.request_id,
            "component": self.component,
        }
        if self.session_id is not None:
            result["session_id"] = self.session_id
        return result


_current_context: ContextVar[RequestContext | None] = ContextVar(
    "smartctx_context", default=None
)


def get_current_context() -> RequestContext | None:
    """Get the current RequestContext if one is active."""
    return _current_context.get()


def clear_context() -> None:
    """Clear the current RequestContext."""
    _current_context.set(None)


@contextmanager
def with_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Set a RequestContext for the duration of a block.

    Every log call inside the block carries the context fields when the
    context processor is active.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO-8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that merges the active RequestContext.

    Explicitly bound fields take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            if key not in event_dict:
                event_dict[key] = value
    return event_dict


class ContextLogger:
    """Component logger wrapping structlog.

    The structlog logger is fetched on every call so that module-level
    loggers created before ``configure_logging()`` still honour the
    configuration applied later.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(
            **self._context
        )
        return logger

    def bind(self, **context: Any) -> ContextLogger:
        """Return a new logger with additional bound context."""
        new_logger = ContextLogger.__new__(ContextLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an error with traceback; call from inside an exception handler."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
    compress_logs: bool = True,
) -> None:
    """Configure smartctx structured logging.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable stderr output, "json" for
            structured output (to file_path, or stderr without one), "both"
            for console to stderr plus JSON to file_path.
        file_path: Log file path. Required when format="both".
        max_file_size_mb: Size at which the log file rotates.
        backup_count: Number of rotated files to keep.
        include_timestamps: Add ISO-8601 timestamps to entries.
        include_context: Merge the active RequestContext into entries.
        compress_logs: Gzip rotated files.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    global _current_log_path

    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

    if format in ("json", "both"):
        if file_path:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            _current_log_path = file_path
            handler_cls = (
                CompressingRotatingFileHandler if compress_logs else RotatingFileHandler
            )
            file_handler: logging.Handler = handler_cls(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            handlers.append(file_handler)
        else:
            # stdout carries the MCP stdio protocol, so JSON logs go to stderr
            json_handler = logging.StreamHandler(sys.stderr)
            json_handler.setLevel(log_level)
            handlers.append(json_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False keeps module-level loggers in sync
    # with configuration applied after import
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> ContextLogger:
    """Get a logger bound to a component name.

    Example:
        logger = get_logger("store")
        logger.info("override_recorded", file_path="src/auth.py")
    """
    return ContextLogger(component, **initial_context)


__all__ = [
    "CompressingRotatingFileHandler",
    "ContextLogger",
    "RequestContext",
    "SENSITIVE_PATTERNS",
    "clear_context",
    "configure_logging",
    "get_current_context",
    "get_current_log_path",
    "get_logger",
    "with_context",
]
