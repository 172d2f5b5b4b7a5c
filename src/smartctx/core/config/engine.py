"""Root engine configuration, storage and logging settings.

``EngineConfig`` aggregates every configuration section. It loads from a
YAML file (``.smartctx.yaml`` in the project root by default) and then
applies ``SMART_CONTEXT_*`` environment overrides.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from smartctx.core.config.learning import OverrideLearningConfig
from smartctx.core.config.scoring import (
    ScoringWeights,
    SelectionConfig,
    SignalConfig,
    TierThresholds,
)
from smartctx.core.constants import (
    DEFAULT_DB_DIRNAME,
    DEFAULT_DB_FILENAME,
    PROJECT_CONFIG_FILENAME,
)
from smartctx.core.errors import ConfigError

# Environment variable -> (section, field) for overrides applied after YAML
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SMART_CONTEXT_TOKEN_BUDGET": ("selection", "default_token_budget"),
    "SMART_CONTEXT_MIN_RELEVANCE": ("selection", "default_min_relevance"),
    "SMART_CONTEXT_GIT_COMMIT_LIMIT": ("signals", "commit_lookback"),
    "SMART_CONTEXT_IO_TIMEOUT": ("signals", "io_timeout_seconds"),
    "SMART_CONTEXT_DB_PATH": ("store", "db_path"),
    "SMART_CONTEXT_LOG_LEVEL": ("logging", "level"),
}


class StoreConfig(BaseModel):
    """Configuration of the SQLite learning store."""

    db_path: Path = Field(
        default_factory=lambda: Path.home() / DEFAULT_DB_DIRNAME / DEFAULT_DB_FILENAME,
        description="SQLite database holding sessions, overrides and relationships.",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        ge=0,
        description="SQLite busy timeout applied to every connection.",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries of a contended write before StorageContentionError.",
    )
    retry_backoff_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Base delay of the exponential backoff between write retries.",
    )


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable, "
        "both for console to stderr and JSON to file",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for log file output (required if format='both')",
    )
    max_file_size_mb: int = Field(
        default=50,
        gt=0,
        le=1000,
        description="Maximum log file size before rotation (MB)",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of rotated log files to keep",
    )

    @model_validator(mode="after")
    def _check_file_path_required(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError(f"file_path is required when format='{self.format}'")
        return self


class EngineConfig(BaseModel):
    """Complete smartctx configuration."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    thresholds: TierThresholds = Field(default_factory=TierThresholds)
    signals: SignalConfig = Field(default_factory=SignalConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    learning: OverrideLearningConfig = Field(default_factory=OverrideLearningConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> EngineConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls._validate(data or {}, source=str(path))

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> EngineConfig:
        """Load configuration from a YAML string."""
        return cls._validate(yaml.safe_load(yaml_str) or {}, source="<string>")

    @classmethod
    def load(
        cls,
        project_root: Path | None = None,
        config_path: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> EngineConfig:
        """Resolve configuration for a run.

        An explicit ``config_path`` wins over ``.smartctx.yaml`` in the
        project root; environment overrides are applied last.

        Raises:
            ConfigError: If the file or an override fails validation.
        """
        data: dict[str, Any] = {}
        path = config_path
        if path is None and project_root is not None:
            candidate = project_root / PROJECT_CONFIG_FILENAME
            if candidate.is_file():
                path = candidate
        if path is not None:
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read config {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Config {path} must contain a mapping")

        environ = os.environ if env is None else env
        for var, (section, field) in ENV_OVERRIDES.items():
            value = environ.get(var)
            if value:
                data.setdefault(section, {})[field] = value

        return cls._validate(data, source=str(path) if path else "<defaults>")

    @classmethod
    def _validate(cls, data: Any, source: str) -> EngineConfig:
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {source}: {e}") from e


__all__ = ["ENV_OVERRIDES", "EngineConfig", "LogConfig", "StoreConfig"]
