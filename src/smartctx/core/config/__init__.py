"""Configuration models for smartctx.

All models are re-exported from this ``__init__`` so callers can write
``from smartctx.core.config import EngineConfig``.
"""

from smartctx.core.config.engine import (
    EngineConfig,
    LogConfig,
    StoreConfig,
)
from smartctx.core.config.learning import (
    OverrideLearningConfig,
)
from smartctx.core.config.scoring import (
    ScoringWeights,
    SelectionConfig,
    SignalConfig,
    TierThresholds,
)

__all__ = [
    "EngineConfig",
    "LogConfig",
    "OverrideLearningConfig",
    "ScoringWeights",
    "SelectionConfig",
    "SignalConfig",
    "StoreConfig",
    "TierThresholds",
]
