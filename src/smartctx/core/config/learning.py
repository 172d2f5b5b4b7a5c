"""Override learning configuration.

The three-strikes threshold and the per-type deltas are configuration, not
policy: they apply uniformly regardless of confidence or task mode.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class OverrideLearningConfig(BaseModel):
    """Configuration for learning from user overrides and session outcomes.

    A (file, task pattern) adjustment only moves once the same override type
    has been seen ``strike_threshold`` times in a row, and is only surfaced
    to the scorer once its confidence exceeds ``confidence_gate``.
    """

    strike_threshold: int = Field(
        default=3,
        ge=1,
        description="Override count at which consistent overrides start adjusting scores.",
    )
    added_delta: float = Field(
        default=0.3,
        ge=-1.0,
        le=1.0,
        description="Adjustment applied per consistent 'added' override past the threshold.",
    )
    removed_delta: float = Field(
        default=-0.05,
        ge=-1.0,
        le=1.0,
        description="Adjustment applied per consistent 'removed' override past the threshold.",
    )
    kept_delta: float = Field(
        default=0.0,
        ge=-1.0,
        le=1.0,
        description="Adjustment applied per consistent 'kept' override past the threshold.",
    )
    min_adjustment: float = Field(
        default=-0.5,
        le=0.0,
        description="Lower clamp of the cumulative adjustment.",
    )
    max_adjustment: float = Field(
        default=1.0,
        ge=0.0,
        description="Upper clamp of the cumulative adjustment.",
    )
    initial_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Confidence of a newly created pattern.",
    )
    confidence_step: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Confidence gained each time an adjustment is applied.",
    )
    confidence_gate: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Adjustments are surfaced only when confidence is strictly above this.",
    )
    relationship_step: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Strength gained by a 'used-together' relationship per successful session.",
    )
    initial_relationship_strength: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Strength of a newly observed 'used-together' relationship.",
    )

    @model_validator(mode="after")
    def _validate_bounds(self) -> OverrideLearningConfig:
        if self.min_adjustment > self.max_adjustment:
            raise ValueError(
                f"min_adjustment ({self.min_adjustment}) must not exceed "
                f"max_adjustment ({self.max_adjustment})"
            )
        return self

    def delta_for(self, override_type: str) -> float:
        """Per-event adjustment delta for an override type."""
        return {
            "added": self.added_delta,
            "removed": self.removed_delta,
            "kept": self.kept_delta,
        }[override_type]

    def clamp(self, value: float) -> float:
        """Clamp a cumulative adjustment into the configured bounds."""
        return max(self.min_adjustment, min(self.max_adjustment, value))


__all__ = ["OverrideLearningConfig"]
