"""Scoring, signal and selection configuration models.

Defines the weights that combine relevance signals, the tier thresholds,
the parameters of each signal and the selection cost model.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class ScoringWeights(BaseModel):
    """Weights combining the four relevance signals into a base score.

    Keyword and relation carry the most weight; recency and co-change act
    as tie-breakers between structurally similar candidates.
    """

    keyword: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Weight of path and content keyword matches.",
    )
    relation: float = Field(
        default=0.35,
        ge=0.0,
        le=1.0,
        description="Weight of structural closeness to the focal file.",
    )
    recency: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Weight of how recently the file was modified.",
    )
    co_change: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Weight of historical co-change with the focal file.",
    )
    max_score: float = Field(
        default=1.0,
        gt=0.0,
        description="Upper bound applied to the final score after learned adjustments.",
    )

    def as_dict(self) -> dict[str, float]:
        """Signal name to weight mapping."""
        return {
            "keyword": self.keyword,
            "relation": self.relation,
            "recency": self.recency,
            "co_change": self.co_change,
        }


class TierThresholds(BaseModel):
    """Final-score thresholds separating the relevance tiers."""

    essential: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum final score for the essential tier.",
    )
    recommended: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum final score for the recommended tier. "
        "A caller-supplied min_relevance_score replaces it for that request.",
    )
    optional: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Minimum final score for the optional tier; below it files are excluded.",
    )

    @model_validator(mode="after")
    def _validate_ordering(self) -> TierThresholds:
        if not self.optional <= self.recommended <= self.essential:
            raise ValueError(
                f"thresholds must satisfy optional ({self.optional}) <= "
                f"recommended ({self.recommended}) <= essential ({self.essential})"
            )
        return self


class SignalConfig(BaseModel):
    """Parameters of the individual relevance signals."""

    directory_match_weight: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Credit for a keyword matching a directory name (a file name match counts 1.0).",
    )
    keyword_saturation: float = Field(
        default=1.0,
        gt=0.0,
        description="Weighted match count at which the keyword signal reaches 1.0.",
    )
    focal_keyword_boost: float = Field(
        default=0.25,
        ge=0.0,
        le=1.0,
        description="Bonus keyword credit for the focal file itself.",
    )
    recency_horizon_days: float = Field(
        default=14.0,
        gt=0.0,
        description="Age in days at which the recency signal reaches zero.",
    )
    recent_hours_window: int = Field(
        default=48,
        ge=1,
        description="Files committed within this many hours get full recency.",
    )
    same_directory: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Relation credit for sharing the focal file's directory.",
    )
    import_edge: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Relation credit for an import edge in either direction.",
    )
    test_pairing: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Relation credit for a test/implementation pairing.",
    )
    commit_lookback: int = Field(
        default=100,
        ge=1,
        description="Number of recent commits inspected for co-change frequency.",
    )
    io_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Upper bound on each version-history or text-index call.",
    )
    search_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum content matches requested from the text index per request.",
    )


class SelectionConfig(BaseModel):
    """Budget and cost model of the selector."""

    default_token_budget: int = Field(
        default=6000,
        ge=1,
        description="Budget used when a request does not supply one.",
    )
    chars_per_token: int = Field(
        default=4,
        ge=1,
        description="Characters per cost unit when estimating file cost from size.",
    )
    default_min_relevance: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Minimum relevance applied when a request does not supply one. "
        "None uses the optional tier threshold.",
    )
    max_test_suggestions: int = Field(
        default=3,
        ge=0,
        description="Maximum excluded test files suggested for debug tasks.",
    )


__all__ = [
    "ScoringWeights",
    "SelectionConfig",
    "SignalConfig",
    "TierThresholds",
]
