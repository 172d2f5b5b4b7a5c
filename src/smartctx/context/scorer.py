"""Relevance scoring.

Combines the four signals of a file into a base score, applies the learned
override adjustment, assigns a tier and builds the ordered reason trail.
The scorer is pure: it never touches storage and never mutates its inputs.
"""

from __future__ import annotations

from smartctx.context.models import ScoredFile, SignalSet, Tier
from smartctx.core.config import ScoringWeights, TierThresholds
from smartctx.core.constants import SIGNAL_ORDER

NO_SIGNALS_REASON = "No relevance signals"

_DEFAULT_LABELS = {
    "keyword": "Matches task keywords",
    "relation": "Related to focal file",
    "recency": "Recently modified",
    "co_change": "Changes with focal file",
}


class RelevanceScorer:
    """Turns SignalSets into tiered, explained ScoredFiles.

    The recommended threshold defaults to the configured one; a caller's
    minimum relevance replaces it per request, clamped between the optional
    and essential thresholds.
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        thresholds: TierThresholds | None = None,
    ) -> None:
        self.weights = weights or ScoringWeights()
        self.thresholds = thresholds or TierThresholds()

    def calculate_base_score(self, signals: SignalSet) -> float:
        """Weighted sum of the four signals."""
        return sum(
            weight * signals.value(name) for name, weight in self.weights.as_dict().items()
        )

    def recommended_threshold(self, min_relevance: float | None = None) -> float:
        if min_relevance is None:
            return self.thresholds.recommended
        return max(self.thresholds.optional, min(self.thresholds.essential, min_relevance))

    def assign_tier(self, final_score: float, min_relevance: float | None = None) -> Tier:
        if final_score >= self.thresholds.essential:
            return Tier.ESSENTIAL
        if final_score >= self.recommended_threshold(min_relevance):
            return Tier.RECOMMENDED
        if final_score >= self.thresholds.optional:
            return Tier.OPTIONAL
        return Tier.EXCLUDED

    def build_reasons(self, signals: SignalSet, adjustment: float) -> tuple[str, ...]:
        """Ordered reason trail.

        Contributing signals come first, by weighted contribution with ties
        broken in fixed signal order; then notes of zero-valued signals;
        then the learned adjustment.
        """
        weights = self.weights.as_dict()
        contributing = [
            (weights[name] * signals.value(name), index, name)
            for index, name in enumerate(SIGNAL_ORDER)
            if signals.value(name) > 0
        ]
        contributing.sort(key=lambda item: (-item[0], item[1]))

        reasons = [signals.notes.get(name, _DEFAULT_LABELS[name]) for _, _, name in contributing]
        reasons.extend(
            signals.notes[name]
            for name in SIGNAL_ORDER
            if signals.value(name) <= 0 and name in signals.notes
        )
        if adjustment:
            direction = "raised" if adjustment > 0 else "lowered"
            reasons.append(f"Learned from past overrides ({direction} {adjustment:+.2f})")
        return tuple(reasons)

    def score(
        self,
        path: str,
        cost: int,
        signals: SignalSet,
        adjustment: float = 0.0,
        min_relevance: float | None = None,
    ) -> ScoredFile:
        """Score one file.

        Args:
            path: Project-relative path.
            cost: Estimated cost of including the file.
            signals: Collected signals.
            adjustment: Gated learned adjustment (0 when none applies).
            min_relevance: Caller's minimum relevance for this request.
        """
        base = self.calculate_base_score(signals)
        final = min(self.weights.max_score, base + adjustment) if adjustment else base

        reasons = self.build_reasons(signals, adjustment)
        if signals.is_empty() and not adjustment:
            tier = Tier.EXCLUDED
            reasons = (NO_SIGNALS_REASON, *reasons)
        else:
            tier = self.assign_tier(final, min_relevance)

        return ScoredFile(
            path=path,
            cost=cost,
            signals=signals,
            base_score=base,
            override_adjustment=adjustment,
            final_score=final,
            tier=tier,
            reasons=reasons,
        )


__all__ = ["NO_SIGNALS_REASON", "RelevanceScorer"]
