"""Budget-constrained selection.

Orders scored files by tier and score and walks the list once, including
essential files unconditionally and everything else while it fits the
budget. Every file left out carries the reason it was left out.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from smartctx.context.models import (
    ExcludedFile,
    ScoredFile,
    SelectedFile,
    Selection,
    Tier,
)
from smartctx.core.config import TierThresholds

BUDGET_EXCEEDED_REASON = "Budget exceeded"


def estimate_cost(size: int, chars_per_token: int = 4) -> int:
    """Cost units of a file of ``size`` bytes; never below 1."""
    return max(1, math.ceil(size / chars_per_token))


def selection_order(scored: ScoredFile) -> tuple[int, float, int, str]:
    """Sort key: tier rank, score descending, shallower paths, then path."""
    return (scored.tier.rank, -scored.final_score, scored.depth, scored.path)


class BudgetSelector:
    """Selects files under a budget while keeping every essential file."""

    def __init__(self, thresholds: TierThresholds | None = None) -> None:
        self.thresholds = thresholds or TierThresholds()

    def select(
        self,
        scored_files: Iterable[ScoredFile],
        token_budget: int,
        min_relevance: float | None = None,
    ) -> Selection:
        """Build a Selection from scored files.

        Args:
            scored_files: Scored candidates, in any order.
            token_budget: Maximum total cost of non-essential files.
            min_relevance: Files scoring below this are excluded; defaults
                to the optional tier threshold.
        """
        cutoff = self.thresholds.optional if min_relevance is None else min_relevance
        ordered = sorted(scored_files, key=selection_order)

        included: list[SelectedFile] = []
        excluded: list[ExcludedFile] = []
        total_cost = 0
        budget_exhausted = False

        for scored in ordered:
            if scored.tier is Tier.EXCLUDED:
                excluded.append(
                    _exclude(scored, f"Irrelevant: {scored.primary_reason or 'no signals'}")
                )
                continue

            if scored.tier is Tier.ESSENTIAL:
                included.append(_include(scored))
                total_cost += scored.cost
                continue

            if scored.final_score < cutoff:
                excluded.append(
                    _exclude(scored, f"Below minimum relevance {cutoff:.2f}")
                )
                continue

            if not budget_exhausted and total_cost + scored.cost <= token_budget:
                included.append(_include(scored))
                total_cost += scored.cost
            else:
                budget_exhausted = True
                excluded.append(_exclude(scored, BUDGET_EXCEEDED_REASON))

        return Selection(
            included=tuple(included),
            excluded=tuple(excluded),
            total_cost=total_cost,
            token_budget=token_budget,
        )

    def expand(self, selection: Selection, additional_tokens: int) -> Selection:
        """Grow a selection's budget and admit the files the budget cut off.

        Budget-excluded files are reconsidered in their original order,
        each admitted while it fits the new budget; the walk stops at the
        first file that does not fit, as ``select`` does. Files excluded
        for relevance stay excluded.
        """
        budget = selection.token_budget + additional_tokens
        included = list(selection.included)
        excluded: list[ExcludedFile] = []
        total_cost = selection.total_cost
        budget_exhausted = False

        for candidate in selection.excluded:
            if candidate.reason != BUDGET_EXCEEDED_REASON:
                excluded.append(candidate)
                continue
            if not budget_exhausted and total_cost + candidate.cost <= budget:
                included.append(
                    SelectedFile(
                        path=candidate.path,
                        tier=candidate.tier,
                        final_score=candidate.final_score,
                        cost=candidate.cost,
                        primary_reason=candidate.primary_reason,
                        reasons=candidate.reasons,
                    )
                )
                total_cost += candidate.cost
            else:
                budget_exhausted = True
                excluded.append(candidate)

        return Selection(
            included=tuple(included),
            excluded=tuple(excluded),
            total_cost=total_cost,
            token_budget=budget,
        )


def _include(scored: ScoredFile) -> SelectedFile:
    return SelectedFile(
        path=scored.path,
        tier=scored.tier,
        final_score=scored.final_score,
        cost=scored.cost,
        primary_reason=scored.primary_reason,
        reasons=scored.reasons,
    )


def _exclude(scored: ScoredFile, reason: str) -> ExcludedFile:
    return ExcludedFile(
        path=scored.path,
        tier=scored.tier,
        final_score=scored.final_score,
        reason=reason,
        cost=scored.cost,
        primary_reason=scored.primary_reason,
        reasons=scored.reasons,
    )


__all__ = [
    "BUDGET_EXCEEDED_REASON",
    "BudgetSelector",
    "estimate_cost",
    "selection_order",
]
