"""Task pattern extraction.

Turns a free-text task description into a task mode and a deterministic,
word-order-independent fingerprint. The fingerprint keys learned override
adjustments, so equivalent phrasings must map to the same value.
"""

from __future__ import annotations

import re

from smartctx.context.models import TaskMode, TaskPattern
from smartctx.core.constants import (
    EMPTY_PATTERN,
    FINGERPRINT_KEYWORDS,
    FINGERPRINT_SEPARATOR,
    MIN_KEYWORD_LENGTH,
    STOP_WORDS,
)

_STRIP_CHARS = ".,;:!?()[]{}\"'`<>"

# First family that matches wins
_MODE_FAMILIES: tuple[tuple[TaskMode, re.Pattern[str]], ...] = (
    (TaskMode.DEBUG, re.compile(r"\b(fix|bug|error|broken|crash|fail|exception)")),
    (TaskMode.FEATURE, re.compile(r"\b(add|implement|create|build|introduce)")),
    (
        TaskMode.REFACTOR,
        re.compile(r"\b(refactor|clean|reorganize|restructure|rename|extract)"),
    ),
    (TaskMode.TEST, re.compile(r"\b(test|spec|coverage)")),
)


def extract_keywords(description: str) -> tuple[str, ...]:
    """Sorted, de-duplicated significant tokens of a description."""
    tokens = set()
    for raw in description.lower().split():
        token = raw.strip(_STRIP_CHARS)
        if len(token) < MIN_KEYWORD_LENGTH or token in STOP_WORDS:
            continue
        tokens.add(token)
    return tuple(sorted(tokens))


def detect_task_mode(description: str) -> TaskMode:
    """Infer the task mode from intent keywords in the description."""
    lowered = description.lower()
    for mode, pattern in _MODE_FAMILIES:
        if pattern.search(lowered):
            return mode
    return TaskMode.GENERAL


def extract_task_pattern(description: str) -> TaskPattern:
    """Extract mode, fingerprint and keywords from a task description.

    Never raises: blank input, or input whose tokens are all discarded,
    yields the ``EMPTY_PATTERN`` fingerprint.
    """
    keywords = extract_keywords(description or "")
    if not keywords:
        return TaskPattern(
            task_mode=detect_task_mode(description or ""),
            fingerprint=EMPTY_PATTERN,
            keywords=(),
        )
    fingerprint = FINGERPRINT_SEPARATOR.join(keywords[:FINGERPRINT_KEYWORDS])
    return TaskPattern(
        task_mode=detect_task_mode(description),
        fingerprint=fingerprint,
        keywords=keywords,
    )


__all__ = ["detect_task_mode", "extract_keywords", "extract_task_pattern"]
