"""In-memory keyword index over file contents.

The default text index: files are tokenized once when the index is built,
and queries are scored by the fraction of query keywords a file contains,
weighted by how often they occur.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable
from pathlib import Path

from smartctx.context.models import FileDescriptor, SearchMatch
from smartctx.context.task_pattern import extract_keywords
from smartctx.core.logging import get_logger

_logger = get_logger("context.search")

_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]{2,}")
_CAMEL_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+")


def tokenize_content(text: str) -> Counter[str]:
    """Lowercased identifier tokens, also split on underscores and camelCase."""
    counts: Counter[str] = Counter()
    for word in _WORD_RE.findall(text):
        counts[word.lower()] += 1
        for part in word.split("_"):
            for piece in _CAMEL_RE.findall(part):
                if len(piece) >= 3 and piece.lower() != word.lower():
                    counts[piece.lower()] += 1
    return counts


class KeywordIndex:
    """Keyword search over the contents of a set of files."""

    def __init__(self) -> None:
        self._tokens: dict[str, Counter[str]] = {}
        self._lines: dict[str, list[str]] = {}

    def add(self, path: str, content: str) -> None:
        self._tokens[path] = tokenize_content(content)
        self._lines[path] = content.splitlines()

    @classmethod
    def build(
        cls, project_root: Path, files: Iterable[FileDescriptor]
    ) -> KeywordIndex:
        """Index the contents of ``files`` under ``project_root``."""
        index = cls()
        for descriptor in files:
            try:
                content = (project_root / descriptor.path).read_text(
                    encoding="utf-8", errors="replace"
                )
            except OSError as e:
                _logger.debug("index_read_failed", path=descriptor.path, error=str(e))
                continue
            index.add(descriptor.path, content)
        return index

    def __len__(self) -> int:
        return len(self._tokens)

    def search(self, query: str, limit: int) -> list[SearchMatch]:
        """Files matching the query's keywords, best first."""
        keywords = extract_keywords(query) or tuple(
            w.lower() for w in query.split() if len(w) >= 3
        )
        if not keywords:
            return []

        matches: list[SearchMatch] = []
        for path, counts in self._tokens.items():
            hits = {k: counts[k] for k in keywords if counts.get(k)}
            if not hits:
                continue
            coverage = len(hits) / len(keywords)
            density = min(1.0, math.log1p(sum(hits.values())) / math.log1p(20))
            score = round(0.7 * coverage + 0.3 * density, 4)
            matches.append(
                SearchMatch(path=path, score=score, excerpt=self._excerpt(path, hits))
            )

        matches.sort(key=lambda m: (-m.score, m.path))
        return matches[:limit]

    def _excerpt(self, path: str, hits: dict[str, int]) -> str:
        for line in self._lines.get(path, []):
            lowered = line.lower()
            if any(k in lowered for k in hits):
                return line.strip()[:160]
        return ""


__all__ = ["KeywordIndex", "tokenize_content"]
