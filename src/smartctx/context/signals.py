"""Relevance signal collection.

Computes four independent signals for every candidate file, each in
[0, 1], together with a human-readable note per signal:

- keyword: task keywords matched against path tokens (and content matches)
- recency: linear decay of the file's age over a fixed horizon
- relation: structural closeness to the focal file
- co_change: how often the file changed together with the focal file

Each signal is a plain function so it can be tested in isolation. A signal
source that is missing or unavailable yields zero plus a note; collection
itself never fails.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime

from smartctx.context.models import FileDescriptor, SearchMatch, SignalSet, TaskPattern
from smartctx.core.config import SignalConfig
from smartctx.core.logging import get_logger

_logger = get_logger("context.signals")

_SPLIT_RE = re.compile(r"[/._\-\s]+")
_CAMEL_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")
_MIN_PATH_TOKEN = 3
_TEST_DIRS = frozenset({"test", "tests", "__tests__", "spec", "specs"})
_TEST_STEM_RE = re.compile(
    r"(^test_|_test$|\.test$|\.spec$|_spec$|Test$|Tests$|Spec$)"
)

NO_HISTORY_NOTE = "No version history available"
NO_FOCAL_NOTE = "No focal file provided"
INDEX_UNAVAILABLE_NOTE = "Content index unavailable"


# =============================================================================
# Path helpers
# =============================================================================


def split_identifier(text: str) -> list[str]:
    """Split a path fragment on separators and camelCase boundaries."""
    tokens: list[str] = []
    for part in _SPLIT_RE.split(text):
        for word in _CAMEL_RE.findall(part):
            word = word.lower()
            if len(word) >= _MIN_PATH_TOKEN:
                tokens.append(word)
    return tokens


def path_tokens(path: str) -> tuple[set[str], set[str]]:
    """Directory tokens and file name tokens of a project-relative path.

    The extension is dropped; ``src/api/authController.js`` yields
    ``({"src", "api"}, {"auth", "controller"})``.
    """
    directory, name = posixpath.split(path)
    stem = posixpath.splitext(name)[0] or name
    return set(split_identifier(directory)), set(split_identifier(stem))


def strip_extension(path: str) -> str:
    """Path without its final extension and without index/__init__ modules."""
    module = posixpath.splitext(path)[0]
    for suffix in ("/index", "/__init__"):
        if module.endswith(suffix):
            return module[: -len(suffix)]
    return module


def is_test_file(path: str) -> bool:
    """Whether a path looks like a test file."""
    directory, name = posixpath.split(path)
    if _TEST_STEM_RE.search(posixpath.splitext(name)[0]):
        return True
    return any(part in _TEST_DIRS for part in directory.split("/"))


def _test_subject(path: str) -> str:
    """Lowercased file stem with test markers removed."""
    name = posixpath.basename(path)
    stem = posixpath.splitext(name)[0]
    stem = _TEST_STEM_RE.sub("", stem)
    return stem.split(".")[0].lower()


def resolve_import(importer: str, specifier: str) -> str | None:
    """Resolve an import specifier to an extension-less module path.

    Handles relative path specifiers (``./x``, ``../y/z.js``), Python
    relative imports (``.models``, ``..core.config``) and dotted absolute
    Python modules. Other bare specifiers are returned unchanged.
    """
    spec = specifier.strip()
    if not spec:
        return None
    base = posixpath.dirname(importer)
    if spec.startswith(("./", "../")) or spec in (".", ".."):
        return strip_extension(posixpath.normpath(posixpath.join(base, spec)))
    if spec.startswith("."):
        level = len(spec) - len(spec.lstrip("."))
        target = base
        for _ in range(level - 1):
            target = posixpath.dirname(target)
        rest = spec[level:].replace(".", "/")
        return posixpath.normpath(posixpath.join(target, rest)) if rest else target
    if importer.endswith(".py") and "/" not in spec:
        return spec.replace(".", "/")
    return strip_extension(spec)


def _module_matches(resolved: str, target: str) -> bool:
    if resolved == target:
        return True
    return "/" in resolved and target.endswith("/" + resolved)


# =============================================================================
# Individual signals
# =============================================================================


def keyword_signal(
    path: str,
    keywords: Iterable[str],
    config: SignalConfig,
    content_match: SearchMatch | None = None,
    is_focal: bool = False,
) -> tuple[float, str | None]:
    """Keyword relevance of a path, with the matched keywords as its note."""
    keywords = tuple(keywords)
    dir_tokens, name_tokens = path_tokens(path)
    matched: set[str] = set()

    def _count(tokens: set[str]) -> int:
        hits = 0
        for token in tokens:
            found = [k for k in keywords if k.startswith(token) or token.startswith(k)]
            if found:
                hits += 1
                matched.update(found)
        return hits

    weighted = _count(name_tokens) + config.directory_match_weight * _count(dir_tokens)
    score = min(1.0, weighted / config.keyword_saturation)
    note = f"Matches task keywords: {', '.join(sorted(matched))}" if matched else None

    if content_match is not None and content_match.score > score:
        score = min(1.0, content_match.score)
        note = "Content matches task keywords"

    if is_focal:
        score = min(1.0, score + config.focal_keyword_boost)
        note = note or "Focal file"

    return score, note


def recency_signal(
    last_modified: datetime,
    now: datetime,
    config: SignalConfig,
    recently_committed: bool = False,
) -> tuple[float, str | None]:
    """Linear recency decay: 1.0 when just modified, 0.0 past the horizon."""
    if recently_committed:
        return 1.0, f"Committed within the last {config.recent_hours_window}h"
    age_days = max(0.0, (now - last_modified).total_seconds() / 86400)
    score = max(0.0, 1.0 - age_days / config.recency_horizon_days)
    if score <= 0.0:
        return 0.0, None
    if age_days < 1:
        return score, "Modified today"
    return score, f"Modified {int(age_days)} days ago"


def relation_signal(
    path: str,
    focal_file: str | None,
    imports_by_path: Mapping[str, Sequence[str]],
    config: SignalConfig,
) -> tuple[float, str | None]:
    """Structural closeness of a file to the focal file."""
    if not focal_file:
        return 0.0, NO_FOCAL_NOTE
    if path == focal_file:
        return 1.0, "Focal file"

    score = 0.0
    parts: list[str] = []

    if posixpath.dirname(path) == posixpath.dirname(focal_file):
        score += config.same_directory
        parts.append("same directory as focal file")

    target = strip_extension(path)
    focal_target = strip_extension(focal_file)
    focal_imports = [
        resolve_import(focal_file, spec) for spec in imports_by_path.get(focal_file, ())
    ]
    file_imports = [resolve_import(path, spec) for spec in imports_by_path.get(path, ())]
    if any(r and _module_matches(r, target) for r in focal_imports):
        score += config.import_edge
        parts.append("imported by focal file")
    elif any(r and _module_matches(r, focal_target) for r in file_imports):
        score += config.import_edge
        parts.append("imports focal file")

    if is_test_file(path) != is_test_file(focal_file) and (
        _test_subject(path) == _test_subject(focal_file)
    ):
        score += config.test_pairing
        parts.append("test pairing with focal file")

    if not parts:
        return 0.0, None
    note = "; ".join(parts)
    return min(1.0, score), note[0].upper() + note[1:]


def co_change_signal(
    path: str,
    frequencies: Mapping[str, float] | None,
) -> tuple[float, str | None]:
    """Fraction of recent focal-file commits that also touched this file."""
    if frequencies is None:
        return 0.0, NO_HISTORY_NOTE
    fraction = max(0.0, min(1.0, frequencies.get(path, 0.0)))
    if fraction <= 0.0:
        return 0.0, None
    return fraction, f"Changed with focal file in {fraction:.0%} of recent commits"


# =============================================================================
# Collector
# =============================================================================


class SignalCollector:
    """Computes a SignalSet for every file of a snapshot."""

    def __init__(self, config: SignalConfig | None = None) -> None:
        self.config = config or SignalConfig()

    def collect(
        self,
        files: Sequence[FileDescriptor],
        pattern: TaskPattern,
        focal_file: str | None,
        now: datetime,
        recently_modified: set[str] | None = None,
        co_change: Mapping[str, float] | None = None,
        content_matches: Mapping[str, SearchMatch] | None = None,
        history_available: bool = True,
        index_available: bool = True,
    ) -> dict[str, SignalSet]:
        """Collect signals for each file.

        Args:
            files: Codebase snapshot.
            pattern: Extracted task pattern.
            focal_file: File the user is working in, if any.
            now: Reference time for recency.
            recently_modified: Files committed within the recent window.
            co_change: Co-change fractions with the focal file.
            content_matches: Text index matches keyed by path.
            history_available: False when version history failed, timed out
                or does not exist.
            index_available: False when the text index failed or timed out.

        Returns:
            Mapping of path to SignalSet, in snapshot order.
        """
        imports_by_path = {f.path: f.imports for f in files}
        recent = recently_modified or set()
        matches = content_matches or {}
        frequencies = (co_change or {}) if history_available else None

        results: dict[str, SignalSet] = {}
        for descriptor in files:
            path = descriptor.path
            notes: dict[str, str] = {}

            keyword, note = keyword_signal(
                path,
                pattern.keywords,
                self.config,
                content_match=matches.get(path),
                is_focal=path == focal_file,
            )
            if note:
                notes["keyword"] = note
            elif not index_available:
                notes["keyword"] = INDEX_UNAVAILABLE_NOTE

            relation, note = relation_signal(
                path, focal_file, imports_by_path, self.config
            )
            if note:
                notes["relation"] = note

            recency, note = recency_signal(
                descriptor.last_modified, now, self.config,
                recently_committed=path in recent,
            )
            if note:
                notes["recency"] = note

            if focal_file or not history_available:
                co, note = co_change_signal(path, frequencies)
            else:
                co, note = 0.0, None
            if note:
                notes["co_change"] = note

            results[path] = SignalSet(
                keyword=keyword,
                recency=recency,
                relation=relation,
                co_change=co,
                notes=notes,
            )

        _logger.debug(
            "signals_collected",
            files=len(results),
            focal_file=focal_file,
            history_available=history_available,
        )
        return results


__all__ = [
    "INDEX_UNAVAILABLE_NOTE",
    "NO_FOCAL_NOTE",
    "NO_HISTORY_NOTE",
    "SignalCollector",
    "co_change_signal",
    "is_test_file",
    "keyword_signal",
    "path_tokens",
    "recency_signal",
    "relation_signal",
    "resolve_import",
    "split_identifier",
    "strip_extension",
]
