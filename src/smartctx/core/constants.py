"""Global constants for smartctx.

Centralizes values shared across the engine, the store and the CLI.
"""

# =============================================================================
# Task Patterns
# =============================================================================

EMPTY_PATTERN = "<empty>"
"""Fingerprint reserved for task descriptions with no usable tokens."""

FINGERPRINT_KEYWORDS = 5
"""Number of sorted keywords joined into a pattern fingerprint."""

FINGERPRINT_SEPARATOR = "-"
"""Separator used when joining fingerprint keywords."""

MIN_KEYWORD_LENGTH = 4
"""Tokens shorter than this are discarded during keyword extraction."""

STOP_WORDS = frozenset({
    "about", "after", "again", "also", "because", "been", "before", "being",
    "could", "does", "from", "have", "into", "just", "make", "more", "only",
    "should", "some", "than", "that", "their", "them", "then", "there",
    "these", "they", "this", "those", "very", "want", "were", "what", "when",
    "where", "which", "while", "will", "with", "would", "your",
})
"""Common English words that never contribute to a fingerprint."""

# =============================================================================
# Tiers and Signals
# =============================================================================

TIER_ORDER = ("essential", "recommended", "optional", "excluded")
"""Tiers from most to least relevant; index is the sort rank."""

SIGNAL_ORDER = ("keyword", "relation", "recency", "co_change")
"""Fixed signal order used to break ties in reason trails."""

# =============================================================================
# Storage
# =============================================================================

DEFAULT_DB_DIRNAME = ".smartctx"
"""Directory under the home directory holding the default database."""

DEFAULT_DB_FILENAME = "context.db"
"""File name of the default database."""

PROJECT_CONFIG_FILENAME = ".smartctx.yaml"
"""Per-project configuration file looked up in the project root."""

# =============================================================================
# Scanner Defaults
# =============================================================================

DEFAULT_IGNORE_DIRS = frozenset({
    ".git", ".hg", ".svn", "node_modules", "dist", "build", "coverage",
    "__pycache__", ".venv", "venv", ".tox", ".mypy_cache", ".pytest_cache",
    ".next", ".idea", ".vscode",
})
"""Directory names never descended into by the file system scanner."""

DEFAULT_IGNORE_SUFFIXES = (".min.js", ".map", ".log", ".lock", ".pyc")
"""File name suffixes skipped by the file system scanner."""

DEFAULT_CODE_EXTENSIONS = frozenset({
    ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".py", ".java", ".go",
    ".rs", ".rb", ".php", ".c", ".h", ".cc", ".cpp", ".hpp", ".cs", ".swift",
    ".kt", ".scala", ".vue", ".svelte", ".json", ".yaml", ".yml", ".toml",
    ".md", ".sql", ".sh", ".css", ".scss", ".html",
})
"""File extensions the file system scanner considers part of the codebase."""
