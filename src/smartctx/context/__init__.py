"""Relevance scoring pipeline.

Stages, each a pure transform over frozen records:

- task_pattern: task text -> TaskPattern (mode, keywords, fingerprint)
- signals: files + pattern -> SignalSet per file
- scorer: SignalSet + learned adjustment -> ScoredFile with a tier
- selector: ScoredFiles + budget -> Selection

ContextEngine (smartctx.context.engine) runs the stages and persists
sessions. It depends on the store, so import it from its module. The
default collaborators (scanner, git history, keyword index) live alongside.
"""

from smartctx.context.history import GitHistoryAnalyzer
from smartctx.context.models import (
    ContextResponse,
    ExcludedFile,
    FileDescriptor,
    OverrideType,
    ScanError,
    ScanResult,
    ScoredFile,
    SearchMatch,
    SelectedFile,
    Selection,
    SignalSet,
    TaskMode,
    TaskPattern,
    Tier,
)
from smartctx.context.scanner import FileSystemScanner
from smartctx.context.scorer import RelevanceScorer
from smartctx.context.search import KeywordIndex
from smartctx.context.selector import BudgetSelector, estimate_cost
from smartctx.context.signals import SignalCollector
from smartctx.context.task_pattern import (
    detect_task_mode,
    extract_keywords,
    extract_task_pattern,
)

__all__ = [
    "BudgetSelector",
    "ContextResponse",
    "ExcludedFile",
    "FileDescriptor",
    "FileSystemScanner",
    "GitHistoryAnalyzer",
    "KeywordIndex",
    "OverrideType",
    "RelevanceScorer",
    "ScanError",
    "ScanResult",
    "ScoredFile",
    "SearchMatch",
    "SelectedFile",
    "Selection",
    "SignalCollector",
    "SignalSet",
    "TaskMode",
    "TaskPattern",
    "Tier",
    "detect_task_mode",
    "extract_keywords",
    "extract_task_pattern",
    "estimate_cost",
]
