"""smartctx: task-aware file relevance scoring with feedback learning."""

__version__ = "0.3.0"

__all__ = ["__version__"]
