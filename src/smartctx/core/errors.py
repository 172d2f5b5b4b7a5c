"""Exception hierarchy for smartctx.

All engine exceptions inherit from SmartContextError, so callers can catch
broadly or narrowly. The hierarchy is flat: one base, one subclass per
failure kind.
"""

from __future__ import annotations


class SmartContextError(Exception):
    """Base exception for all smartctx errors."""


class InvalidInputError(SmartContextError):
    """Raised when a request is malformed.

    Examples: empty task description, non-positive token budget, unknown
    override type. Raised before any signal collection or store write.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class UnknownSessionError(SmartContextError):
    """Raised when a session id does not exist or belongs to another project."""

    def __init__(self, session_id: int) -> None:
        super().__init__(f"Unknown session: {session_id}")
        self.session_id = session_id


class SignalUnavailableError(SmartContextError):
    """Raised internally when a signal source times out or fails.

    Never surfaced to callers: the engine turns it into a zero signal with a
    note explaining why.
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source} unavailable: {reason}")
        self.source = source
        self.reason = reason


class StorageContentionError(SmartContextError):
    """Raised when a store write still conflicts after bounded retries."""

    def __init__(self, operation: str, attempts: int) -> None:
        super().__init__(
            f"Storage contention during {operation} after {attempts} attempts"
        )
        self.operation = operation
        self.attempts = attempts


class ConfigError(SmartContextError):
    """Raised when YAML or environment configuration is invalid."""


__all__ = [
    "ConfigError",
    "InvalidInputError",
    "SignalUnavailableError",
    "SmartContextError",
    "StorageContentionError",
    "UnknownSessionError",
]
