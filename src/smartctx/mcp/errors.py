"""JSON-RPC 2.0 error codes and helper functions.

Maps the smartctx exception hierarchy (``SmartContextError`` and
subclasses) to standard and extension JSON-RPC error codes, plus builders
for the common error responses.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from smartctx.core.errors import (
    ConfigError,
    InvalidInputError,
    SmartContextError,
    StorageContentionError,
    UnknownSessionError,
)
from smartctx.mcp.protocol import ErrorDetail, JsonRpcError

# ---------------------------------------------------------------------------
# Standard JSON-RPC 2.0 error codes
# ---------------------------------------------------------------------------

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# ---------------------------------------------------------------------------
# Extension error codes (-32000 to -32099)
# ---------------------------------------------------------------------------

SESSION_NOT_FOUND = -32000
STORAGE_CONTENTION = -32001
CONFIGURATION_ERROR = -32002

ERROR_NAMES: dict[int, str] = {
    PARSE_ERROR: "PARSE_ERROR",
    INVALID_REQUEST: "INVALID_REQUEST",
    METHOD_NOT_FOUND: "METHOD_NOT_FOUND",
    INVALID_PARAMS: "INVALID_PARAMS",
    INTERNAL_ERROR: "INTERNAL_ERROR",
    SESSION_NOT_FOUND: "SESSION_NOT_FOUND",
    STORAGE_CONTENTION: "STORAGE_CONTENTION",
    CONFIGURATION_ERROR: "CONFIGURATION_ERROR",
}


# ---------------------------------------------------------------------------
# Error response builders
# ---------------------------------------------------------------------------


def make_error(
    code: int,
    message: str,
    request_id: int | str | None,
    data: dict[str, Any] | None = None,
) -> JsonRpcError:
    """Build a ``JsonRpcError`` with the given code and message."""
    return JsonRpcError(
        error=ErrorDetail(code=code, message=message, data=data),
        id=request_id,
    )


def parse_error(request_id: int | str | None = None) -> JsonRpcError:
    """Malformed JSON received."""
    return make_error(PARSE_ERROR, "Parse error: malformed JSON", request_id)


def invalid_request(request_id: int | str | None, detail: str = "") -> JsonRpcError:
    """Missing ``jsonrpc``, ``method``, or wrong types."""
    msg = "Invalid request"
    if detail:
        msg = f"{msg}: {detail}"
    return make_error(INVALID_REQUEST, msg, request_id)


def method_not_found(request_id: int | str | None, method: str) -> JsonRpcError:
    """Unknown RPC method name."""
    return make_error(
        METHOD_NOT_FOUND,
        f"Method not found: {method}",
        request_id,
        data={"method": method},
    )


def invalid_params(request_id: int | str | None, detail: str) -> JsonRpcError:
    """Params failed validation."""
    return make_error(INVALID_PARAMS, f"Invalid params: {detail}", request_id)


# ---------------------------------------------------------------------------
# Exception → JSON-RPC error mapping
# ---------------------------------------------------------------------------

_EXCEPTION_CODE_MAP: dict[type[SmartContextError], int] = {
    InvalidInputError: INVALID_PARAMS,
    UnknownSessionError: SESSION_NOT_FOUND,
    StorageContentionError: STORAGE_CONTENTION,
    ConfigError: CONFIGURATION_ERROR,
}


def error_code_for(exc: BaseException) -> int:
    """JSON-RPC code for an exception raised while serving a tool call."""
    if isinstance(exc, ValidationError):
        return INVALID_PARAMS
    for exc_type, code in _EXCEPTION_CODE_MAP.items():
        if isinstance(exc, exc_type):
            return code
    return INTERNAL_ERROR


def map_exception_to_rpc_error(
    exc: BaseException, request_id: int | str | None
) -> JsonRpcError:
    """Convert an exception into the appropriate ``JsonRpcError``."""
    code = error_code_for(exc)
    data: dict[str, Any] | None = None
    if isinstance(exc, UnknownSessionError):
        data = {"session_id": exc.session_id}
    elif isinstance(exc, InvalidInputError) and exc.field:
        data = {"field": exc.field}
    return make_error(code, str(exc), request_id, data=data)


__all__ = [
    "CONFIGURATION_ERROR",
    "ERROR_NAMES",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "SESSION_NOT_FOUND",
    "STORAGE_CONTENTION",
    "error_code_for",
    "invalid_params",
    "invalid_request",
    "make_error",
    "map_exception_to_rpc_error",
    "method_not_found",
    "parse_error",
]
