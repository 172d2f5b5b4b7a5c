"""JSON-RPC 2.0 wire models and tool parameter models.

Pydantic v2 models enforce the wire format at the boundary; tool handlers
receive validated parameter objects, never raw dicts.

Wire format over stdio: newline-delimited JSON (NDJSON). Each message is a
single JSON object terminated by ``\\n``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

MCP_PROTOCOL_VERSION = "2024-11-05"

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 base types
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """Inbound JSON-RPC 2.0 request.

    When ``id`` is None the message is a notification and gets no response.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] | None = None
    id: int | str | None = None


class ErrorDetail(BaseModel):
    """Error payload within a JSON-RPC error response."""

    code: int
    message: str
    data: dict[str, Any] | None = None


class JsonRpcResponse(BaseModel):
    """Outbound JSON-RPC 2.0 success response."""

    jsonrpc: Literal["2.0"] = "2.0"
    result: Any
    id: int | str


class JsonRpcError(BaseModel):
    """Outbound JSON-RPC 2.0 error response."""

    jsonrpc: Literal["2.0"] = "2.0"
    error: ErrorDetail
    id: int | str | None


class ToolCallParams(BaseModel):
    """Parameters of ``tools/call``."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Tool parameter models
# ---------------------------------------------------------------------------


class GetOptimalContextParams(BaseModel):
    """Parameters for ``get_optimal_context``."""

    task: str = Field(description="Free-text description of the engineering task")
    current_file: str | None = Field(
        default=None, description="Project-relative path of the file being worked on"
    )
    project_files: list[str] | None = Field(
        default=None,
        description="Project-relative paths to consider; omitted means scan the project",
    )
    target_tokens: int | None = Field(
        default=None, description="Token budget for the selection"
    )
    min_relevance_score: float | None = Field(
        default=None, description="Minimum final score for inclusion, in [0, 1]"
    )


class ApplyUserOverridesParams(BaseModel):
    """Parameters for ``apply_user_overrides``."""

    session_id: int = Field(description="Session returned by get_optimal_context")
    added: list[str] = Field(default_factory=list, description="Files the user added")
    removed: list[str] = Field(default_factory=list, description="Files the user removed")
    kept: list[str] = Field(default_factory=list, description="Files the user confirmed")


class ExpandContextParams(BaseModel):
    """Parameters for ``expand_context``."""

    session_id: int = Field(description="Session returned by get_optimal_context")
    additional_tokens: int = Field(
        default=2000, ge=1, description="Budget units to add to the session"
    )


class RecordSessionOutcomeParams(BaseModel):
    """Parameters for ``record_session_outcome``."""

    session_id: int = Field(description="Session returned by get_optimal_context")
    was_successful: bool = Field(description="Whether the task was completed")
    files_actually_used: list[str] = Field(
        default_factory=list, description="Files the task actually needed"
    )


class SearchCodebaseParams(BaseModel):
    """Parameters for ``search_codebase``."""

    query: str = Field(description="Keywords to search file contents for")
    limit: int = Field(default=10, ge=1, le=200, description="Maximum results")


class GetFileRelationshipsParams(BaseModel):
    """Parameters for ``get_file_relationships``."""

    file_path: str = Field(description="Project-relative path")
    relationship_type: Literal["all", "import", "co-change", "used-together"] = Field(
        default="all", description="Relationship kind to return"
    )
    limit: int = Field(default=20, ge=1, le=200, description="Maximum relationships")


class AnalyzeGitPatternsParams(BaseModel):
    """Parameters for ``analyze_git_patterns``."""

    commit_limit: int = Field(
        default=100, ge=1, le=10000, description="Number of recent commits to analyze"
    )
    limit: int = Field(default=20, ge=1, le=200, description="Maximum patterns returned")


class GetLearningInsightsParams(BaseModel):
    """Parameters for ``get_learning_insights``."""

    task_mode: Literal["debug", "feature", "refactor", "test", "general"] | None = Field(
        default=None, description="Restrict session statistics to one task mode"
    )


__all__ = [
    "MCP_PROTOCOL_VERSION",
    "AnalyzeGitPatternsParams",
    "ApplyUserOverridesParams",
    "ErrorDetail",
    "ExpandContextParams",
    "GetFileRelationshipsParams",
    "GetLearningInsightsParams",
    "GetOptimalContextParams",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "RecordSessionOutcomeParams",
    "SearchCodebaseParams",
    "ToolCallParams",
]
