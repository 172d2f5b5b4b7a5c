"""MCP tool implementations over a ContextEngine.

Each tool validates its arguments with a pydantic parameter model, runs
the matching engine operation in a worker thread and returns MCP tool
content. Failures come back as ``isError`` results carrying a JSON-RPC
error code; no exception escapes ``call_tool``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from smartctx.context.engine import ContextEngine
from smartctx.core.errors import SmartContextError
from smartctx.core.logging import RequestContext, get_logger, with_context
from smartctx.mcp.errors import ERROR_NAMES, INTERNAL_ERROR, error_code_for
from smartctx.mcp.protocol import (
    AnalyzeGitPatternsParams,
    ApplyUserOverridesParams,
    ExpandContextParams,
    GetFileRelationshipsParams,
    GetLearningInsightsParams,
    GetOptimalContextParams,
    RecordSessionOutcomeParams,
    SearchCodebaseParams,
)

_logger = get_logger("mcp.tools")


def _make_error_response(error: Exception) -> dict[str, Any]:
    """Create a standardized MCP error response."""
    code = error_code_for(error)
    return {
        "content": [{"type": "text", "text": f"Error: {error}"}],
        "isError": True,
        "errorCode": code,
        "errorName": ERROR_NAMES.get(code, ERROR_NAMES[INTERNAL_ERROR]),
    }


def _make_result(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": json.dumps(payload, indent=2)}],
        "structuredContent": payload,
        "isError": False,
    }


def _input_schema(model: type[BaseModel]) -> dict[str, Any]:
    schema = model.model_json_schema()
    schema.pop("title", None)
    schema.setdefault("required", [])
    return schema


class ContextTools:
    """Context selection and feedback tools.

    Tools:
        get_optimal_context, expand_context, apply_user_overrides,
        record_session_outcome, search_codebase, get_file_relationships,
        analyze_git_patterns, get_learning_insights
    """

    _DESCRIPTIONS: dict[str, str] = {
        "get_optimal_context": (
            "Select the files most relevant to a task within a token budget, "
            "with a tier and reasons for every file"
        ),
        "expand_context": (
            "Raise a session's token budget and include the files the budget cut off"
        ),
        "apply_user_overrides": (
            "Report files the user added to, removed from or kept in a selection"
        ),
        "record_session_outcome": (
            "Report whether a session's task succeeded and which files it used"
        ),
        "search_codebase": "Search file contents for task keywords",
        "get_file_relationships": (
            "List import, co-change and used-together relationships of a file"
        ),
        "analyze_git_patterns": (
            "Record co-change relationships mined from recent git commits"
        ),
        "get_learning_insights": (
            "Summarize sessions, overrides and learned adjustments for the project"
        ),
    }

    _PARAMS: dict[str, type[BaseModel]] = {
        "get_optimal_context": GetOptimalContextParams,
        "expand_context": ExpandContextParams,
        "apply_user_overrides": ApplyUserOverridesParams,
        "record_session_outcome": RecordSessionOutcomeParams,
        "search_codebase": SearchCodebaseParams,
        "get_file_relationships": GetFileRelationshipsParams,
        "analyze_git_patterns": AnalyzeGitPatternsParams,
        "get_learning_insights": GetLearningInsightsParams,
    }

    def __init__(self, engine: ContextEngine):
        self.engine = engine

    @property
    def tool_names(self) -> list[str]:
        return list(self._PARAMS)

    async def list_tools(self) -> list[dict[str, Any]]:
        """List all context tools with their input schemas."""
        return [
            {
                "name": name,
                "description": self._DESCRIPTIONS[name],
                "inputSchema": _input_schema(model),
            }
            for name, model in self._PARAMS.items()
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Execute a context tool.

        The call runs under its own request context; the worker thread
        inherits it, so engine and store entries share the request id.
        """
        ctx = RequestContext(project_hash=self.engine.project_hash, component="mcp")
        try:
            with with_context(ctx):
                model = self._PARAMS.get(name)
                if model is None:
                    raise ValueError(f"Unknown context tool: {name}")
                params = model.model_validate(arguments)
                handler = self._handler(name, params)
                payload = await asyncio.to_thread(handler)
            return _make_result(payload)
        except (SmartContextError, ValidationError, ValueError) as e:
            _logger.info("tool_call_rejected", tool=name, error=str(e))
            return _make_error_response(e)
        except Exception as e:
            _logger.exception("tool_call_failed", tool=name, error=str(e))
            return _make_error_response(e)

    def _handler(self, name: str, params: BaseModel) -> Callable[[], dict[str, Any]]:
        engine = self.engine
        if isinstance(params, GetOptimalContextParams):
            return lambda: engine.get_optimal_context(
                params.task,
                current_file=params.current_file,
                project_files=params.project_files,
                target_tokens=params.target_tokens,
                min_relevance_score=params.min_relevance_score,
            ).to_dict()
        if isinstance(params, ExpandContextParams):
            return lambda: engine.expand_context(params.session_id, params.additional_tokens)
        if isinstance(params, ApplyUserOverridesParams):
            return lambda: engine.apply_user_overrides(
                params.session_id, params.added, params.removed, params.kept
            )
        if isinstance(params, RecordSessionOutcomeParams):
            return lambda: engine.record_session_outcome(
                params.session_id, params.was_successful, params.files_actually_used
            )
        if isinstance(params, SearchCodebaseParams):
            return lambda: engine.search_codebase(params.query, params.limit)
        if isinstance(params, GetFileRelationshipsParams):
            return lambda: engine.get_file_relationships(
                params.file_path, params.relationship_type, params.limit
            )
        if isinstance(params, AnalyzeGitPatternsParams):
            return lambda: engine.analyze_git_patterns(params.commit_limit, params.limit)
        if isinstance(params, GetLearningInsightsParams):
            return lambda: engine.get_learning_insights(params.task_mode)
        raise ValueError(f"Unknown context tool: {name}")


__all__ = ["ContextTools"]
