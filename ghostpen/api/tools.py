"""Tool dispatcher for direct Anthropic API integration.

The set of model-callable tools is closed: every tool is a ToolName
variant with a registered ToolSpec. Anything else the model asks for is
answered with a structured unknown_tool result so the conversation can
recover.

Handlers take the validated pydantic input model and return a plain dict
with at least a "success" flag.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL_TYPE = "web_search_20250305"


class ToolName(StrEnum):
    READ_STYLE_PROFILE = "read_style_profile"
    UPDATE_STYLE_PROFILE = "update_style_profile"
    SAVE_TO_FILE = "save_to_file"
    READ_PAST_POSTS = "read_past_posts"
    TRACK_FEEDBACK = "track_feedback"


ToolHandler = Callable[[Any], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ToolSpec:
    """Declaration of one tool variant."""

    name: ToolName
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler
    label: str  # Shown to the human while the tool runs
    summary: str | None = None  # Short stand-in once the result has been read

    def descriptor(self) -> dict[str, Any]:
        """Anthropic API tool definition."""
        return {
            "name": self.name.value,
            "description": self.description,
            "input_schema": self.input_model.model_json_schema(),
        }


def _error(code: str, message: str) -> dict[str, Any]:
    return {"success": False, "error": code, "message": message}


class ToolDispatcher:
    """Registers tool specs and dispatches tool calls from the API."""

    def __init__(self, web_search_max_uses: int | None = None) -> None:
        self._specs: dict[ToolName, ToolSpec] = {}
        self._web_search_max_uses = web_search_max_uses

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            logger.warning("Tool %s registered twice, replacing", spec.name)
        self._specs[spec.name] = spec

    def resolve(self, name: str) -> ToolSpec | None:
        """Map a raw tool name to its registered spec, or None."""
        try:
            return self._specs.get(ToolName(name))
        except ValueError:
            return None

    async def dispatch(self, name: str, args: dict[str, Any]) -> dict[str, Any]:
        """Validate input and run the handler. Never raises."""
        spec = self.resolve(name)
        if spec is None:
            logger.warning("Model requested unknown tool %s", name)
            return _error("unknown_tool", f"Unknown tool: {name}")

        try:
            data = spec.input_model.model_validate(args or {})
        except ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(p) for p in first["loc"])
            return _error("invalid_input", f"Invalid input for {name}: {loc} {first['msg']}".strip())

        try:
            result = await spec.handler(data)
        except Exception as e:
            logger.exception("Tool dispatch error for %s", name)
            return _error("tool_error", f"Tool error: {e}")

        if not isinstance(result, dict) or "success" not in result:
            logger.warning("Tool %s returned malformed result %r", name, result)
            return _error("tool_error", f"Tool {name} returned no result")
        return result

    def tool_definitions(self) -> list[dict[str, Any]]:
        """All tool definitions in Anthropic API format, web search last."""
        tools = [spec.descriptor() for spec in self._specs.values()]
        if self._web_search_max_uses:
            tools.append({
                "type": WEB_SEARCH_TOOL_TYPE,
                "name": "web_search",
                "max_uses": self._web_search_max_uses,
            })
        return tools

    def summaries(self) -> dict[str, str]:
        """tool name -> fixed compressed payload, for tools that have one."""
        return {
            spec.name.value: json.dumps({"summary": spec.summary})
            for spec in self._specs.values()
            if spec.summary
        }

    def label(self, name: str) -> str:
        spec = self.resolve(name)
        return spec.label if spec else name
