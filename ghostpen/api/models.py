"""Shared data models for the API layer.

Blocks mirror the Anthropic Messages content-block shapes. Kept separate
from runner.py to avoid circular imports with compaction.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant"]


@dataclass
class TextBlock:
    text: str

    def to_api(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass
class ToolUseBlock:
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    def to_api(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


@dataclass
class ToolResultBlock:
    tool_use_id: str
    content: str
    is_error: bool = False

    def to_api(self) -> dict[str, Any]:
        block: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": self.content,
        }
        if self.is_error:
            block["is_error"] = True
        return block


@dataclass
class ServerBlock:
    """Opaque server-side block (server_tool_use, web_search_tool_result, ...).

    Passed back to the API verbatim, never interpreted.
    """

    data: dict[str, Any]

    @property
    def type(self) -> str:
        return self.data.get("type", "")

    def to_api(self) -> dict[str, Any]:
        return self.data


Block = TextBlock | ToolUseBlock | ToolResultBlock | ServerBlock


def block_from_api(data: dict[str, Any]) -> Block:
    """Convert a raw response content block into a Block."""
    block_type = data.get("type")
    if block_type == "text":
        return TextBlock(text=data.get("text", ""))
    if block_type == "tool_use":
        return ToolUseBlock(id=data["id"], name=data["name"], input=data.get("input") or {})
    return ServerBlock(data=data)


@dataclass
class Message:
    """A single message in a conversation."""

    role: Role
    content: list[Block]
    synthetic: bool = False  # Placeholder inserted by trimming

    @classmethod
    def user_text(cls, text: str) -> Message:
        return cls(role="user", content=[TextBlock(text)])

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.content if isinstance(b, ToolResultBlock)]

    @property
    def starts_exchange(self) -> bool:
        """A human-authored user turn: the only safe place to cut history."""
        return self.role == "user" and not self.synthetic and not self.tool_results

    def text(self) -> str:
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))

    def to_api(self) -> dict[str, Any]:
        return {"role": self.role, "content": [b.to_api() for b in self.content]}


@dataclass
class ApiResponse:
    """Parsed response from Anthropic Messages API."""

    content: list[dict[str, Any]]  # Raw content blocks from API
    stop_reason: str  # end_turn, max_tokens, tool_use, stop_sequence, pause_turn
    usage: dict[str, int] | None = None
    model: str | None = None

    @property
    def blocks(self) -> list[Block]:
        return [block_from_api(b) for b in self.content]

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.blocks if isinstance(b, ToolUseBlock)]

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == "tool_use" and bool(self.tool_uses)

    def text(self) -> str:
        """Concatenate text blocks; server-side blocks are ignored."""
        return "\n".join(b["text"] for b in self.content if b.get("type") == "text")
