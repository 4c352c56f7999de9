"""Pydantic DTOs for session preparation and the feedback loop.

These models define the data contract between the cognitive side
(context assembly, intent, usage) and the turn engine.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserIntent(StrEnum):
    ACCEPT = "accept"
    EXIT = "exit"
    REVISE = "revise"


class SystemSegment(BaseModel):
    """One text segment of the system context."""

    model_config = ConfigDict(frozen=True)

    label: str  # rules, profile, base_profile, reference_profile, mix, metadata
    text: str
    cacheable: bool = False

    def to_api(self) -> dict[str, Any]:
        block: dict[str, Any] = {"type": "text", "text": self.text}
        if self.cacheable:
            block["cache_control"] = {"type": "ephemeral"}
        return block


class SystemContext(BaseModel):
    """Ordered, immutable system context built once per session."""

    model_config = ConfigDict(frozen=True)

    segments: tuple[SystemSegment, ...]

    def to_api(self) -> list[dict[str, Any]]:
        return [s.to_api() for s in self.segments]

    @property
    def labels(self) -> list[str]:
        return [s.label for s in self.segments]


class PreparedContext(BaseModel):
    """Everything the turn engine needs before its first model call."""

    model_config = ConfigDict(frozen=True)

    system: SystemContext
    profile_used: str  # "<name>" or "mix:<base>+<reference>"
    default_platform: str
    notion_enabled: bool = False


class SaveRecord(BaseModel):
    """Derived from the accepted draft and the original request."""

    content: str
    title: str
    platform: str
    topic: str
    profile_used: str = "default"


class UsageSnapshot(BaseModel):
    """Accumulated token counters and derived cost."""

    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    cache_write_tokens: int = Field(0, ge=0)
    cache_read_tokens: int = Field(0, ge=0)
    api_calls: int = Field(0, ge=0)
    model: str = ""
    cost_usd: float = Field(0.0, ge=0.0)
