"""Pydantic schemas for stored style profiles and generated posts.

Profiles are JSON documents under data/profiles/<name>.json. Unknown keys
are preserved so hand-edited profiles round-trip without loss.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ghostpen.utils import PLATFORMS


class Voice(BaseModel):
    model_config = ConfigDict(extra="allow")

    tone: str = ""
    formality: str = ""
    personality: str = ""
    sentence_style: str = ""
    paragraph_style: str = ""
    hooks: list[str] = Field(min_length=1)
    closings: list[str] = Field(default_factory=list)
    signature_phrases: list[str] = Field(default_factory=list)
    avoid: list[str] = Field(min_length=1)
    emoji_usage: str = ""


class PlatformRules(BaseModel):
    model_config = ConfigDict(extra="allow")

    max_length: int | None = Field(default=None, gt=0)
    structure: str = ""
    tone_override: str | None = None
    formatting: str = ""
    hashtags: str | None = None
    notes: str | None = None


class Example(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    platform: str = ""
    text: str
    why_good: str = ""
    added_at: str = ""


class ChangelogEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    version: int
    date: str
    action: Literal["created", "updated"]
    description: str
    fields_changed: list[str] | None = None


class StyleProfile(BaseModel):
    """A personal or reference style profile."""

    model_config = ConfigDict(extra="allow")

    profile_name: str
    profile_type: Literal["personal", "reference"]
    source: str = ""
    version: int = Field(ge=1)
    created_at: str = ""
    updated_at: str = ""
    language: str
    voice: Voice
    platforms: dict[str, PlatformRules]
    examples: list[Example] = Field(min_length=1)
    changelog: list[ChangelogEntry] = Field(default_factory=list)

    @field_validator("platforms")
    @classmethod
    def _platforms_not_empty(cls, v: dict[str, PlatformRules]) -> dict[str, PlatformRules]:
        if not v:
            raise ValueError("platforms must define at least one platform")
        return v

    @property
    def default_platform(self) -> str | None:
        """First platform the profile defines that posts can be saved for."""
        return next((p.casefold() for p in self.platforms if p.casefold() in PLATFORMS), None)


class PostMeta(BaseModel):
    """Front matter of a saved post."""

    model_config = ConfigDict(extra="allow")

    platform: str
    topic: str
    created: str = ""
    profile_used: str = "default"
    title: str | None = None
