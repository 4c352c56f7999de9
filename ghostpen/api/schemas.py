"""Pydantic input models for the model-callable tools.

The JSON schema sent to the API is generated from these models, and the
same models validate the input the model sends back.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

Platform = Literal["linkedin", "instagram", "x"]

FEEDBACK_CATEGORIES = (
    "too_formal",
    "too_casual",
    "too_long",
    "too_short",
    "hook_weak",
    "hook_strong",
    "tone_off",
    "structure_wrong",
    "vocabulary_wrong",
    "cta_missing",
    "cta_too_pushy",
    "other",
)


class ReadStyleProfileInput(BaseModel):
    profile_name: str = Field(
        "default",
        description="Profile name (file name without .json). Defaults to 'default'.",
    )


class UpdateStyleProfileInput(BaseModel):
    profile_name: str = Field(description="Profile to update (personal profiles only)")
    changes: dict[str, Any] = Field(
        description=(
            "Changes as dot-path keys, e.g. {\"voice.tone\": \"warmer\", "
            "\"platforms.linkedin.max_length\": 1500}"
        ),
    )
    reason: str = Field(description="Why the profile is being updated (goes to the changelog)")


class SaveToFileInput(BaseModel):
    content: str = Field(description="Final post text, markdown")
    platform: Platform = Field(description="Target platform")
    topic: str = Field(description="Short topic of the post")
    profile_used: str = Field("default", description="Profile name echoed from the session metadata")


class ReadPastPostsInput(BaseModel):
    keywords: list[str] = Field(min_length=1, description="Keywords to look for in past posts")
    platform: Platform | None = Field(None, description="Only posts for this platform")
    limit: int = Field(5, ge=1, le=20, description="Maximum number of posts to return")


class TrackFeedbackInput(BaseModel):
    # Plain str so an unknown category reaches the handler as invalid_category
    category: str = Field(
        description="Feedback category",
        json_schema_extra={"enum": list(FEEDBACK_CATEGORIES)},
    )
    raw_feedback: str = Field(description="The user's feedback, verbatim")
