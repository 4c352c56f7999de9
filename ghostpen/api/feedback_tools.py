"""Feedback tracker and the track_feedback tool.

Counts revision feedback per category in a JSON file. Once a category
reaches the threshold the tool result carries a suggestion the model can
turn into a (confirmed) profile update.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ghostpen.api.schemas import FEEDBACK_CATEGORIES, TrackFeedbackInput
from ghostpen.api.tools import ToolDispatcher, ToolName, ToolSpec

logger = logging.getLogger(__name__)

SUGGESTIONS: dict[str, str] = {
    "too_formal": "The user said {count} times the text is too formal. Suggest updating voice.formality in the style profile.",
    "too_casual": "The user said {count} times the text is too casual. Suggest updating voice.formality in the style profile.",
    "too_long": "The user asked {count} times for shorter text. Suggest lowering platforms.*.max_length in the style profile.",
    "too_short": "The user asked {count} times for longer text. Suggest raising platforms.*.max_length in the style profile.",
    "hook_weak": "The user said {count} times the hook is weak. Suggest updating voice.hooks in the style profile.",
    "hook_strong": "The user said {count} times the hook is too aggressive. Suggest updating voice.hooks in the style profile.",
    "tone_off": "The user said {count} times the tone is off. Suggest updating voice.tone in the style profile.",
    "structure_wrong": "The user complained {count} times about structure. Suggest updating platforms.*.structure in the style profile.",
    "vocabulary_wrong": "The user complained {count} times about vocabulary. Suggest updating voice.avoid or voice.signature_phrases in the style profile.",
    "cta_missing": "The user asked {count} times to add a CTA. Suggest updating voice.closings in the style profile.",
    "cta_too_pushy": "The user said {count} times the CTA is too pushy. Suggest updating voice.closings in the style profile.",
    "other": "The user gave similar feedback {count} times. Check whether the style profile needs an update.",
}


class FeedbackTracker:
    """Per-category feedback counts persisted as JSON."""

    def __init__(self, path: Path, threshold: int = 3, history_limit: int = 10) -> None:
        self._path = Path(path)
        self._threshold = threshold
        self._history_limit = history_limit

    def _read(self) -> dict[str, Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("Feedback tracker %s is corrupt, starting fresh", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def counts(self) -> dict[str, int]:
        return {k: v.get("count", 0) for k, v in self._read().items() if isinstance(v, dict)}

    def track(self, category: str, raw_feedback: str) -> dict[str, Any]:
        if category not in FEEDBACK_CATEGORIES:
            return {
                "success": False,
                "error": "invalid_category",
                "message": f"Invalid category '{category}'. Valid: {', '.join(FEEDBACK_CATEGORIES)}",
            }

        data = self._read()
        now = datetime.now(UTC)
        entry = data.get(category)
        if not isinstance(entry, dict):
            entry = {"count": 0, "last_seen": "", "history": []}
            data[category] = entry

        entry["count"] = int(entry.get("count", 0)) + 1
        entry["last_seen"] = now.isoformat()
        history = list(entry.get("history") or [])
        history.append({"date": now.date().isoformat(), "raw": raw_feedback})
        entry["history"] = history[-self._history_limit:]
        self._write(data)

        count = entry["count"]
        result: dict[str, Any] = {
            "success": True,
            "category": category,
            "count": count,
            "threshold_reached": count >= self._threshold,
        }
        if count >= self._threshold:
            result["suggestion"] = SUGGESTIONS[category].format(count=count)
        logger.debug("Feedback %s now at %d", category, count)
        return result


def register_feedback_tools(dispatcher: ToolDispatcher, tracker: FeedbackTracker) -> None:
    async def track_feedback(data: TrackFeedbackInput) -> dict[str, Any]:
        return await asyncio.to_thread(tracker.track, data.category, data.raw_feedback)

    dispatcher.register(ToolSpec(
        name=ToolName.TRACK_FEEDBACK,
        description=(
            "Record the user's revision feedback under a category. When a "
            "category reaches the threshold, the result suggests a style "
            "profile update to offer the user."
        ),
        input_model=TrackFeedbackInput,
        handler=track_feedback,
        label="Tracking feedback",
        summary="feedback tracked",
    ))
