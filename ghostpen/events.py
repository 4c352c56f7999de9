"""Session Recorder -- append-only event log for one session.

Events are collected in memory while the session runs and written as a
single JSON document at teardown. The log is lost if the process dies
before teardown.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from ghostpen.api.compaction import HistorySnapshot
from ghostpen.cognitive.schemas import UsageSnapshot
from ghostpen.storage.posts import unique_path

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    API_CALL = "api_call"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SEARCH = "search"
    ASSISTANT_TEXT = "assistant_text"
    USER_FEEDBACK = "user_feedback"
    TURN = "turn"
    SAVE = "save"
    WARNING = "warning"
    ERROR = "error"


class SessionEvent(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    kind: EventKind
    payload: dict[str, Any] = Field(default_factory=dict)


class SessionLog(BaseModel):
    id: str
    started_at: datetime
    input: str
    profile_used: str
    events: list[SessionEvent] = Field(default_factory=list)
    usage: UsageSnapshot | None = None
    finished_at: datetime | None = None


class SessionRecorder:
    """Single-writer event log, flushed exactly once."""

    def __init__(self, logs_dir: Path, user_input: str, profile_used: str) -> None:
        started = datetime.now(UTC)
        self._dir = Path(logs_dir)
        self._log = SessionLog(
            id=started.strftime("%Y-%m-%d-%H%M%S"),
            started_at=started,
            input=user_input,
            profile_used=profile_used,
        )
        self._path: Path | None = None

    @property
    def session_id(self) -> str:
        return self._log.id

    @property
    def events(self) -> list[SessionEvent]:
        return list(self._log.events)

    @property
    def flushed(self) -> bool:
        return self._path is not None

    def record(self, kind: EventKind, **payload: Any) -> None:
        if self._path is not None:
            logger.warning("Event %s recorded after flush, dropped", kind)
            return
        self._log.events.append(SessionEvent(kind=kind, payload=payload))

    def observe_turn(self, snapshot: HistorySnapshot, state: str) -> None:
        """Record a read-only view of the history after a turn."""
        self.record(EventKind.TURN, state=state, messages=len(snapshot), version=snapshot.version)

    def flush(self, usage: UsageSnapshot | None = None) -> Path:
        """Write the log. A second call returns the first file untouched."""
        if self._path is not None:
            logger.debug("Session log already flushed to %s", self._path)
            return self._path

        self._log.usage = usage
        self._log.finished_at = datetime.now(UTC)
        self._dir.mkdir(parents=True, exist_ok=True)
        path = unique_path(self._dir, self._log.id, ".json")
        path.write_text(self._log.model_dump_json(indent=2), encoding="utf-8")
        self._path = path
        logger.info("Session log written to %s (%d events)", path, len(self._log.events))
        return path
