"""Conversation history and context window management.

History is the single owned message sequence for a session. Two passes
keep it bounded, both run by ContextWindowManager after every exchange:
  Pass 1: Compression of tool results the model has already read
  Pass 2: Trimming of old exchanges behind a truncation placeholder

This module is independent of the turn engine to avoid circular imports
and keep runner.py focused on orchestration.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from ghostpen.api.models import Message, TextBlock

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "[...earlier history truncated...]"


class HistoryError(ValueError):
    """An append would break the tool_use / tool_result pairing."""


@dataclass(frozen=True)
class HistorySnapshot:
    """Read-only view of the history handed to observers."""

    version: int
    messages: tuple[dict[str, Any], ...]

    def __len__(self) -> int:
        return len(self.messages)


class History:
    """Ordered message history owned by the turn engine.

    The first message is the original request and is never removed. Tool
    use and tool result messages can only enter together through
    append_exchange(), which also records tool_use_id -> tool name for
    compression.
    """

    def __init__(self, first: Message) -> None:
        if first.role != "user":
            raise HistoryError("History must start with a user message")
        self._messages: list[Message] = [first]
        self._tool_names: dict[str, str] = {}
        self._consumed: set[str] = set()
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    @property
    def first(self) -> Message:
        return self._messages[0]

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def tool_name(self, tool_use_id: str) -> str | None:
        return self._tool_names.get(tool_use_id)

    def append(self, message: Message) -> None:
        """Append a plain message (draft text or human feedback)."""
        if message.tool_uses or message.tool_results:
            raise HistoryError("Tool blocks must be appended with append_exchange()")
        self._messages.append(message)
        self._version += 1

    def append_exchange(self, assistant: Message, results: Message) -> None:
        """Append an assistant tool request and its results atomically."""
        if assistant.role != "assistant" or results.role != "user":
            raise HistoryError("Exchange must be an assistant message followed by a user message")
        use_ids = [b.id for b in assistant.tool_uses]
        result_ids = [b.tool_use_id for b in results.tool_results]
        if not use_ids:
            raise HistoryError("Exchange has no tool_use blocks")
        if use_ids != result_ids:
            raise HistoryError(
                f"tool_result ids {result_ids} do not match tool_use ids {use_ids}"
            )

        for block in assistant.tool_uses:
            self._tool_names[block.id] = block.name
        self._messages.extend((assistant, results))
        self._version += 1

    def mark_sent(self) -> None:
        """Record that every tool result currently present was read by the model."""
        for message in self._messages:
            for block in message.tool_results:
                self._consumed.add(block.tool_use_id)

    def compress(self, threshold: int, summaries: dict[str, str]) -> int:
        """Replace large, already-read tool results with their fixed summary.

        Returns the number of results compressed.
        """
        compressed = 0
        for message in self._messages:
            for block in message.tool_results:
                if block.tool_use_id not in self._consumed:
                    continue
                if len(block.content) <= threshold:
                    continue
                summary = summaries.get(self._tool_names.get(block.tool_use_id, ""))
                if summary is None or block.content == summary:
                    continue
                block.content = summary
                compressed += 1
        if compressed:
            self._version += 1
        return compressed

    def trim(self, max_pairs: int) -> int:
        """Keep the first message plus the newest exchanges within 2*max_pairs.

        The cut only lands on a human user message, so a tool_use and its
        tool_result are always kept or dropped together. Returns the number
        of messages dropped.
        """
        first = self._messages[0]
        body = [m for m in self._messages[1:] if not m.synthetic]
        cap = 2 * max_pairs
        if len(body) <= cap:
            return 0

        cut = len(body) - cap
        while cut < len(body) and not body[cut].starts_exchange:
            cut += 1
        if cut >= len(body):
            logger.debug("No exchange boundary in last %d messages, not trimming", cap)
            return 0

        dropped, kept = body[:cut], body[cut:]
        for message in dropped:
            for block in message.tool_uses:
                self._tool_names.pop(block.id, None)
                self._consumed.discard(block.id)

        placeholder = Message(role="assistant", content=[TextBlock(TRUNCATION_MARKER)], synthetic=True)
        self._messages = [first, placeholder, *kept]
        self._version += 1
        return len(dropped)

    def to_api(self) -> list[dict[str, Any]]:
        return [m.to_api() for m in self._messages]

    def snapshot(self) -> HistorySnapshot:
        return HistorySnapshot(version=self._version, messages=tuple(copy.deepcopy(self.to_api())))


class ContextWindowManager:
    """Runs compression then trimming over a History."""

    def __init__(self, max_pairs: int, threshold: int, summaries: dict[str, str]) -> None:
        self._max_pairs = max_pairs
        self._threshold = threshold
        self._summaries = summaries

    def apply(self, history: History) -> tuple[int, int]:
        """Returns (results compressed, messages dropped)."""
        compressed = history.compress(self._threshold, self._summaries)
        dropped = history.trim(self._max_pairs)
        if compressed or dropped:
            logger.debug(
                "Context window: compressed %d tool results, dropped %d messages (%d left)",
                compressed,
                dropped,
                len(history),
            )
        return compressed, dropped
