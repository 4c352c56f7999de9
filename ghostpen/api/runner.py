"""Turn engine -- drives one interactive writing session.

State machine:
  THINKING -> TOOL_DISPATCH -> THINKING ...   model asks for tools
  THINKING -> PRESENT                         draft ready, ask the human
  PRESENT  -> DONE                            exit keyword
  PRESENT  -> SAVE -> DONE                    accept keyword
  PRESENT  -> REVISE -> THINKING              anything else

Exactly one model call, tool handler or human prompt is outstanding at a
time. Tool calls from one response run sequentially in block order, and
their results are appended together before the next model call. Model
and transport errors are not caught here.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

import httpx

from ghostpen.api.compaction import ContextWindowManager, History
from ghostpen.api.models import ApiResponse, Message, ServerBlock, TextBlock, ToolResultBlock, ToolUseBlock
from ghostpen.api.notion import NotionClient, NotionError
from ghostpen.api.tools import ToolDispatcher, ToolName
from ghostpen.cognitive.intent import IntentClassifier, is_affirmative
from ghostpen.cognitive.schemas import PreparedContext, SaveRecord, SystemContext, UserIntent
from ghostpen.cognitive.usage_tracker import UsageTracker
from ghostpen.config import Settings
from ghostpen.console import HumanIO
from ghostpen.events import EventKind, SessionRecorder
from ghostpen.utils import detect_platform, extract_topic, first_line, split_preamble

logger = logging.getLogger(__name__)

FEEDBACK_PROMPT = "What to change? (ok to save, exit to quit)"
NOTION_PROMPT = "Also save to Notion? (y/n)"
_EMPTY_DRAFT = "(no text in response)"
EMPTY_DRAFT_WARNING = "Nothing to save: the draft is empty. Ask for changes or exit."


class TurnState(StrEnum):
    THINKING = "thinking"
    TOOL_DISPATCH = "tool_dispatch"
    PRESENT = "present"
    REVISE = "revise"
    SAVE = "save"
    DONE = "done"


class ModelClient(Protocol):
    async def create(
        self,
        system: SystemContext,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
    ) -> ApiResponse: ...


@dataclass
class SessionOutcome:
    """How a session ended."""

    intent: UserIntent
    revisions: int = 0
    record: SaveRecord | None = None
    file_path: str | None = None
    notion_url: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def saved(self) -> bool:
        return self.file_path is not None


def derive_save_record(
    draft: str,
    user_input: str,
    default_platform: str,
    profile_used: str = "default",
) -> SaveRecord:
    """Build the save payload from the accepted draft, without a model call."""
    preamble, body = split_preamble(draft)
    content = body.strip() or draft.strip()
    topic = extract_topic(user_input)
    platform = (
        detect_platform(user_input)
        or (detect_platform(preamble) if preamble else None)
        or default_platform
    )
    title = first_line(content)
    return SaveRecord(
        content=content,
        title=title,
        platform=platform,
        topic=topic,
        profile_used=profile_used,
    )


class TurnEngine:
    """Runs the feedback loop for one session.

    Owns the History exclusively. Usage and the recorder only observe.
    """

    def __init__(
        self,
        client: ModelClient,
        dispatcher: ToolDispatcher,
        window: ContextWindowManager,
        usage: UsageTracker,
        recorder: SessionRecorder,
        io: HumanIO,
        classifier: IntentClassifier,
        settings: Settings,
        notion: NotionClient | None = None,
    ) -> None:
        self._client = client
        self._dispatcher = dispatcher
        self._window = window
        self._usage = usage
        self._recorder = recorder
        self._io = io
        self._classifier = classifier
        self._settings = settings
        self._notion = notion
        self._history: History | None = None

    @property
    def history(self) -> History | None:
        return self._history

    async def run(self, context: PreparedContext, user_input: str) -> SessionOutcome:
        history = History(Message.user_text(user_input))
        self._history = history

        state = TurnState.THINKING
        response: ApiResponse | None = None
        draft = ""
        feedback = ""
        rounds = 0
        revisions = 0
        outcome: SessionOutcome | None = None

        while state is not TurnState.DONE:
            logger.debug("State %s (round %d, %d messages)", state, rounds, len(history))

            if state is TurnState.THINKING:
                response = await self._think(context.system, history, rounds)
                if response.wants_tools and rounds < self._settings.max_tool_rounds:
                    state = TurnState.TOOL_DISPATCH
                else:
                    state = TurnState.PRESENT

            elif state is TurnState.TOOL_DISPATCH:
                await self._dispatch_tools(history, response)
                rounds += 1
                state = TurnState.THINKING

            elif state is TurnState.PRESENT:
                draft = self._present(response)
                intent, feedback = await self._decide(draft)

                if intent is UserIntent.EXIT:
                    outcome = SessionOutcome(intent=intent, revisions=revisions)
                    state = TurnState.DONE
                elif intent is UserIntent.ACCEPT:
                    state = TurnState.SAVE
                else:
                    state = TurnState.REVISE

            elif state is TurnState.REVISE:
                self._absorb_feedback(history, response, feedback)
                revisions += 1
                rounds = 0
                state = TurnState.THINKING

            elif state is TurnState.SAVE:
                outcome = await self._save(context, user_input, draft)
                outcome.revisions = revisions
                state = TurnState.DONE

        self._recorder.observe_turn(history.snapshot(), TurnState.DONE.value)
        assert outcome is not None
        return outcome

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _think(self, system: SystemContext, history: History, rounds: int) -> ApiResponse:
        tools = self._dispatcher.tool_definitions() or None
        tool_choice = None
        if tools and rounds >= self._settings.max_tool_rounds:
            # Tool blocks are already in history, so the tools stay declared
            logger.warning("Tool loop reached max_tool_rounds=%d", self._settings.max_tool_rounds)
            tool_choice = {"type": "none"}

        start = time.monotonic()
        response = await self._client.create(
            system=system,
            messages=history.to_api(),
            tools=tools,
            tool_choice=tool_choice,
        )
        duration_ms = int((time.monotonic() - start) * 1000)
        history.mark_sent()

        self._usage.record(response.usage)
        self._recorder.record(
            EventKind.API_CALL,
            stop_reason=response.stop_reason,
            usage=response.usage or {},
            duration_ms=duration_ms,
            messages=len(history),
        )
        self._log_server_blocks(response)
        logger.debug("Model call: stop_reason=%s in %dms", response.stop_reason, duration_ms)
        return response

    async def _dispatch_tools(self, history: History, response: ApiResponse) -> None:
        assistant = Message(role="assistant", content=response.blocks)
        results: list[ToolResultBlock] = []

        for block in assistant.tool_uses:
            results.append(await self._dispatch_one(block))

        history.append_exchange(assistant, Message(role="user", content=list(results)))
        self._window.apply(history)
        self._recorder.observe_turn(history.snapshot(), TurnState.TOOL_DISPATCH.value)

    async def _dispatch_one(self, block: ToolUseBlock) -> ToolResultBlock:
        label = self._dispatcher.label(block.name)
        self._io.info(f"{label}...")
        self._recorder.record(EventKind.TOOL_CALL, id=block.id, name=block.name, input=block.input)

        start = time.monotonic()
        result = await self._dispatcher.dispatch(block.name, block.input)
        duration_ms = int((time.monotonic() - start) * 1000)

        success = bool(result.get("success"))
        if not success:
            self._io.warn(f"{label}: {result.get('message') or result.get('error', 'failed')}")
        self._recorder.record(
            EventKind.TOOL_RESULT,
            id=block.id,
            name=block.name,
            success=success,
            error=result.get("error"),
            duration_ms=duration_ms,
        )
        logger.debug("Tool %s done in %dms (success=%s)", block.name, duration_ms, success)
        return ToolResultBlock(
            tool_use_id=block.id,
            content=json.dumps(result, ensure_ascii=False),
            is_error=not success,
        )

    def _present(self, response: ApiResponse) -> str:
        draft = response.text()
        self._recorder.record(EventKind.ASSISTANT_TEXT, text=draft, stop_reason=response.stop_reason)
        if not draft.strip():
            self._io.warn("The model returned no text.")
            return draft
        preamble, body = split_preamble(draft)
        self._io.draft(body.strip(), preamble)
        return draft

    async def _decide(self, draft: str) -> tuple[UserIntent, str]:
        """Ask until the feedback is usable. An empty draft cannot be accepted."""
        while True:
            feedback = await self._ask_feedback()
            intent = self._classifier.classify(feedback)
            self._recorder.record(EventKind.USER_FEEDBACK, text=feedback, intent=intent.value)
            logger.info("Feedback classified as %s", intent)
            if intent is UserIntent.ACCEPT and not draft.strip():
                self._io.warn(EMPTY_DRAFT_WARNING)
                continue
            return intent, feedback

    async def _ask_feedback(self) -> str:
        while True:
            answer = await self._io.ask(FEEDBACK_PROMPT)
            if answer:
                return answer
            self._io.info("Type what to change, or a keyword to save or quit.")

    def _absorb_feedback(self, history: History, response: ApiResponse, feedback: str) -> None:
        content = [b for b in response.blocks if not isinstance(b, ToolUseBlock)]
        if not any(isinstance(b, TextBlock) and b.text.strip() for b in content):
            content.append(TextBlock(_EMPTY_DRAFT))
        history.append(Message(role="assistant", content=content))
        history.append(Message.user_text(feedback))
        self._window.apply(history)
        self._recorder.observe_turn(history.snapshot(), TurnState.REVISE.value)

    async def _save(self, context: PreparedContext, user_input: str, draft: str) -> SessionOutcome:
        record = derive_save_record(draft, user_input, context.default_platform, context.profile_used)
        outcome = SessionOutcome(intent=UserIntent.ACCEPT, record=record)

        result = await self._dispatcher.dispatch(
            ToolName.SAVE_TO_FILE,
            {
                "content": record.content,
                "platform": record.platform,
                "topic": record.topic,
                "profile_used": record.profile_used,
            },
        )
        if result.get("success"):
            outcome.file_path = result["file_path"]
            self._io.info(f"Saved: {outcome.file_path}")
        else:
            message = f"Local save failed: {result.get('message', 'unknown error')}"
            outcome.warnings.append(message)
            self._io.warn(message)
        self._recorder.record(
            EventKind.SAVE,
            target="file",
            success=bool(result.get("success")),
            file_path=outcome.file_path,
            platform=record.platform,
            topic=record.topic,
        )

        if context.notion_enabled and self._notion is not None:
            answer = await self._io.ask(NOTION_PROMPT)
            if is_affirmative(answer):
                await self._mirror_to_notion(record, outcome)
        return outcome

    async def _mirror_to_notion(self, record: SaveRecord, outcome: SessionOutcome) -> None:
        try:
            url = await self._notion.create_page(
                content=record.content,
                title=record.title or record.topic,
                platform=record.platform,
                topic=record.topic,
                profile_used=record.profile_used,
            )
        except (NotionError, httpx.HTTPError) as e:
            logger.warning("Notion mirror failed: %s", e)
            self._notion_failed(outcome, str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error mirroring to Notion")
            self._notion_failed(outcome, f"{type(e).__name__}: {e}")
            return

        outcome.notion_url = url
        self._io.info(f"Saved to Notion: {url}")
        self._recorder.record(EventKind.SAVE, target="notion", success=True, url=url)

    def _notion_failed(self, outcome: SessionOutcome, error: str) -> None:
        message = f"Notion save failed ({error}); the local file is kept."
        outcome.warnings.append(message)
        self._io.warn(message)
        self._recorder.record(EventKind.SAVE, target="notion", success=False, error=error)
        self._recorder.record(EventKind.WARNING, message=message)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _log_server_blocks(self, response: ApiResponse) -> None:
        for block in response.blocks:
            if not isinstance(block, ServerBlock):
                continue
            if block.type == "server_tool_use":
                query = (block.data.get("input") or {}).get("query", "")
                self._recorder.record(EventKind.SEARCH, query=query)
                self._io.info(f"Searching the web: {query}")
            elif block.type == "web_search_tool_result":
                content = block.data.get("content")
                count = len(content) if isinstance(content, list) else 0
                self._recorder.record(EventKind.SEARCH, results=count)
            else:
                logger.debug("Ignoring server block %s", block.type)
