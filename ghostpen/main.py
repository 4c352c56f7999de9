"""Ghostpen entry point.

Wires one session together:
  Settings -> ContextAssembler -> Client + Tools -> TurnEngine -> teardown

Profiles are loaded before anything else is created, so a bad profile
name fails fast with no session log. Once the session starts, teardown
(usage snapshot, log flush, client close) runs however the loop exits.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from ghostpen import __version__
from ghostpen.api.client import AnthropicClient, ErrorCategory, ModelApiError
from ghostpen.api.compaction import ContextWindowManager
from ghostpen.api.feedback_tools import FeedbackTracker, register_feedback_tools
from ghostpen.api.notion import NotionClient
from ghostpen.api.post_tools import register_post_tools
from ghostpen.api.profile_tools import register_profile_tools
from ghostpen.api.runner import ModelClient, SessionOutcome, TurnEngine
from ghostpen.api.tools import ToolDispatcher
from ghostpen.cognitive import ContextAssembler, IntentClassifier, PreparedContext, UsageTracker
from ghostpen.config import Settings
from ghostpen.console import ConsoleIO, HumanIO
from ghostpen.events import EventKind, SessionRecorder
from ghostpen.storage.posts import PostStore
from ghostpen.storage.profiles import (
    DEFAULT_PROFILE,
    InvalidProfile,
    ProfileError,
    ProfileNotFound,
    ProfileStore,
)

logger = logging.getLogger(__name__)

_CATEGORY_MESSAGES = {
    ErrorCategory.AUTH: "Authentication failed. Check ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN.",
    ErrorCategory.RATE_LIMIT: "Rate limited by the Anthropic API. Wait a minute and try again.",
    ErrorCategory.CONNECTIVITY: "Could not reach the Anthropic API. Check your network connection.",
    ErrorCategory.TIMEOUT: "The Anthropic API did not answer in time. Try again.",
}


def format_error(exc: Exception) -> str:
    """Human-readable message for errors that end the process."""
    if isinstance(exc, ProfileError):
        prefix = f"{exc.side.capitalize()} profile: " if exc.side else ""
        return f"{prefix}{exc}"
    if isinstance(exc, ModelApiError):
        return _CATEGORY_MESSAGES.get(exc.category, f"API error: {exc}")
    return f"Unexpected error: {exc}"


def build_dispatcher(settings: Settings) -> ToolDispatcher:
    """Registry with every model-callable tool."""
    dispatcher = ToolDispatcher(
        web_search_max_uses=settings.web_search_max_uses if settings.web_search_enabled else None,
    )
    register_profile_tools(dispatcher, ProfileStore(settings.profiles_dir))
    register_post_tools(dispatcher, PostStore(settings.output_dir))
    register_feedback_tools(
        dispatcher,
        FeedbackTracker(
            settings.tracker_path,
            threshold=settings.feedback_threshold,
            history_limit=settings.feedback_history_limit,
        ),
    )
    return dispatcher


async def create_components(
    settings: Settings,
    context: PreparedContext,
    user_input: str,
    io: HumanIO,
    client: ModelClient | None = None,
    notion: NotionClient | None = None,
) -> dict[str, Any]:
    """Initialize session components in dependency order.

    Clients passed in are used as-is and left open; clients created here
    are listed under "owned" for shutdown_components().
    """
    owned: list[Any] = []
    if client is None:
        anthropic = AnthropicClient(settings)
        await anthropic.start()
        owned.append(anthropic)
        client = anthropic

    if notion is None and context.notion_enabled:
        notion = NotionClient(
            settings.notion_token,
            settings.notion_database_id,
            timeout=settings.notion_timeout,
        )
        owned.append(notion)

    dispatcher = build_dispatcher(settings)
    usage = UsageTracker(settings.model)
    recorder = SessionRecorder(settings.logs_dir, user_input, context.profile_used)
    engine = TurnEngine(
        client=client,
        dispatcher=dispatcher,
        window=ContextWindowManager(
            max_pairs=settings.max_history_pairs,
            threshold=settings.compress_threshold_chars,
            summaries=dispatcher.summaries(),
        ),
        usage=usage,
        recorder=recorder,
        io=io,
        classifier=IntentClassifier(settings.accept_keywords, settings.exit_keywords),
        settings=settings,
        notion=notion,
    )
    return {
        "engine": engine,
        "usage": usage,
        "recorder": recorder,
        "owned": owned,
    }


async def shutdown_components(components: dict[str, Any], io: HumanIO) -> None:
    """Flush the session log, report cost, close owned clients."""
    usage: UsageTracker = components["usage"]
    recorder: SessionRecorder = components["recorder"]
    try:
        snapshot = usage.snapshot()
        path = recorder.flush(snapshot)
        io.info(
            f"Tokens: {snapshot.input_tokens} in / {snapshot.output_tokens} out / "
            f"{snapshot.cache_write_tokens} cache write / {snapshot.cache_read_tokens} cache read"
            f" -- ${snapshot.cost_usd:.4f}"
        )
        io.info(f"Session log: {path}")
    except OSError as e:
        logger.warning("Could not write session log: %s", e)
        io.warn(f"Could not write session log: {e}")
    finally:
        for closeable in reversed(components["owned"]):
            await closeable.close()


async def run_session(
    settings: Settings,
    user_input: str,
    io: HumanIO,
    profile: str | None = None,
    mix: tuple[str, str] | None = None,
    client: ModelClient | None = None,
    notion: NotionClient | None = None,
) -> SessionOutcome:
    """Run one session. Raises ProfileError before any model call."""
    store = ProfileStore(settings.profiles_dir)
    context = ContextAssembler(store, settings).build(profile=profile, mix=mix)
    if mix:
        io.info(f"Mix mode: {mix[0]} + {mix[1]}")
    elif context.profile_used != DEFAULT_PROFILE:
        io.info(f"Profile: {context.profile_used}")

    components = await create_components(settings, context, user_input, io, client, notion)
    recorder: SessionRecorder = components["recorder"]
    try:
        return await components["engine"].run(context, user_input)
    except BaseException as e:
        recorder.record(EventKind.ERROR, type=type(e).__name__, message=str(e))
        raise
    finally:
        await shutdown_components(components, io)


# ---------------------------------------------------------------------------
# profile subcommand
# ---------------------------------------------------------------------------


def profile_command(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    store = ProfileStore(settings.profiles_dir)

    if args.action == "list":
        names = store.list_names()
        if not names:
            console.print("[dim]No profiles yet.[/dim]")
            return 0
        for name in names:
            try:
                loaded = store.load(name)
            except InvalidProfile:
                console.print(f"  {name} [red](invalid)[/red]")
                continue
            console.print(
                f"  [bold]{name}[/bold] [dim]{loaded.profile_type}, v{loaded.version}, "
                f"{', '.join(loaded.platforms)}[/dim]"
            )
        return 0

    if args.action == "show":
        try:
            data = store.read_raw(args.name)
        except ProfileError as e:
            console.print(f"[red]{escape(format_error(e))}[/red]")
            return 1
        console.print_json(json.dumps(data, ensure_ascii=False))
        return 0

    # delete
    if args.name == DEFAULT_PROFILE and not args.force:
        console.print("[red]Refusing to delete the default profile without --force.[/red]")
        return 1
    try:
        store.delete(args.name)
    except ProfileNotFound as e:
        console.print(f"[red]{escape(format_error(e))}[/red]")
        return 1
    console.print(f"Deleted profile {args.name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghostpen",
        description="Write posts in your own voice, revised with you until they're right.",
        epilog="Manage profiles with: ghostpen profile list|show NAME|delete NAME",
    )
    parser.add_argument("topic", nargs="*", help="What to write, e.g. \"write a post about burnout\"")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-p", "--profile", help="Style profile to use (default: default)")
    group.add_argument("--mix", nargs=2, metavar=("BASE", "REF"), help="Blend two profiles")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_profile_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ghostpen profile", description="Manage style profiles.")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    actions = parser.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="List profiles")
    show = actions.add_parser("show", help="Print a profile")
    show.add_argument("name")
    delete = actions.add_parser("delete", help="Delete a profile")
    delete.add_argument("name")
    delete.add_argument("--force", action="store_true", help="Allow deleting the default profile")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point -- parse arguments and settings, run a session or a profile command."""
    argv = list(sys.argv[1:] if argv is None else argv)
    is_profile = bool(argv) and argv[0] == "profile"
    parser = build_profile_parser() if is_profile else build_parser()
    args = parser.parse_args(argv[1:] if is_profile else argv)

    console = Console(highlight=False)
    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        return 1

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.debug else getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if is_profile:
        return profile_command(args, settings, console)

    topic = " ".join(args.topic).strip()
    if not topic:
        parser.print_help()
        return 0

    logger.info("Starting ghostpen %s (model %s)", __version__, settings.model)
    io = ConsoleIO(console, eof_answer=settings.exit_keywords[0])
    try:
        asyncio.run(run_session(
            settings,
            topic,
            io,
            profile=args.profile,
            mix=tuple(args.mix) if args.mix else None,
        ))
    except (ProfileError, ModelApiError) as e:
        io.error(format_error(e))
        return 1
    except KeyboardInterrupt:
        console.print()
        return 130
    except Exception as e:
        logger.exception("Session failed")
        io.error(format_error(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
