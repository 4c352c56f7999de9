"""Tests for session wiring, teardown and the CLI entry point."""

import io
import json
from unittest.mock import AsyncMock

import pytest
from rich.console import Console

from ghostpen.api.client import ErrorCategory, ModelApiError
from ghostpen.api.models import ApiResponse
from ghostpen.main import build_profile_parser, format_error, main, profile_command, run_session
from ghostpen.storage.profiles import InvalidProfile, ProfileNotFound

DRAFT_RESPONSE = ApiResponse(
    content=[{"type": "text", "text": "Generated LinkedIn post.\n\nShort and honest."}],
    stop_reason="end_turn",
    usage={"input_tokens": 1000, "output_tokens": 200},
)


def _client(*responses) -> AsyncMock:
    client = AsyncMock()
    client.create = AsyncMock(side_effect=list(responses))
    return client


def _session_logs(settings) -> list[dict]:
    return [json.loads(p.read_text(encoding="utf-8")) for p in sorted(settings.logs_dir.glob("*.json"))]


# ---------------------------------------------------------------------------
# run_session
# ---------------------------------------------------------------------------


class TestRunSession:
    @pytest.mark.asyncio
    async def test_session_flushes_log_and_reports_cost(self, settings, write_profile, scripted_io):
        write_profile("default")
        human = scripted_io("ok")
        client = _client(DRAFT_RESPONSE)

        outcome = await run_session(settings, "write a linkedin post about focus", human, client=client)

        assert outcome.saved is True
        logs = _session_logs(settings)
        assert len(logs) == 1
        assert logs[0]["input"] == "write a linkedin post about focus"
        assert logs[0]["usage"]["input_tokens"] == 1000
        assert logs[0]["usage"]["api_calls"] == 1
        assert any(line.startswith("Tokens: 1000 in / 200 out") for line in human.infos)
        assert any(line.startswith("Session log:") for line in human.infos)
        client.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_profile_fails_before_any_call(self, settings, write_profile, scripted_io):
        write_profile("default")
        client = _client(DRAFT_RESPONSE)

        with pytest.raises(ProfileNotFound):
            await run_session(settings, "write a post", scripted_io(), profile="nobody", client=client)

        client.create.assert_not_awaited()
        assert not settings.logs_dir.exists()

    @pytest.mark.asyncio
    async def test_mix_reports_failing_side(self, settings, write_profile, scripted_io):
        write_profile("me")
        write_profile("guru", raw="not json")

        client = _client()
        with pytest.raises(InvalidProfile) as exc_info:
            await run_session(settings, "write a post", scripted_io(), mix=("me", "guru"), client=client)

        assert exc_info.value.side == "reference"
        assert format_error(exc_info.value).startswith("Reference profile: ")
        client.create.assert_not_awaited()
        assert not settings.logs_dir.exists()

    @pytest.mark.asyncio
    async def test_mix_missing_base(self, settings, write_profile, scripted_io):
        write_profile("guru", profile_type="reference")

        client = _client()
        with pytest.raises(ProfileNotFound) as exc_info:
            await run_session(settings, "write a post", scripted_io(), mix=("me", "guru"), client=client)

        assert exc_info.value.side == "base"
        assert format_error(exc_info.value).startswith("Base profile: ")
        client.create.assert_not_awaited()
        assert not settings.logs_dir.exists()

    @pytest.mark.asyncio
    async def test_mix_undecodable_reference(self, settings, write_profile, scripted_io):
        write_profile("me")
        settings.profiles_dir.joinpath("guru.json").write_bytes(b"\xff\xfe{bad")

        client = _client()
        with pytest.raises(InvalidProfile) as exc_info:
            await run_session(settings, "write a post", scripted_io(), mix=("me", "guru"), client=client)

        assert exc_info.value.side == "reference"
        assert "UTF-8" in str(exc_info.value)
        client.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mix_session_profile_used(self, settings, write_profile, scripted_io):
        write_profile("me")
        write_profile("guru", profile_type="reference")
        human = scripted_io("exit")

        await run_session(settings, "write a post", human, mix=("me", "guru"), client=_client(DRAFT_RESPONSE))

        assert human.infos[0] == "Mix mode: me + guru"
        assert _session_logs(settings)[0]["profile_used"] == "mix:me+guru"

    @pytest.mark.asyncio
    async def test_api_error_still_flushes(self, settings, write_profile, scripted_io):
        write_profile("default")
        client = _client(ModelApiError(ErrorCategory.RATE_LIMIT, "slow down", status_code=429))

        with pytest.raises(ModelApiError):
            await run_session(settings, "write a post", scripted_io(), client=client)

        logs = _session_logs(settings)
        assert len(logs) == 1
        error = [e for e in logs[0]["events"] if e["kind"] == "error"]
        assert error[0]["payload"]["type"] == "ModelApiError"


# ---------------------------------------------------------------------------
# format_error
# ---------------------------------------------------------------------------


class TestFormatError:
    def test_profile_without_side(self):
        message = format_error(ProfileNotFound("bob", ["alice"]))
        assert message == "Profile 'bob' not found. Available profiles: alice"

    def test_base_side(self):
        assert format_error(ProfileNotFound("bob", [], side="base")).startswith("Base profile: ")

    @pytest.mark.parametrize(
        "category, fragment",
        [
            (ErrorCategory.AUTH, "ANTHROPIC_API_KEY"),
            (ErrorCategory.RATE_LIMIT, "Rate limited"),
            (ErrorCategory.CONNECTIVITY, "network"),
            (ErrorCategory.TIMEOUT, "in time"),
        ],
    )
    def test_api_categories(self, category, fragment):
        assert fragment in format_error(ModelApiError(category, "raw"))

    def test_generic_api_error(self):
        assert format_error(ModelApiError(ErrorCategory.GENERIC, "overloaded")) == "API error: overloaded"


# ---------------------------------------------------------------------------
# profile subcommand
# ---------------------------------------------------------------------------


class TestProfileCommand:
    def _run(self, settings, *argv):
        out = io.StringIO()
        args = build_profile_parser().parse_args(list(argv))
        code = profile_command(args, settings, Console(file=out, highlight=False, width=200))
        return code, out.getvalue()

    def test_list(self, settings, write_profile):
        write_profile("default")
        write_profile("guru", profile_type="reference")
        write_profile("broken", raw="{")
        code, out = self._run(settings, "list")
        assert code == 0
        assert "broken (invalid)" in out
        assert "guru reference, v1, linkedin, x" in out

    def test_list_empty(self, settings):
        code, out = self._run(settings, "list")
        assert code == 0
        assert "No profiles yet." in out

    def test_show(self, settings, write_profile):
        write_profile("alice")
        code, out = self._run(settings, "show", "alice")
        assert code == 0
        assert json.loads(out)["profile_name"] == "alice"

    def test_show_missing(self, settings):
        code, out = self._run(settings, "show", "nobody")
        assert code == 1
        assert "not found" in out

    def test_delete_default_needs_force(self, settings, write_profile):
        path = write_profile("default")
        code, _ = self._run(settings, "delete", "default")
        assert code == 1
        assert path.exists()

        code, _ = self._run(settings, "delete", "default", "--force")
        assert code == 0
        assert not path.exists()

    def test_delete_other(self, settings, write_profile):
        path = write_profile("guru")
        code, out = self._run(settings, "delete", "guru")
        assert code == 0
        assert "Deleted profile guru" in out
        assert not path.exists()


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


class TestMain:
    def test_no_topic_prints_help(self, settings, capsys):
        assert main([]) == 0
        assert "usage: ghostpen" in capsys.readouterr().out

    def test_missing_profile_exits_1(self, settings, capsys):
        assert main(["write", "a", "post", "-p", "nobody"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_profile_and_mix_are_exclusive(self, settings):
        with pytest.raises(SystemExit):
            main(["topic", "-p", "a", "--mix", "b", "c"])

    def test_profile_list(self, settings, write_profile, capsys):
        write_profile("default")
        assert main(["profile", "list"]) == 0
        assert "default" in capsys.readouterr().out

    def test_invalid_configuration(self, settings, monkeypatch, capsys):
        monkeypatch.setenv("GHOSTPEN_MAX_HISTORY_PAIRS", "0")
        assert main(["write", "a", "post"]) == 1
        assert "Invalid configuration" in capsys.readouterr().out

    def test_undecodable_profile_exits_1(self, settings, capsys):
        settings.profiles_dir.mkdir(parents=True, exist_ok=True)
        settings.profiles_dir.joinpath("default.json").write_bytes(b"\xff\xfe{bad")
        assert main(["write a post about burnout"]) == 1
        out = capsys.readouterr().out
        assert "Error:" in out
        assert "UTF-8" in out

    def test_unexpected_error_exits_1(self, settings, monkeypatch, capsys):
        async def broken_session(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr("ghostpen.main.run_session", broken_session)
        assert main(["write a post about burnout"]) == 1
        out = capsys.readouterr().out
        assert "Unexpected error: disk on fire" in out
