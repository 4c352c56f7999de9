"""Shared fixtures: settings on tmp_path, profile files, scripted human I/O."""

import copy
import json

import pytest

from ghostpen.config import Settings

SAMPLE_PROFILE = {
    "profile_name": "default",
    "profile_type": "personal",
    "source": "interview",
    "version": 1,
    "created_at": "2025-01-10T09:00:00+00:00",
    "updated_at": "2025-01-10T09:00:00+00:00",
    "language": "uk",
    "voice": {
        "tone": "direct, warm",
        "formality": "informal",
        "personality": "practitioner who shares mistakes",
        "sentence_style": "short",
        "paragraph_style": "one thought per paragraph",
        "hooks": ["provocative statement", "personal failure"],
        "closings": ["question to the reader"],
        "signature_phrases": ["чесно кажучи"],
        "avoid": ["corporate jargon", "emoji walls"],
        "emoji_usage": "rare",
    },
    "platforms": {
        "linkedin": {"max_length": 1500, "structure": "hook, story, lesson, question"},
        "x": {"max_length": 280},
    },
    "examples": [
        {"id": "ex1", "platform": "linkedin", "text": "Я тричі провалив запуск продукту.", "why_good": "honest"},
    ],
    "changelog": [
        {"version": 1, "date": "2025-01-10T09:00:00+00:00", "action": "created", "description": "Initial"},
    ],
}


def make_profile(**overrides) -> dict:
    data = copy.deepcopy(SAMPLE_PROFILE)
    data.update(overrides)
    return data


class ScriptedIO:
    """HumanIO that answers from a script and records everything shown."""

    def __init__(self, answers: list[str]) -> None:
        self.answers = list(answers)
        self.prompts: list[str] = []
        self.drafts: list[tuple[str, str | None]] = []
        self.infos: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []

    async def ask(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            return "exit"
        return self.answers.pop(0).strip()

    def draft(self, text: str, preamble: str | None = None) -> None:
        self.drafts.append((text, preamble))

    def info(self, message: str) -> None:
        self.infos.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings isolated from the developer's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    for var in ("ANTHROPIC_API_KEY", "ANTHROPIC_AUTH_TOKEN", "NOTION_TOKEN", "NOTION_DATABASE_ID"):
        monkeypatch.delenv(var, raising=False)
    return Settings(
        ANTHROPIC_API_KEY="test-key",
        data_dir=str(tmp_path / "data"),
        web_search_enabled=False,
    )


@pytest.fixture
def write_profile(settings):
    """Factory: write_profile(name, **overrides) -> path of the JSON file."""

    def _write(name: str = "default", raw: str | None = None, **overrides):
        settings.profiles_dir.mkdir(parents=True, exist_ok=True)
        path = settings.profiles_dir / f"{name}.json"
        if raw is None:
            raw = json.dumps(make_profile(profile_name=name, **overrides), ensure_ascii=False, indent=2)
        path.write_text(raw, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def scripted_io():
    """Factory: scripted_io("feedback", "ok") -> ScriptedIO."""

    def _make(*answers: str) -> ScriptedIO:
        return ScriptedIO(list(answers))

    return _make
