"""Settings via pydantic-settings with GHOSTPEN_ env prefix.

Credentials use validation_alias to read the same unprefixed env vars
(ANTHROPIC_API_KEY, NOTION_TOKEN, etc.) the rest of the tooling uses, so a
single .env file drives everything.
"""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GHOSTPEN_", env_file=".env", extra="ignore")

    # Anthropic -- auth_token (Bearer) takes precedence over api_key (x-api-key)
    anthropic_api_key: str = Field("", validation_alias="ANTHROPIC_API_KEY")
    anthropic_auth_token: str = Field("", validation_alias="ANTHROPIC_AUTH_TOKEN")
    api_base_url: str = "https://api.anthropic.com"
    api_timeout_connect: int = 10  # seconds
    api_timeout_read: int = 120  # seconds

    # LLM
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    max_tool_rounds: int = 10  # Max tool dispatch rounds per exchange

    # Context window
    max_history_pairs: int = 6
    compress_threshold_chars: int = 200

    # Feedback loop
    accept_keywords: list[str] = Field(default_factory=lambda: ["ok", "save", "зберігай", "готово"])
    exit_keywords: list[str] = Field(default_factory=lambda: ["exit", "quit"])
    feedback_threshold: int = 3
    feedback_history_limit: int = 10

    # Server-side web search
    web_search_enabled: bool = True
    web_search_max_uses: int = 3

    # Notion (optional secondary persistence)
    notion_token: str = Field("", validation_alias="NOTION_TOKEN")
    notion_database_id: str = Field("", validation_alias="NOTION_DATABASE_ID")
    notion_timeout: int = 15  # seconds

    # Storage
    data_dir: str = "data"

    log_level: str = "warning"

    @model_validator(mode="after")
    def _validate_loop(self) -> "Settings":
        if self.max_history_pairs < 1:
            raise ValueError("max_history_pairs must be >= 1")
        if not self.accept_keywords or not self.exit_keywords:
            raise ValueError("accept_keywords and exit_keywords must not be empty")
        accept = {k.casefold() for k in self.accept_keywords}
        exit_ = {k.casefold() for k in self.exit_keywords}
        overlap = accept & exit_
        if overlap:
            raise ValueError(
                f"accept_keywords and exit_keywords overlap: {sorted(overlap)}"
            )
        return self

    @property
    def notion_configured(self) -> bool:
        return bool(self.notion_token and self.notion_database_id)

    @property
    def profiles_dir(self) -> Path:
        return Path(self.data_dir) / "profiles"

    @property
    def output_dir(self) -> Path:
        return Path(self.data_dir) / "output" / "generated"

    @property
    def logs_dir(self) -> Path:
        return Path(self.data_dir) / "output" / "logs"

    @property
    def tracker_path(self) -> Path:
        return Path(self.data_dir) / "feedback-tracker.json"
