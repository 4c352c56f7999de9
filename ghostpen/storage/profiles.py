"""Style profile storage -- JSON files under data/profiles/.

Loading validates against StyleProfile. Updates are applied as
dot-path changes with per-field rules, re-validated as a whole, and only
written when everything passes (the file on disk is never half-updated).
"""

from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ghostpen.storage.schemas import StyleProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"

IMMUTABLE_FIELDS = frozenset({"profile_name", "profile_type", "created_at"})

_NAME_RE = re.compile(r"^[\w][\w.-]*$")
_MAX_LENGTH_PATH = re.compile(r"^platforms\..+\.max_length$")


class ProfileError(Exception):
    """Base for profile load failures. `side` is set in mix mode."""

    def __init__(self, name: str, message: str, side: str | None = None) -> None:
        self.name = name
        self.side = side
        super().__init__(message)


class ProfileNotFound(ProfileError):
    def __init__(self, name: str, available: list[str], side: str | None = None) -> None:
        self.available = available
        listing = ", ".join(available) or "none"
        super().__init__(
            name,
            f"Profile '{name}' not found. Available profiles: {listing}",
            side=side,
        )


class InvalidProfile(ProfileError):
    def __init__(self, name: str, detail: str, side: str | None = None) -> None:
        self.detail = detail
        super().__init__(name, f"Profile '{name}' has invalid structure: {detail}", side=side)


class ProfileUpdateError(Exception):
    """Rejected profile update. `code` is surfaced to the model as the error id."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        self.code = code
        self.field = field
        super().__init__(message)


def _set_nested(obj: dict[str, Any], dot_path: str, value: Any) -> None:
    keys = dot_path.split(".")
    current = obj
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def _check_change(dot_path: str, value: Any) -> str | None:
    """Return an error message if a single change is not allowed."""
    top = dot_path.split(".")[0]
    if top in IMMUTABLE_FIELDS:
        return f"Field '{top}' is immutable and cannot be changed"

    if dot_path in ("voice.hooks", "voice.avoid"):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return f"'{dot_path}' must be an array of strings"
        if not value:
            return f"'{dot_path}' cannot be empty"

    if _MAX_LENGTH_PATH.match(dot_path):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            return f"'{dot_path}' must be a positive number"

    return None


def _summarize_validation(exc: ValidationError) -> str:
    first = exc.errors()[0]
    loc = ".".join(str(p) for p in first["loc"])
    return f"{loc}: {first['msg']}" if loc else first["msg"]


class ProfileStore:
    """Reads and writes style profiles in a directory."""

    def __init__(self, profiles_dir: Path) -> None:
        self._dir = Path(profiles_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, name: str) -> Path:
        return self._dir / f"{name}.json"

    def list_names(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(p.stem for p in self._dir.glob("*.json"))

    def read_raw(self, name: str, side: str | None = None) -> dict[str, Any]:
        """Read the profile JSON without schema validation."""
        if not _NAME_RE.match(name):
            raise ProfileNotFound(name, self.list_names(), side=side)
        path = self.path_for(name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ProfileNotFound(name, self.list_names(), side=side) from None
        except UnicodeDecodeError as e:
            raise InvalidProfile(name, "file is not valid UTF-8", side=side) from e
        except OSError as e:
            raise InvalidProfile(name, f"cannot read file ({e.strerror or e})", side=side) from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidProfile(name, f"invalid JSON ({e.msg})", side=side) from e
        if not isinstance(data, dict):
            raise InvalidProfile(name, "top level must be an object", side=side)
        return data

    def load(self, name: str, side: str | None = None) -> StyleProfile:
        data = self.read_raw(name, side=side)
        try:
            return StyleProfile.model_validate(data)
        except ValidationError as e:
            raise InvalidProfile(name, _summarize_validation(e), side=side) from e

    def update(self, name: str, changes: dict[str, Any], reason: str) -> dict[str, Any]:
        """Apply dot-path changes, bump version, append a changelog entry.

        Returns {"version", "changes_applied", "changelog_entry"}.
        Raises ProfileNotFound, InvalidProfile or ProfileUpdateError.
        """
        profile = self.read_raw(name)

        if profile.get("profile_type") == "reference":
            raise ProfileUpdateError(
                "reference_profile",
                "Reference profiles are read-only and cannot be updated from feedback.",
            )
        if not changes:
            raise ProfileUpdateError("validation_failed", "No changes given")

        applied: list[str] = []
        for dot_path, value in changes.items():
            error = _check_change(dot_path, value)
            if error:
                raise ProfileUpdateError("validation_failed", error, field=dot_path)
            _set_nested(profile, dot_path, value)
            applied.append(dot_path)

        now = datetime.now(UTC).isoformat()
        version = int(profile.get("version") or 0) + 1
        profile["version"] = version
        profile["updated_at"] = now
        entry = {
            "version": version,
            "date": now,
            "action": "updated",
            "description": reason,
            "fields_changed": applied,
        }
        if not isinstance(profile.get("changelog"), list):
            profile["changelog"] = []
        profile["changelog"].append(entry)

        try:
            StyleProfile.model_validate(profile)
        except ValidationError as e:
            raise ProfileUpdateError(
                "validation_failed",
                f"Profile validation failed after applying changes ({_summarize_validation(e)}). "
                "Changes rolled back.",
            ) from e

        self.path_for(name).write_text(
            json.dumps(profile, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        logger.info("Updated profile %s to v%d (%s)", name, version, ", ".join(applied))
        return {"version": version, "changes_applied": applied, "changelog_entry": entry}

    def delete(self, name: str) -> None:
        if not _NAME_RE.match(name):
            raise ProfileNotFound(name, self.list_names())
        try:
            self.path_for(name).unlink()
        except FileNotFoundError:
            raise ProfileNotFound(name, self.list_names()) from None
        logger.info("Deleted profile %s", name)
