"""Style profile tools: read_style_profile, update_style_profile.

Profile files are read and written in a worker thread so the event loop
is never blocked on disk.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ghostpen.api.schemas import ReadStyleProfileInput, UpdateStyleProfileInput
from ghostpen.api.tools import ToolDispatcher, ToolName, ToolSpec
from ghostpen.storage.profiles import (
    DEFAULT_PROFILE,
    InvalidProfile,
    ProfileNotFound,
    ProfileStore,
    ProfileUpdateError,
)

logger = logging.getLogger(__name__)


def _not_found(e: ProfileNotFound) -> dict[str, Any]:
    if not e.available and e.name == DEFAULT_PROFILE:
        return {
            "success": False,
            "error": "no_profiles",
            "message": "No style profiles exist yet. Create one first.",
        }
    return {
        "success": False,
        "error": "profile_not_found",
        "message": str(e),
        "available_profiles": e.available,
    }


async def read_style_profile(store: ProfileStore, data: ReadStyleProfileInput) -> dict[str, Any]:
    name = data.profile_name
    try:
        await asyncio.to_thread(store.load, name)
        profile = await asyncio.to_thread(store.read_raw, name)
    except ProfileNotFound as e:
        return _not_found(e)
    except InvalidProfile as e:
        return {"success": False, "error": "invalid_profile", "message": str(e)}
    return {"success": True, "profile": profile}


async def update_style_profile(
    store: ProfileStore, data: UpdateStyleProfileInput
) -> dict[str, Any]:
    try:
        result = await asyncio.to_thread(store.update, data.profile_name, data.changes, data.reason)
    except ProfileNotFound as e:
        return _not_found(e)
    except InvalidProfile as e:
        return {"success": False, "error": "invalid_profile", "message": str(e)}
    except ProfileUpdateError as e:
        logger.info("Rejected update to %s: %s", data.profile_name, e)
        response: dict[str, Any] = {"success": False, "error": e.code, "message": str(e)}
        if e.field:
            response["field"] = e.field
        return response
    return {"success": True, "profile_name": data.profile_name, **result}


def register_profile_tools(dispatcher: ToolDispatcher, store: ProfileStore) -> None:
    """Register profile tools with the store captured in closures."""

    async def _read(data: ReadStyleProfileInput) -> dict[str, Any]:
        return await read_style_profile(store, data)

    async def _update(data: UpdateStyleProfileInput) -> dict[str, Any]:
        return await update_style_profile(store, data)

    dispatcher.register(ToolSpec(
        name=ToolName.READ_STYLE_PROFILE,
        description=(
            "Read a style profile: voice, per-platform rules and example posts. "
            "Call before writing if the profile is not already in context."
        ),
        input_model=ReadStyleProfileInput,
        handler=_read,
        label="Reading style profile",
        summary="style profile loaded",
    ))
    dispatcher.register(ToolSpec(
        name=ToolName.UPDATE_STYLE_PROFILE,
        description=(
            "Update fields of a personal style profile using dot-path keys. "
            "Only call after the user explicitly confirmed the change. "
            "Reference profiles are read-only."
        ),
        input_model=UpdateStyleProfileInput,
        handler=_update,
        label="Updating style profile",
        summary="profile updated",
    ))
