"""Post tools: save_to_file, read_past_posts."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ghostpen.api.schemas import ReadPastPostsInput, SaveToFileInput
from ghostpen.api.tools import ToolDispatcher, ToolName, ToolSpec
from ghostpen.storage.posts import PostStore
from ghostpen.utils import first_line

logger = logging.getLogger(__name__)


def register_post_tools(dispatcher: ToolDispatcher, store: PostStore) -> None:
    """Register post tools with the post store captured in closures."""

    async def save_to_file(data: SaveToFileInput) -> dict[str, Any]:
        try:
            path = await asyncio.to_thread(
                store.save,
                data.content,
                data.platform,
                data.topic,
                data.profile_used,
                first_line(data.content) or None,
            )
        except OSError as e:
            logger.warning("Failed to save post: %s", e)
            return {"success": False, "error": "write_failed", "message": f"Could not save post: {e}"}
        return {"success": True, "file_path": str(path)}

    async def read_past_posts(data: ReadPastPostsInput) -> dict[str, Any]:
        result = await asyncio.to_thread(store.search, data.keywords, data.platform, data.limit)
        return {"success": True, **result}

    dispatcher.register(ToolSpec(
        name=ToolName.SAVE_TO_FILE,
        description=(
            "Save a finished post as a markdown file with front matter "
            "(platform, topic, created, profile_used)."
        ),
        input_model=SaveToFileInput,
        handler=save_to_file,
        label="Saving post",
        summary="file saved",
    ))
    dispatcher.register(ToolSpec(
        name=ToolName.READ_PAST_POSTS,
        description=(
            "Search previously saved posts by keywords to avoid repeating "
            "the same angle or hook."
        ),
        input_model=ReadPastPostsInput,
        handler=read_past_posts,
        label="Checking past posts",
        summary="past posts checked",
    ))
