"""Notion mirror for saved posts.

Optional secondary persistence: a page is created in the configured
database only from the SAVE state, after the local file already exists.
Talks to the Notion REST API directly over httpx.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com"
NOTION_VERSION = "2022-06-28"

_MAX_TEXT = 2000  # Notion rich_text content limit per item
_MAX_CHILDREN = 100  # Children per create/append request
_NUMBERED = re.compile(r"^\d+\.\s")
_DIVIDER = re.compile(r"^---+$")


class NotionError(Exception):
    """Notion API call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def _rich_text(text: str) -> list[dict[str, Any]]:
    chunks = [text[i:i + _MAX_TEXT] for i in range(0, len(text), _MAX_TEXT)] or [""]
    return [{"type": "text", "text": {"content": chunk}} for chunk in chunks]


def _text_block(block_type: str, text: str) -> dict[str, Any]:
    return {"object": "block", "type": block_type, block_type: {"rich_text": _rich_text(text)}}


def markdown_to_blocks(markdown: str) -> list[dict[str, Any]]:
    """Convert post markdown into Notion block objects.

    Covers headings, quotes, bullet and numbered lists, dividers and
    fenced code; anything else becomes a paragraph.
    """
    blocks: list[dict[str, Any]] = []
    lines = markdown.split("\n")
    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()
        if not stripped:
            i += 1
            continue

        if line.startswith("```"):
            language = line[3:].strip() or "plain text"
            code: list[str] = []
            i += 1
            while i < len(lines) and not lines[i].startswith("```"):
                code.append(lines[i])
                i += 1
            i += 1  # closing fence
            blocks.append({
                "object": "block",
                "type": "code",
                "code": {"rich_text": _rich_text("\n".join(code)), "language": language},
            })
            continue

        if line.startswith("### "):
            blocks.append(_text_block("heading_3", line[4:]))
        elif line.startswith("## "):
            blocks.append(_text_block("heading_2", line[3:]))
        elif line.startswith("# "):
            blocks.append(_text_block("heading_1", line[2:]))
        elif line.startswith("> "):
            blocks.append(_text_block("quote", line[2:]))
        elif line.startswith(("- ", "* ")):
            blocks.append(_text_block("bulleted_list_item", line[2:]))
        elif match := _NUMBERED.match(line):
            blocks.append(_text_block("numbered_list_item", line[match.end():]))
        elif _DIVIDER.match(stripped):
            blocks.append({"object": "block", "type": "divider", "divider": {}})
        else:
            blocks.append(_text_block("paragraph", line))
        i += 1
    return blocks


class NotionClient:
    """Creates post pages in a Notion database."""

    def __init__(
        self,
        token: str,
        database_id: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._database_id = database_id
        self._http = httpx.AsyncClient(
            base_url=NOTION_API_BASE,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Notion-Version": NOTION_VERSION,
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            raise NotionError(f"Notion API timeout: {e}") from e
        except httpx.HTTPError as e:
            raise NotionError(f"Notion API unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None
        if response.status_code >= 400:
            message = data.get("message", "unknown error") if isinstance(data, dict) else response.text[:500]
            raise NotionError(
                f"Notion API error {response.status_code}: {message}",
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise NotionError(
                f"Notion API returned an unexpected body: {response.text[:200]}",
                status_code=response.status_code,
            )
        return data

    async def create_page(
        self,
        content: str,
        title: str,
        platform: str,
        topic: str,
        profile_used: str = "default",
    ) -> str:
        """Create a Draft page for the post and return its URL."""
        blocks = markdown_to_blocks(content)
        payload = {
            "parent": {"database_id": self._database_id},
            "properties": {
                "Title": {"title": _rich_text(title)},
                "Platform": {"select": {"name": platform}},
                "Topic": {"rich_text": _rich_text(topic)},
                "Status": {"select": {"name": "Draft"}},
                "Created": {"date": {"start": datetime.now(UTC).isoformat()}},
                "Profile": {"rich_text": _rich_text(profile_used)},
            },
            "children": blocks[:_MAX_CHILDREN],
        }
        page = await self._request("POST", "/v1/pages", payload)
        if not isinstance(page.get("id"), str) or not page["id"]:
            raise NotionError("Notion API response has no page id")

        rest = blocks[_MAX_CHILDREN:]
        for start in range(0, len(rest), _MAX_CHILDREN):
            await self._request(
                "PATCH",
                f"/v1/blocks/{page['id']}/children",
                {"children": rest[start:start + _MAX_CHILDREN]},
            )

        url = page.get("url") or ""
        logger.info("Created Notion page %s", url)
        return url
