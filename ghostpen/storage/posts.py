"""Generated post storage -- Markdown files with YAML front matter.

File names are <date>-<slug>-<platform>.md; an existing file is never
overwritten, a -2, -3, ... suffix is appended instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ghostpen.storage.schemas import PostMeta
from ghostpen.utils import to_slug

logger = logging.getLogger(__name__)

_FENCE = "---"
_PREVIEW_CHARS = 200


@dataclass
class StoredPost:
    """A parsed post file."""

    file: str
    meta: PostMeta
    body: str


def unique_path(directory: Path, base_name: str, suffix: str) -> Path:
    """First non-existing <base_name><suffix>, then <base_name>-2<suffix>, ..."""
    path = directory / f"{base_name}{suffix}"
    n = 1
    while path.exists():
        n += 1
        path = directory / f"{base_name}-{n}{suffix}"
    return path


def render_post(meta: PostMeta, body: str) -> str:
    front = yaml.safe_dump(
        meta.model_dump(exclude_none=True),
        allow_unicode=True,
        sort_keys=False,
        width=120,
    ).rstrip()
    return f"{_FENCE}\n{front}\n{_FENCE}\n\n{body}\n"


def parse_post(raw: str) -> tuple[PostMeta, str] | None:
    """Parse front matter + body. Returns None if the file is not a post."""
    text = raw.lstrip()
    if not text.startswith(_FENCE):
        return None
    end = text.find(f"\n{_FENCE}", len(_FENCE))
    if end == -1:
        return None
    try:
        data = yaml.safe_load(text[len(_FENCE):end])
    except yaml.YAMLError:
        return None
    if not isinstance(data, dict):
        return None
    data = {k: (v if isinstance(v, str) or v is None else str(v)) for k, v in data.items()}
    try:
        meta = PostMeta.model_validate(data)
    except ValidationError:
        return None
    body = text[end + len(_FENCE) + 1:].strip()
    return meta, body


class PostStore:
    """Reads and writes generated posts in a directory."""

    def __init__(self, output_dir: Path) -> None:
        self._dir = Path(output_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def save(
        self,
        content: str,
        platform: str,
        topic: str,
        profile_used: str = "default",
        title: str | None = None,
    ) -> Path:
        now = datetime.now(UTC)
        slug = to_slug(topic) or to_slug(title or "") or "post"
        platform = to_slug(platform) or "unknown"
        self._dir.mkdir(parents=True, exist_ok=True)
        path = unique_path(self._dir, f"{now.date().isoformat()}-{slug}-{platform}", ".md")

        meta = PostMeta(
            platform=platform,
            topic=topic,
            created=now.isoformat(),
            profile_used=profile_used,
            title=title,
        )
        path.write_text(render_post(meta, content), encoding="utf-8")
        logger.info("Saved post %s", path)
        return path

    def iter_posts(self) -> list[StoredPost]:
        if not self._dir.is_dir():
            return []
        posts = []
        for path in sorted(self._dir.glob("*.md")):
            parsed = parse_post(path.read_text(encoding="utf-8"))
            if parsed is None:
                logger.debug("Skipping %s: no front matter", path.name)
                continue
            meta, body = parsed
            posts.append(StoredPost(file=path.name, meta=meta, body=body))
        return posts

    def search(
        self,
        keywords: list[str],
        platform: str | None = None,
        limit: int = 5,
    ) -> dict[str, Any]:
        """Score posts by how many keywords appear in topic + body."""
        posts = self.iter_posts()
        if not posts:
            return {"total_posts": 0, "matched": 0, "posts": []}

        lowered = [k.lower() for k in keywords if k.strip()]
        scored: list[tuple[int, StoredPost]] = []
        for post in posts:
            if platform and post.meta.platform != platform:
                continue
            haystack = f"{post.meta.topic} {post.body}".lower()
            score = sum(1 for kw in lowered if kw in haystack)
            if score:
                scored.append((score, post))

        # Stable: equal scores keep file-name order
        scored.sort(key=lambda item: item[0], reverse=True)
        results = scored[: max(limit, 0)]
        return {
            "total_posts": len(posts),
            "matched": len(results),
            "posts": [
                {
                    "file": post.file,
                    "platform": post.meta.platform,
                    "topic": post.meta.topic,
                    "created": post.meta.created,
                    "preview": post.body[:_PREVIEW_CHARS]
                    + ("..." if len(post.body) > _PREVIEW_CHARS else ""),
                }
                for _, post in results
            ],
        }
