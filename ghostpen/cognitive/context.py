"""Context Assembler -- builds the system context once per session.

Segment order: rules -> profile(s) -> mix directive (mix mode only) ->
metadata note. Profiles are loaded up front so a missing or malformed
profile aborts the session before any model call.
"""

from __future__ import annotations

import json
import logging

from ghostpen.cognitive.schemas import PreparedContext, SystemContext, SystemSegment
from ghostpen.config import Settings
from ghostpen.storage.profiles import DEFAULT_PROFILE, ProfileStore
from ghostpen.storage.schemas import StyleProfile
from ghostpen.utils import DEFAULT_PLATFORM

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are Ghostpen, a personal ghostwriter.

Your job: write content that sounds like the author, not like AI.

The author's Style Profile is loaded below. It is your primary constraint.
Everything you write must conform to the profile: tone, structure, hooks, avoid list.

You succeed when a reader familiar with the author says: "This sounds exactly like them."
You fail when the output sounds like polished, balanced, personality-free AI content.
When in doubt between "correct" and "authentic", choose authentic.

Write in the same language as the Style Profile.

RESPONSE FORMAT:
1. One line: what you did.
   Example: "Generated LinkedIn post using provocative-statement hook."
2. The draft, exactly as it would be published.
3. Ask: "What to change? (or 'ok' to save)"

RULES:
- No headers before the draft ("## Here's your post:")
- No commentary on your choices
- No unsolicited alternatives
- No AI disclaimers
- No "---" dividers unless the profile uses them
- Never exceed the platform max_length
- Prefer shorter over longer

TOOLS:
- When the user asks for changes, call track_feedback with the closest category and their words.
- Suggest a style profile update only when track_feedback reports threshold_reached,
  and call update_style_profile only after the user confirms.
- Call read_past_posts with a few topic keywords before writing, to avoid repeating an angle or hook.
- Use web search when the post needs current facts, numbers or news."""

MIX_MODE_TEMPLATE = """\
MIX MODE:
You received two profiles: BASE (primary) and REFERENCE (techniques).

Mixing rules:
- VOICE (tone, personality, formality, sentence_style): take from BASE
- TECHNIQUES (hooks, closings, structure): take from REFERENCE
- AVOID: union of both lists
- SIGNATURE PHRASES: only from BASE
- EXAMPLES: consider both, BASE has priority

The result must sound like the BASE author using REFERENCE techniques."""


def _profile_json(profile: StyleProfile) -> str:
    return json.dumps(profile.model_dump(mode="json", exclude_none=True), ensure_ascii=False, indent=2)


class ContextAssembler:
    """Loads profile(s) and produces the immutable PreparedContext."""

    def __init__(self, store: ProfileStore, settings: Settings) -> None:
        self._store = store
        self._settings = settings

    def build(
        self,
        profile: str | None = None,
        mix: tuple[str, str] | None = None,
    ) -> PreparedContext:
        """Raises ProfileNotFound / InvalidProfile (with side in mix mode)."""
        segments = [SystemSegment(label="rules", text=SYSTEM_PROMPT)]

        if mix:
            base_name, ref_name = mix
            base = self._store.load(base_name, side="base")
            reference = self._store.load(ref_name, side="reference")
            segments.append(SystemSegment(
                label="base_profile",
                text=f"--- BASE PROFILE ---\n{_profile_json(base)}",
            ))
            segments.append(SystemSegment(
                label="reference_profile",
                text=f"--- REFERENCE PROFILE ---\n{_profile_json(reference)}",
            ))
            segments.append(SystemSegment(label="mix", text=MIX_MODE_TEMPLATE))
            profile_used = f"mix:{base_name}+{ref_name}"
            default_platform = base.default_platform or DEFAULT_PLATFORM
        else:
            name = profile or DEFAULT_PROFILE
            loaded = self._store.load(name)
            segments.append(SystemSegment(
                label="profile",
                text=f"--- STYLE PROFILE ({name}) ---\n{_profile_json(loaded)}",
            ))
            profile_used = name
            default_platform = loaded.default_platform or DEFAULT_PLATFORM

        # Last stable segment carries the cache breakpoint
        segments[-1] = segments[-1].model_copy(update={"cacheable": True})

        segments.append(SystemSegment(
            label="metadata",
            text=(
                f'profile_used: "{profile_used}" -- pass this value to save_to_file.\n'
                f"default_platform: {default_platform}"
            ),
        ))

        logger.info("Prepared context for %s (default platform %s)", profile_used, default_platform)
        return PreparedContext(
            system=SystemContext(segments=tuple(segments)),
            profile_used=profile_used,
            default_platform=default_platform,
            notion_enabled=self._settings.notion_configured,
        )
