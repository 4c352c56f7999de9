"""Tests for the ContextAssembler."""

import pytest

from ghostpen.cognitive.context import MIX_MODE_TEMPLATE, SYSTEM_PROMPT, ContextAssembler
from ghostpen.config import Settings
from ghostpen.storage.profiles import InvalidProfile, ProfileNotFound, ProfileStore


@pytest.fixture
def assembler(settings):
    return ContextAssembler(ProfileStore(settings.profiles_dir), settings)


class TestSingleProfile:
    def test_segment_order_and_cache_marker(self, assembler, write_profile):
        write_profile("default")
        context = assembler.build()

        assert context.system.labels == ["rules", "profile", "metadata"]
        cacheable = [s.label for s in context.system.segments if s.cacheable]
        assert cacheable == ["profile"]
        assert context.system.segments[0].text == SYSTEM_PROMPT

    def test_profile_json_in_segment(self, assembler, write_profile):
        write_profile("alice")
        context = assembler.build(profile="alice")
        profile_text = context.system.segments[1].text
        assert profile_text.startswith("--- STYLE PROFILE (alice) ---")
        assert "чесно кажучи" in profile_text  # not ascii-escaped

    def test_metadata_and_default_platform(self, assembler, write_profile):
        write_profile("alice", platforms={"instagram": {}, "linkedin": {}})
        context = assembler.build(profile="alice")
        assert context.profile_used == "alice"
        assert context.default_platform == "instagram"
        metadata = context.system.segments[-1]
        assert metadata.label == "metadata"
        assert 'profile_used: "alice"' in metadata.text
        assert metadata.cacheable is False

    def test_api_shape(self, assembler, write_profile):
        write_profile("default")
        blocks = assembler.build().system.to_api()
        assert blocks[1]["cache_control"] == {"type": "ephemeral"}
        assert "cache_control" not in blocks[0]
        assert "cache_control" not in blocks[2]

    def test_missing_profile(self, assembler, write_profile):
        write_profile("alice")
        with pytest.raises(ProfileNotFound) as exc_info:
            assembler.build(profile="bob")
        assert exc_info.value.side is None
        assert exc_info.value.available == ["alice"]

    def test_notion_flag_from_settings(self, settings, write_profile, monkeypatch):
        write_profile("default")
        monkeypatch.setenv("NOTION_TOKEN", "secret")
        monkeypatch.setenv("NOTION_DATABASE_ID", "db")
        with_notion = Settings(data_dir=settings.data_dir)
        context = ContextAssembler(ProfileStore(with_notion.profiles_dir), with_notion).build()
        assert context.notion_enabled is True

    def test_notion_disabled_by_default(self, assembler, write_profile):
        write_profile("default")
        assert assembler.build().notion_enabled is False


class TestMixMode:
    def test_segments(self, assembler, write_profile):
        write_profile("me", platforms={"x": {}})
        write_profile("guru", profile_type="reference")
        context = assembler.build(mix=("me", "guru"))

        assert context.system.labels == ["rules", "base_profile", "reference_profile", "mix", "metadata"]
        assert [s.label for s in context.system.segments if s.cacheable] == ["mix"]
        assert context.system.segments[3].text == MIX_MODE_TEMPLATE
        assert context.profile_used == "mix:me+guru"
        assert context.default_platform == "x"

    def test_missing_base(self, assembler, write_profile):
        write_profile("guru")
        with pytest.raises(ProfileNotFound) as exc_info:
            assembler.build(mix=("me", "guru"))
        assert exc_info.value.side == "base"

    def test_missing_reference(self, assembler, write_profile):
        write_profile("me")
        with pytest.raises(ProfileNotFound) as exc_info:
            assembler.build(mix=("me", "guru"))
        assert exc_info.value.side == "reference"

    def test_invalid_reference(self, assembler, write_profile):
        write_profile("me")
        write_profile("guru", raw="{")
        with pytest.raises(InvalidProfile) as exc_info:
            assembler.build(mix=("me", "guru"))
        assert exc_info.value.side == "reference"

    def test_context_is_immutable(self, assembler, write_profile):
        write_profile("default")
        context = assembler.build()
        with pytest.raises(Exception):
            context.profile_used = "other"
