"""Tests for text helpers: topic extraction, platform detection, slugs, preambles."""

from ghostpen.utils import (
    detect_platform,
    extract_topic,
    first_line,
    split_preamble,
    strip_preamble,
    to_slug,
    transliterate,
)


class TestExtractTopic:
    def test_ukrainian_request_with_platform_suffix(self):
        assert extract_topic("напиши пост про вигорання для LinkedIn") == "вигорання"

    def test_english_request_with_platform_and_article(self):
        assert extract_topic("Write a LinkedIn post about remote work") == "remote work"

    def test_plain_topic_unchanged(self):
        assert extract_topic("remote work tips") == "remote work tips"

    def test_collapses_whitespace(self):
        assert extract_topic("write   a post  about   hiring") == "hiring"

    def test_never_returns_empty(self):
        assert extract_topic("   hello  ") == "hello"


class TestDetectPlatform:
    def test_instagram(self):
        assert detect_platform("write a post for Instagram about cats") == "instagram"

    def test_x_needs_preposition(self):
        assert detect_platform("тред для x про AI") == "x"
        assert detect_platform("explain x-rays") is None

    def test_twitter_maps_to_x(self):
        assert detect_platform("a thread on Twitter") == "x"

    def test_earliest_mention_wins(self):
        assert detect_platform("linkedin or twitter") == "linkedin"
        assert detect_platform("twitter or linkedin") == "x"

    def test_none_when_absent(self):
        assert detect_platform("a post about burnout") is None


class TestSlug:
    def test_transliterates_ukrainian(self):
        assert transliterate("Київ") == "kyyiv"
        assert to_slug("Вигорання у стартапах!") == "vyhorannya-u-startapakh"

    def test_caps_length(self):
        slug = to_slug("a" * 60)
        assert len(slug) == 50

    def test_no_trailing_dash_after_cut(self):
        slug = to_slug("word " * 20, max_len=12)
        assert not slug.endswith("-")

    def test_symbols_only_is_empty(self):
        assert to_slug("!!!") == ""


class TestPreamble:
    def test_splits_status_line(self):
        text = "Generated LinkedIn post using provocative-statement hook.\n\nBody text"
        preamble, body = split_preamble(text)
        assert preamble == "Generated LinkedIn post using provocative-statement hook."
        assert body == "Body text"

    def test_ukrainian_status_line(self):
        assert strip_preamble("Прочитав профіль, генерую для LinkedIn.\n\nТекст") == "Текст"

    def test_keeps_paragraph_without_hint(self):
        text = "Just a first paragraph\n\nSecond"
        assert split_preamble(text) == (None, text)

    def test_keeps_long_first_paragraph(self):
        text = "profile " * 40 + "\n\nSecond"
        assert split_preamble(text) == (None, text)

    def test_single_paragraph(self):
        assert split_preamble("only text") == (None, "only text")


class TestFirstLine:
    def test_skips_blank_lines(self):
        assert first_line("\n\n  Hello world  \nsecond") == "Hello world"

    def test_caps_length(self):
        assert len(first_line("x" * 100)) == 80

    def test_empty(self):
        assert first_line("   \n") == ""
