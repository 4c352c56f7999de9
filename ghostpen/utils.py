"""Shared text helpers for Ghostpen."""

from __future__ import annotations

import re

PLATFORMS = ("linkedin", "instagram", "x")
DEFAULT_PLATFORM = "linkedin"

_CYRILLIC_MAP = {
    "а": "a", "б": "b", "в": "v", "г": "h", "ґ": "g", "д": "d", "е": "e", "є": "ye",
    "ж": "zh", "з": "z", "и": "y", "і": "i", "ї": "yi", "й": "y", "к": "k", "л": "l",
    "м": "m", "н": "n", "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u",
    "ф": "f", "х": "kh", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "shch", "ь": "",
    "ю": "yu", "я": "ya",
}

_REQUEST_PREFIX = re.compile(
    r"^(?:напиши|створи|згенеруй|зроби|write|create|generate|make)\s+"
    r"(?:(?:a|an|me\s+a)\s+)?"
    r"(?:(?:linkedin|instagram|x|twitter)\s+)?"
    r"(?:пост|допис|тред|статтю|текст|post|thread|article)\s+"
    r"(?:про|на\s+тему|about|on)\s+",
    re.IGNORECASE,
)

_PLATFORM_SUFFIX = re.compile(
    r"\s+(?:для|в|у|for|on)\s+(?:linkedin|лінкедін|instagram|інстаграм|x|twitter|твіттер)\s*[.!]?$",
    re.IGNORECASE,
)

# Ordered: first match by position wins
_PLATFORM_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("linkedin", re.compile(r"\b(?:linkedin|лінкедін\w*)", re.IGNORECASE)),
    ("instagram", re.compile(r"\b(?:instagram|інстаграм\w*|insta)\b", re.IGNORECASE)),
    ("x", re.compile(r"\b(?:twitter|твіттер\w*)|(?:\b(?:for|on|для|в|у)\s+x\b)", re.IGNORECASE)),
]

_PREAMBLE_HINT = re.compile(r"профіль|генерую|згенерував|profile|generating|generated", re.IGNORECASE)


def transliterate(text: str) -> str:
    """Lowercase and map Ukrainian Cyrillic to Latin."""
    return "".join(_CYRILLIC_MAP.get(ch, ch) for ch in text.lower())


def to_slug(text: str, max_len: int = 50) -> str:
    """File-name-safe slug: transliterated, [a-z0-9-], at most max_len chars."""
    slug = re.sub(r"[^a-z0-9]+", "-", transliterate(text)).strip("-")
    return slug[:max_len].rstrip("-")


def extract_topic(user_input: str) -> str:
    """Strip the "write a post about ..." framing from a request.

    "напиши пост про вигорання для LinkedIn" -> "вигорання"
    """
    topic = " ".join(user_input.split())
    topic = _REQUEST_PREFIX.sub("", topic)
    topic = _PLATFORM_SUFFIX.sub("", topic)
    return topic.strip() or user_input.strip()


def detect_platform(text: str) -> str | None:
    """Return the first platform named in text, or None."""
    best: tuple[int, str] | None = None
    for platform, pattern in _PLATFORM_PATTERNS:
        match = pattern.search(text)
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), platform)
    return best[1] if best else None


def split_preamble(text: str) -> tuple[str | None, str]:
    """Split the model's one-line status preamble from the draft.

    The preamble is a short first paragraph such as
    "Generated LinkedIn post using provocative-statement hook."
    Returns (preamble or None, body).
    """
    idx = text.find("\n\n")
    if idx == -1:
        return None, text
    first = text[:idx]
    if len(first) < 200 and _PREAMBLE_HINT.search(first):
        return first.strip(), text[idx + 2:]
    return None, text


def strip_preamble(text: str) -> str:
    return split_preamble(text)[1]


def first_line(text: str, max_len: int = 80) -> str:
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line[:max_len].rstrip()
    return ""
