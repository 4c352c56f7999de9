"""Feedback intent classification.

Every line the human types at the review prompt is mapped to exactly one
UserIntent. No LLM -- exact, case-insensitive keyword match only.
"""

from __future__ import annotations

from collections.abc import Iterable

from ghostpen.cognitive.schemas import UserIntent

_YES = frozenset({"y", "yes", "так", "т", "ок", "ok", "да"})


def _normalize(text: str) -> str:
    return " ".join(text.split()).casefold()


class IntentClassifier:
    """Classify feedback as accept, exit or revise."""

    def __init__(self, accept_keywords: Iterable[str], exit_keywords: Iterable[str]) -> None:
        self._accept = frozenset(_normalize(k) for k in accept_keywords)
        self._exit = frozenset(_normalize(k) for k in exit_keywords)
        if self._accept & self._exit:
            raise ValueError(f"Keywords are both accept and exit: {sorted(self._accept & self._exit)}")

    def classify(self, feedback: str) -> UserIntent:
        """Anything that is not exactly a keyword is revision input."""
        key = _normalize(feedback)
        if key in self._exit:
            return UserIntent.EXIT
        if key in self._accept:
            return UserIntent.ACCEPT
        return UserIntent.REVISE


def is_affirmative(answer: str) -> bool:
    return _normalize(answer) in _YES
