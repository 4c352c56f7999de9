"""Token usage accounting for a session.

Counters are summed across every model call, tool rounds included.
Cost is derived on read from a fixed per-million-token price table and
never feeds back into control flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ghostpen.cognitive.schemas import UsageSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Price:
    """USD per million tokens."""

    input: float
    cache_write: float
    cache_read: float
    output: float


PRICING: dict[str, Price] = {
    "claude-sonnet-4-20250514": Price(input=3.0, cache_write=3.75, cache_read=0.30, output=15.0),
    "claude-sonnet-4": Price(input=3.0, cache_write=3.75, cache_read=0.30, output=15.0),
    "claude-haiku-4-5": Price(input=1.0, cache_write=1.25, cache_read=0.10, output=5.0),
    "claude-opus-4-6": Price(input=5.0, cache_write=6.25, cache_read=0.50, output=25.0),
}

FALLBACK_PRICE = PRICING["claude-sonnet-4"]


@dataclass
class UsageCounters:
    input: int = 0
    output: int = 0
    cache_write: int = 0
    cache_read: int = 0


def price_for(model: str) -> Price:
    return PRICING.get(model, FALLBACK_PRICE)


def calculate_cost(counters: UsageCounters, model: str) -> float:
    p = price_for(model)
    return (
        counters.input * p.input
        + counters.cache_write * p.cache_write
        + counters.cache_read * p.cache_read
        + counters.output * p.output
    ) / 1_000_000


def _tokens(usage: dict[str, Any], key: str) -> int:
    value = usage.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


class UsageTracker:
    """Accumulates usage from each API response."""

    def __init__(self, model: str) -> None:
        self._model = model
        self._counters = UsageCounters()
        self._calls = 0
        if model not in PRICING:
            logger.info("No price row for %s, using fallback rates", model)

    @property
    def counters(self) -> UsageCounters:
        return UsageCounters(**vars(self._counters))

    @property
    def api_calls(self) -> int:
        return self._calls

    def record(self, usage: dict[str, Any] | None) -> None:
        self._calls += 1
        if not usage:
            return
        c = self._counters
        c.input += _tokens(usage, "input_tokens")
        c.output += _tokens(usage, "output_tokens")
        c.cache_write += _tokens(usage, "cache_creation_input_tokens")
        c.cache_read += _tokens(usage, "cache_read_input_tokens")

    @property
    def cost(self) -> float:
        return calculate_cost(self._counters, self._model)

    def snapshot(self) -> UsageSnapshot:
        c = self._counters
        return UsageSnapshot(
            input_tokens=c.input,
            output_tokens=c.output,
            cache_write_tokens=c.cache_write,
            cache_read_tokens=c.cache_read,
            api_calls=self._calls,
            model=self._model,
            cost_usd=self.cost,
        )
