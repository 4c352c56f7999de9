"""Cognitive side of a session.

Prepares what the model sees (system context), classifies what the human
answers (intent) and accounts for what it all costs (usage).
"""

from ghostpen.cognitive.context import MIX_MODE_TEMPLATE, SYSTEM_PROMPT, ContextAssembler
from ghostpen.cognitive.intent import IntentClassifier, is_affirmative
from ghostpen.cognitive.schemas import (
    PreparedContext,
    SaveRecord,
    SystemContext,
    SystemSegment,
    UsageSnapshot,
    UserIntent,
)
from ghostpen.cognitive.usage_tracker import PRICING, UsageCounters, UsageTracker, calculate_cost

__all__ = [
    "ContextAssembler",
    "IntentClassifier",
    "MIX_MODE_TEMPLATE",
    "PRICING",
    "PreparedContext",
    "SYSTEM_PROMPT",
    "SaveRecord",
    "SystemContext",
    "SystemSegment",
    "UsageCounters",
    "UsageSnapshot",
    "UsageTracker",
    "UserIntent",
    "calculate_cost",
    "is_affirmative",
]
