"""Cross-run channel memory: learned patterns and publication history."""

from .learned_patterns import (
    CONFIDENCE_THRESHOLD,
    DECAY_DAYS,
    PatternCategory,
    DiscoveredPattern,
    LearnedPattern,
    LearnedPatternStore,
    merge_discovered,
    active_phrases,
    batch_id_for,
)
from .repository import (
    ChannelRepository,
    InMemoryChannelRepository,
    JsonFileChannelRepository,
    format_history_for_prompt,
)

__all__ = [
    "CONFIDENCE_THRESHOLD",
    "DECAY_DAYS",
    "PatternCategory",
    "DiscoveredPattern",
    "LearnedPattern",
    "LearnedPatternStore",
    "merge_discovered",
    "active_phrases",
    "batch_id_for",
    "ChannelRepository",
    "InMemoryChannelRepository",
    "JsonFileChannelRepository",
    "format_history_for_prompt",
]
