"""Vocabulary checks for generated text."""

from .anti_slop import (
    AI_PHRASE_BLACKLIST,
    BurstinessStats,
    ParagraphVariation,
    detect_ai_phrases,
    compute_burstiness,
    analyze_paragraph_variation,
    find_overused_words,
)

__all__ = [
    "AI_PHRASE_BLACKLIST",
    "BurstinessStats",
    "ParagraphVariation",
    "detect_ai_phrases",
    "compute_burstiness",
    "analyze_paragraph_variation",
    "find_overused_words",
]
