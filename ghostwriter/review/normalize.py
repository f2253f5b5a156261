"""Normalize review-agent JSON into scores, feedback and suggestions.

Models asked for ``{"scores": {...}, "feedback": [...], "suggestions": [...]}``
often answer in some other shape: snake_case keys, scores nested under other
names, "7/10" strings, issues under "problems" or "weaknesses". Everything
here is tolerant of that and returns clean values.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..memory.learned_patterns import DiscoveredPattern, PatternCategory

_OUT_OF_TEN = re.compile(r"\b(\d+(?:\.\d+)?)\s*/\s*10\b")
_SNAKE = re.compile(r"_([a-z])")

# Maps keywords found in response keys to canonical dimension names.
# Order matters: the first matching entry wins.
SCORE_KEYWORD_MAP = [
    (("structure", "structural", "organization", "flow"), "structure"),
    (("readability", "readable", "writing_quality", "clarity", "prose"), "readability"),
    (("voice", "tone", "persona"), "voiceMatch"),
    (("factual", "accuracy", "fact_check", "verification"), "factualAccuracy"),
    (("source_coverage", "sourcecoverage", "coverage", "sourcing", "citation"), "sourceCoverage"),
    (("hook", "opening", "intro", "headline"), "hookStrength"),
    (("engagement", "shareab", "viral", "compelling"), "engagementPotential"),
    (("natural", "human", "authentic"), "naturalness"),
    (("perplexity", "variance", "burstiness", "sentence_variety"), "perplexityVariance"),
    (("originality", "topic_original", "topicoriginal", "unique"), "topicOriginality"),
    (("freshness", "angle_fresh", "anglefresh", "novel"), "angleFreshness"),
]

FEEDBACK_KEYS = (
    "feedback", "issues", "problems", "critical_issues", "structural_issues",
    "inaccuracies", "engagement_killers", "weaknesses", "engagement_problems",
    "concerns", "technical_concerns",
)

SUGGESTION_KEYS = (
    "suggestions", "recommendations", "improvements", "specific_fixes",
    "fixes", "what_would_make_this_great",
)

DISCOVERED_KEYS = ("discovered_patterns", "discoveredPatterns", "patterns")

_MAX_DEPTH = 3


@dataclass
class NormalizedReview:
    """Cleaned-up review payload."""
    scores: Dict[str, int] = field(default_factory=dict)
    feedback: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


def to_camel_case(key: str) -> str:
    return _SNAKE.sub(lambda m: m.group(1).upper(), key)


def coerce_score(value: Any) -> Optional[int]:
    """Turn a model-reported score into an integer 1-10.

    Accepts numbers in [0, 10] and strings like "7", "7.5" or "7/10".
    Halves round up; 0 clamps to 1. Anything else returns None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        match = _OUT_OF_TEN.search(text)
        if match:
            text = match.group(1)
        try:
            value = float(text)
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or math.isnan(value):
        return None
    if value < 0 or value > 10:
        return None
    return min(max(int(math.floor(value + 0.5)), 1), 10)


def match_score_dimension(key: str) -> Optional[str]:
    """Map a freeform key to a known dimension name."""
    lower = key.lower()
    for keywords, dimension in SCORE_KEYWORD_MAP:
        if any(kw in lower for kw in keywords):
            return dimension
    return None


def extract_numeric_scores(data: Any, depth: int = 0) -> Dict[str, int]:
    """Search a whole response for scores under recognizable keys."""
    scores: Dict[str, int] = {}
    if not isinstance(data, dict) or depth > _MAX_DEPTH:
        return scores

    for key, value in data.items():
        if isinstance(value, dict):
            for dim, score in extract_numeric_scores(value, depth + 1).items():
                scores.setdefault(dim, score)
            continue
        if isinstance(value, (list, bool)) or value is None:
            continue
        # Bare strings only count when they look like "N/10"
        if isinstance(value, str) and not _OUT_OF_TEN.search(value):
            continue
        dimension = match_score_dimension(str(key))
        score = coerce_score(value)
        if dimension and score is not None:
            scores.setdefault(dimension, score)
    return scores


def _explicit_scores(raw: Dict[str, Any]) -> Dict[str, int]:
    explicit = raw.get("scores")
    if not isinstance(explicit, dict):
        return {}
    scores = {}
    for key, value in explicit.items():
        score = coerce_score(value)
        if score is not None:
            scores[to_camel_case(str(key))] = score
    return scores


def _coerce_strings(items: List[Any]) -> List[str]:
    strings = []
    for item in items:
        if isinstance(item, str):
            text = item.strip()
        elif isinstance(item, dict):
            text = str(item.get("issue") or item.get("text") or item.get("description") or item)
        else:
            text = str(item)
        if text:
            strings.append(text)
    return strings


def find_string_arrays(data: Any, depth: int = 0) -> List[List[str]]:
    """All non-empty lists of strings in a response, depth-first."""
    found: List[List[str]] = []
    if not isinstance(data, dict) or depth > _MAX_DEPTH:
        return found
    for key, value in data.items():
        if key in ("scores",) + DISCOVERED_KEYS + SUGGESTION_KEYS:
            continue
        if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
            found.append([v for v in value if v.strip()])
        elif isinstance(value, dict):
            found.extend(find_string_arrays(value, depth + 1))
    return [arr for arr in found if arr]


def _first_list(raw: Dict[str, Any], keys) -> List[str]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, list) and value:
            return _coerce_strings(value)
    return []


def normalize_review(raw: Dict[str, Any]) -> NormalizedReview:
    """Extract scores, feedback and suggestions from model JSON.

    Scores come from an explicit ``scores`` object when it holds any usable
    value, otherwise from a keyword search over the whole response.
    """
    if not isinstance(raw, dict):
        return NormalizedReview()

    scores = _explicit_scores(raw) or extract_numeric_scores(raw)

    feedback = _first_list(raw, FEEDBACK_KEYS)
    if not feedback:
        arrays = find_string_arrays(raw)
        if arrays:
            feedback = arrays[0]

    return NormalizedReview(
        scores=scores,
        feedback=feedback,
        suggestions=_first_list(raw, SUGGESTION_KEYS),
    )


def extract_discovered_patterns(raw: Dict[str, Any]) -> List[DiscoveredPattern]:
    """Parse agent-flagged patterns: objects with phrase, category, confidence."""
    if not isinstance(raw, dict):
        return []
    items = next((raw[k] for k in DISCOVERED_KEYS if isinstance(raw.get(k), list)), [])

    patterns = []
    for item in items:
        if isinstance(item, str):
            phrase, category, confidence, context = item, "phrase", 0.0, None
        elif isinstance(item, dict):
            phrase = item.get("phrase") or item.get("pattern") or ""
            category = item.get("category", "phrase")
            confidence = item.get("confidence", 0.0)
            context = item.get("context")
        else:
            continue
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            confidence = 0.0
        if not isinstance(phrase, str) or not phrase.strip():
            continue
        patterns.append(DiscoveredPattern(
            phrase=phrase.strip(),
            category=PatternCategory.parse(category),
            confidence=min(max(confidence, 0.0), 1.0),
            context=context if isinstance(context, str) else None,
        ))
    return patterns
