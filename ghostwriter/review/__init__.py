"""Review panel, agents and quality gate."""

from .agents import (
    AgentEvaluation,
    ReviewAgent,
    LLMReviewAgent,
    ReviewContext,
    EditorAgent,
    FactCheckerAgent,
    EngagementAgent,
    AIDetectionAgent,
    OriginalityAgent,
    default_agents,
    derive_passed,
)
from .gate import QualityGate, check_threshold_coverage
from .normalize import normalize_review, coerce_score, extract_discovered_patterns
from .panel import PanelOutcome, ReviewPanel

__all__ = [
    "AgentEvaluation",
    "ReviewAgent",
    "LLMReviewAgent",
    "ReviewContext",
    "EditorAgent",
    "FactCheckerAgent",
    "EngagementAgent",
    "AIDetectionAgent",
    "OriginalityAgent",
    "default_agents",
    "derive_passed",
    "QualityGate",
    "check_threshold_coverage",
    "normalize_review",
    "coerce_score",
    "extract_discovered_patterns",
    "PanelOutcome",
    "ReviewPanel",
]
