"""Core data types passed between pipeline components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


# ============================================================================
# LLM call types
# ============================================================================

class MessageRole(Enum):
    """Roles in a chat conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A single chat message."""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class LLMResponse:
    """Raw response from a provider API call."""
    content: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class CallResult(Generic[T]):
    """Result of one model call: the payload and what it cost."""
    data: T
    cost: float = 0.0


# ============================================================================
# Pipeline inputs
# ============================================================================

@dataclass(frozen=True)
class SourceMaterial:
    """An ingested item. Produced by an ingestion connector, read-only here."""
    title: str
    body: str
    url: Optional[str] = None
    timestamp: Optional[str] = None
    id: str = ""
    provider: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceMaterial":
        return cls(
            title=data.get("title") or "",
            body=data.get("body") or data.get("content") or "",
            url=data.get("url"),
            timestamp=data.get("timestamp") or data.get("publishedAt"),
            id=data.get("id", ""),
            provider=data.get("provider", ""),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """A previously published piece for a channel."""
    headline: str
    summary: str
    published_at: str
    topics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headline": self.headline,
            "summary": self.summary,
            "topics": list(self.topics),
            "publishedAt": self.published_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            headline=data.get("headline", ""),
            summary=data.get("summary", ""),
            published_at=data.get("publishedAt", ""),
            topics=list(data.get("topics", [])),
        )


# ============================================================================
# Drafts and reviews
# ============================================================================

@dataclass(frozen=True)
class ContentDraft:
    """One generated draft. Each revision is a new value, never an edit."""
    headline: str
    body: str
    revision: int = 0
    channel_id: str = ""
    word_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "headline": self.headline,
            "content": self.body,
            "wordCount": self.word_count,
            "revision": self.revision,
        }


@dataclass
class ReviewAgentResult:
    """One review agent's verdict on a draft."""
    agent: str
    scores: Dict[str, int] = field(default_factory=dict)
    passed: bool = False
    feedback: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def total_score(self) -> int:
        return sum(self.scores.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent,
            "scores": dict(self.scores),
            "passed": self.passed,
            "feedback": list(self.feedback),
            "suggestions": list(self.suggestions),
        }


@dataclass
class QualityGateDecision:
    """Aggregate pass/fail over every registered review agent."""
    passed: bool
    results: Dict[str, Optional[ReviewAgentResult]] = field(default_factory=dict)
    feedback: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    missing_agents: List[str] = field(default_factory=list)
    failing_dimensions: List[str] = field(default_factory=list)

    @property
    def scores(self) -> Dict[str, int]:
        """All dimension scores from the present results."""
        merged: Dict[str, int] = {}
        for result in self.results.values():
            if result is not None:
                merged.update(result.scores)
        return merged

    @property
    def total_score(self) -> int:
        return sum(self.scores.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "results": {
                name: result.to_dict() if result is not None else None
                for name, result in self.results.items()
            },
            "feedback": list(self.feedback),
            "suggestions": list(self.suggestions),
            "missingAgents": list(self.missing_agents),
            "failingDimensions": list(self.failing_dimensions),
        }


# ============================================================================
# Pipeline output
# ============================================================================

class RunStatus(Enum):
    """How a pipeline run ended."""
    PASSED = "passed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass
class AttemptRecord:
    """One generate-and-review attempt, kept for best-effort selection."""
    attempt: int
    draft: ContentDraft
    decision: Optional[QualityGateDecision] = None

    @property
    def total_score(self) -> int:
        return self.decision.total_score if self.decision is not None else 0


@dataclass
class PipelineResult:
    """What a run hands to the platform adapter."""
    final_draft: Optional[ContentDraft]
    passed: bool
    revision_count: int
    total_cost: float
    quality_scores: Dict[str, int] = field(default_factory=dict)
    status: RunStatus = RunStatus.EXHAUSTED
    failing_dimensions: List[str] = field(default_factory=list)
    missing_agents: List[str] = field(default_factory=list)
    attempts: int = 0
    message: str = ""
    inert_thresholds: List[str] = field(default_factory=list)

    @property
    def usable(self) -> bool:
        """A draft exists, whether or not it cleared the gate."""
        return self.final_draft is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finalDraft": self.final_draft.to_dict() if self.final_draft else None,
            "passed": self.passed,
            "status": self.status.value,
            "revisionCount": self.revision_count,
            "attempts": self.attempts,
            "totalCost": round(self.total_cost, 6),
            "qualityScores": dict(self.quality_scores),
            "failingDimensions": list(self.failing_dimensions),
            "missingAgents": list(self.missing_agents),
            "inertThresholds": list(self.inert_thresholds),
            "message": self.message,
        }
