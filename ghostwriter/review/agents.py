"""Review agents.

Each agent owns a fixed set of quality dimensions, makes its own model call,
and decides its own verdict by comparing the dimensions it scored against
the channel's minimums for those same names. The model's self-reported
"passed" is ignored.

Agents share no mutable state, so the panel can run them concurrently.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Tuple

from ..config import ChannelConfig
from ..memory.learned_patterns import DiscoveredPattern
from ..models import ContentDraft, HistoryEntry, ReviewAgentResult, SourceMaterial
from ..utils.logging import get_logger
from ..vocabulary.anti_slop import (
    analyze_paragraph_variation,
    compute_burstiness,
    detect_ai_phrases,
    find_overused_words,
)
from .normalize import extract_discovered_patterns, normalize_review

logger = get_logger(__name__)

MAX_SOURCE_CHARS = 3000

# Heuristic floors below which the AI-detection agent adds feedback
MIN_BURSTINESS = 0.5
MIN_PARAGRAPH_VARIATION = 0.4

# Scores given by the originality agent when there is nothing to compare against
NO_HISTORY_SCORE = 9

_JSON_CONTRACT = """Respond with JSON:
{{
  "scores": {{ {score_keys} }},
  "feedback": ["specific issue 1", "specific issue 2"],
  "suggestions": ["specific fix 1", "specific fix 2"]{extra}
}}"""


@dataclass
class ReviewContext:
    """Read-only inputs an agent may consult besides the draft."""
    sources: List[SourceMaterial] = field(default_factory=list)
    history: List[HistoryEntry] = field(default_factory=list)
    learned_phrases: List[str] = field(default_factory=list)


@dataclass
class AgentEvaluation:
    """One agent's output: its verdict, what it cost, and anything it learned."""
    result: ReviewAgentResult
    cost: float = 0.0
    discovered_patterns: List[DiscoveredPattern] = field(default_factory=list)


def derive_passed(
    dimensions: Sequence[str],
    scores: Mapping[str, int],
    min_scores: Mapping[str, int],
) -> Tuple[bool, List[str], List[str]]:
    """Decide an agent's verdict from its own dimensions only.

    A dimension with no configured minimum never blocks. A configured
    dimension fails if it is below the minimum or was not scored at all.

    Returns:
        Tuple of (passed, failing dimensions, feedback for unscored dimensions).
    """
    failing = []
    unscored_feedback = []
    for dimension in dimensions:
        minimum = min_scores.get(dimension)
        if minimum is None:
            continue
        score = scores.get(dimension)
        if score is None:
            failing.append(dimension)
            unscored_feedback.append(f"No {dimension} score was returned; the dimension could not be verified.")
        elif score < minimum:
            failing.append(dimension)
    return not failing, failing, unscored_feedback


class ReviewAgent(ABC):
    """A pluggable reviewer.

    Implementations must provide:
    - name: Unique agent identifier
    - dimensions: The score dimensions this agent owns
    - evaluate: Score a draft
    """

    name: str = ""
    dimensions: Tuple[str, ...] = ()

    @abstractmethod
    def evaluate(
        self,
        draft: ContentDraft,
        channel: ChannelConfig,
        context: ReviewContext,
    ) -> AgentEvaluation:
        """Score a draft.

        Raises:
            LLMError: If the agent's model call fails.
        """
        pass

    def build_result(
        self,
        scores: Mapping[str, int],
        channel: ChannelConfig,
        feedback: Sequence[str] = (),
        suggestions: Sequence[str] = (),
    ) -> ReviewAgentResult:
        """Assemble a result, keeping only owned dimensions and deriving passed."""
        owned = {dim: scores[dim] for dim in self.dimensions if dim in scores}
        passed, _, unscored = derive_passed(self.dimensions, owned, channel.quality_gate.min_scores)
        return ReviewAgentResult(
            agent=self.name,
            scores=owned,
            passed=passed,
            feedback=list(feedback) + unscored,
            suggestions=list(suggestions),
        )


class LLMReviewAgent(ReviewAgent):
    """Agent that scores through one JSON model call.

    Subclasses provide the system prompt and may add heuristic feedback or
    pattern discovery.
    """

    temperature = 0.3

    def __init__(self, provider):
        """Initialize the agent.

        Args:
            provider: LLMProvider used for the JSON call.
        """
        self.provider = provider

    @abstractmethod
    def system_prompt(self, channel: ChannelConfig, context: ReviewContext) -> str:
        pass

    def user_prompt(self, draft: ContentDraft, channel: ChannelConfig, context: ReviewContext) -> str:
        return f"Review this {channel.content_type}:\n\n# {draft.headline}\n\n{draft.body}"

    def heuristic_feedback(self, draft: ContentDraft, context: ReviewContext) -> List[str]:
        return []

    def discover_patterns(self, data: Dict, draft: ContentDraft) -> List[DiscoveredPattern]:
        return []

    def json_contract(self, extra: str = "") -> str:
        score_keys = ", ".join(f'"{dim}": N' for dim in self.dimensions)
        return _JSON_CONTRACT.format(score_keys=score_keys, extra=extra)

    def evaluate(
        self,
        draft: ContentDraft,
        channel: ChannelConfig,
        context: ReviewContext,
    ) -> AgentEvaluation:
        heuristics = self.heuristic_feedback(draft, context)

        response = self.provider.call_json(
            system_prompt=self.system_prompt(channel, context),
            user_prompt=self.user_prompt(draft, channel, context),
            temperature=self.temperature,
        )

        review = normalize_review(response.data)
        result = self.build_result(
            review.scores,
            channel,
            feedback=heuristics + review.feedback,
            suggestions=review.suggestions,
        )

        logger.debug(
            f"{self.name}: scores={result.scores} passed={result.passed}",
            extra_data={"agent": self.name, "scores": result.scores, "cost": response.cost}
        )
        return AgentEvaluation(
            result=result,
            cost=response.cost,
            discovered_patterns=self.discover_patterns(response.data, draft),
        )


class EditorAgent(LLMReviewAgent):
    """Structure, flow, readability and voice compliance."""

    name = "editor"
    dimensions = ("structure", "readability", "voiceMatch")

    def system_prompt(self, channel: ChannelConfig, context: ReviewContext) -> str:
        voice = channel.voice
        return f"""You are a senior editor reviewing a {channel.content_type} written by {voice.name}.

Evaluate the following aspects:

1. **Structure** (1-10): Is the piece well-organized? Good flow between sections? Strong intro and conclusion?
2. **Readability** (1-10): Is it easy to read? Good sentence variety? Clear language?
3. **Voice Match** (1-10): Does it sound like {voice.name}? Tone: {voice.tone}. {voice.persona}

For each score below 8, provide specific, actionable feedback on what to fix.

{self.json_contract()}"""


class FactCheckerAgent(LLMReviewAgent):
    """Every claim must trace back to the source material."""

    name = "fact_checker"
    dimensions = ("factualAccuracy", "sourceCoverage")
    temperature = 0.1

    def system_prompt(self, channel: ChannelConfig, context: ReviewContext) -> str:
        return f"""You are a fact-checker reviewing a {channel.content_type}.

Your job:
1. Identify every factual claim in the draft
2. Check each claim against the source material
3. Flag any claim that does NOT appear in the sources as a potential hallucination
4. Check if important data from the sources was omitted

Score:
- **Factual Accuracy** (1-10): Are all claims supported by sources? 10 = every fact verified, 1 = many hallucinated claims
- **Source Coverage** (1-10): How well does the draft use the available data? 10 = all key facts used, 1 = most data ignored

Be strict. A single hallucinated data point should drop factual accuracy below 7.

{self.json_contract()}"""

    def user_prompt(self, draft: ContentDraft, channel: ChannelConfig, context: ReviewContext) -> str:
        if context.sources:
            sources = "\n\n".join(
                f"[{i}] {s.title}\n{s.body[:MAX_SOURCE_CHARS]}"
                for i, s in enumerate(context.sources, 1)
            )
        else:
            sources = "(no source material was supplied)"
        return f"""SOURCE MATERIAL (ground truth):
{sources}

DRAFT TO VERIFY:
# {draft.headline}

{draft.body}

Check every factual claim in the draft against the source material."""


class EngagementAgent(LLMReviewAgent):
    """Hook strength, headline quality and shareability."""

    name = "engagement"
    dimensions = ("hookStrength", "engagementPotential")

    def system_prompt(self, channel: ChannelConfig, context: ReviewContext) -> str:
        return f"""You are a content strategist evaluating engagement potential.

Evaluate:
1. **Hook Strength** (1-10): Does the opening grab attention? Would someone keep reading after the first 2 sentences?
2. **Engagement Potential** (1-10): Would readers share this? Comment on it? Does it provoke thought or emotion?

Consider:
- Is the headline compelling and specific (not generic)?
- Does the intro create curiosity or urgency?
- Does it end with something that sticks?

Be honest: most content scores 5-6. Reserve 8+ for genuinely compelling work.

{self.json_contract()}"""


class AIDetectionAgent(LLMReviewAgent):
    """Statistical tells that AI detectors flag, plus pattern discovery.

    Heuristic findings (blacklisted phrases, uniform sentence and paragraph
    lengths, overused words) are added to the feedback. Phrases the model
    flags as recurring tells are returned as discovered patterns.
    """

    name = "ai_detection"
    dimensions = ("naturalness", "perplexityVariance")

    def heuristic_feedback(self, draft: ContentDraft, context: ReviewContext) -> List[str]:
        feedback = []

        ai_phrases = detect_ai_phrases(draft.body)
        if ai_phrases:
            more = "..." if len(ai_phrases) > 5 else ""
            feedback.append(
                f"Found {len(ai_phrases)} AI-typical phrases: {', '.join(ai_phrases[:5])}{more}"
            )

        learned = detect_ai_phrases(draft.body, context.learned_phrases)
        if learned:
            feedback.append(f"Reused previously flagged phrases: {', '.join(learned)}")

        burstiness = compute_burstiness(draft.body)
        if burstiness.burstiness_score < MIN_BURSTINESS:
            feedback.append(
                f"Low burstiness ({burstiness.burstiness_score:.2f}): sentence lengths are too uniform. "
                "Mix short punches with longer sentences."
            )

        variation = analyze_paragraph_variation(draft.body)
        if variation.variation_score < MIN_PARAGRAPH_VARIATION:
            feedback.append(
                f"Low paragraph variation ({variation.variation_score:.2f}): paragraphs are too similar in length."
            )

        overused = find_overused_words(draft.body)
        if overused:
            words = ", ".join(f"{word} ({n}x)" for word, n in overused)
            feedback.append(f"Overused words: {words}")

        return feedback

    def system_prompt(self, channel: ChannelConfig, context: ReviewContext) -> str:
        extra = """,
  "discovered_patterns": [
    {"phrase": "recurring AI-sounding phrase", "category": "phrase|structural|stylistic", "confidence": 0.0-1.0}
  ]"""
        return f"""You are an AI detection expert analyzing text for patterns that AI detectors flag.

Evaluate:
1. **Naturalness** (1-10): Does this read like a human wrote it? Look for uniform sentence structure,
   overly smooth transitions, missing personality markers, too-perfect parallel structure and generic phrasing.
2. **Perplexity Variance** (1-10): Does the text vary naturally in complexity? Simple and complex sentences,
   vocabulary shifts, natural digressions.

Also list any phrases or constructions that read as machine-written tells in "discovered_patterns",
with your confidence that each is a recurring tell rather than a one-off.

{self.json_contract(extra)}"""

    def user_prompt(self, draft: ContentDraft, channel: ChannelConfig, context: ReviewContext) -> str:
        burstiness = compute_burstiness(draft.body)
        variation = analyze_paragraph_variation(draft.body)
        ai_phrases = detect_ai_phrases(draft.body)
        return f"""HEURISTIC ANALYSIS RESULTS:
- AI phrases found: {', '.join(ai_phrases) if ai_phrases else 'none'}
- Burstiness score: {burstiness.burstiness_score:.2f} (human-like > 0.6)
- Paragraph variation: {variation.variation_score:.2f} (human-like > 0.5)
- Average sentence length: {burstiness.avg_sentence_length:.1f} words

TEXT:
{draft.body}"""

    def discover_patterns(self, data: Dict, draft: ContentDraft) -> List[DiscoveredPattern]:
        return extract_discovered_patterns(data)


class OriginalityAgent(LLMReviewAgent):
    """Topic originality and angle freshness against published history.

    Auto-passes at score 9 without a model call when the channel has no
    publication history.
    """

    name = "originality"
    dimensions = ("topicOriginality", "angleFreshness")

    def evaluate(
        self,
        draft: ContentDraft,
        channel: ChannelConfig,
        context: ReviewContext,
    ) -> AgentEvaluation:
        if not context.history:
            scores = {dim: NO_HISTORY_SCORE for dim in self.dimensions}
            return AgentEvaluation(result=self.build_result(scores, channel), cost=0.0)
        return super().evaluate(draft, channel, context)

    def system_prompt(self, channel: ChannelConfig, context: ReviewContext) -> str:
        history = "\n".join(
            f'- "{e.headline}" ({e.published_at[:10]}): {e.summary}' for e in context.history
        )
        return f"""You are an originality reviewer for a {channel.content_type} channel called "{channel.display_name}".

Compare a new draft against previously published content and score how ORIGINAL it is.

PREVIOUSLY PUBLISHED ({len(context.history)} items):
{history}

**Topic Originality** (1-10): 9-10 completely new territory, 5-6 similar area with enough new information,
1-2 nearly identical to a published piece.
**Angle Freshness** (1-10): 9-10 novel perspective, 5-6 core argument feels recycled, 1-2 copy of a previous angle.

For each score below 7, reference which past article(s) overlap.

{self.json_contract()}"""


def default_agents(provider) -> List[ReviewAgent]:
    """The standard five-agent panel, in registration order."""
    return [
        EditorAgent(provider),
        FactCheckerAgent(provider),
        EngagementAgent(provider),
        AIDetectionAgent(provider),
        OriginalityAgent(provider),
    ]
