"""Revision controller: the generate, review, revise loop for one channel run.

The loop is an explicit state machine:

    GENERATING -> REVIEWING -> PASSED
                            -> REVISING -> GENERATING
                            -> EXHAUSTED

At most ``max_revisions + 1`` drafts are generated. When the budget runs out
the best-scoring attempt is returned with the dimensions still under
threshold, so the caller always gets something it can inspect.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from ..config import ChannelConfig, Config
from ..generation.draft_generator import DraftGenerator, GenerationRequest, RevisionGuidance
from ..llm.provider import LLMError, create_provider_from_config
from ..memory.learned_patterns import (
    CONFIDENCE_THRESHOLD,
    DiscoveredPattern,
    LearnedPatternStore,
)
from ..memory.repository import ChannelRepository, JsonFileChannelRepository, format_history_for_prompt
from ..models import AttemptRecord, PipelineResult, RunStatus, SourceMaterial
from ..review.agents import ReviewContext, default_agents
from ..review.gate import QualityGate
from ..review.panel import ReviewPanel
from ..utils.logging import get_logger, set_request_id

logger = get_logger(__name__)


class PipelineState(Enum):
    """States of the revision loop."""
    GENERATING = "generating"
    REVIEWING = "reviewing"
    REVISING = "revising"
    PASSED = "passed"
    EXHAUSTED = "exhausted"


TERMINAL_STATES = frozenset([PipelineState.PASSED, PipelineState.EXHAUSTED])


def next_state(
    state: PipelineState,
    passed: bool = False,
    attempt: int = 0,
    max_revisions: int = 0,
) -> PipelineState:
    """Transition function of the revision loop.

    Args:
        state: Current state.
        passed: Gate verdict; only read when leaving REVIEWING.
        attempt: Zero-based index of the attempt just reviewed.
        max_revisions: Revision budget of the channel.

    Returns:
        The next state.

    Raises:
        ValueError: If called on a terminal state.
    """
    if state == PipelineState.GENERATING:
        return PipelineState.REVIEWING
    if state == PipelineState.REVIEWING:
        if passed:
            return PipelineState.PASSED
        if attempt < max_revisions:
            return PipelineState.REVISING
        return PipelineState.EXHAUSTED
    if state == PipelineState.REVISING:
        return PipelineState.GENERATING
    raise ValueError(f"No transition out of terminal state {state.value}")


def select_best_effort(attempts: Sequence[AttemptRecord]) -> Optional[AttemptRecord]:
    """Pick the reviewed attempt with the highest summed score.

    Ties go to the earliest attempt. Attempts that were never reviewed are
    not candidates; returns None when there are none.
    """
    best = None
    for record in attempts:
        if record.decision is None:
            continue
        if best is None or record.total_score > best.total_score:
            best = record
    return best


@dataclass(frozen=True)
class CostEntry:
    label: str
    amount: float


class CostLedger:
    """Thread-safe running total of model spend for one run.

    Review agents record into the same ledger from worker threads, so a run
    that fails halfway still reports what it spent.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: List[CostEntry] = []

    def record(self, amount: float, label: str = "") -> None:
        with self._lock:
            self._entries.append(CostEntry(label=label, amount=float(amount)))

    @property
    def total(self) -> float:
        with self._lock:
            return sum(entry.amount for entry in self._entries)

    @property
    def entries(self) -> List[CostEntry]:
        with self._lock:
            return list(self._entries)


class RevisionController:
    """Drives one channel run from sources to a PipelineResult.

    Usage:
        controller = RevisionController(generator, panel, repository)
        result = controller.run(channel, sources)
    """

    def __init__(
        self,
        generator: DraftGenerator,
        panel: ReviewPanel,
        repository: ChannelRepository,
        style_profile_text: str = "",
        learn_patterns: bool = True,
    ):
        """Initialize the controller.

        Args:
            generator: Draft generator (writer model).
            panel: Review panel (critic model).
            repository: Per-channel history and learned-pattern storage.
            style_profile_text: Formatted style fingerprint for the prompt.
            learn_patterns: Merge discovered patterns into the store after a run.
        """
        self.generator = generator
        self.panel = panel
        self.repository = repository
        self.store = LearnedPatternStore(repository)
        self.style_profile_text = style_profile_text
        self.learn_patterns = learn_patterns

    def run(
        self,
        channel: ChannelConfig,
        sources: Sequence[SourceMaterial],
        cancel_event: Optional[threading.Event] = None,
        ledger: Optional[CostLedger] = None,
        run_id: Optional[str] = None,
    ) -> PipelineResult:
        """Run the loop until the gate passes, the budget runs out, or the run is cancelled.

        Args:
            channel: Channel configuration, validated before any model call.
            sources: Source material for the piece.
            cancel_event: Checked before each generation and each review.
            ledger: Cost ledger to record into. Pass one in to read the
                partial total when the run raises.
            run_id: Id attached to logs and to the learned-pattern batch.

        Returns:
            PipelineResult for the platform adapter.

        Raises:
            ConfigurationError: If the channel config is invalid.
            LLMError: If draft generation fails. Not retried here.
        """
        channel.validate()
        gate = QualityGate(channel, self.panel.agent_dimensions)

        run_id = set_request_id(run_id)
        ledger = ledger if ledger is not None else CostLedger()
        max_revisions = channel.quality_gate.max_revisions

        history = self.repository.load_history(channel.id)
        learned = self.store.active_phrases(channel.id)
        context = ReviewContext(sources=list(sources), history=history, learned_phrases=learned)
        history_text = format_history_for_prompt(history)

        logger.info(
            f"Starting run for {channel.id} (max {max_revisions} revisions)",
            extra_data={
                "channel_id": channel.id,
                "run_id": run_id,
                "sources": len(sources),
                "learned_phrases": len(learned),
            }
        )

        attempts: List[AttemptRecord] = []
        discovered: List[DiscoveredPattern] = []
        guidance: Optional[RevisionGuidance] = None
        extra_forbidden: List[str] = []
        attempt = 0
        cancelled = False
        state = PipelineState.GENERATING

        while state not in TERMINAL_STATES:
            if state == PipelineState.GENERATING:
                if self._is_cancelled(cancel_event):
                    cancelled = True
                    break
                request = GenerationRequest(
                    channel=channel,
                    sources=list(sources),
                    style_profile_text=self.style_profile_text,
                    history_text=history_text,
                    revision=attempt,
                    guidance=guidance,
                    extra_forbidden=extra_forbidden,
                )
                try:
                    draft, cost = self.generator.generate(request)
                except LLMError as e:
                    if e.cost:
                        ledger.record(e.cost, f"generate:{attempt}")
                    logger.error(
                        f"Draft generation failed on attempt {attempt}: {e}",
                        extra_data={"channel_id": channel.id, "attempt": attempt, "spent": ledger.total}
                    )
                    raise
                ledger.record(cost, f"generate:{attempt}")
                attempts.append(AttemptRecord(attempt=attempt, draft=draft))
                state = next_state(state)

            elif state == PipelineState.REVIEWING:
                if self._is_cancelled(cancel_event):
                    cancelled = True
                    break
                current = attempts[-1]
                outcome = self.panel.review(current.draft, channel, context, ledger=ledger)
                discovered.extend(outcome.discovered_patterns)
                current.decision = gate.decide(outcome.results)

                logger.info(
                    f"Attempt {attempt} {'passed' if current.decision.passed else 'failed'} "
                    f"(score {current.total_score})",
                    extra_data={
                        "channel_id": channel.id,
                        "attempt": attempt,
                        "scores": current.decision.scores,
                        "failing": current.decision.failing_dimensions,
                        "missing_agents": current.decision.missing_agents,
                    }
                )
                state = next_state(state, current.decision.passed, attempt, max_revisions)

            elif state == PipelineState.REVISING:
                decision = attempts[-1].decision
                guidance = RevisionGuidance(
                    feedback=list(decision.feedback),
                    suggestions=list(decision.suggestions),
                )
                extra_forbidden = self._revision_forbidden(learned, discovered)
                attempt += 1
                state = next_state(state)

        result = self._build_result(state, cancelled, attempts, gate, ledger)
        self._learn(channel.id, discovered, run_id)

        logger.info(
            f"Run for {channel.id} ended {result.status.value} after {result.attempts} attempt(s), "
            f"${result.total_cost:.4f}",
            extra_data={
                "channel_id": channel.id,
                "run_id": run_id,
                "status": result.status.value,
                "failing": result.failing_dimensions,
                "missing_agents": result.missing_agents,
                "cost": result.total_cost,
            }
        )
        return result

    @staticmethod
    def _is_cancelled(cancel_event: Optional[threading.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    @staticmethod
    def _revision_forbidden(learned: Sequence[str], discovered: Sequence[DiscoveredPattern]) -> List[str]:
        """Learned phrases plus this run's confident discoveries, case-insensitively unique."""
        phrases = list(learned) + [
            p.phrase for p in discovered if p.confidence >= CONFIDENCE_THRESHOLD and p.phrase.strip()
        ]
        seen = set()
        unique = []
        for phrase in phrases:
            key = phrase.strip().lower()
            if key not in seen:
                seen.add(key)
                unique.append(phrase)
        return unique

    def _build_result(
        self,
        state: PipelineState,
        cancelled: bool,
        attempts: List[AttemptRecord],
        gate: QualityGate,
        ledger: CostLedger,
    ) -> PipelineResult:
        if cancelled:
            status = RunStatus.CANCELLED
            chosen = select_best_effort(attempts)
        elif state == PipelineState.PASSED:
            status = RunStatus.PASSED
            chosen = attempts[-1]
        else:
            status = RunStatus.EXHAUSTED
            chosen = select_best_effort(attempts)

        decision = chosen.decision if chosen is not None else None
        if status == RunStatus.PASSED:
            message = f"Passed on attempt {chosen.attempt + 1}"
        elif status == RunStatus.EXHAUSTED:
            message = (
                f"Revision budget exhausted after {len(attempts)} attempts; "
                f"returning attempt {chosen.attempt + 1} as best effort"
            )
            if decision is not None and decision.missing_agents:
                message += f"; no result from {', '.join(decision.missing_agents)}"
        elif chosen is not None:
            message = f"Cancelled; returning attempt {chosen.attempt + 1} as best effort"
        else:
            message = "Cancelled before any draft was reviewed"

        return PipelineResult(
            final_draft=chosen.draft if chosen is not None else None,
            passed=status == RunStatus.PASSED,
            revision_count=max(len(attempts) - 1, 0),
            total_cost=ledger.total,
            quality_scores=decision.scores if decision is not None else {},
            status=status,
            failing_dimensions=list(decision.failing_dimensions) if decision is not None else [],
            missing_agents=list(decision.missing_agents) if decision is not None else [],
            attempts=len(attempts),
            message=message,
            inert_thresholds=list(gate.inert_thresholds),
        )

    def _learn(self, channel_id: str, discovered: List[DiscoveredPattern], run_id: str) -> None:
        """Merge this run's discoveries once. A store failure never fails the run."""
        if not self.learn_patterns or not discovered:
            return
        try:
            new_count = self.store.merge(channel_id, discovered, batch_id=run_id)
        except Exception as e:
            logger.error(
                f"Failed to save learned patterns for {channel_id}: {e}",
                extra_data={"channel_id": channel_id, "error_type": type(e).__name__}
            )
            return
        if new_count:
            logger.info(
                f"Learned {new_count} new patterns for {channel_id}",
                extra_data={"channel_id": channel_id, "new_count": new_count}
            )


def create_controller_from_config(config: Config, style_profile_text: str = "") -> RevisionController:
    """Wire a controller from application config.

    The writer role drafts; the critic role runs every review agent.
    """
    writer = create_provider_from_config(config.llm, role="writer")
    critic = create_provider_from_config(config.llm, role="critic")
    writer_config = config.llm.get_provider_config(config.llm.get_writer_provider())

    generator = DraftGenerator(
        writer,
        temperature=writer_config.temperature,
        max_tokens=writer_config.max_tokens,
    )
    panel = ReviewPanel(default_agents(critic), max_workers=config.pipeline.max_review_workers)
    repository = JsonFileChannelRepository(config.pipeline.storage_dir)
    return RevisionController(
        generator,
        panel,
        repository,
        style_profile_text=style_profile_text,
        learn_patterns=config.pipeline.learn_patterns,
    )
