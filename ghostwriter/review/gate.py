"""Quality gate: one pass/fail decision over every registered review agent.

The decision is a pure function of the agent results. A missing result
fails the gate unless the channel marks that agent optional.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config import ChannelConfig, ConfigurationError
from ..models import QualityGateDecision, ReviewAgentResult
from ..utils.logging import get_logger

logger = get_logger(__name__)


def _dedupe(items: Iterable[str]) -> List[str]:
    """Drop exact duplicates, keeping first occurrences in order."""
    return list(dict.fromkeys(items))


def check_threshold_coverage(
    agent_dimensions: Sequence[Tuple[str, Sequence[str]]],
    min_scores: Mapping[str, int],
) -> List[str]:
    """Verify dimension ownership against the configured thresholds.

    Args:
        agent_dimensions: (agent name, owned dimensions) in registration order.
        min_scores: Configured per-dimension minimums.

    Returns:
        Configured dimensions no agent scores. They can never block the gate.

    Raises:
        ConfigurationError: If two agents claim the same dimension.
    """
    owners: Dict[str, str] = {}
    for agent, dimensions in agent_dimensions:
        for dimension in dimensions:
            if dimension in owners and owners[dimension] != agent:
                raise ConfigurationError(
                    f"Dimension '{dimension}' is scored by both '{owners[dimension]}' and '{agent}'"
                )
            owners[dimension] = agent
    return sorted(d for d in min_scores if d not in owners)


class QualityGate:
    """Aggregates agent verdicts for one channel.

    Usage:
        gate = QualityGate(channel, [(a.name, a.dimensions) for a in agents])
        decision = gate.decide(panel_results)
    """

    def __init__(self, channel: ChannelConfig, agent_dimensions: Sequence[Tuple[str, Sequence[str]]]):
        """Initialize the gate.

        Args:
            channel: Channel whose thresholds and optional agents apply.
            agent_dimensions: (agent name, owned dimensions) in registration order.

        Raises:
            ConfigurationError: If dimension ownership is ambiguous.
        """
        self.channel = channel
        self.agent_names = [name for name, _ in agent_dimensions]
        self.agent_dimensions = {name: tuple(dims) for name, dims in agent_dimensions}
        self.optional_agents = set(channel.quality_gate.optional_agents)
        self.inert_thresholds = check_threshold_coverage(
            agent_dimensions, channel.quality_gate.min_scores
        )
        if self.inert_thresholds:
            logger.warning(
                f"Thresholds with no scoring agent are inert for {channel.id}: "
                f"{', '.join(self.inert_thresholds)}",
                extra_data={"channel_id": channel.id, "inert": self.inert_thresholds}
            )

    def decide(self, results: Mapping[str, Optional[ReviewAgentResult]]) -> QualityGateDecision:
        """Aggregate agent results into a decision.

        Args:
            results: Agent name -> result, or None where the agent failed.
                Agents absent from the mapping count as missing.
        """
        ordered: Dict[str, Optional[ReviewAgentResult]] = {
            name: results.get(name) for name in self.agent_names
        }

        missing = [name for name, result in ordered.items() if result is None]
        blocking_missing = [name for name in missing if name not in self.optional_agents]
        present = [result for result in ordered.values() if result is not None]

        passed = not blocking_missing and all(result.passed for result in present)

        feedback = _dedupe(item for result in present for item in result.feedback)
        suggestions = _dedupe(item for result in present for item in result.suggestions)

        return QualityGateDecision(
            passed=passed,
            results=ordered,
            feedback=feedback,
            suggestions=suggestions,
            missing_agents=missing,
            failing_dimensions=self.failing_dimensions(ordered, blocking_missing),
        )

    def failing_dimensions(
        self,
        ordered: Mapping[str, Optional[ReviewAgentResult]],
        blocking_missing: Iterable[str] = (),
    ) -> List[str]:
        """Configured dimensions holding the gate closed, in registration order.

        A dimension fails when its score is below minimum or absent from a
        present result. Every gated dimension of a missing non-optional agent
        fails too.
        """
        min_scores = self.channel.quality_gate.min_scores
        blocking = set(blocking_missing)
        failing = []
        for name, result in ordered.items():
            if result is None:
                if name in blocking:
                    failing.extend(d for d in self.agent_dimensions.get(name, ()) if d in min_scores)
                continue
            for dimension in self.agent_dimensions.get(name, tuple(result.scores)):
                minimum = min_scores.get(dimension)
                if minimum is None:
                    continue
                score = result.scores.get(dimension)
                if score is None or score < minimum:
                    failing.append(dimension)
        return _dedupe(failing)
