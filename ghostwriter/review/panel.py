"""Review panel: run every registered agent over one draft concurrently.

A failing agent yields an absent result instead of aborting the panel, and
the panel waits for every agent to settle before returning. Each agent's
cost goes into the ledger the moment that agent returns.
"""

import contextvars
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import ChannelConfig, ConfigurationError
from ..memory.learned_patterns import DiscoveredPattern
from ..models import ContentDraft, ReviewAgentResult
from ..utils.logging import get_logger
from .agents import AgentEvaluation, ReviewAgent, ReviewContext

logger = get_logger(__name__)


@dataclass
class PanelOutcome:
    """Everything one panel invocation produced."""
    results: Dict[str, Optional[ReviewAgentResult]] = field(default_factory=dict)
    cost: float = 0.0
    discovered_patterns: List[DiscoveredPattern] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


class ReviewPanel:
    """An ordered registry of review agents.

    Registration order is the order feedback is merged in. Agents can be
    added or removed without touching the gate or the controller.
    """

    def __init__(self, agents: Sequence[ReviewAgent], max_workers: Optional[int] = None):
        """Initialize the panel.

        Args:
            agents: Agents in registration order. Names must be unique.
            max_workers: Thread pool size; defaults to one thread per agent.

        Raises:
            ConfigurationError: If there are no agents or names repeat.
        """
        if not agents:
            raise ConfigurationError("A review panel needs at least one agent")
        names = [agent.name for agent in agents]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate review agent names: {', '.join(duplicates)}")

        self.agents = list(agents)
        self.max_workers = max_workers or len(self.agents)

    @property
    def agent_names(self) -> List[str]:
        return [agent.name for agent in self.agents]

    @property
    def agent_dimensions(self) -> List[Tuple[str, Tuple[str, ...]]]:
        return [(agent.name, tuple(agent.dimensions)) for agent in self.agents]

    def review(
        self,
        draft: ContentDraft,
        channel: ChannelConfig,
        context: ReviewContext,
        ledger=None,
    ) -> PanelOutcome:
        """Run all agents and wait for every one of them.

        Args:
            draft: Draft under review.
            channel: Channel config (thresholds, voice).
            context: Sources, history and learned phrases.
            ledger: Optional cost ledger with ``record(amount, label)``.

        Returns:
            PanelOutcome with results keyed by agent name in registration order.
        """
        evaluations: Dict[str, Optional[AgentEvaluation]] = {}
        errors: Dict[str, str] = {}
        cost = 0.0

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            # Each worker runs in a copy of this context so the run id reaches its logs
            futures = {
                executor.submit(
                    contextvars.copy_context().run, agent.evaluate, draft, channel, context
                ): agent.name
                for agent in self.agents
            }
            for future in as_completed(futures):
                name = futures[future]
                try:
                    evaluation = future.result()
                except Exception as e:
                    # One agent failing never aborts the panel
                    spent = float(getattr(e, "cost", 0.0) or 0.0)
                    logger.error(
                        f"Review agent '{name}' failed: {e}",
                        extra_data={"agent": name, "error_type": type(e).__name__, "cost": spent}
                    )
                    evaluations[name] = None
                    errors[name] = f"{type(e).__name__}: {e}"
                else:
                    spent = evaluation.cost
                    evaluations[name] = evaluation

                cost += spent
                if ledger is not None and spent:
                    ledger.record(spent, f"review:{name}")

        results: Dict[str, Optional[ReviewAgentResult]] = {}
        discovered: List[DiscoveredPattern] = []
        for name in self.agent_names:
            evaluation = evaluations.get(name)
            results[name] = evaluation.result if evaluation is not None else None
            if evaluation is not None:
                discovered.extend(evaluation.discovered_patterns)

        logger.info(
            f"Panel reviewed revision {draft.revision}: "
            f"{sum(r is not None for r in results.values())}/{len(results)} agents returned",
            extra_data={"revision": draft.revision, "failed_agents": sorted(errors), "cost": cost}
        )
        return PanelOutcome(results=results, cost=cost, discovered_patterns=discovered, errors=errors)
