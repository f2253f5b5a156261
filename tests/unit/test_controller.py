"""Tests for the revision controller state machine and run loop."""

import threading
from dataclasses import replace

import pytest

from ghostwriter.config import (
    Config,
    ConfigurationError,
    LLMConfig,
    LLMProviderConfig,
    LLMProviderRoles,
    PipelineConfig,
    QualityGateConfig,
)
from ghostwriter.generation.draft_generator import DraftGenerator
from ghostwriter.llm.deepseek import DeepSeekProvider
from ghostwriter.llm.provider import LLMError, LLMTimeoutError
from ghostwriter.memory.learned_patterns import DiscoveredPattern, LearnedPatternStore
from ghostwriter.memory.repository import InMemoryChannelRepository, JsonFileChannelRepository
from ghostwriter.models import (
    AttemptRecord,
    ContentDraft,
    HistoryEntry,
    QualityGateDecision,
    ReviewAgentResult,
    RunStatus,
)
from ghostwriter.pipeline.controller import (
    CostLedger,
    PipelineState,
    RevisionController,
    create_controller_from_config,
    next_state,
    select_best_effort,
)
from ghostwriter.review.panel import ReviewPanel
from tests.mocks.mock_llm_provider import MockLLMProvider, ScriptedAgent


def draft_reply(system_prompt, user_prompt):
    return "# Headline\n\nBody of the draft. It has two sentences."


@pytest.fixture
def gated_channel(channel):
    gate = QualityGateConfig(min_scores={"structure": 7, "readability": 7}, max_revisions=3)
    return replace(channel, quality_gate=gate)


def make_controller(agents, writer=None, repository=None, **kwargs):
    writer = writer or MockLLMProvider([draft_reply], cost_per_call=0.01)
    repository = repository or InMemoryChannelRepository()
    controller = RevisionController(DraftGenerator(writer), ReviewPanel(agents), repository, **kwargs)
    return controller, writer, repository


def editor(script, **kwargs):
    return ScriptedAgent("editor", ["structure", "readability"], script, **kwargs)


def attempt(index, total):
    """A reviewed attempt whose scores sum to ``total``."""
    result = ReviewAgentResult(agent="a", scores={"x": total}, passed=False)
    return AttemptRecord(
        attempt=index,
        draft=ContentDraft(headline=f"h{index}", body="", revision=index),
        decision=QualityGateDecision(passed=False, results={"a": result}),
    )


class TestNextState:

    def test_transitions(self):
        assert next_state(PipelineState.GENERATING) == PipelineState.REVIEWING
        assert next_state(PipelineState.REVIEWING, True, 0, 3) == PipelineState.PASSED
        assert next_state(PipelineState.REVIEWING, False, 0, 3) == PipelineState.REVISING
        assert next_state(PipelineState.REVIEWING, False, 2, 3) == PipelineState.REVISING
        assert next_state(PipelineState.REVIEWING, False, 3, 3) == PipelineState.EXHAUSTED
        assert next_state(PipelineState.REVISING) == PipelineState.GENERATING

    def test_zero_budget_exhausts_immediately(self):
        assert next_state(PipelineState.REVIEWING, False, 0, 0) == PipelineState.EXHAUSTED

    def test_pass_wins_on_last_attempt(self):
        assert next_state(PipelineState.REVIEWING, True, 3, 3) == PipelineState.PASSED

    @pytest.mark.parametrize("state", [PipelineState.PASSED, PipelineState.EXHAUSTED])
    def test_terminal_states_have_no_transition(self, state):
        with pytest.raises(ValueError):
            next_state(state)


class TestSelectBestEffort:

    def test_highest_total_wins(self):
        records = [attempt(0, 10), attempt(1, 14), attempt(2, 12)]
        assert select_best_effort(records).attempt == 1

    def test_ties_go_to_earliest(self):
        records = [attempt(0, 10), attempt(1, 14), attempt(2, 14)]
        assert select_best_effort(records).attempt == 1

    def test_unreviewed_ignored(self):
        unreviewed = AttemptRecord(attempt=0, draft=ContentDraft(headline="", body=""))
        assert select_best_effort([unreviewed]) is None
        assert select_best_effort([]) is None


class TestCostLedger:

    def test_thread_safe_totals(self):
        ledger = CostLedger()
        threads = [
            threading.Thread(target=lambda: [ledger.record(0.001, "x") for _ in range(100)])
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(ledger.entries) == 800
        assert ledger.total == pytest.approx(0.8)


class TestRevisionController:

    def test_pass_on_first_attempt(self, gated_channel, sources):
        agent = editor([{"structure": 8, "readability": 8}], cost=0.005)
        controller, writer, _ = make_controller([agent])

        result = controller.run(gated_channel, sources)

        assert result.passed
        assert result.status == RunStatus.PASSED
        assert writer.call_count == 1
        assert agent.calls == 1
        assert result.revision_count == 0
        assert result.attempts == 1
        assert result.final_draft.revision == 0
        assert result.quality_scores == {"structure": 8, "readability": 8}
        assert result.total_cost == pytest.approx(0.015)

    def test_single_low_score_triggers_one_revision(self, gated_channel, sources):
        agent = editor(
            [{"structure": 6, "readability": 8}, {"structure": 8, "readability": 8}],
            feedback=["Structure is weak."],
        )
        controller, writer, _ = make_controller([agent])

        result = controller.run(gated_channel, sources)

        assert result.passed
        assert writer.call_count == 2
        assert result.revision_count == 1
        assert result.final_draft.revision == 1
        second_prompt = writer.call_history[1]["system_prompt"]
        assert "REVISION 1: Address this feedback:" in second_prompt
        assert "- Structure is weak." in second_prompt
        assert "REVISION" not in writer.call_history[0]["system_prompt"]

    def test_exhaustion_returns_best_attempt(self, gated_channel, sources):
        agent = editor([
            {"structure": 5, "readability": 6},
            {"structure": 6, "readability": 8},
            {"structure": 4, "readability": 6},
            {"structure": 6, "readability": 8},
        ])
        controller, writer, _ = make_controller([agent])

        result = controller.run(gated_channel, sources)

        assert not result.passed
        assert result.status == RunStatus.EXHAUSTED
        assert writer.call_count == 4
        assert result.attempts == 4
        assert result.revision_count == 3
        assert result.final_draft.revision == 1
        assert result.quality_scores == {"structure": 6, "readability": 8}
        assert result.failing_dimensions == ["structure"]
        assert result.usable

    @pytest.mark.parametrize("max_revisions", [0, 1, 2, 5])
    def test_generation_bound(self, gated_channel, sources, max_revisions):
        channel = replace(gated_channel, quality_gate=replace(gated_channel.quality_gate, max_revisions=max_revisions))
        controller, writer, _ = make_controller([editor([{"structure": 1, "readability": 1}])])
        result = controller.run(channel, sources)
        assert writer.call_count == max_revisions + 1
        assert result.status == RunStatus.EXHAUSTED

    def test_missing_agent_result_fails_closed(self, gated_channel, sources):
        flaky = ScriptedAgent("engagement", ["hookStrength"], [LLMTimeoutError("slow"), {"hookStrength": 9}])
        controller, writer, _ = make_controller([editor([{"structure": 9, "readability": 9}]), flaky])

        result = controller.run(gated_channel, sources)

        assert result.passed
        assert writer.call_count == 2

    def test_exhausted_run_names_missing_agent_dimensions(self, channel, sources):
        gate = QualityGateConfig(min_scores={"structure": 7, "hookStrength": 7}, max_revisions=0)
        channel = replace(channel, quality_gate=gate)
        silent = ScriptedAgent("engagement", ["hookStrength"], [LLMTimeoutError("slow")])
        controller, writer, _ = make_controller([editor([{"structure": 9, "readability": 9}]), silent])

        result = controller.run(channel, sources)

        assert result.status == RunStatus.EXHAUSTED
        assert writer.call_count == 1
        assert result.failing_dimensions == ["hookStrength"]
        assert result.missing_agents == ["engagement"]
        assert "engagement" in result.message
        assert result.to_dict()["missingAgents"] == ["engagement"]

    def test_invalid_config_fails_before_any_call(self, gated_channel, sources):
        channel = replace(gated_channel, quality_gate=QualityGateConfig(min_scores={"structure": 12}))
        controller, writer, _ = make_controller([editor([{"structure": 9}])])
        with pytest.raises(ConfigurationError):
            controller.run(channel, sources)
        assert writer.call_count == 0

    def test_duplicate_dimension_ownership_fails_before_any_call(self, gated_channel, sources):
        agents = [editor([{}]), ScriptedAgent("critic", ["structure"], [{}])]
        controller, writer, _ = make_controller(agents)
        with pytest.raises(ConfigurationError):
            controller.run(gated_channel, sources)
        assert writer.call_count == 0

    def test_inert_thresholds_reported(self, channel, sources):
        controller, _, _ = make_controller([editor([{"structure": 9, "readability": 9}])])
        result = controller.run(channel, sources)
        assert "hookStrength" in result.inert_thresholds
        assert "structure" not in result.inert_thresholds

    def test_generator_failure_propagates_with_partial_cost(self, gated_channel, sources):
        writer = MockLLMProvider([draft_reply, LLMError("server exploded", cost=0.002)], cost_per_call=0.01)
        agent = editor([{"structure": 1, "readability": 1}], cost=0.005)
        controller, _, _ = make_controller([agent], writer=writer)
        ledger = CostLedger()

        with pytest.raises(LLMError) as exc_info:
            controller.run(gated_channel, sources, ledger=ledger)

        assert str(exc_info.value) == "server exploded"
        # first draft, its review, and what the failed call already spent
        assert ledger.total == pytest.approx(0.017)

    def test_cancel_before_start(self, gated_channel, sources):
        cancel = threading.Event()
        cancel.set()
        controller, writer, _ = make_controller([editor([{"structure": 9, "readability": 9}])])

        result = controller.run(gated_channel, sources, cancel_event=cancel)

        assert result.status == RunStatus.CANCELLED
        assert result.final_draft is None
        assert not result.usable
        assert writer.call_count == 0
        assert result.total_cost == 0

    def test_cancel_mid_run_returns_best_reviewed_draft(self, gated_channel, sources):
        cancel = threading.Event()

        class CancellingAgent(ScriptedAgent):
            def evaluate(self, draft, channel, context):
                evaluation = super().evaluate(draft, channel, context)
                cancel.set()
                return evaluation

        agent = CancellingAgent("editor", ["structure", "readability"], [{"structure": 5, "readability": 9}])
        controller, writer, _ = make_controller([agent])

        result = controller.run(gated_channel, sources, cancel_event=cancel)

        assert result.status == RunStatus.CANCELLED
        assert writer.call_count == 1
        assert result.final_draft.revision == 0
        assert result.failing_dimensions == ["structure"]

    def test_discovered_patterns_learned_after_run(self, gated_channel, sources):
        discovered = [
            DiscoveredPattern("a testament to progress", confidence=0.8),
            DiscoveredPattern("maybe a tell", confidence=0.4),
        ]
        agent = editor(
            [{"structure": 5, "readability": 8}, {"structure": 8, "readability": 8}],
            discovered=discovered,
        )
        controller, writer, repository = make_controller([agent])

        controller.run(gated_channel, sources, run_id="run-1")

        # this run's confident discovery is forbidden on the revision
        assert "a testament to progress" in writer.call_history[1]["system_prompt"]
        assert "maybe a tell" not in writer.call_history[1]["system_prompt"]

        (pattern,) = repository.load_patterns(gated_channel.id)
        assert pattern.phrase == "a testament to progress"
        assert pattern.occurrences == 1
        assert pattern.last_batch_id == "run-1"

    def test_learned_phrases_feed_next_run(self, gated_channel, sources):
        repository = InMemoryChannelRepository()
        LearnedPatternStore(repository).merge(
            gated_channel.id, [DiscoveredPattern("unlock hidden value", confidence=0.9)]
        )
        agent = editor([{"structure": 9, "readability": 9}])
        controller, writer, _ = make_controller([agent], repository=repository)

        controller.run(gated_channel, sources)

        assert agent.seen_contexts[0].learned_phrases == ["unlock hidden value"]

    def test_learning_can_be_disabled(self, gated_channel, sources):
        agent = editor([{"structure": 9, "readability": 9}], discovered=[DiscoveredPattern("x marks", confidence=0.9)])
        controller, _, repository = make_controller([agent], learn_patterns=False)
        controller.run(gated_channel, sources)
        assert repository.load_patterns(gated_channel.id) == []

    def test_store_failure_does_not_fail_run(self, gated_channel, sources):
        class BrokenRepository(InMemoryChannelRepository):
            def save_patterns(self, channel_id, patterns):
                raise OSError("disk full")

        agent = editor([{"structure": 9, "readability": 9}], discovered=[DiscoveredPattern("x marks", confidence=0.9)])
        controller, _, _ = make_controller([agent], repository=BrokenRepository())

        result = controller.run(gated_channel, sources)

        assert result.passed

    def test_history_reaches_agents_and_prompt(self, gated_channel, sources):
        repository = InMemoryChannelRepository()
        repository.append_history(gated_channel.id, HistoryEntry(
            headline="Last week's compiler news", summary="Covered the beta.", published_at="2025-05-20",
        ))
        agent = editor([{"structure": 9, "readability": 9}])
        controller, writer, _ = make_controller([agent], repository=repository)

        controller.run(gated_channel, sources)

        assert "Last week's compiler news" in writer.call_history[0]["system_prompt"]
        assert agent.seen_contexts[0].history[0].headline == "Last week's compiler news"


class TestCreateControllerFromConfig:

    def test_wires_roles_and_storage(self, tmp_path):
        config = Config(
            llm=LLMConfig(
                provider=LLMProviderRoles(writer="deepseek", critic="deepseek"),
                providers={"deepseek": LLMProviderConfig(model="deepseek-chat", temperature=0.7, max_tokens=4096)},
            ),
            pipeline=PipelineConfig(max_review_workers=2, storage_dir=str(tmp_path), learn_patterns=False),
        )

        controller = create_controller_from_config(config, style_profile_text="STYLE")

        assert isinstance(controller.generator.provider, DeepSeekProvider)
        assert controller.generator.temperature == 0.7
        assert controller.generator.max_tokens == 4096
        assert controller.panel.agent_names == [
            "editor", "fact_checker", "engagement", "ai_detection", "originality",
        ]
        assert isinstance(controller.repository, JsonFileChannelRepository)
        assert controller.style_profile_text == "STYLE"
        assert controller.learn_patterns is False
