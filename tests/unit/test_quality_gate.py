"""Tests for the quality gate decision."""

from dataclasses import replace

import pytest

from ghostwriter.config import ConfigurationError, QualityGateConfig
from ghostwriter.models import ReviewAgentResult
from ghostwriter.review.gate import QualityGate, check_threshold_coverage

AGENTS = [
    ("editor", ("structure", "readability")),
    ("engagement", ("hookStrength",)),
    ("originality", ("topicOriginality",)),
]


@pytest.fixture
def gated_channel(channel):
    gate = QualityGateConfig(
        min_scores={"structure": 7, "readability": 7, "hookStrength": 6, "topicOriginality": 6},
        max_revisions=3,
    )
    return replace(channel, quality_gate=gate)


def result(agent, scores, passed=True, feedback=(), suggestions=()):
    return ReviewAgentResult(
        agent=agent, scores=scores, passed=passed,
        feedback=list(feedback), suggestions=list(suggestions),
    )


def all_passing():
    return {
        "editor": result("editor", {"structure": 8, "readability": 8}),
        "engagement": result("engagement", {"hookStrength": 7}),
        "originality": result("originality", {"topicOriginality": 9}),
    }


class TestThresholdCoverage:

    def test_duplicate_ownership_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            check_threshold_coverage(
                [("editor", ("structure",)), ("critic", ("structure",))], {"structure": 7}
            )
        assert "editor" in str(exc_info.value)
        assert "critic" in str(exc_info.value)

    def test_inert_thresholds_reported(self):
        inert = check_threshold_coverage([("editor", ("structure",))], {"structure": 7, "zeta": 5, "alpha": 5})
        assert inert == ["alpha", "zeta"]

    def test_gate_exposes_inert_thresholds(self, gated_channel):
        gate = QualityGate(gated_channel, [("editor", ("structure", "readability"))])
        assert gate.inert_thresholds == ["hookStrength", "topicOriginality"]


class TestDecide:

    def test_all_pass(self, gated_channel):
        decision = QualityGate(gated_channel, AGENTS).decide(all_passing())
        assert decision.passed
        assert decision.missing_agents == []
        assert decision.failing_dimensions == []
        assert decision.scores == {"structure": 8, "readability": 8, "hookStrength": 7, "topicOriginality": 9}
        assert decision.total_score == 32

    def test_one_failing_agent_fails_gate(self, gated_channel):
        results = all_passing()
        results["editor"] = result("editor", {"structure": 6, "readability": 8}, passed=False)
        decision = QualityGate(gated_channel, AGENTS).decide(results)
        assert not decision.passed
        assert decision.failing_dimensions == ["structure"]

    def test_missing_result_fails_closed(self, gated_channel):
        results = all_passing()
        results["engagement"] = None
        decision = QualityGate(gated_channel, AGENTS).decide(results)
        assert not decision.passed
        assert decision.missing_agents == ["engagement"]
        assert decision.failing_dimensions == ["hookStrength"]

    def test_absent_key_counts_as_missing(self, gated_channel):
        results = all_passing()
        del results["originality"]
        decision = QualityGate(gated_channel, AGENTS).decide(results)
        assert not decision.passed
        assert decision.missing_agents == ["originality"]
        assert decision.results["originality"] is None

    def test_missing_agent_dimensions_follow_registration_order(self, gated_channel):
        results = all_passing()
        results["editor"] = None
        results["originality"] = result("originality", {"topicOriginality": 2}, passed=False)
        decision = QualityGate(gated_channel, AGENTS).decide(results)
        assert decision.failing_dimensions == ["structure", "readability", "topicOriginality"]

    def test_optional_agent_may_be_missing(self, gated_channel):
        channel = replace(
            gated_channel,
            quality_gate=replace(gated_channel.quality_gate, optional_agents=["originality"]),
        )
        results = all_passing()
        results["originality"] = None
        decision = QualityGate(channel, AGENTS).decide(results)
        assert decision.passed
        assert decision.missing_agents == ["originality"]
        assert decision.failing_dimensions == []

    def test_feedback_merged_in_registration_order(self, gated_channel):
        results = {
            "originality": result("originality", {"topicOriginality": 9}, feedback=["C", "shared"]),
            "engagement": result("engagement", {"hookStrength": 7}, feedback=["B"], suggestions=["s2", "s1"]),
            "editor": result("editor", {"structure": 8, "readability": 8}, feedback=["A", "shared"],
                             suggestions=["s1"]),
        }
        decision = QualityGate(gated_channel, AGENTS).decide(results)
        assert decision.feedback == ["A", "shared", "B", "C"]
        assert decision.suggestions == ["s1", "s2"]
        assert list(decision.results) == ["editor", "engagement", "originality"]

    def test_unscored_dimension_is_failing(self, gated_channel):
        results = all_passing()
        results["editor"] = result("editor", {"structure": 8}, passed=False)
        decision = QualityGate(gated_channel, AGENTS).decide(results)
        assert decision.failing_dimensions == ["readability"]

    def test_decide_is_pure(self, gated_channel):
        gate = QualityGate(gated_channel, AGENTS)
        results = all_passing()
        first = gate.decide(results).to_dict()
        second = gate.decide(results).to_dict()
        assert first == second
