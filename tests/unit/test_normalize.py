"""Tests for review JSON normalization."""

import pytest

from ghostwriter.memory.learned_patterns import PatternCategory
from ghostwriter.review.normalize import (
    coerce_score,
    extract_discovered_patterns,
    extract_numeric_scores,
    match_score_dimension,
    normalize_review,
    to_camel_case,
)


class TestCoerceScore:

    @pytest.mark.parametrize("value,expected", [
        (7, 7),
        (7.4, 7),
        (7.5, 8),
        ("8", 8),
        ("6/10", 6),
        (" 9.0 ", 9),
        (0, 1),
        (10, 10),
    ])
    def test_valid(self, value, expected):
        assert coerce_score(value) == expected

    @pytest.mark.parametrize("value", [True, None, "great", 11, -1, float("nan"), [7]])
    def test_invalid(self, value):
        assert coerce_score(value) is None


class TestKeyMatching:

    def test_camel_case(self):
        assert to_camel_case("voice_match") == "voiceMatch"
        assert to_camel_case("structure") == "structure"

    def test_keyword_mapping(self):
        assert match_score_dimension("hook_strength_score") == "hookStrength"
        assert match_score_dimension("Factual_Accuracy") == "factualAccuracy"
        assert match_score_dimension("overall") is None

    def test_nested_search(self):
        data = {"evaluation": {"readability_score": 8, "notes": "fine"}, "structure": "7/10"}
        assert extract_numeric_scores(data) == {"readability": 8, "structure": 7}


class TestNormalizeReview:

    def test_explicit_scores(self):
        review = normalize_review({
            "scores": {"structure": 8, "voice_match": "7/10", "readability": "n/a"},
            "feedback": ["Intro drags."],
            "suggestions": ["Cut the first paragraph."],
        })
        assert review.scores == {"structure": 8, "voiceMatch": 7}
        assert review.feedback == ["Intro drags."]
        assert review.suggestions == ["Cut the first paragraph."]

    def test_fallback_score_search(self):
        review = normalize_review({"naturalness_score": 6, "perplexity": 5})
        assert review.scores == {"naturalness": 6, "perplexityVariance": 5}

    def test_feedback_key_fallbacks(self):
        review = normalize_review({"scores": {}, "weaknesses": ["Too long"], "recommendations": ["Trim"]})
        assert review.feedback == ["Too long"]
        assert review.suggestions == ["Trim"]

    def test_first_string_array_as_feedback(self):
        review = normalize_review({"observations": ["Repeats itself"], "suggestions": ["Vary openings"]})
        assert review.feedback == ["Repeats itself"]

    def test_dict_items_flattened(self):
        review = normalize_review({"issues": [{"issue": "Unsupported 40% claim"}, "  "]})
        assert review.feedback == ["Unsupported 40% claim"]

    def test_non_dict(self):
        review = normalize_review(["not", "a", "dict"])
        assert review.scores == {}
        assert review.feedback == []


class TestDiscoveredPatterns:

    def test_parses_objects(self):
        patterns = extract_discovered_patterns({
            "discovered_patterns": [
                {"phrase": " a testament to ", "category": "phrase", "confidence": 0.8},
                {"pattern": "rule of three", "category": "structural", "confidence": "0.7"},
                {"phrase": "", "confidence": 0.9},
                {"phrase": "overconfident", "confidence": 4},
            ]
        })
        assert [p.phrase for p in patterns] == ["a testament to", "rule of three", "overconfident"]
        assert patterns[1].category == PatternCategory.STRUCTURAL
        assert patterns[1].confidence == 0.7
        assert patterns[2].confidence == 1.0

    def test_bare_strings_have_no_confidence(self):
        patterns = extract_discovered_patterns({"patterns": ["in today's world"]})
        assert patterns[0].confidence == 0.0

    def test_missing(self):
        assert extract_discovered_patterns({"scores": {}}) == []
