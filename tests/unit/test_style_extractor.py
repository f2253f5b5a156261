"""Tests for style fingerprint analysis and merging."""

import pytest

from ghostwriter.style import StyleProfile, analyze, empty_profile, merge
from ghostwriter.style.profile import TOP_BIGRAMS
from ghostwriter.style.profile import StyleDimensions


SAMPLE_ONE = """# Why builds are slow

Why do builds take so long? Nobody I know has a good answer.

I've spent years on this. The short version: your linker is doing far more work than you'd think, and most of it is wasted.

We'll fix that next week."""

SAMPLE_TWO = """Incremental compilation cuts rebuild times by 40% in our tests.

- Cache the parsed modules
- Skip unchanged object files

In short, most of the cost is avoidable."""


def profile_with(sample_count, **values):
    profile = StyleProfile(sample_count=sample_count)
    for name, value in values.items():
        setattr(profile, name, value)
    return profile


class TestAnalyze:
    """Tests for analyze()."""

    def test_empty_input_gives_empty_profile(self):
        profile = analyze([])
        assert profile.sample_count == 0
        assert profile.avg_sentence_length == 0
        assert analyze(["", "   "]).sample_count == 0

    def test_counts_usable_samples(self):
        profile = analyze([SAMPLE_ONE, "", SAMPLE_TWO])
        assert profile.sample_count == 2

    def test_question_opening_detected(self):
        profile = analyze([SAMPLE_ONE])
        assert profile.opening_patterns == {"question": 1}
        assert profile.closing_patterns == {"forward-looking": 1}
        assert profile.question_rate > 0
        assert profile.contraction_rate > 0
        assert profile.first_person_rate > 0

    def test_statistic_opening_and_bullets(self):
        profile = analyze([SAMPLE_TWO])
        assert profile.opening_patterns == {"statistic": 1}
        assert profile.format_features == {"bullets": 1}
        assert profile.uses("bullets")
        assert profile.dimensions.structure == pytest.approx(0.3)

    def test_headings_do_not_count_as_sentences(self):
        profile = analyze(["# Heading\n\nOne two three four."])
        assert profile.avg_sentence_length == 4
        assert profile.format_features == {"headings": 1}

    def test_deterministic(self):
        first = analyze([SAMPLE_ONE, SAMPLE_TWO]).to_dict()
        second = analyze([SAMPLE_ONE, SAMPLE_TWO]).to_dict()
        assert first == second

    def test_analyze_equals_merge_of_single_analyses(self):
        combined = analyze([SAMPLE_ONE, SAMPLE_TWO])
        merged = merge([analyze([SAMPLE_ONE]), analyze([SAMPLE_TWO])])
        assert combined.to_dict() == merged.to_dict()


class TestMerge:
    """Tests for merge()."""

    def test_weighted_by_sample_count(self):
        a = profile_with(10, avg_sentence_length=10.0, question_rate=0.0)
        b = profile_with(90, avg_sentence_length=20.0, question_rate=1.0)
        merged = merge([a, b])
        assert merged.sample_count == 100
        assert merged.avg_sentence_length == pytest.approx(19.0)
        assert merged.question_rate == pytest.approx(0.9)

    def test_pooled_variance(self):
        a = profile_with(1, avg_sentence_length=10.0, sentence_length_variance=4.0)
        b = profile_with(1, avg_sentence_length=20.0, sentence_length_variance=4.0)
        merged = merge([a, b])
        # within-profile variance 4 plus spread of the means (5^2)
        assert merged.sentence_length_variance == pytest.approx(29.0)

    def test_categorical_union_accumulates(self):
        a = profile_with(2, opening_patterns={"question": 2})
        b = profile_with(3, opening_patterns={"question": 1, "statistic": 2})
        merged = merge([a, b])
        assert merged.opening_patterns == {"question": 3, "statistic": 2}
        assert merged.dominant_opening == "question"

    def test_merge_keeps_every_bigram_count(self):
        a = profile_with(1, top_bigrams={f"word{i} next": 1 for i in range(15)})
        b = profile_with(1, top_bigrams={f"other{i} next": 2 for i in range(15)})
        merged = merge([a, b])
        assert len(merged.top_bigrams) == 30
        assert all(merged.top_bigrams[f"other{i} next"] == 2 for i in range(15))
        assert len(merged.ranked_bigrams()) == TOP_BIGRAMS

    def test_bigram_counts_merge_associatively(self):
        a = profile_with(1, top_bigrams={f"alpha{i} beta": 3 for i in range(TOP_BIGRAMS)})
        b = profile_with(1, top_bigrams={f"gamma{i} delta": 2 for i in range(TOP_BIGRAMS)})
        c = profile_with(1, top_bigrams={"gamma0 delta": 5, "rare pair": 1})
        stepwise = merge([merge([a, b]), c])
        at_once = merge([a, b, c])
        assert stepwise.top_bigrams == at_once.top_bigrams
        assert stepwise.top_bigrams["gamma0 delta"] == 7
        assert stepwise.top_bigrams["rare pair"] == 1

    def test_single_profile_merge_is_noop(self):
        profile = analyze([SAMPLE_ONE, SAMPLE_TWO])
        merged = merge([profile])
        assert merged.to_dict() == profile.to_dict()
        assert merged is not profile

    def test_empty_merge(self):
        assert merge([]).to_dict() == empty_profile().to_dict()

    def test_zero_weight_profiles(self):
        assert merge([StyleProfile(), StyleProfile()]).sample_count == 0

    def test_dimensions_weighted(self):
        a = profile_with(1, dimensions=StyleDimensions(formality=0.0))
        b = profile_with(3, dimensions=StyleDimensions(formality=1.0))
        assert merge([a, b]).dimensions.formality == pytest.approx(0.75)


class TestProfilePersistence:
    """Tests for StyleProfile serialization."""

    def test_save_and_load(self, tmp_path):
        profile = analyze([SAMPLE_ONE, SAMPLE_TWO])
        path = tmp_path / "profile.json"
        profile.save(str(path))
        loaded = StyleProfile.load(str(path))
        assert loaded.to_dict() == profile.to_dict()

    def test_from_dict_defaults(self):
        profile = StyleProfile.from_dict({"sample_count": 3})
        assert profile.sample_count == 3
        assert profile.dimensions.formality == 0.5
        assert profile.opening_patterns == {}
