"""Quantitative style profiles.

All values are measured from sample text. A profile remembers how many
samples produced it so that merging can weight larger corpora more heavily.
"""

import json
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Tuple

# Scalar features combined by sample-count-weighted averaging on merge.
# sentence_length_variance is pooled separately.
CONTINUOUS_FEATURES: Tuple[str, ...] = (
    "avg_sentence_length",
    "avg_paragraph_length",
    "paragraph_length_variation",
    "vocabulary_richness",
    "avg_word_length",
    "question_rate",
    "exclamation_rate",
    "contraction_rate",
    "first_person_rate",
    "second_person_rate",
    "transition_word_rate",
    "passive_voice_rate",
    "data_reference_rate",
    "readability_score",
)

# Frequency maps combined by union with count accumulation on merge.
CATEGORICAL_FEATURES: Tuple[str, ...] = (
    "opening_patterns",
    "closing_patterns",
    "top_bigrams",
    "format_features",
)

# Bigrams shown when a profile is rendered. Stored counts are never truncated.
TOP_BIGRAMS = 20

# Share of samples that must use a format feature before the profile
# reports it as a habit.
FORMAT_HABIT_RATIO = 0.3


@dataclass
class StyleDimensions:
    """Normalized 0-1 style dimensions."""

    verbosity: float = 0.5  # 0.0 = terse, 1.0 = verbose
    formality: float = 0.5  # 0.0 = casual, 1.0 = formal
    structure: float = 0.5  # 0.0 = free-flowing, 1.0 = highly structured
    technicality: float = 0.5  # 0.0 = non-technical, 1.0 = very technical

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return {
            "verbosity": self.verbosity,
            "formality": self.formality,
            "structure": self.structure,
            "technicality": self.technicality,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "StyleDimensions":
        """Deserialize from dictionary."""
        return cls(**{f.name: data.get(f.name, 0.5) for f in fields(cls)})


@dataclass
class StyleProfile:
    """Style fingerprint of a corpus of sample texts.

    Rates are per sentence unless noted. Categorical features are frequency
    maps: key -> number of occurrences across the samples.
    """

    sample_count: int = 0

    # Sentence and paragraph shape
    avg_sentence_length: float = 0.0  # words
    sentence_length_variance: float = 0.0
    avg_paragraph_length: float = 0.0  # words
    paragraph_length_variation: float = 0.0  # coefficient of variation

    # Vocabulary
    vocabulary_richness: float = 0.0  # type-token ratio
    avg_word_length: float = 0.0

    # Per-sentence rates
    question_rate: float = 0.0
    exclamation_rate: float = 0.0
    contraction_rate: float = 0.0
    first_person_rate: float = 0.0
    second_person_rate: float = 0.0
    transition_word_rate: float = 0.0
    passive_voice_rate: float = 0.0
    data_reference_rate: float = 0.0

    readability_score: float = 0.0  # Flesch reading ease

    dimensions: StyleDimensions = field(default_factory=StyleDimensions)

    # Categorical
    opening_patterns: Dict[str, int] = field(default_factory=dict)
    # e.g., {"question": 3, "statistic": 1}
    closing_patterns: Dict[str, int] = field(default_factory=dict)
    top_bigrams: Dict[str, int] = field(default_factory=dict)
    format_features: Dict[str, int] = field(default_factory=dict)
    # e.g., {"headings": 4, "bullets": 1} = samples using each feature

    @property
    def sentence_length_std_dev(self) -> float:
        return self.sentence_length_variance ** 0.5

    @property
    def dominant_opening(self) -> str:
        return _dominant(self.opening_patterns, default="direct")

    @property
    def dominant_closing(self) -> str:
        return _dominant(self.closing_patterns, default="summary")

    def ranked_bigrams(self, limit: int = TOP_BIGRAMS) -> List[str]:
        """Most frequent bigrams, ties broken alphabetically."""
        ranked = sorted(self.top_bigrams.items(), key=lambda kv: (-kv[1], kv[0]))
        return [bigram for bigram, _ in ranked[:limit]]

    def uses(self, feature: str) -> bool:
        """Whether enough samples use a format feature to call it a habit."""
        if self.sample_count <= 0:
            return False
        return self.format_features.get(feature, 0) / self.sample_count > FORMAT_HABIT_RATIO

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        data = {"version": 1, "sample_count": self.sample_count}
        data["sentence_length_variance"] = self.sentence_length_variance
        for name in CONTINUOUS_FEATURES:
            data[name] = getattr(self, name)
        data["dimensions"] = self.dimensions.to_dict()
        for name in CATEGORICAL_FEATURES:
            data[name] = dict(sorted(getattr(self, name).items()))
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "StyleProfile":
        """Deserialize from dictionary."""
        profile = cls(
            sample_count=data.get("sample_count", 0),
            sentence_length_variance=data.get("sentence_length_variance", 0.0),
            dimensions=StyleDimensions.from_dict(data.get("dimensions", {})),
        )
        for name in CONTINUOUS_FEATURES:
            setattr(profile, name, float(data.get(name, 0.0)))
        for name in CATEGORICAL_FEATURES:
            setattr(profile, name, {k: int(v) for k, v in data.get(name, {}).items()})
        return profile

    def save(self, path: str) -> None:
        """Save profile to JSON file."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> "StyleProfile":
        """Load profile from JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)


def _dominant(counts: Dict[str, int], default: str) -> str:
    if not counts:
        return default
    return min(counts.items(), key=lambda kv: (-kv[1], kv[0]))[0]


def empty_profile() -> StyleProfile:
    """Profile of zero samples."""
    return StyleProfile()


def clone_profile(profile: Optional[StyleProfile]) -> StyleProfile:
    """Deep copy through the serialized form."""
    if profile is None:
        return empty_profile()
    return StyleProfile.from_dict(profile.to_dict())
