"""Extract and merge style profiles from sample text.

Extraction is regex and count based: deterministic, no model calls.
Each sample is profiled on its own and the per-sample profiles are merged,
so ``analyze`` and ``merge`` share one weighting rule.
"""

import re
from collections import Counter
from typing import Dict, Iterable, List, Sequence

import numpy as np

from ..utils.logging import get_logger
from ..utils.text import split_into_paragraphs, split_into_sentences, tokenize_words
from .profile import (
    CATEGORICAL_FEATURES,
    CONTINUOUS_FEATURES,
    StyleDimensions,
    StyleProfile,
    clone_profile,
    empty_profile,
)

logger = get_logger(__name__)


TRANSITION_WORDS = frozenset([
    "however", "but", "although", "meanwhile", "instead",
    "still", "yet", "though", "while", "whereas",
])

FIRST_PERSON = frozenset(["i", "me", "my", "mine", "we", "our", "us"])
SECOND_PERSON = frozenset(["you", "your", "yours"])

FORMAL_WORDS = frozenset([
    "therefore", "furthermore", "consequently", "accordingly", "thus",
    "hence", "regarding", "whereby", "notwithstanding", "pursuant",
    "additionally", "subsequently", "demonstrate", "indicate", "substantial",
])
INFORMAL_WORDS = frozenset([
    "yeah", "gonna", "wanna", "gotta", "kinda", "sorta", "okay", "ok",
    "cool", "awesome", "stuff", "guys", "pretty", "super", "totally", "lol",
])
TECHNICAL_WORDS = frozenset([
    "api", "algorithm", "database", "server", "latency", "throughput",
    "protocol", "framework", "deployment", "infrastructure", "compiler",
    "dataset", "parameter", "function", "configuration", "kernel",
    "bandwidth", "encryption", "repository", "runtime",
])

_CONTRACTION = re.compile(r"\b\w+['’]\w+\b")
_PASSIVE = re.compile(r"\b(?:was|were|been|being|is|are)\s+\w+ed\b", re.IGNORECASE)
_DATA_REFERENCE = re.compile(r"\$?\d[\d,]*\.?\d*%?")
_FORWARD_LOOKING = re.compile(r"\b(?:will|going to|next|upcoming|soon)\b")
_VOWEL_GROUP = re.compile(r"[aeiouy]+")
_BULLET = re.compile(r"^\s*[-*+]\s", re.MULTILINE)
_NUMBERED = re.compile(r"^\s*\d+[.)]\s", re.MULTILINE)
_HEADING = re.compile(r"^#{1,6}\s", re.MULTILINE)
_TABLE = re.compile(r"\|.*\|.*\|")


def analyze(texts: Sequence[str]) -> StyleProfile:
    """Compute a style profile from an ordered sequence of sample texts.

    Blank samples are skipped. No samples yields the empty profile.

    Args:
        texts: Sample texts, each one piece of writing.

    Returns:
        StyleProfile with sample_count equal to the number of usable samples.
    """
    samples = [t for t in texts if t and t.strip()]
    if not samples:
        logger.warning("No sample text to analyze, returning empty profile")
        return empty_profile()

    profile = merge([_analyze_text(t) for t in samples])
    logger.info(
        f"Analyzed {len(samples)} samples: {profile.avg_sentence_length:.1f} words/sentence, "
        f"richness {profile.vocabulary_richness:.2f}"
    )
    return profile


def merge(profiles: Sequence[StyleProfile]) -> StyleProfile:
    """Combine profiles, weighting each by its sample count.

    Continuous features are sample-count-weighted means; sentence-length
    variance is pooled. Categorical features are unioned with their counts
    summed. Merging a single profile returns an equal copy.
    """
    profiles = [p for p in profiles if p is not None]
    if not profiles:
        return empty_profile()
    if len(profiles) == 1:
        return clone_profile(profiles[0])

    weights = np.array([max(p.sample_count, 0) for p in profiles], dtype=float)
    total = float(weights.sum())
    if total == 0:
        return empty_profile()

    merged = StyleProfile(sample_count=int(total))
    for name in CONTINUOUS_FEATURES:
        values = np.array([getattr(p, name) for p in profiles], dtype=float)
        setattr(merged, name, float(np.average(values, weights=weights)))

    # Pooled variance: within-profile spread plus spread of the means
    means = np.array([p.avg_sentence_length for p in profiles], dtype=float)
    variances = np.array([p.sentence_length_variance for p in profiles], dtype=float)
    pooled = np.average(variances + (means - merged.avg_sentence_length) ** 2, weights=weights)
    merged.sentence_length_variance = float(pooled)

    merged.dimensions = StyleDimensions(**{
        key: float(np.average([getattr(p.dimensions, key) for p in profiles], weights=weights))
        for key in StyleDimensions().to_dict()
    })

    for name in CATEGORICAL_FEATURES:
        counts: Counter = Counter()
        for p in profiles:
            counts.update(getattr(p, name))
        setattr(merged, name, dict(counts))

    return merged


def _analyze_text(text: str) -> StyleProfile:
    """Profile a single sample."""
    sentences = split_into_sentences(text)
    paragraphs = _body_paragraphs(text)
    words = tokenize_words(text)
    lower_words = [w.lower() for w in words]
    n_sentences = max(len(sentences), 1)
    n_words = max(len(words), 1)

    sentence_lengths = np.array([len(tokenize_words(s)) for s in sentences] or [0], dtype=float)
    paragraph_lengths = np.array([len(tokenize_words(p)) for p in paragraphs] or [0], dtype=float)
    para_mean = float(np.mean(paragraph_lengths))

    profile = StyleProfile(
        sample_count=1,
        avg_sentence_length=float(np.mean(sentence_lengths)),
        sentence_length_variance=float(np.var(sentence_lengths)),
        avg_paragraph_length=para_mean,
        paragraph_length_variation=float(np.std(paragraph_lengths)) / para_mean if para_mean > 0 else 0.0,
        vocabulary_richness=len(set(lower_words)) / n_words if words else 0.0,
        avg_word_length=float(np.mean([len(w) for w in words])) if words else 0.0,
        question_rate=sum(1 for s in sentences if s.rstrip("\"'”’)").endswith("?")) / n_sentences,
        exclamation_rate=sum(1 for s in sentences if s.rstrip("\"'”’)").endswith("!")) / n_sentences,
        contraction_rate=len(_CONTRACTION.findall(text)) / n_sentences,
        first_person_rate=sum(1 for w in lower_words if w in FIRST_PERSON) / n_sentences,
        second_person_rate=sum(1 for w in lower_words if w in SECOND_PERSON) / n_sentences,
        transition_word_rate=sum(1 for w in lower_words if w in TRANSITION_WORDS) / n_sentences,
        passive_voice_rate=len(_PASSIVE.findall(text)) / n_sentences,
        data_reference_rate=len(_DATA_REFERENCE.findall(text)) / n_sentences,
        readability_score=_flesch_reading_ease(lower_words, len(sentences)),
    )

    profile.dimensions = _dimensions(text, lower_words)
    profile.opening_patterns = {_opening_shape(sentences): 1}
    profile.closing_patterns = {_closing_shape(paragraphs): 1}
    profile.top_bigrams = _bigram_counts(lower_words)
    profile.format_features = {name: 1 for name in _format_features(text)}
    return profile


def _body_paragraphs(text: str) -> List[str]:
    """Paragraphs with markdown heading lines removed."""
    paragraphs = []
    for paragraph in split_into_paragraphs(text):
        lines = [line for line in paragraph.splitlines() if not line.lstrip().startswith("#")]
        body = "\n".join(lines).strip()
        if body:
            paragraphs.append(body)
    return paragraphs


def _opening_shape(sentences: List[str]) -> str:
    if not sentences:
        return "direct"
    first = sentences[0]
    if first.rstrip("\"'”’)").endswith("?"):
        return "question"
    if first[:1] in "\"“'":
        return "quote"
    if re.search(r"\d", first):
        return "statistic"
    if len(first) < 40:
        return "short-punchy"
    return "direct"


def _closing_shape(paragraphs: List[str]) -> str:
    if not paragraphs:
        return "summary"
    last = paragraphs[-1].lower()
    if "?" in last:
        return "question"
    if _FORWARD_LOOKING.search(last):
        return "forward-looking"
    return "summary"


def _bigram_counts(words: List[str]) -> Dict[str, int]:
    content = [w for w in words if len(w) > 2 and w.isalpha()]
    return dict(Counter(f"{a} {b}" for a, b in zip(content, content[1:])))


def _format_features(text: str) -> Iterable[str]:
    if _HEADING.search(text):
        yield "headings"
    if _BULLET.search(text):
        yield "bullets"
    if _NUMBERED.search(text):
        yield "numbered_lists"
    if _TABLE.search(text):
        yield "tables"


def _count_syllables(word: str) -> int:
    word = re.sub(r"[^a-z]", "", word)
    if len(word) <= 3:
        return 1
    count = len(_VOWEL_GROUP.findall(word)) or 1
    if word.endswith("e") and not word.endswith("le"):
        count -= 1
    return max(count, 1)


def _flesch_reading_ease(words: List[str], sentence_count: int) -> float:
    if not words or sentence_count == 0:
        return 0.0
    syllables = sum(_count_syllables(w) for w in words)
    return 206.835 - 1.015 * (len(words) / sentence_count) - 84.6 * (syllables / len(words))


def _clamp(value: float) -> float:
    return float(min(max(value, 0.0), 1.0))


def _dimensions(text: str, words: List[str]) -> StyleDimensions:
    n_words = max(len(words), 1)
    formal = sum(1 for w in words if w in FORMAL_WORDS) / n_words
    informal = sum(1 for w in words if w in INFORMAL_WORDS) / n_words
    contractions = min(len(_CONTRACTION.findall(text)) / n_words, 0.1) * 5
    technical = sum(1 for w in words if w in TECHNICAL_WORDS) / n_words

    features = set(_format_features(text))
    structure = (
        0.3 * ("bullets" in features)
        + 0.3 * ("headings" in features)
        + 0.2 * ("numbered_lists" in features)
        + 0.2 * ("tables" in features)
    )

    return StyleDimensions(
        verbosity=_clamp(len(words) / 1500),
        formality=_clamp(0.5 + 3 * formal - 3 * informal - contractions),
        structure=_clamp(structure),
        technicality=_clamp(technical * 15),
    )
