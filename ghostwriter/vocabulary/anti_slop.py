"""Anti-slop checks for generated text.

Heuristics for spotting machine-sounding prose:
- A blacklist of phrases that give AI-written text away
- Sentence-length burstiness (human writing varies more)
- Paragraph-length variation (uniform paragraphs are a strong AI signal)
- Overused content words

The blacklist seeds the generator's forbidden vocabulary and the
heuristics feed the AI-detection review agent.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Tuple

import numpy as np

from ..utils.text import split_into_paragraphs, split_into_sentences, tokenize_words

# Phrases that should never appear in output
AI_PHRASE_BLACKLIST: List[str] = [
    "delve into",
    "delve deeper",
    "it's important to note",
    "it is important to note",
    "it's worth noting",
    "it is worth noting",
    "navigate the landscape",
    "navigating the landscape",
    "in the realm of",
    "in today's rapidly",
    "in today's fast-paced",
    "in an era of",
    "in the ever-evolving",
    "ever-changing landscape",
    "a testament to",
    "stands as a testament",
    "it's crucial to",
    "it is crucial to",
    "let's dive in",
    "without further ado",
    "buckle up",
    "game-changer",
    "game changer",
    "paradigm shift",
    "synergy",
    "leverage",
    "robust",
    "holistic approach",
    "cutting-edge",
    "bleeding-edge",
    "at the end of the day",
    "the bottom line is",
    "when it comes to",
    "in terms of",
    "it goes without saying",
    "needless to say",
    "as we all know",
    "revolutionize",
    "transformative",
    "empower",
    "unlock the potential",
    "unlock the power",
    "harness the power",
    "in conclusion",
    "to summarize",
    "in summary",
    "overall",
    "furthermore",
    "moreover",
    "consequently",
    "subsequently",
    "nevertheless",
    "nonetheless",
    "in light of",
    "with that being said",
    "that being said",
    "having said that",
    "it's no secret that",
    "it is no secret that",
    "the landscape of",
    "a myriad of",
    "plethora of",
    "multifaceted",
    "nuanced",
    "comprehensive guide",
    "deep dive",
    "unpack",
    "unravel",
    "shed light on",
    "pave the way",
    "spearhead",
    "foster",
    "facilitate",
    "endeavor",
    "embark on",
    "embark upon",
    "realm",
    "tapestry",
    "vibrant tapestry",
    "rich tapestry",
    "intricate dance",
    "symphony of",
    "beacon of",
    "cornerstone of",
    "pivotal role",
    "plays a crucial role",
    "plays a pivotal role",
]

# Function words never reported as overused
_STOPWORDS = frozenset("""
a about after all also an and any are as at be because been but by can could
did do does for from had has have he her his how i if in into is it its just
like more most my no not of on one or our out over she so some than that the
their them then there these they this to up us was we were what when which who
will with would you your
""".split())


@dataclass
class BurstinessStats:
    """Sentence-length spread. Typical AI text sits around 0.3-0.5, human 0.6-1.2."""
    avg_sentence_length: float = 0.0
    std_dev: float = 0.0
    burstiness_score: float = 0.0


@dataclass
class ParagraphVariation:
    """Paragraph-length spread, as a coefficient of variation."""
    avg_paragraph_words: float = 0.0
    std_dev: float = 0.0
    variation_score: float = 0.0


def detect_ai_phrases(content: str, phrases: Iterable[str] = AI_PHRASE_BLACKLIST) -> List[str]:
    """Return the blacklisted phrases found in content (case-insensitive)."""
    lower = (content or "").lower()
    return [phrase for phrase in phrases if phrase.lower() in lower]


def _spread(lengths: List[int]) -> Tuple[float, float, float]:
    if not lengths:
        return 0.0, 0.0, 0.0
    arr = np.asarray(lengths, dtype=float)
    mean = float(np.mean(arr))
    std = float(np.std(arr))
    return mean, std, (std / mean if mean > 0 else 0.0)


def compute_burstiness(text: str) -> BurstinessStats:
    """Compute the coefficient of variation of sentence lengths.

    Sentences come from the punkt splitter, so fragments like "Go." count as
    their own sentence while "Dr." does not end one.
    """
    sentences = split_into_sentences(text or "")
    mean, std, score = _spread([len(tokenize_words(s)) for s in sentences])
    return BurstinessStats(avg_sentence_length=mean, std_dev=std, burstiness_score=score)


def analyze_paragraph_variation(text: str) -> ParagraphVariation:
    """Compute the coefficient of variation of paragraph word counts."""
    paragraphs = split_into_paragraphs(text or "")
    mean, std, score = _spread([len(p.split()) for p in paragraphs])
    return ParagraphVariation(avg_paragraph_words=mean, std_dev=std, variation_score=score)


def find_overused_words(text: str, threshold: int = 6, top_n: int = 5) -> List[Tuple[str, int]]:
    """Content words used at least ``threshold`` times, most frequent first."""
    counts = Counter(
        w.lower() for w in tokenize_words(text)
        if len(w) > 3 and w.lower() not in _STOPWORDS
    )
    overused = [(word, n) for word, n in counts.most_common() if n >= threshold]
    return overused[:top_n]

