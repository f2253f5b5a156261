"""Plain-text helpers shared by the fingerprint engine and review heuristics.

Sentence and word boundaries come from NLTK's punkt models, so abbreviations
such as "Dr." or "p.m." do not end a sentence.
"""

import re
from functools import lru_cache
from typing import List

import nltk
from nltk.tokenize import sent_tokenize, word_tokenize

from .logging import get_logger

logger = get_logger(__name__)

_PARAGRAPH_BOUNDARY = re.compile(r"\n\s*\n")
_CURLY_APOSTROPHE = re.compile(r"[’‘]")
_CLITICS = {"n't", "'s", "'re", "'ve", "'ll", "'d", "'m"}


@lru_cache(maxsize=None)
def ensure_punkt() -> None:
    """Make sure the punkt tokenizer data is available, downloading it once."""
    for resource, package in (("tokenizers/punkt_tab", "punkt_tab"), ("tokenizers/punkt", "punkt")):
        try:
            nltk.data.find(resource)
        except LookupError:
            logger.info(f"Downloading NLTK resource '{package}'")
            nltk.download(package, quiet=True)


def split_into_paragraphs(text: str) -> List[str]:
    """Split text into non-empty paragraphs on blank lines."""
    if not text or not text.strip():
        return []
    return [p.strip() for p in _PARAGRAPH_BOUNDARY.split(text) if p.strip()]


def split_into_sentences(text: str) -> List[str]:
    """Split text into sentences.

    Paragraph breaks always end a sentence. Markdown headings are dropped so
    they do not count as sentences.

    Args:
        text: Input text, possibly several paragraphs.

    Returns:
        List of sentence strings (non-empty).
    """
    ensure_punkt()
    sentences = []
    for paragraph in split_into_paragraphs(text):
        lines = [line for line in paragraph.splitlines() if not line.lstrip().startswith("#")]
        block = " ".join(line.strip() for line in lines).strip()
        if not block:
            continue
        sentences.extend(s.strip() for s in sent_tokenize(block) if s.strip())
    return sentences


def tokenize_words(text: str) -> List[str]:
    """Extract words, keeping contractions like ``don't`` whole.

    Punctuation tokens are dropped; the clitics NLTK splits off ("n't",
    "'s", ...) are re-attached to the preceding word.
    """
    if not text or not text.strip():
        return []
    ensure_punkt()
    words: List[str] = []
    for token in word_tokenize(_CURLY_APOSTROPHE.sub("'", text)):
        if words and token.lower() in _CLITICS:
            words[-1] += token
        elif any(ch.isalnum() for ch in token):
            words.append(token)
    return words


def count_words(text: str) -> int:
    """Count words in text."""
    return len(tokenize_words(text))
