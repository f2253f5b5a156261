"""Utility modules for the content pipeline."""

from .logging import (
    get_logger,
    setup_logging,
    set_request_id,
    get_request_id,
    log_llm_call,
)
from .text import (
    split_into_sentences,
    split_into_paragraphs,
    tokenize_words,
    count_words,
)

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "set_request_id",
    "get_request_id",
    "log_llm_call",
    # Text
    "split_into_sentences",
    "split_into_paragraphs",
    "tokenize_words",
    "count_words",
]
