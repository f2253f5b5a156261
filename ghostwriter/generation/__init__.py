"""Draft generation."""

from .draft_generator import (
    DraftGenerator,
    GenerationRequest,
    RevisionGuidance,
    build_forbidden_list,
    parse_draft,
    prompt_forbidden_list,
)

__all__ = [
    "DraftGenerator",
    "GenerationRequest",
    "RevisionGuidance",
    "build_forbidden_list",
    "parse_draft",
    "prompt_forbidden_list",
]
