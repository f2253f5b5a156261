"""Style fingerprint engine: measure, merge and render writing style."""

from .profile import StyleProfile, StyleDimensions, empty_profile
from .extractor import analyze, merge
from .format import FORMAT_MODES, format_profile, describe_scale

__all__ = [
    "StyleProfile",
    "StyleDimensions",
    "empty_profile",
    "analyze",
    "merge",
    "FORMAT_MODES",
    "format_profile",
    "describe_scale",
]
