"""Ghostwriter: voice-matched long-form drafting behind a multi-agent quality gate."""

__version__ = "0.1.0"
