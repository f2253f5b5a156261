"""Draft generation: one model call turning sources into a draft in the channel's voice.

The generator never retries. A failed call propagates unchanged so the
caller (or the infrastructure above it) can retry that single call.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ..config import ChannelConfig, VoiceConfig
from ..models import ContentDraft, SourceMaterial
from ..utils.logging import get_logger
from ..utils.text import count_words
from ..vocabulary.anti_slop import AI_PHRASE_BLACKLIST

logger = get_logger(__name__)

# Forbidden phrases listed in the prompt; the rest are still checked in review
MAX_PROMPT_FORBIDDEN = 60
MAX_SOURCE_CHARS = 4000

_H1 = re.compile(r"^\s*#\s+(.+?)\s*#*\s*$")

DRAFT_SYSTEM_PROMPT = """You are {name}, writing a {content_type} about {focus} ({domain}).

{persona}

WRITING STYLE:
- Tone: {tone}
- Preferred vocabulary: {preferred}
{style_profile}

ANTI-SLOP RULES (CRITICAL):
1. NEVER use any of these phrases: {forbidden}
2. ONLY state facts that appear in the source material. Do NOT invent information.
3. Vary sentence lengths dramatically: mix 5-word punches with 30+ word flowing sentences.
4. Vary paragraph lengths. Some are one sentence, others four or five.
5. Use contractions naturally.
6. Never start three consecutive sentences the same way.
{constraints}{history}{revision}
Write the full {content_type} in markdown. Start with the headline as an H1. Target: {target_word_count} words."""

DRAFT_USER_PROMPT = """SOURCE MATERIAL:
{sources}

Topic keywords: {keywords}

Write the full piece now. Remember: ONLY use facts from the source material."""


@dataclass
class RevisionGuidance:
    """What the previous attempt got wrong."""
    feedback: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass
class GenerationRequest:
    """Everything one generation call needs."""
    channel: ChannelConfig
    sources: List[SourceMaterial]
    style_profile_text: str = ""
    history_text: str = ""
    revision: int = 0
    guidance: Optional[RevisionGuidance] = None
    extra_forbidden: List[str] = field(default_factory=list)

    @property
    def voice(self) -> VoiceConfig:
        return self.channel.voice


def build_forbidden_list(voice: VoiceConfig, extra: Iterable[str] = ()) -> List[str]:
    """Blacklist + voice forbidden words + extra phrases.

    Deduplicated case-insensitively; first spelling and order are kept.
    """
    seen = set()
    forbidden = []
    for phrase in list(AI_PHRASE_BLACKLIST) + list(voice.vocabulary.forbidden) + list(extra):
        phrase = phrase.strip()
        key = phrase.lower()
        if phrase and key not in seen:
            seen.add(key)
            forbidden.append(phrase)
    return forbidden


def prompt_forbidden_list(forbidden: List[str], limit: int = MAX_PROMPT_FORBIDDEN) -> List[str]:
    """Trim a forbidden list for the prompt.

    Voice and learned phrases are always kept; generic blacklist entries
    fill whatever room is left under ``limit``.
    """
    generic_keys = {phrase.lower() for phrase in AI_PHRASE_BLACKLIST}
    specific = [p for p in forbidden if p.lower() not in generic_keys]
    generic = [p for p in forbidden if p.lower() in generic_keys]
    return specific + generic[:max(limit - len(specific), 0)]


def build_persona_block(voice: VoiceConfig) -> str:
    parts = [f"PERSONA: {voice.name}"]
    if voice.backstory:
        parts.append(f"Backstory: {voice.backstory}")
    if voice.opinions:
        parts.append(f"Strong opinions: {'; '.join(voice.opinions)}")
    if voice.verbal_tics:
        parts.append(f"Verbal tics/habits: {', '.join(voice.verbal_tics)}")
    parts.append(f"Personality: {voice.persona}")
    return "\n".join(parts)


def format_sources(sources: List[SourceMaterial]) -> str:
    if not sources:
        return "(no source material supplied)"
    blocks = []
    for i, source in enumerate(sources, 1):
        header = f"[{i}] {source.title}"
        if source.url:
            header += f" ({source.url})"
        body = source.body[:MAX_SOURCE_CHARS]
        blocks.append(f"{header}\n{body}")
    return "\n\n".join(blocks)


def parse_draft(text: str) -> Tuple[str, str]:
    """Split model output into (headline, body).

    The headline is a leading markdown H1, or failing that the first
    non-empty line. The body is everything after it.
    """
    lines = text.strip().splitlines()
    for i, line in enumerate(lines):
        if not line.strip():
            continue
        match = _H1.match(line)
        headline = match.group(1) if match else line.strip().lstrip("#").strip()
        body = "\n".join(lines[i + 1:]).strip()
        return headline, body
    return "", ""


class DraftGenerator:
    """Produces ContentDrafts through the writer provider."""

    def __init__(self, provider, temperature: float = 1.0, max_tokens: int = 8192):
        """Initialize the generator.

        Args:
            provider: LLMProvider used for the free-text call.
            temperature: Sampling temperature for drafting.
            max_tokens: Output token cap.
        """
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_prompts(self, request: GenerationRequest) -> Tuple[str, str]:
        """Render the system and user prompts for a request."""
        channel = request.channel
        voice = request.voice
        forbidden = prompt_forbidden_list(build_forbidden_list(voice, request.extra_forbidden))

        constraints = ""
        if channel.topic.constraints:
            constraints = f"\nTOPIC CONSTRAINTS: {channel.topic.constraints}\n"

        history = f"\n{request.history_text}\n" if request.history_text else ""

        revision = ""
        guidance = request.guidance
        if request.revision > 0 and guidance is not None:
            lines = [f"\nREVISION {request.revision}: Address this feedback:"]
            lines.extend(f"- {item}" for item in guidance.feedback)
            if guidance.suggestions:
                lines.append("Suggested improvements:")
                lines.extend(f"- {item}" for item in guidance.suggestions)
            revision = "\n".join(lines) + "\n"

        system_prompt = DRAFT_SYSTEM_PROMPT.format(
            name=voice.name,
            content_type=channel.content_type,
            focus=channel.topic.focus,
            domain=channel.topic.domain,
            persona=build_persona_block(voice),
            tone=voice.tone,
            preferred=", ".join(voice.vocabulary.preferred) or "no specific preferences",
            style_profile=request.style_profile_text,
            forbidden=", ".join(forbidden),
            constraints=constraints,
            history=history,
            revision=revision,
            target_word_count=channel.target_word_count,
        )
        user_prompt = DRAFT_USER_PROMPT.format(
            sources=format_sources(request.sources),
            keywords=", ".join(channel.topic.keywords) or "(none)",
        )
        return system_prompt, user_prompt

    def generate(self, request: GenerationRequest) -> Tuple[ContentDraft, float]:
        """Generate one draft.

        Returns:
            Tuple of (draft, cost of the call).

        Raises:
            LLMError: Whatever the provider raised, unmodified.
        """
        channel = request.channel
        logger.info(
            f"Generating draft for {channel.id} (revision {request.revision})",
            extra_data={"channel_id": channel.id, "revision": request.revision}
        )

        system_prompt, user_prompt = self.build_prompts(request)
        result = self.provider.call(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        headline, body = parse_draft(result.data)
        draft = ContentDraft(
            headline=headline,
            body=body,
            revision=request.revision,
            channel_id=channel.id,
            word_count=count_words(body),
        )

        logger.info(
            f"Draft complete: {draft.word_count} words, ${result.cost:.4f}",
            extra_data={"channel_id": channel.id, "word_count": draft.word_count, "cost": result.cost}
        )
        return draft, result.cost
