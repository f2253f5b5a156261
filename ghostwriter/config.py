"""Configuration management for the content pipeline.

Two kinds of configuration live here:

- ``Config``: runtime settings (LLM providers, retry, storage, logging),
  loaded from ``config.json``.
- ``ChannelConfig``: one content channel (topic, voice, quality gate),
  parsed from the camelCase channel JSON shape and validated before any
  paid model call is made.
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .utils.logging import get_logger

logger = get_logger(__name__)


class ConfigurationError(Exception):
    """Raised when a channel or runtime configuration is missing or invalid."""
    pass


# Default per-dimension minimum scores (1-10).
DEFAULT_MIN_SCORES: Dict[str, int] = {
    "structure": 7,
    "readability": 7,
    "voiceMatch": 7,
    "factualAccuracy": 7,
    "sourceCoverage": 7,
    "hookStrength": 7,
    "engagementPotential": 7,
    "naturalness": 7,
    "perplexityVariance": 7,
    "topicOriginality": 6,
    "angleFreshness": 6,
}

VALID_TONES = {
    "conversational",
    "professional",
    "academic",
    "casual",
    "authoritative",
    "humorous",
    "warm",
}

VALID_CONTENT_TYPES = {
    "article",
    "listicle",
    "recap",
    "analysis",
    "tutorial",
    "recipe",
    "review",
    "roundup",
}

_CHANNEL_ID = re.compile(r"^[a-z0-9-]+$")


# ============================================================================
# Runtime configuration
# ============================================================================

@dataclass
class LLMProviderConfig:
    """Endpoint, model and pricing for one chat-completion backend."""
    api_key: str = ""
    base_url: str = ""
    model: str = ""
    max_tokens: int = 8192
    temperature: float = 1.0
    timeout: int = 120
    input_cost_per_mtok: float = 0.0  # USD per million input tokens
    output_cost_per_mtok: float = 0.0  # USD per million output tokens


@dataclass
class LLMProviderRoles:
    """Role-based provider assignment.

    - writer: model used for drafting
    - critic: model used by the review agents
    """
    writer: str = "deepseek"
    critic: str = "deepseek"


@dataclass
class LLMConfig:
    """The ``llm`` section: role assignment, per-provider settings and retry policy."""
    provider: LLMProviderRoles = field(default_factory=LLMProviderRoles)
    providers: Dict[str, LLMProviderConfig] = field(default_factory=dict)
    max_retries: int = 3
    base_delay: float = 2.0
    max_delay: float = 60.0

    def get_provider_config(self, provider_name: str) -> LLMProviderConfig:
        """Settings for a named provider; ConfigurationError if absent."""
        if provider_name not in self.providers:
            raise ConfigurationError(f"Unknown LLM provider: {provider_name}")
        return self.providers[provider_name]

    def get_writer_provider(self) -> str:
        """Get the provider name for drafting."""
        return self.provider.writer

    def get_critic_provider(self) -> str:
        """Get the provider name for review agents."""
        return self.provider.critic


@dataclass
class PipelineConfig:
    """Configuration for the quality gate pipeline."""
    max_review_workers: int = 5  # Concurrent review agents
    storage_dir: str = "channels/"  # Per-channel learned patterns and history
    learn_patterns: bool = True  # Merge discovered patterns after each run


@dataclass
class Config:
    """Runtime settings for one pipeline process."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    log_level: str = "INFO"
    log_json: bool = False


def _resolve_env_vars(value: Any) -> Any:
    """Resolve ${VAR} references in string values."""
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        resolved = os.environ.get(env_var, "")
        if not resolved:
            logger.warning(f"Environment variable {env_var} not set")
        return resolved
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def _parse_llm_provider_config(data: Dict) -> LLMProviderConfig:
    """Build one provider config; ``pricing`` is USD per million tokens."""
    pricing = data.get("pricing", {})
    return LLMProviderConfig(
        api_key=_resolve_env_vars(data.get("api_key", "")),
        base_url=data.get("base_url", ""),
        model=data.get("model", ""),
        max_tokens=data.get("max_tokens", 8192),
        temperature=data.get("temperature", 1.0),
        timeout=data.get("timeout", 120),
        input_cost_per_mtok=pricing.get("input", 0.0),
        output_cost_per_mtok=pricing.get("output", 0.0),
    )


def _parse_llm_config(data: Dict) -> LLMConfig:
    """Build LLMConfig from the ``llm`` JSON section."""
    providers = {}
    for name, provider_data in data.get("providers", {}).items():
        providers[name] = _parse_llm_provider_config(provider_data)

    retry_config = data.get("retry", {})
    provider_data = data.get("provider", {})

    provider_roles = LLMProviderRoles(
        writer=provider_data.get("writer", "deepseek"),
        critic=provider_data.get("critic", "deepseek"),
    )

    return LLMConfig(
        provider=provider_roles,
        providers=providers,
        max_retries=retry_config.get("max_attempts", 3),
        base_delay=retry_config.get("base_delay", 2.0),
        max_delay=retry_config.get("max_delay", 60.0),
    )


def _read_json(path: Path, what: str) -> Dict:
    if not path.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}")


def load_config(config_path: str = "config.json") -> Config:
    """Load runtime configuration from a JSON file.

    Args:
        config_path: Runtime config JSON file.

    Returns:
        Config with defaults for any missing section.

    Raises:
        FileNotFoundError: If the file is missing.
        ValueError: If config file is invalid JSON.
    """
    data = _read_json(Path(config_path), "Configuration file")

    config = Config()

    if "llm" in data:
        config.llm = _parse_llm_config(data["llm"])

    if "pipeline" in data:
        pipeline_data = data["pipeline"]
        config.pipeline = PipelineConfig(
            max_review_workers=pipeline_data.get("max_review_workers", 5),
            storage_dir=pipeline_data.get("storage_dir", "channels/"),
            learn_patterns=pipeline_data.get("learn_patterns", True),
        )

    config.log_level = data.get("log_level", "INFO")
    config.log_json = data.get("log_json", False)

    logger.info(f"Loaded configuration from {config_path}")
    return config


def create_default_config() -> Dict:
    """Starter ``config.json`` contents with a DeepSeek writer and critic."""
    return {
        "llm": {
            "provider": {
                "writer": "deepseek",
                "critic": "deepseek"
            },
            "providers": {
                "deepseek": {
                    "api_key": "${DEEPSEEK_API_KEY}",
                    "base_url": "https://api.deepseek.com",
                    "model": "deepseek-chat",
                    "max_tokens": 8192,
                    "temperature": 1.0,
                    "timeout": 120,
                    "pricing": {"input": 0.27, "output": 1.10}
                }
            },
            "retry": {
                "max_attempts": 3,
                "base_delay": 2,
                "max_delay": 60
            }
        },
        "pipeline": {
            "max_review_workers": 5,
            "storage_dir": "channels/",
            "learn_patterns": True
        },
        "log_level": "INFO"
    }


# ============================================================================
# Channel configuration
# ============================================================================

@dataclass(frozen=True)
class TopicConfig:
    """What a channel writes about."""
    domain: str
    focus: str
    keywords: List[str] = field(default_factory=list)
    constraints: Optional[str] = None


@dataclass(frozen=True)
class VocabularyConfig:
    """Words the voice reaches for or must never use."""
    preferred: List[str] = field(default_factory=list)
    forbidden: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class VoiceConfig:
    """The persona a channel writes as."""
    name: str
    persona: str
    tone: str
    verbal_tics: List[str] = field(default_factory=list)
    vocabulary: VocabularyConfig = field(default_factory=VocabularyConfig)
    example_content: List[str] = field(default_factory=list)
    backstory: Optional[str] = None
    opinions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class QualityGateConfig:
    """Per-dimension minimum scores and the revision budget."""
    min_scores: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_MIN_SCORES))
    max_revisions: int = 3
    optional_agents: List[str] = field(default_factory=list)

    def threshold_for(self, dimension: str) -> Optional[int]:
        """Minimum score for a dimension, or None if not gated."""
        return self.min_scores.get(dimension)


@dataclass(frozen=True)
class ChannelConfig:
    """A configured content stream. Immutable for the duration of a run."""
    id: str
    content_type: str
    topic: TopicConfig
    voice: VoiceConfig
    quality_gate: QualityGateConfig = field(default_factory=QualityGateConfig)
    target_word_count: int = 1500
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def validate(self) -> None:
        """Check everything the pipeline needs before spending money.

        Raises:
            ConfigurationError: Naming every missing or invalid field.
        """
        problems = []

        if not self.id or not _CHANNEL_ID.match(self.id):
            problems.append(f"channel id '{self.id}' must be lowercase alphanumeric with hyphens")
        if self.content_type not in VALID_CONTENT_TYPES:
            problems.append(f"unknown contentType '{self.content_type}'")
        if not self.topic.domain or not self.topic.focus:
            problems.append("topic.domain and topic.focus are required")

        if not self.voice.name:
            problems.append("voice.name is required")
        if not self.voice.persona:
            problems.append("voice.persona is required")
        if self.voice.tone not in VALID_TONES:
            problems.append(f"voice.tone '{self.voice.tone}' must be one of {sorted(VALID_TONES)}")

        gate = self.quality_gate
        if not gate.min_scores:
            problems.append("qualityGate.minScores must configure at least one dimension")
        for dimension, minimum in gate.min_scores.items():
            if isinstance(minimum, bool) or not isinstance(minimum, int):
                problems.append(f"qualityGate.minScores.{dimension} must be an integer, got {minimum!r}")
            elif not 1 <= minimum <= 10:
                problems.append(f"qualityGate.minScores.{dimension} must be between 1 and 10, got {minimum}")
        if isinstance(gate.max_revisions, bool) or not isinstance(gate.max_revisions, int) or gate.max_revisions < 0:
            problems.append(f"qualityGate.maxRevisions must be a non-negative integer, got {gate.max_revisions!r}")

        if not isinstance(self.target_word_count, int) or self.target_word_count <= 0:
            problems.append("targetWordCount must be a positive integer")

        if problems:
            raise ConfigurationError(
                f"Invalid channel config '{self.id}': " + "; ".join(problems)
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelConfig":
        """Parse the camelCase channel JSON shape.

        Missing required sections raise ConfigurationError; value checks are
        left to validate().
        """
        missing = [key for key in ("id", "contentType", "topic", "voice") if key not in data]
        if missing:
            raise ConfigurationError(f"Channel config missing required fields: {', '.join(missing)}")

        topic_data = data["topic"] or {}
        voice_data = data["voice"] or {}
        vocab_data = voice_data.get("vocabulary") or {}
        gate_data = data.get("qualityGate") or {}

        min_scores = dict(DEFAULT_MIN_SCORES)
        min_scores.update(gate_data.get("minScores") or {})

        return cls(
            id=data["id"],
            name=data.get("name", ""),
            content_type=data["contentType"],
            topic=TopicConfig(
                domain=topic_data.get("domain", ""),
                focus=topic_data.get("focus", ""),
                keywords=list(topic_data.get("keywords", [])),
                constraints=topic_data.get("constraints"),
            ),
            voice=VoiceConfig(
                name=voice_data.get("name", ""),
                persona=voice_data.get("persona", ""),
                tone=voice_data.get("tone", ""),
                verbal_tics=list(voice_data.get("verbalTics", [])),
                vocabulary=VocabularyConfig(
                    preferred=list(vocab_data.get("preferred", [])),
                    forbidden=list(vocab_data.get("forbidden", [])),
                ),
                example_content=list(voice_data.get("exampleContent", [])),
                backstory=voice_data.get("backstory"),
                opinions=list(voice_data.get("opinions", [])),
            ),
            quality_gate=QualityGateConfig(
                min_scores=min_scores,
                max_revisions=gate_data.get("maxRevisions", 3),
                optional_agents=list(gate_data.get("optionalAgents", [])),
            ),
            target_word_count=data.get("targetWordCount", 1500),
        )


def load_channel_config(path: str) -> ChannelConfig:
    """Load and validate a channel config JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file is not valid JSON.
        ConfigurationError: If required fields are missing or invalid.
    """
    data = _read_json(Path(path), "Channel config")
    channel = ChannelConfig.from_dict(data)
    channel.validate()
    logger.info(f"Loaded channel '{channel.id}' from {path}")
    return channel
