"""LLM provider abstraction layer."""

from .provider import (
    LLMProvider,
    LLMError,
    TransientCallError,
    LLMRateLimitError,
    LLMTimeoutError,
    LLMResponseError,
    parse_json_content,
    get_provider,
    create_provider_from_config,
    register_provider,
)

# Import providers to register them
from . import deepseek

__all__ = [
    "LLMProvider",
    "LLMError",
    "TransientCallError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMResponseError",
    "parse_json_content",
    "get_provider",
    "create_provider_from_config",
    "register_provider",
]
