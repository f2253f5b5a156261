"""DeepSeek provider (OpenAI-compatible chat completions)."""

from typing import List, Optional

import requests

from ..models import LLMResponse, Message
from .provider import (
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMResponseError,
    LLMTimeoutError,
    TransientCallError,
    register_provider,
)

DEFAULT_BASE_URL = "https://api.deepseek.com"


@register_provider("deepseek")
class DeepSeekProvider(LLMProvider):
    """Chat-completions client for DeepSeek and compatible endpoints."""

    @property
    def provider_name(self) -> str:
        return "deepseek"

    @property
    def api_url(self) -> str:
        base = (self.config.base_url or DEFAULT_BASE_URL).rstrip("/")
        return f"{base}/chat/completions"

    def _call_api(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_json: bool = False
    ) -> LLMResponse:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}"
        }

        payload = {
            "model": self.config.model or "deepseek-chat",
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature if temperature is not None else self.config.temperature,
            "max_tokens": max_tokens if max_tokens is not None else self.config.max_tokens,
        }
        if require_json:
            payload["response_format"] = {"type": "json_object"}

        try:
            response = requests.post(
                self.api_url, headers=headers, json=payload, timeout=self.config.timeout
            )
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.Timeout as e:
            raise LLMTimeoutError(f"DeepSeek API request timed out: {e}")
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else 0
            if status == 429:
                raise LLMRateLimitError(f"DeepSeek API rate limit: {e.response.text}")
            if status == 401:
                raise LLMError("DeepSeek API 401 Unauthorized: check the api_key in config.json")
            if status >= 500:
                raise TransientCallError(f"DeepSeek API server error {status}: {e}")
            raise LLMError(f"DeepSeek API error {status}: {e}")
        except ValueError as e:
            raise LLMResponseError(f"DeepSeek API returned non-JSON body: {e}")
        except requests.exceptions.RequestException as e:
            raise TransientCallError(f"DeepSeek API request failed: {e}")

        choices = result.get("choices") or []
        if not choices:
            raise LLMResponseError(f"DeepSeek API response has no choices: {str(result)[:300]}")

        usage = result.get("usage") or {}
        return LLMResponse(
            content=choices[0].get("message", {}).get("content") or "",
            model=result.get("model", self.config.model),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )
