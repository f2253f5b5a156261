"""Model-call capability used by the draft generator and the review agents.

A provider offers free-text completion (``call``) and JSON-object completion
(``call_json``). Both return the payload together with the dollar cost of the
call, so every caller can charge its spend to the run's ledger.
"""

import json
import re
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

from ..config import ConfigurationError, LLMConfig, LLMProviderConfig
from ..models import CallResult, LLMResponse, Message, MessageRole
from ..utils.logging import get_logger, log_llm_call

logger = get_logger(__name__)

_JSON_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

DEFAULT_RETRY = {"max_retries": 3, "base_delay": 2.0, "max_delay": 60.0}


class LLMError(Exception):
    """A model call failed.

    ``cost`` is whatever the failed call already spent, so the caller can
    still account for it.
    """

    def __init__(self, message: str = "", cost: float = 0.0):
        super().__init__(message)
        self.cost = cost


class TransientCallError(LLMError):
    """A single model call failed. The caller may retry that call alone."""
    pass


class LLMRateLimitError(TransientCallError):
    """The endpoint answered 429."""
    pass


class LLMTimeoutError(TransientCallError):
    """The endpoint did not answer in time."""
    pass


class LLMResponseError(TransientCallError):
    """The endpoint answered with something unusable."""
    pass


def parse_json_content(content: str) -> Dict[str, Any]:
    """Parse a JSON object out of model output, tolerating markdown fences.

    Raises:
        ValueError: If no JSON object can be parsed.
    """
    text = content.strip()
    match = _JSON_FENCE.search(text)
    if match:
        text = match.group(1).strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Fall back to the outermost braces
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("no JSON object in response")
        data = json.loads(text[start:end + 1])
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


@dataclass
class UsageStats:
    """Cumulative token and dollar usage of one provider instance."""
    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost: float = 0.0

    def add(self, response: LLMResponse, cost: float) -> None:
        self.total_calls += 1
        self.total_input_tokens += response.input_tokens
        self.total_output_tokens += response.output_tokens
        self.total_cost += cost

    def to_dict(self) -> Dict[str, float]:
        data = asdict(self)
        data["total_tokens"] = self.total_input_tokens + self.total_output_tokens
        return data


class LLMProvider(ABC):
    """Base class for chat-completion backends.

    Subclasses supply ``provider_name`` and ``_call_api``. Retries with
    exponential backoff apply to rate limits and timeouts only; every other
    LLMError is raised on the first failure.
    """

    def __init__(self, config: LLMProviderConfig, retry_config: Optional[Dict] = None):
        """Initialize the provider.

        Args:
            config: Endpoint, model, sampling defaults and per-million prices.
            retry_config: Dict with max_retries, base_delay and max_delay.
        """
        self.config = config
        self.retry_config = dict(retry_config or DEFAULT_RETRY)
        self._usage_lock = threading.Lock()
        self._usage = UsageStats()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Registry name, also used in log records."""
        pass

    @abstractmethod
    def _call_api(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_json: bool = False
    ) -> LLMResponse:
        """Send one request to the backend.

        Raises:
            LLMRateLimitError: On HTTP 429.
            LLMTimeoutError: When the request times out.
            LLMResponseError: When the body cannot be used.
            TransientCallError: On a 5xx answer or a dropped connection.
            LLMError: On anything else.
        """
        pass

    def estimate_cost(self, response: LLMResponse) -> float:
        """Dollar cost of a response from the configured per-million prices."""
        return (
            response.input_tokens * self.config.input_cost_per_mtok
            + response.output_tokens * self.config.output_cost_per_mtok
        ) / 1_000_000

    def call(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_json: bool = False
    ) -> CallResult[str]:
        """Free-text completion.

        Returns:
            CallResult with the generated text and its cost.
        """
        messages = [
            Message(role=MessageRole.SYSTEM, content=system_prompt),
            Message(role=MessageRole.USER, content=user_prompt),
        ]
        response, cost = self._call_with_retry(messages, temperature, max_tokens, require_json)
        return CallResult(data=response.content, cost=cost)

    def call_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> CallResult[Dict[str, Any]]:
        """Completion that must come back as a JSON object.

        Raises:
            LLMResponseError: If the response is empty or not a JSON object.
                The error's ``cost`` holds what the call cost.
        """
        result = self.call(system_prompt, user_prompt, temperature, max_tokens, require_json=True)

        if not result.data.strip():
            raise LLMResponseError("LLM returned empty content", cost=result.cost)
        try:
            return CallResult(data=parse_json_content(result.data), cost=result.cost)
        except ValueError as e:
            raise LLMResponseError(
                f"Failed to parse JSON response: {e}\nContent: {result.data[:500]}",
                cost=result.cost,
            )

    def _call_with_retry(
        self,
        messages: List[Message],
        temperature: Optional[float],
        max_tokens: Optional[int],
        require_json: bool,
    ) -> Tuple[LLMResponse, float]:
        # max_retries counts attempts, and the first call always happens
        retries = max(int(self.retry_config["max_retries"]), 1)
        last_error: Optional[LLMError] = None
        started = time.time()

        for attempt in range(retries):
            started = time.time()
            try:
                response = self._call_api(messages, temperature, max_tokens, require_json)
            except (LLMRateLimitError, LLMTimeoutError) as e:
                last_error = e
                if attempt + 1 >= retries:
                    break
                delay = min(
                    self.retry_config["base_delay"] * (2 ** attempt),
                    self.retry_config["max_delay"],
                )
                logger.warning(
                    f"{type(e).__name__} from {self.provider_name}, retry {attempt + 1}/{retries} in {delay}s",
                    extra_data={"provider": self.provider_name, "delay": delay}
                )
                time.sleep(delay)
                continue
            except LLMError as e:
                self._log_failure(started, str(e))
                raise

            cost = self.estimate_cost(response)
            with self._usage_lock:
                self._usage.add(response, cost)
            log_llm_call(
                logger=logger,
                provider=self.provider_name,
                model=response.model or self.config.model,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                duration_ms=int((time.time() - started) * 1000),
                success=True,
                cost=cost,
            )
            return response, cost

        self._log_failure(started, f"gave up after {retries} attempts")
        raise last_error or TransientCallError(f"gave up after {retries} attempts")

    def _log_failure(self, started: float, error: str) -> None:
        log_llm_call(
            logger=logger,
            provider=self.provider_name,
            model=self.config.model,
            input_tokens=0,
            output_tokens=0,
            duration_ms=int((time.time() - started) * 1000),
            success=False,
            error=error,
        )

    def get_usage_stats(self) -> Dict[str, float]:
        """Calls, tokens and dollars spent through this instance."""
        with self._usage_lock:
            return self._usage.to_dict()

    def reset_usage_stats(self) -> None:
        with self._usage_lock:
            self._usage = UsageStats()


_registry: Dict[str, Type[LLMProvider]] = {}


def register_provider(name: str):
    """Class decorator adding a provider under ``name``."""
    def decorator(cls: Type[LLMProvider]):
        _registry[name] = cls
        return cls
    return decorator


def get_provider(name: str, config: LLMProviderConfig, retry_config: Optional[Dict] = None) -> LLMProvider:
    """Instantiate a registered provider.

    Raises:
        ConfigurationError: If no provider is registered under ``name``.
    """
    try:
        provider_cls = _registry[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown LLM provider: {name}. Registered: {', '.join(sorted(_registry))}"
        )
    return provider_cls(config, retry_config)


def create_provider_from_config(llm_config: LLMConfig, role: str = "writer") -> LLMProvider:
    """Build the provider assigned to a pipeline role.

    Args:
        llm_config: The ``llm`` section of the runtime config.
        role: "writer" drafts; "critic" runs the review agents.

    Raises:
        ConfigurationError: If the role names a provider with no config
            section or no registered class.
    """
    if role == "critic":
        name = llm_config.get_critic_provider()
    else:
        name = llm_config.get_writer_provider()

    retry = {
        "max_retries": llm_config.max_retries,
        "base_delay": llm_config.base_delay,
        "max_delay": llm_config.max_delay,
    }
    provider = get_provider(name, llm_config.get_provider_config(name), retry)
    logger.info(f"Using '{name}' provider as {role}", extra_data={"provider": name, "role": role})
    return provider
