"""Mock LLM provider for testing.

Returns scripted responses so tests never touch the network.
"""

import json
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from ghostwriter.config import LLMProviderConfig
from ghostwriter.llm.provider import LLMProvider
from ghostwriter.models import LLMResponse
from ghostwriter.review.agents import AgentEvaluation, ReviewAgent

# A scripted reply: text, a dict (serialized to JSON), an exception to raise,
# or a callable taking (system_prompt, user_prompt) and returning any of those.
Reply = Union[str, Dict[str, Any], Exception, Callable[[str, str], Any]]


class MockLLMProvider(LLMProvider):
    """LLM provider that replays scripted replies.

    Replies are consumed in order; the last one repeats once the script runs
    out. Every call costs ``cost_per_call``, charged through the normal
    usage accounting by reporting one input token per call.
    """

    def __init__(self, replies: Optional[List[Reply]] = None, cost_per_call: float = 0.0):
        super().__init__(
            LLMProviderConfig(model="mock-model", input_cost_per_mtok=cost_per_call * 1_000_000),
            retry_config={"max_retries": 1, "base_delay": 0.0, "max_delay": 0.0},
        )
        self.replies = list(replies or ["This is a mocked LLM response for testing purposes."])
        self.call_history: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self._index = 0

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def call_count(self) -> int:
        return len(self.call_history)

    def _next_reply(self) -> Reply:
        with self._lock:
            reply = self.replies[min(self._index, len(self.replies) - 1)]
            self._index += 1
            return reply

    def _call_api(self, messages, temperature=None, max_tokens=None, require_json=False) -> LLMResponse:
        system_prompt = messages[0].content if messages else ""
        user_prompt = messages[-1].content if messages else ""
        with self._lock:
            self.call_history.append({
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "require_json": require_json,
            })

        reply = self._next_reply()
        if callable(reply) and not isinstance(reply, Exception):
            reply = reply(system_prompt, user_prompt)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return LLMResponse(content=reply, model="mock-model", input_tokens=1, output_tokens=0)


class ScriptedAgent(ReviewAgent):
    """Review agent stand-in returning fixed evaluations per call.

    Each entry of ``script`` is either a scores dict or an exception to raise.
    The last entry repeats.
    """

    def __init__(self, name: str, dimensions, script, cost: float = 0.0, discovered=None, feedback=None):
        self.name = name
        self.dimensions = tuple(dimensions)
        self.script = list(script)
        self.cost = cost
        self.discovered = list(discovered or [])
        self.feedback = list(feedback or [])
        self.calls = 0
        self.seen_contexts = []

    def evaluate(self, draft, channel, context):
        step = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        self.seen_contexts.append(context)
        if isinstance(step, Exception):
            raise step
        result = self.build_result(step, channel, feedback=self.feedback)
        return AgentEvaluation(result=result, cost=self.cost, discovered_patterns=list(self.discovered))
