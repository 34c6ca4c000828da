"""
LLM Provider contract - One uniform interface over every model backend
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import LLMProviderError
from .pricing import calculate_cost

logger = logging.getLogger(__name__)

# Stable, vendor-neutral messages per error code
ERROR_MESSAGES: Dict[str, str] = {
    "INVALID_API_KEY": "Invalid API key. Please check your provider credentials.",
    "QUOTA_EXCEEDED": "API quota exceeded. Please check your provider usage.",
    "RATE_LIMIT": "Rate limit exceeded. Please try again later.",
    "CONTENT_FILTERED": "The request was blocked by the provider's content filter.",
    "BAD_REQUEST": "The provider rejected the request.",
    "SERVER_ERROR": "The provider is unavailable. Please try again later.",
    "API_ERROR": "The LLM request failed.",
    "NO_CONTENT": "The provider returned an empty response.",
}

_FILTER_MARKERS = ("content_filter", "content filter", "safety", "content_policy")


def classify_provider_error(status_code: Optional[int], message: str = "") -> str:
    """Map an HTTP status and vendor message to a stable error code"""
    text = (message or "").lower()
    if any(marker in text for marker in _FILTER_MARKERS):
        return "CONTENT_FILTERED"
    if status_code in (401, 403):
        return "INVALID_API_KEY"
    if status_code == 429:
        return "QUOTA_EXCEEDED" if "quota" in text else "RATE_LIMIT"
    if status_code in (400, 404, 422):
        return "BAD_REQUEST"
    if status_code is not None and 500 <= status_code < 600:
        return "SERVER_ERROR"
    return "API_ERROR"


def provider_error(code: str, status_code: Optional[int] = None) -> LLMProviderError:
    return LLMProviderError(
        ERROR_MESSAGES.get(code, ERROR_MESSAGES["API_ERROR"]), code, status_code
    )


@dataclass
class ToolCall:
    """A function call requested by the model; ``arguments`` is raw JSON text"""
    id: str
    name: str
    arguments: str = "{}"

    def to_message(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class LLMResponse:
    content: Optional[str] = None
    tool_calls: List[ToolCall] = field(default_factory=list)
    prompt_tokens: int = 0
    completion_tokens: int = 0
    model: str = ""

    @property
    def tokens_used(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def cost(self) -> float:
        return calculate_cost(self.model, self.tokens_used)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    ``chat`` is the one required call; ``generate`` is a single-prompt
    convenience on top of it.
    """

    name: str = "base"

    @abstractmethod
    async def chat(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> LLMResponse:
        """
        Run a chat completion.

        Args:
            messages: OpenAI-style message list
            model: Model name
            temperature: Sampling temperature
            max_tokens: Completion budget
            tools: Function schemas the model may call

        Returns:
            LLMResponse with either content or tool calls

        Raises:
            LLMProviderError: with a stable code
        """
        raise NotImplementedError

    async def generate(
        self,
        prompt: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages, model, temperature=temperature, max_tokens=max_tokens)


class ProviderRegistry:
    """Providers keyed by ``modelConfig.provider`` with a default fallback"""

    def __init__(self, default: Optional[str] = None):
        self._providers: Dict[str, LLMProvider] = {}
        self.default = default

    def register(self, name: str, provider: LLMProvider, default: bool = False):
        self._providers[name] = provider
        if default or self.default is None:
            self.default = name

    def get(self, name: Optional[str] = None) -> LLMProvider:
        if name and name in self._providers:
            return self._providers[name]
        if self.default in self._providers:
            if name:
                logger.warning(f"Provider '{name}' not registered, using '{self.default}'")
            return self._providers[self.default]
        raise LLMProviderError(f"No LLM provider registered for: {name}", "PROVIDER_NOT_FOUND")

    def names(self) -> List[str]:
        return list(self._providers)
