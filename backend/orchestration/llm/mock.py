"""
Offline provider used when no API key is configured, and in tests
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Union

from .base import LLMProvider, LLMResponse

_KEYWORD_RESPONSES = [
    (("hello", "hi"), "Hello! I'm ready to help you with any questions or tasks you might have. How can I assist you today?"),
    (("code", "programming"), "I'd be happy to help with your coding question. What specific programming topic would you like to explore?"),
    (("learn", "study"), "Learning is a journey of discovery! What subject are you interested in learning about?"),
    (("help",), "I'm here to help! I can assist with writing, analysis, coding and answering questions. What do you need today?"),
]
_DEFAULT_RESPONSE = "That's an interesting question! Here's what you need to know about this topic."


def _estimate_tokens(text: str) -> int:
    return len(text) // 4


class MockProvider(LLMProvider):
    """
    Deterministic stand-in for a real model.

    Scripted entries are consumed in order first, exceptions being raised
    instead of returned; after that the reply is picked by keywords in the
    last user message.
    """

    name = "mock"

    def __init__(self, responses: Optional[Iterable[Union[LLMResponse, Exception]]] = None):
        self._scripted: List[Union[LLMResponse, Exception]] = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def queue(self, response: Union[LLMResponse, Exception]):
        self._scripted.append(response)

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> LLMResponse:
        self.calls.append({"messages": list(messages), "model": model, "tools": tools})

        if self._scripted:
            response = self._scripted.pop(0)
            if isinstance(response, Exception):
                raise response
            if not response.model:
                response.model = model
            return response

        prompt = next(
            (m.get("content") or "" for m in reversed(messages) if m.get("role") == "user"),
            "",
        )
        lowered = prompt.lower()
        content = _DEFAULT_RESPONSE
        for keywords, reply in _KEYWORD_RESPONSES:
            if any(re.search(rf"\b{re.escape(word)}\b", lowered) for word in keywords):
                content = reply
                break

        return LLMResponse(
            content=content,
            prompt_tokens=_estimate_tokens(prompt),
            completion_tokens=_estimate_tokens(content),
            model=model,
        )
