"""
OpenAI-compatible chat completions over httpx

Works against OpenAI itself and any server exposing ``/chat/completions``
(llama.cpp, vLLM, OpenRouter).
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .base import LLMProvider, LLMResponse, ToolCall, classify_provider_error, provider_error

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(LLMProvider):
    """Chat completion via an OpenAI-compatible API"""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        name: str = "openai",
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.name = name

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> LLMResponse:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"

        logger.debug(f"Calling {self.name} {model} with {len(messages)} messages")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                )
        except httpx.TimeoutException as e:
            logger.warning(f"{self.name} request timed out: {e}")
            raise provider_error("SERVER_ERROR")
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} request failed: {e}")
            raise provider_error("API_ERROR")

        if response.status_code >= 400:
            code = classify_provider_error(response.status_code, response.text)
            logger.warning(f"{self.name} returned {response.status_code} ({code})")
            raise provider_error(code, response.status_code)

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"{self.name} returned a non-JSON body")
            raise provider_error("API_ERROR", response.status_code)
        if not isinstance(data, dict):
            raise provider_error("API_ERROR", response.status_code)
        return self._parse_response(data, model)

    @staticmethod
    def _parse_response(data: Dict[str, Any], model: str) -> LLMResponse:
        choices = data.get("choices") or []
        if not choices:
            raise provider_error("NO_CONTENT")

        choice = choices[0]
        if choice.get("finish_reason") == "content_filter":
            raise provider_error("CONTENT_FILTERED")

        message = choice.get("message") or {}
        tool_calls = [
            ToolCall(
                id=call.get("id") or f"call_{index}",
                name=(call.get("function") or {}).get("name", ""),
                arguments=(call.get("function") or {}).get("arguments") or "{}",
            )
            for index, call in enumerate(message.get("tool_calls") or [])
        ]
        content = message.get("content")
        if not content and not tool_calls:
            raise provider_error("NO_CONTENT")

        usage = data.get("usage") or {}
        return LLMResponse(
            content=content,
            tool_calls=tool_calls,
            prompt_tokens=usage.get("prompt_tokens") or 0,
            completion_tokens=usage.get("completion_tokens") or 0,
            model=model,
        )
