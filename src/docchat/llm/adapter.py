"""Adapter abstractions for chat completion providers."""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx

from docchat.errors import GenerationError
from docchat.telemetry import emit_generation_event

LOGGER = logging.getLogger(__name__)

Message = Dict[str, str]


class LLMAdapter(ABC):
    """Common contract for interacting with different completion providers."""

    provider: str = "base"
    model_name: str = ""

    @abstractmethod
    def generate(self, messages: Sequence[Message]) -> str:
        """Return the assistant reply for *messages*."""

    def close(self) -> None:
        return None


class StubLLMAdapter(LLMAdapter):
    """Offline adapter that answers without calling any backend."""

    provider = "stub"

    def __init__(self, model_name: str = "stub") -> None:
        self.model_name = model_name

    def generate(self, messages: Sequence[Message]) -> str:
        question = ""
        for message in reversed(messages):
            if message.get("role") == "user":
                question = message.get("content", "").rsplit("Question:", 1)[-1].strip()
                break
        answer = f"Stub answer to: {question}" if question else "Stub answer."
        emit_generation_event(
            provider=self.provider,
            model=self.model_name,
            messages=len(messages),
            duration_ms=0.0,
            answer_preview=answer,
        )
        return answer


class _HTTPChatAdapter(LLMAdapter):
    endpoint = ""

    def __init__(
        self,
        base_url: str,
        model_name: str,
        *,
        timeout: float = 120.0,
        temperature: float = 0.2,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.timeout = timeout
        self.temperature = temperature
        self._headers = dict(headers or {})
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    @abstractmethod
    def _request_body(self, messages: List[Message]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def _extract_answer(self, payload: Any) -> str:
        ...

    def generate(self, messages: Sequence[Message]) -> str:
        started = time.perf_counter()
        message_list = [dict(message) for message in messages]
        try:
            response = self._client.post(
                self.endpoint,
                json=self._request_body(message_list),
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            answer = self._extract_answer(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            emit_generation_event(
                provider=self.provider,
                model=self.model_name,
                messages=len(message_list),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=exc,
            )
            raise GenerationError("Failed to generate response from AI", cause=exc) from exc

        emit_generation_event(
            provider=self.provider,
            model=self.model_name,
            messages=len(message_list),
            duration_ms=(time.perf_counter() - started) * 1000.0,
            answer_preview=answer,
        )
        return answer

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class OpenAIChatAdapter(_HTTPChatAdapter):
    """OpenAI compatible ``/chat/completions`` endpoint (Groq by default)."""

    provider = "openai"
    endpoint = "/chat/completions"

    def __init__(
        self,
        base_url: str,
        model_name: str,
        *,
        api_key: Optional[str] = None,
        max_tokens: int = 1000,
        timeout: float = 120.0,
        temperature: float = 0.2,
        client: Optional[httpx.Client] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        super().__init__(
            base_url,
            model_name,
            timeout=timeout,
            temperature=temperature,
            headers=headers,
            client=client,
        )
        self.max_tokens = max_tokens

    def _request_body(self, messages: List[Message]) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    def _extract_answer(self, payload: Any) -> str:
        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")


class OllamaChatAdapter(_HTTPChatAdapter):
    """Ollama ``/api/chat`` endpoint without streaming."""

    provider = "ollama"
    endpoint = "/api/chat"

    def _request_body(self, messages: List[Message]) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "messages": messages,
            "stream": False,
            "options": {"temperature": self.temperature},
        }

    def _extract_answer(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            return ""
        message = payload.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        return str(content or payload.get("response") or "")
