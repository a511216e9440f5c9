"""Chat completion providers."""

from __future__ import annotations

from functools import lru_cache

from docchat.config import get_settings

from .adapter import LLMAdapter, OllamaChatAdapter, OpenAIChatAdapter, StubLLMAdapter


@lru_cache()
def get_llm_adapter() -> LLMAdapter:
    """Return the adapter selected by ``AI_PROVIDER``."""

    settings = get_settings()
    provider = settings.ai_provider
    if provider == "openai":
        return OpenAIChatAdapter(
            settings.openai_base_url,
            settings.openai_model,
            api_key=settings.openai_api_key,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout,
            temperature=settings.llm_temperature,
        )
    if provider == "ollama":
        return OllamaChatAdapter(
            settings.ollama_base_url,
            settings.ollama_chat_model,
            timeout=settings.llm_timeout,
            temperature=settings.llm_temperature,
        )
    if provider == "stub":
        return StubLLMAdapter()
    raise ValueError(f"Unsupported AI_PROVIDER: {provider!r}")


def reset_llm_adapter_cache() -> None:
    """Clear the cached adapter (primarily for testing)."""

    get_llm_adapter.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "LLMAdapter",
    "OllamaChatAdapter",
    "OpenAIChatAdapter",
    "StubLLMAdapter",
    "get_llm_adapter",
    "reset_llm_adapter_cache",
]
