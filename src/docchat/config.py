"""Environment driven settings for the document chat service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved configuration values."""

    # chunking
    chunk_tokens: int = 800
    chunk_overlap_tokens: int = 100
    tokenizer_model: str = "gpt-3.5-turbo"

    # embeddings
    embedding_provider: str = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    embedding_model: str = "mxbai-embed-large"
    embedding_timeout: float = 120.0
    embedding_concurrency: int = 1
    embedding_model_path: Optional[str] = None
    embedding_device: Optional[str] = None

    # vector index
    vector_store: str = "qdrant"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: Optional[str] = None
    qdrant_collection: str = "pdf_chunks"
    qdrant_timeout: float = 30.0
    chroma_persist_dir: str = "chroma_db"
    reingest_purge: bool = True

    # context budget
    max_context_chunks: int = 40
    context_chars_per_chunk: int = 1200
    history_messages: int = 4
    source_preview_count: int = 4
    source_preview_chars: int = 200

    # generation
    ai_provider: str = "openai"
    openai_base_url: str = "https://api.groq.com/openai/v1"
    openai_api_key: Optional[str] = None
    openai_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    ollama_chat_model: str = "llama3.2:3b"
    llm_max_tokens: int = 1000
    llm_temperature: float = 0.2
    llm_timeout: float = 120.0

    # uploads
    upload_dir: str = "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024
    download_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            chunk_tokens=_env_int("CHUNK_TOKENS", defaults.chunk_tokens),
            chunk_overlap_tokens=_env_int("CHUNK_OVERLAP_TOKENS", defaults.chunk_overlap_tokens),
            tokenizer_model=_env_str("TOKENIZER_MODEL", defaults.tokenizer_model),
            embedding_provider=_env_str("EMBEDDING_PROVIDER", defaults.embedding_provider).lower(),
            ollama_base_url=_env_str("OLLAMA_BASE_URL", defaults.ollama_base_url),
            embedding_model=_env_str("EMBEDDING_MODEL", defaults.embedding_model),
            embedding_timeout=_env_float("EMBEDDING_TIMEOUT", defaults.embedding_timeout),
            embedding_concurrency=_env_int("EMBEDDING_CONCURRENCY", defaults.embedding_concurrency),
            embedding_model_path=_env_optional("EMBEDDING_MODEL_PATH"),
            embedding_device=_env_optional("EMBEDDING_DEVICE"),
            vector_store=_env_str("VECTOR_STORE", defaults.vector_store).lower(),
            qdrant_url=_env_str("QDRANT_URL", defaults.qdrant_url),
            qdrant_api_key=_env_optional("QDRANT_API_KEY"),
            qdrant_collection=_env_str("QDRANT_COLLECTION", defaults.qdrant_collection),
            qdrant_timeout=_env_float("QDRANT_TIMEOUT", defaults.qdrant_timeout),
            chroma_persist_dir=_env_str("CHROMA_PERSIST_DIR", defaults.chroma_persist_dir),
            reingest_purge=_env_flag("REINGEST_PURGE", defaults.reingest_purge),
            max_context_chunks=_env_int("MAX_CONTEXT_CHUNKS", defaults.max_context_chunks),
            context_chars_per_chunk=_env_int(
                "CONTEXT_CHARS_PER_CHUNK", defaults.context_chars_per_chunk
            ),
            history_messages=_env_int("HISTORY_MESSAGES", defaults.history_messages),
            source_preview_count=_env_int("SOURCE_PREVIEW_COUNT", defaults.source_preview_count),
            source_preview_chars=_env_int("SOURCE_PREVIEW_CHARS", defaults.source_preview_chars),
            ai_provider=_env_str("AI_PROVIDER", defaults.ai_provider).lower(),
            openai_base_url=_env_str("OPENAI_BASE_URL", defaults.openai_base_url),
            openai_api_key=_env_optional("OPENAI_API_KEY"),
            openai_model=_env_str("OPENAI_MODEL", defaults.openai_model),
            ollama_chat_model=_env_str("MODEL_NAME", defaults.ollama_chat_model),
            llm_max_tokens=_env_int("LLM_MAX_TOKENS", defaults.llm_max_tokens),
            llm_temperature=_env_float("LLM_TEMPERATURE", defaults.llm_temperature),
            llm_timeout=_env_float("LLM_TIMEOUT", defaults.llm_timeout),
            upload_dir=_env_str("UPLOAD_DIR", defaults.upload_dir),
            max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", defaults.max_upload_bytes),
            download_timeout=_env_float("DOWNLOAD_TIMEOUT", defaults.download_timeout),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return settings resolved from the current environment."""

    return Settings.from_env()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for testing)."""

    get_settings.cache_clear()  # type: ignore[attr-defined]


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
