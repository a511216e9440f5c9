"""Embedding adapter for Ollama-compatible HTTP backends.

The backend has answered with three different JSON layouts across versions::

    {"embedding": [..]}                 # single vector
    {"embeddings": [[..], ..]}          # batch, first row used
    {"data": {"embeddings": [[..]]}}    # nested batch, first row used

:func:`probe_embedding` checks them in that order and reports which one
matched. The adapter calls ``/api/embed`` first and, if the call raises or
the answer matches no layout, retries once against the legacy
``/api/embeddings`` endpoint. Nothing else is retried.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence

import httpx

from docchat.config import get_settings
from docchat.errors import EmbeddingFailure
from docchat.providers import EmbeddingProvider, MockEmbeddingProvider
from docchat.telemetry import emit_embeddings_event

LOGGER = logging.getLogger(__name__)

PRIMARY_ENDPOINT = "/api/embed"
LEGACY_ENDPOINT = "/api/embeddings"
DEFAULT_TIMEOUT = 120.0


class EmbeddingShape(str, Enum):
    SINGLE = "embedding"
    BATCH = "embeddings"
    NESTED_BATCH = "data.embeddings"
    UNMATCHED = "unmatched"


@dataclass(frozen=True, slots=True)
class EmbeddingProbe:
    """Outcome of probing a backend response for a known vector layout."""

    shape: EmbeddingShape
    vector: Optional[List[float]] = None

    @property
    def matched(self) -> bool:
        return self.shape is not EmbeddingShape.UNMATCHED


_UNMATCHED = EmbeddingProbe(EmbeddingShape.UNMATCHED)


def _as_vector(value: Any) -> Optional[List[float]]:
    if not isinstance(value, list) or not value:
        return None
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            return None
    return [float(item) for item in value]


def _first_row(value: Any) -> Optional[List[float]]:
    if not isinstance(value, list) or not value:
        return None
    return _as_vector(value[0])


def probe_embedding(payload: Any) -> EmbeddingProbe:
    """Return the first known layout found in *payload*."""

    if not isinstance(payload, dict):
        return _UNMATCHED

    vector = _as_vector(payload.get("embedding"))
    if vector is not None:
        return EmbeddingProbe(EmbeddingShape.SINGLE, vector)

    vector = _first_row(payload.get("embeddings"))
    if vector is not None:
        return EmbeddingProbe(EmbeddingShape.BATCH, vector)

    data = payload.get("data")
    if isinstance(data, dict):
        vector = _first_row(data.get("embeddings"))
        if vector is not None:
            return EmbeddingProbe(EmbeddingShape.NESTED_BATCH, vector)

    return _UNMATCHED


class OllamaEmbeddingAdapter(EmbeddingProvider):
    """Embedding provider calling an Ollama compatible server over HTTP."""

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model_name = model
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def embed(self, text: str | Sequence[str]) -> List[float]:
        if isinstance(text, str):
            inputs = [text]
        else:
            inputs = [str(item) for item in text] or [""]

        errors: List[str] = []
        started = time.perf_counter()

        probe = self._attempt(PRIMARY_ENDPOINT, {"model": self.model_name, "input": inputs}, errors)
        endpoint = PRIMARY_ENDPOINT
        if probe is None or not probe.matched:
            if probe is not None:
                errors.append(f"{PRIMARY_ENDPOINT}: unrecognised response shape")
            LOGGER.info("Primary embedding endpoint unusable; retrying legacy endpoint")
            endpoint = LEGACY_ENDPOINT
            probe = self._attempt(
                LEGACY_ENDPOINT, {"model": self.model_name, "prompt": inputs[0]}, errors
            )
            if probe is not None and not probe.matched:
                errors.append(f"{LEGACY_ENDPOINT}: unrecognised response shape")

        duration_ms = (time.perf_counter() - started) * 1000.0
        if probe is None or probe.vector is None:
            emit_embeddings_event(
                model=self.model_name,
                endpoint=endpoint,
                count=1,
                duration_ms=duration_ms,
                errors=errors,
            )
            raise EmbeddingFailure(
                "Invalid embedding response from backend: " + "; ".join(errors)
            )

        emit_embeddings_event(
            model=self.model_name,
            endpoint=endpoint,
            count=1,
            duration_ms=duration_ms,
            shape=probe.shape.value,
            dimension=len(probe.vector),
            errors=errors or None,
        )
        return probe.vector

    def _attempt(
        self, endpoint: str, body: Dict[str, Any], errors: List[str]
    ) -> Optional[EmbeddingProbe]:
        try:
            response = self._client.post(endpoint, json=body, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, ValueError) as exc:
            LOGGER.warning("Embedding request to %s failed: %s", endpoint, exc)
            errors.append(f"{endpoint}: {exc}")
            return None
        return probe_embedding(payload)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def embed_many(
    provider: EmbeddingProvider,
    texts: Sequence[str],
    *,
    max_workers: int = 1,
) -> List[List[float]]:
    """Embed *texts* and return the vectors in input order.

    With ``max_workers > 1`` requests run on a thread pool; every future is
    keyed by its input index so completion order does not matter. The first
    failure cancels outstanding work and propagates.
    """

    if max_workers <= 1 or len(texts) <= 1:
        return [provider.embed(text) for text in texts]

    vectors: List[Optional[List[float]]] = [None] * len(texts)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures: Dict[Future, int] = {
            pool.submit(provider.embed, text): index for index, text in enumerate(texts)
        }
        try:
            for future in as_completed(futures):
                vectors[futures[future]] = future.result()
        except BaseException:
            for future in futures:
                future.cancel()
            raise
    return [vector for vector in vectors if vector is not None]


@lru_cache()
def get_embedding_provider() -> EmbeddingProvider:
    """Return the configured embedding provider."""

    settings = get_settings()
    provider = settings.embedding_provider
    if provider == "ollama":
        return OllamaEmbeddingAdapter(
            settings.ollama_base_url,
            settings.embedding_model,
            timeout=settings.embedding_timeout,
        )
    if provider == "local":
        from docchat.providers.local_embedding import LocalEmbeddingModel

        return LocalEmbeddingModel(settings.embedding_model_path, device=settings.embedding_device)
    if provider == "mock":
        return MockEmbeddingProvider()
    raise ValueError(f"Unsupported EMBEDDING_PROVIDER: {provider!r}")


def reset_embedding_provider_cache() -> None:
    """Clear the cached embedding provider (primarily for testing)."""

    get_embedding_provider.cache_clear()  # type: ignore[attr-defined]


def embed(text: str | Sequence[str]) -> List[float]:
    """Embed *text* with the configured provider."""

    return get_embedding_provider().embed(text)


__all__ = [
    "EmbeddingProbe",
    "EmbeddingShape",
    "OllamaEmbeddingAdapter",
    "embed",
    "embed_many",
    "get_embedding_provider",
    "probe_embedding",
    "reset_embedding_provider_cache",
]
