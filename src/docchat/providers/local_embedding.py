"""Embedding provider backed by a local Sentence Transformers model."""
from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional, Sequence

from sentence_transformers import SentenceTransformer

from docchat.errors import EmbeddingFailure
from docchat.telemetry import emit_embeddings_event

from .base import EmbeddingProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"


class LocalEmbeddingModel(EmbeddingProvider):
    """Lazily loaded SentenceTransformer model."""

    def __init__(
        self,
        model_name_or_path: str | None = None,
        *,
        device: str | None = None,
    ) -> None:
        self.model_name = model_name_or_path or DEFAULT_MODEL_NAME
        self._device = device
        self._model: Optional[SentenceTransformer] = None
        self._lock = threading.RLock()

    def _ensure_loaded(self) -> SentenceTransformer:
        if self._model is not None:
            return self._model
        with self._lock:
            if self._model is None:
                LOGGER.info("Loading sentence-transformers model %s", self.model_name)
                try:
                    self._model = SentenceTransformer(self.model_name, device=self._device)
                except Exception as exc:
                    raise EmbeddingFailure(
                        f"Failed to load embedding model {self.model_name!r}", cause=exc
                    ) from exc
        return self._model

    @property
    def dimension(self) -> int:
        return int(self._ensure_loaded().get_sentence_embedding_dimension())

    def embed(self, text: str | Sequence[str]) -> List[float]:
        inputs = [text] if isinstance(text, str) else [str(item) for item in text]
        if not inputs:
            inputs = [""]
        model = self._ensure_loaded()
        started = time.perf_counter()
        try:
            embeddings = model.encode(
                inputs[:1],
                convert_to_numpy=True,
                show_progress_bar=False,
                normalize_embeddings=False,
            )
        except Exception as exc:
            emit_embeddings_event(
                model=self.model_name,
                endpoint="local",
                count=1,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(exc)],
            )
            raise EmbeddingFailure("Local embedding model failed", cause=exc) from exc

        vector = [float(value) for value in embeddings.tolist()[0]]
        emit_embeddings_event(
            model=self.model_name,
            endpoint="local",
            count=1,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            dimension=len(vector),
        )
        return vector
