"""Vector index over pluggable backends.

:class:`VectorIndex` owns one collection in a backend, embeds chunks before
storing them and scopes every search and delete to a single document id.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from docchat.config import Settings, get_settings
from docchat.embeddings import embed_many, get_embedding_provider
from docchat.errors import VectorBackendError
from docchat.models import Chunk, SearchResult, UpsertResult, VectorPoint
from docchat.providers import EmbeddingProvider
from docchat.telemetry import emit_vectorstore_event

from .base import DEFAULT_DISTANCE, VectorBackend
from .mock_store import InMemoryVectorBackend

LOGGER = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "pdf_chunks"

BackendFactory = Callable[[], VectorBackend]


class VectorIndex:
    """Store and search chunk embeddings for many documents in one collection."""

    def __init__(
        self,
        backend_factory: BackendFactory,
        *,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        embedding_provider: Optional[EmbeddingProvider] = None,
        distance: str = DEFAULT_DISTANCE,
        embed_workers: int = 1,
    ) -> None:
        self.collection_name = collection_name
        self.distance = distance
        self.embed_workers = max(1, int(embed_workers))
        self._backend_factory = backend_factory
        self._backend: Optional[VectorBackend] = None
        self._embedding_provider = embedding_provider
        self._lock = threading.Lock()

    @property
    def backend(self) -> VectorBackend:
        """Backend handle, created on first use and shared afterwards."""

        backend = self._backend
        if backend is not None:
            return backend
        with self._lock:
            if self._backend is None:
                try:
                    self._backend = self._backend_factory()
                except VectorBackendError:
                    raise
                except Exception as exc:
                    raise VectorBackendError(
                        "Failed to initialise vector backend", cause=exc
                    ) from exc
            return self._backend

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        if self._embedding_provider is None:
            self._embedding_provider = get_embedding_provider()
        return self._embedding_provider

    def ensure_collection(self, vector_size: int) -> None:
        """Create the collection with *vector_size* dimensions unless it exists."""

        if not isinstance(vector_size, int) or vector_size <= 0:
            raise VectorBackendError(f"Invalid vector size: {vector_size!r}")

        backend = self.backend
        if self._call("vectorstore.exists", backend.collection_exists, self.collection_name):
            return
        try:
            backend.create_collection(self.collection_name, size=vector_size, distance=self.distance)
        except Exception as exc:
            # another writer may have created it between the check and the create
            if self._call("vectorstore.exists", backend.collection_exists, self.collection_name):
                LOGGER.debug("Collection %s created concurrently", self.collection_name)
                return
            emit_vectorstore_event(
                "vectorstore.create",
                collection=self.collection_name,
                backend=backend.name,
                count=0,
                error=exc,
            )
            raise VectorBackendError(
                f"Failed to create collection {self.collection_name!r}", cause=exc
            ) from exc
        emit_vectorstore_event(
            "vectorstore.create",
            collection=self.collection_name,
            backend=backend.name,
            count=vector_size,
        )

    def upsert(
        self,
        document_id: str,
        chunks: Sequence[Chunk],
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> UpsertResult:
        """Embed *chunks* and store them under *document_id*.

        Embedding failures propagate unchanged. The payload keys that identify
        the chunk always win over caller supplied metadata.
        """

        started = time.perf_counter()
        points = self.prepare_points(document_id, chunks, metadata)
        return self.write_points(document_id, points, started=started)

    def prepare_points(
        self,
        document_id: str,
        chunks: Sequence[Chunk],
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> List[VectorPoint]:
        """Embed *chunks* into points without writing them to the backend."""

        if not chunks:
            return []

        provider = self.embedding_provider
        first_vector = provider.embed(chunks[0].text)
        self.ensure_collection(len(first_vector))
        vectors = [first_vector]
        vectors.extend(
            embed_many(provider, [chunk.text for chunk in chunks[1:]], max_workers=self.embed_workers)
        )

        base_metadata = dict(metadata or {})
        points: List[VectorPoint] = []
        for chunk, vector in zip(chunks, vectors):
            payload: Dict[str, Any] = dict(base_metadata)
            payload.update(
                {
                    "document_id": document_id,
                    "text": chunk.text,
                    "page": chunk.page,
                    "chunk_index": chunk.chunk_index,
                }
            )
            points.append(VectorPoint(id=str(uuid.uuid4()), vector=vector, payload=payload))
        return points

    def write_points(
        self,
        document_id: str,
        points: Sequence[VectorPoint],
        *,
        started: float | None = None,
    ) -> UpsertResult:
        if not points:
            return UpsertResult(upserted=0)
        if started is None:
            started = time.perf_counter()
        self._call(
            "vectorstore.upsert",
            self.backend.upsert,
            self.collection_name,
            list(points),
            log_document_id=document_id,
        )
        emit_vectorstore_event(
            "vectorstore.upsert",
            collection=self.collection_name,
            backend=self.backend.name,
            count=len(points),
            document_id=document_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return UpsertResult(upserted=len(points))

    def search(self, document_id: str, query_text: str, top_k: int = 6) -> List[SearchResult]:
        """Return up to *top_k* nearest chunks of *document_id* for *query_text*."""

        if top_k <= 0:
            return []
        started = time.perf_counter()
        vector = self.embedding_provider.embed(query_text)
        self.ensure_collection(len(vector))
        results = self._call(
            "vectorstore.search",
            self.backend.search,
            self.collection_name,
            vector,
            limit=top_k,
            document_id=document_id,
            log_document_id=document_id,
        )
        emit_vectorstore_event(
            "vectorstore.search",
            collection=self.collection_name,
            backend=self.backend.name,
            count=len(results),
            document_id=document_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return results

    def delete_document(self, document_id: str) -> int:
        """Remove every stored chunk of *document_id*; returns how many went."""

        backend = self.backend
        if not self._call("vectorstore.exists", backend.collection_exists, self.collection_name):
            return 0
        removed = self._call(
            "vectorstore.delete",
            backend.delete_document,
            self.collection_name,
            document_id,
            log_document_id=document_id,
        )
        emit_vectorstore_event(
            "vectorstore.delete",
            collection=self.collection_name,
            backend=backend.name,
            count=removed,
            document_id=document_id,
        )
        return removed

    def count(self, document_id: Optional[str] = None) -> int:
        backend = self.backend
        if not self._call("vectorstore.exists", backend.collection_exists, self.collection_name):
            return 0
        return self._call("vectorstore.count", backend.count, self.collection_name, document_id)

    def close(self) -> None:
        with self._lock:
            backend, self._backend = self._backend, None
        if backend is not None:
            backend.close()

    def _call(
        self,
        step: str,
        func: Callable[..., Any],
        *args: Any,
        log_document_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        try:
            return func(*args, **kwargs)
        except VectorBackendError:
            raise
        except Exception as exc:
            emit_vectorstore_event(
                step,
                collection=self.collection_name,
                backend=getattr(self._backend, "name", "unknown"),
                count=0,
                document_id=log_document_id,
                error=exc,
            )
            raise VectorBackendError(f"Vector backend call {step!r} failed", cause=exc) from exc


def build_backend_factory(settings: Settings) -> BackendFactory:
    """Return a callable creating the backend named by ``VECTOR_STORE``."""

    backend = settings.vector_store
    if backend == "qdrant":

        def _qdrant() -> VectorBackend:
            from .qdrant_store import QdrantBackend

            return QdrantBackend(
                settings.qdrant_url,
                api_key=settings.qdrant_api_key,
                timeout=settings.qdrant_timeout,
            )

        return _qdrant

    if backend == "chroma":

        def _chroma() -> VectorBackend:
            from .chroma_store import ChromaBackend

            return ChromaBackend(settings.chroma_persist_dir)

        return _chroma

    if backend == "mock":
        return InMemoryVectorBackend

    raise ValueError(f"Unsupported VECTOR_STORE backend: {backend!r}")


@lru_cache()
def get_vector_index() -> VectorIndex:
    """Return the process wide vector index configured from the environment."""

    settings = get_settings()
    return VectorIndex(
        build_backend_factory(settings),
        collection_name=settings.qdrant_collection,
        embed_workers=settings.embedding_concurrency,
    )


def reset_vector_index_cache() -> None:
    """Clear the cached vector index (primarily for testing)."""

    get_vector_index.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "DEFAULT_COLLECTION_NAME",
    "InMemoryVectorBackend",
    "VectorBackend",
    "VectorIndex",
    "build_backend_factory",
    "get_vector_index",
    "reset_vector_index_cache",
]
