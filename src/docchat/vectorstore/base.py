"""Contract every vector backend adapter implements."""
from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from docchat.models import SearchResult, VectorPoint

DEFAULT_DISTANCE = "cosine"


class VectorBackend(Protocol):
    """Minimal surface the :class:`~docchat.vectorstore.VectorIndex` relies on."""

    name: str

    def collection_exists(self, collection: str) -> bool:
        ...

    def create_collection(self, collection: str, *, size: int, distance: str = DEFAULT_DISTANCE) -> None:
        ...

    def upsert(self, collection: str, points: Sequence[VectorPoint]) -> None:
        ...

    def search(
        self,
        collection: str,
        vector: Sequence[float],
        *,
        limit: int,
        document_id: str,
    ) -> List[SearchResult]:
        ...

    def delete_document(self, collection: str, document_id: str) -> int:
        ...

    def count(self, collection: str, document_id: Optional[str] = None) -> int:
        ...

    def close(self) -> None:
        ...


__all__ = ["DEFAULT_DISTANCE", "VectorBackend"]
