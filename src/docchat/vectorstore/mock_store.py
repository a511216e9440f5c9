"""Simple in-memory vector backend for tests and offline development."""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from docchat.models import SearchResult, VectorPoint

from .base import DEFAULT_DISTANCE

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _MockCollection:
    size: int
    distance: str
    points: Dict[str, VectorPoint] = field(default_factory=dict)


class InMemoryVectorBackend:
    """A minimal in-process stand-in for a vector database.

    Collections have a fixed dimension; writes and searches with a vector of
    any other length are rejected the way a real backend would reject them.
    """

    name = "mock"

    def __init__(self) -> None:
        self._collections: Dict[str, _MockCollection] = {}
        self._lock = threading.Lock()

    def collection_exists(self, collection: str) -> bool:
        return collection in self._collections

    def create_collection(self, collection: str, *, size: int, distance: str = DEFAULT_DISTANCE) -> None:
        if distance != "cosine":
            raise ValueError(f"Unsupported distance metric {distance!r}")
        with self._lock:
            if collection in self._collections:
                raise ValueError(f"Collection '{collection}' already exists")
            self._collections[collection] = _MockCollection(size=size, distance=distance)

    def upsert(self, collection: str, points: Sequence[VectorPoint]) -> None:
        target = self._get(collection)
        for point in points:
            self._check_dimension(target, point.vector)
        with self._lock:
            for point in points:
                target.points[point.id] = VectorPoint(
                    id=point.id, vector=list(point.vector), payload=dict(point.payload)
                )

    def search(
        self,
        collection: str,
        vector: Sequence[float],
        *,
        limit: int,
        document_id: str,
    ) -> List[SearchResult]:
        if limit <= 0:
            return []
        target = self._get(collection)
        self._check_dimension(target, vector)
        with self._lock:
            candidates = [
                point
                for point in target.points.values()
                if point.payload.get("document_id") == document_id
            ]
        scored = [
            SearchResult(id=point.id, score=_cosine_similarity(vector, point.vector), payload=dict(point.payload))
            for point in candidates
        ]
        scored.sort(key=lambda result: result.score, reverse=True)
        return scored[:limit]

    def delete_document(self, collection: str, document_id: str) -> int:
        target = self._get(collection)
        with self._lock:
            doomed = [
                point_id
                for point_id, point in target.points.items()
                if point.payload.get("document_id") == document_id
            ]
            for point_id in doomed:
                del target.points[point_id]
        LOGGER.debug("Deleted %s points for document %s", len(doomed), document_id)
        return len(doomed)

    def count(self, collection: str, document_id: Optional[str] = None) -> int:
        target = self._get(collection)
        if document_id is None:
            return len(target.points)
        return sum(1 for point in target.points.values() if point.payload.get("document_id") == document_id)

    def close(self) -> None:
        return None

    def _get(self, collection: str) -> _MockCollection:
        try:
            return self._collections[collection]
        except KeyError:
            raise KeyError(f"Collection '{collection}' does not exist") from None

    @staticmethod
    def _check_dimension(target: _MockCollection, vector: Sequence[float]) -> None:
        if len(vector) != target.size:
            raise ValueError(
                f"Vector dimension error: expected dim: {target.size}, got {len(vector)}"
            )


def _cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    if len(vec_a) != len(vec_b):
        raise ValueError("Vectors must be of the same dimension")
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


__all__ = ["InMemoryVectorBackend"]
