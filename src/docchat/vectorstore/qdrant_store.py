"""Qdrant vector backend adapter."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from qdrant_client import QdrantClient
from qdrant_client.http import models

from docchat.models import SearchResult, VectorPoint

from .base import DEFAULT_DISTANCE

LOGGER = logging.getLogger(__name__)

_DISTANCES: Dict[str, models.Distance] = {
    "cosine": models.Distance.COSINE,
    "dot": models.Distance.DOT,
    "euclid": models.Distance.EUCLID,
}


def _document_filter(document_id: str) -> models.Filter:
    return models.Filter(
        must=[
            models.FieldCondition(
                key="document_id",
                match=models.MatchValue(value=document_id),
            )
        ]
    )


class QdrantBackend:
    """Adapter around :class:`qdrant_client.QdrantClient`.

    Pass ``client=QdrantClient(":memory:")`` to run against the embedded
    local mode instead of a server.
    """

    name = "qdrant"

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[QdrantClient] = None,
    ) -> None:
        if client is None:
            client = QdrantClient(url=url or "http://localhost:6333", api_key=api_key, timeout=int(timeout))
        self._client = client

    def collection_exists(self, collection: str) -> bool:
        return bool(self._client.collection_exists(collection_name=collection))

    def create_collection(self, collection: str, *, size: int, distance: str = DEFAULT_DISTANCE) -> None:
        try:
            metric = _DISTANCES[distance]
        except KeyError:
            raise ValueError(f"Unsupported distance metric {distance!r}") from None

        self._client.create_collection(
            collection_name=collection,
            vectors_config=models.VectorParams(size=int(size), distance=metric),
        )
        self._client.create_payload_index(
            collection_name=collection,
            field_name="document_id",
            field_schema=models.PayloadSchemaType.KEYWORD,
        )
        LOGGER.info("Created Qdrant collection %s (size=%s, distance=%s)", collection, size, distance)

    def upsert(self, collection: str, points: Sequence[VectorPoint]) -> None:
        if not points:
            return
        self._client.upsert(
            collection_name=collection,
            points=[
                models.PointStruct(id=point.id, vector=list(point.vector), payload=dict(point.payload))
                for point in points
            ],
            wait=True,
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
        response = self._client.query_points(
            collection_name=collection,
            query=list(vector),
            query_filter=_document_filter(document_id),
            limit=limit,
            with_payload=True,
        )
        return [
            SearchResult(id=str(hit.id), score=float(hit.score), payload=dict(hit.payload or {}))
            for hit in response.points
        ]

    def delete_document(self, collection: str, document_id: str) -> int:
        removed = self.count(collection, document_id)
        if removed:
            self._client.delete(
                collection_name=collection,
                points_selector=models.FilterSelector(filter=_document_filter(document_id)),
                wait=True,
            )
        return removed

    def count(self, collection: str, document_id: Optional[str] = None) -> int:
        result = self._client.count(
            collection_name=collection,
            count_filter=_document_filter(document_id) if document_id is not None else None,
            exact=True,
        )
        return int(result.count)

    def close(self) -> None:
        self._client.close()


__all__ = ["QdrantBackend"]
