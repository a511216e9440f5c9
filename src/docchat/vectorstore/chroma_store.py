"""Chroma vector backend adapter."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import chromadb

from docchat.models import SearchResult, VectorPoint

from .base import DEFAULT_DISTANCE

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from chromadb.api import ClientAPI
    from chromadb.api.models.Collection import Collection

_DIMENSION_KEY = "dimension"


def _metadata_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class ChromaBackend:
    """Adapter around a Chroma client.

    Chroma only accepts scalar metadata values, so ``None`` entries are dropped
    on write and restored as missing keys on read. The chunk text lives in the
    collection's ``documents`` column and is folded back into the payload.
    """

    name = "chroma"

    def __init__(
        self,
        persist_dir: str | Path | None = None,
        *,
        client: Optional["ClientAPI"] = None,
    ) -> None:
        if client is not None:
            self._client = client
        else:
            path = Path(persist_dir or "chroma_db")
            path.mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(path=str(path))
        self._collections: Dict[str, "Collection"] = {}

    def collection_exists(self, collection: str) -> bool:
        if collection in self._collections:
            return True
        for item in self._client.list_collections():
            # list_collections returns names on newer releases, objects on older ones
            name = item if isinstance(item, str) else getattr(item, "name", None)
            if name == collection:
                return True
        return False

    def create_collection(self, collection: str, *, size: int, distance: str = DEFAULT_DISTANCE) -> None:
        handle = self._client.create_collection(
            name=collection,
            metadata={"hnsw:space": distance, _DIMENSION_KEY: int(size)},
        )
        self._collections[collection] = handle

    def upsert(self, collection: str, points: Sequence[VectorPoint]) -> None:
        if not points:
            return
        handle = self._get(collection)
        for point in points:
            self._check_dimension(handle, point.vector)

        documents: List[str] = []
        metadatas: List[Dict[str, Any]] = []
        for point in points:
            payload = dict(point.payload)
            documents.append(str(payload.pop("text", "") or ""))
            metadatas.append(
                {key: _metadata_value(value) for key, value in payload.items() if value is not None}
            )

        handle.upsert(
            ids=[point.id for point in points],
            embeddings=[[float(value) for value in point.vector] for point in points],
            documents=documents,
            metadatas=metadatas,
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
        handle = self._get(collection)
        self._check_dimension(handle, vector)
        available = self.count(collection, document_id)
        if available == 0:
            return []

        result = handle.query(
            query_embeddings=[[float(value) for value in vector]],
            n_results=min(limit, available),
            where={"document_id": document_id},
            include=["documents", "metadatas", "distances"],
        )

        ids = (result.get("ids") or [[]])[0]
        documents = (result.get("documents") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        hits: List[SearchResult] = []
        for point_id, document, metadata, distance in zip(ids, documents, metadatas, distances):
            payload: Dict[str, Any] = dict(metadata or {})
            payload["text"] = document
            score = 1.0 - float(distance) if distance is not None else 0.0
            hits.append(SearchResult(id=str(point_id), score=score, payload=payload))
        return hits

    def delete_document(self, collection: str, document_id: str) -> int:
        handle = self._get(collection)
        removed = self.count(collection, document_id)
        if removed:
            handle.delete(where={"document_id": document_id})
        return removed

    def count(self, collection: str, document_id: Optional[str] = None) -> int:
        handle = self._get(collection)
        if document_id is None:
            return int(handle.count())
        records = handle.get(where={"document_id": document_id}, include=[])
        return len(records.get("ids") or [])

    def close(self) -> None:
        self._collections.clear()

    def _get(self, collection: str) -> "Collection":
        handle = self._collections.get(collection)
        if handle is None:
            handle = self._client.get_collection(name=collection)
            self._collections[collection] = handle
        return handle

    @staticmethod
    def _check_dimension(handle: "Collection", vector: Sequence[float]) -> None:
        expected = (handle.metadata or {}).get(_DIMENSION_KEY)
        if expected is not None and len(vector) != int(expected):
            raise ValueError(
                f"Vector dimension error: expected dim: {expected}, got {len(vector)}"
            )


__all__ = ["ChromaBackend"]
