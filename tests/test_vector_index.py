from __future__ import annotations

import threading
from typing import List

import pytest

from docchat.errors import EmbeddingFailure, VectorBackendError
from docchat.models import Chunk
from docchat.providers import EmbeddingProvider, MockEmbeddingProvider
from docchat.vectorstore import InMemoryVectorBackend, VectorIndex


def _chunks(*texts: str) -> List[Chunk]:
    return [Chunk(chunk_index=index, text=text) for index, text in enumerate(texts)]


def test_empty_upsert_touches_nothing(embedding_provider) -> None:
    created: List[InMemoryVectorBackend] = []

    def factory() -> InMemoryVectorBackend:
        backend = InMemoryVectorBackend()
        created.append(backend)
        return backend

    index = VectorIndex(factory, embedding_provider=embedding_provider)

    assert index.upsert("doc-a", []).upserted == 0
    assert created == []


def test_search_is_isolated_per_document(mock_index) -> None:
    mock_index.upsert("doc-a", _chunks("cats sleep all day", "cats chase mice"))
    mock_index.upsert("doc-b", _chunks("cats are mentioned here too", "dogs bark"))

    results = mock_index.search("doc-a", "cats", top_k=10)

    assert len(results) == 2
    assert {result.payload["document_id"] for result in results} == {"doc-a"}


def test_search_ranks_by_similarity_and_limits() -> None:
    index = VectorIndex(InMemoryVectorBackend, embedding_provider=MockEmbeddingProvider(dimension=512))
    index.upsert(
        "doc-a",
        _chunks("the tenant pays rent monthly", "parking is free", "rent is due monthly by the tenant"),
    )

    results = index.search("doc-a", "tenant rent monthly", top_k=2)

    assert len(results) == 2
    assert results[0].score >= results[1].score
    assert all("rent" in result.payload["text"] for result in results)


def test_payload_carries_chunk_fields_over_metadata(mock_index) -> None:
    chunks = [Chunk(chunk_index=0, text="alpha beta", page=3)]

    mock_index.upsert("doc-a", chunks, {"filename": "a.pdf", "document_id": "spoofed"})
    result = mock_index.search("doc-a", "alpha", top_k=1)[0]

    assert result.payload == {
        "filename": "a.pdf",
        "document_id": "doc-a",
        "text": "alpha beta",
        "page": 3,
        "chunk_index": 0,
    }


def test_reupsert_appends_fresh_points(mock_index) -> None:
    chunks = _chunks("one two", "three four")

    mock_index.upsert("doc-a", chunks)
    mock_index.upsert("doc-a", chunks)

    assert mock_index.count("doc-a") == 4
    ids = {result.id for result in mock_index.search("doc-a", "one", top_k=10)}
    assert len(ids) == 4


def test_prepared_points_are_written_separately(mock_index) -> None:
    points = mock_index.prepare_points("doc-a", _chunks("alpha", "beta"), {"filename": "a.pdf"})

    assert mock_index.count("doc-a") == 0
    assert [point.payload["chunk_index"] for point in points] == [0, 1]

    assert mock_index.write_points("doc-a", points).upserted == 2
    assert mock_index.count("doc-a") == 2


def test_delete_document_only_removes_that_document(mock_index) -> None:
    mock_index.upsert("doc-a", _chunks("alpha", "beta"))
    mock_index.upsert("doc-b", _chunks("gamma"))

    assert mock_index.delete_document("doc-a") == 2
    assert mock_index.count("doc-a") == 0
    assert mock_index.count("doc-b") == 1


def test_count_and_delete_without_collection_return_zero(mock_index) -> None:
    assert mock_index.count() == 0
    assert mock_index.delete_document("doc-a") == 0


def test_ensure_collection_is_idempotent(mock_index) -> None:
    mock_index.ensure_collection(16)
    mock_index.ensure_collection(16)

    assert mock_index.backend.collection_exists(mock_index.collection_name)


def test_ensure_collection_tolerates_concurrent_creation(embedding_provider) -> None:
    class RacingBackend(InMemoryVectorBackend):
        """Reports a missing collection once, then loses the creation race."""

        def __init__(self) -> None:
            super().__init__()
            self.checks = 0

        def collection_exists(self, collection: str) -> bool:
            self.checks += 1
            return self.checks > 1

        def create_collection(self, collection: str, *, size: int, distance: str = "cosine") -> None:
            raise ValueError(f"Collection '{collection}' already exists")

    index = VectorIndex(RacingBackend, embedding_provider=embedding_provider)

    index.ensure_collection(16)


def test_create_failure_surfaces_as_backend_error(embedding_provider) -> None:
    class BrokenBackend(InMemoryVectorBackend):
        def create_collection(self, collection: str, *, size: int, distance: str = "cosine") -> None:
            raise ConnectionError("backend down")

    index = VectorIndex(BrokenBackend, embedding_provider=embedding_provider)

    with pytest.raises(VectorBackendError) as excinfo:
        index.ensure_collection(16)
    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_invalid_vector_size_is_rejected(mock_index) -> None:
    with pytest.raises(VectorBackendError):
        mock_index.ensure_collection(0)


def test_dimension_mismatch_is_a_backend_error(mock_index) -> None:
    mock_index.ensure_collection(8)

    with pytest.raises(VectorBackendError):
        mock_index.upsert("doc-a", _chunks("sixteen dimensional vector"))


def test_first_chunk_is_embedded_before_collection_is_created() -> None:
    events: List[str] = []

    class RecordingProvider(MockEmbeddingProvider):
        def embed(self, text):
            events.append(f"embed:{text}")
            return super().embed(text)

    class RecordingBackend(InMemoryVectorBackend):
        def create_collection(self, collection: str, *, size: int, distance: str = "cosine") -> None:
            events.append(f"create:{size}")
            super().create_collection(collection, size=size, distance=distance)

        def upsert(self, collection, points) -> None:
            events.append(f"upsert:{len(points)}")
            super().upsert(collection, points)

    index = VectorIndex(RecordingBackend, embedding_provider=RecordingProvider(dimension=4))
    index.upsert("doc-a", _chunks("first", "second", "third"))

    assert events == ["embed:first", "create:4", "embed:second", "embed:third", "upsert:3"]


def test_embedding_failure_aborts_whole_upsert() -> None:
    class FlakyProvider(EmbeddingProvider):
        def embed(self, text):
            if text == "broken":
                raise EmbeddingFailure("no vector")
            return [1.0, 0.0]

    index = VectorIndex(InMemoryVectorBackend, embedding_provider=FlakyProvider())

    with pytest.raises(EmbeddingFailure):
        index.upsert("doc-a", _chunks("fine", "broken", "fine again"))
    assert index.count("doc-a") == 0


def test_parallel_embedding_keeps_chunk_order(embedding_provider) -> None:
    index = VectorIndex(InMemoryVectorBackend, embedding_provider=embedding_provider, embed_workers=4)
    texts = [f"chunk number {n} body" for n in range(12)]

    index.upsert("doc-a", _chunks(*texts))

    for result in index.search("doc-a", "chunk", top_k=12):
        assert result.payload["text"] == texts[result.payload["chunk_index"]]


def test_backend_is_constructed_once_under_concurrent_first_use(embedding_provider) -> None:
    built: List[InMemoryVectorBackend] = []
    start = threading.Barrier(8)

    def factory() -> InMemoryVectorBackend:
        backend = InMemoryVectorBackend()
        built.append(backend)
        return backend

    index = VectorIndex(factory, embedding_provider=embedding_provider)
    handles: List[object] = []

    def grab() -> None:
        start.wait()
        handles.append(index.backend)

    threads = [threading.Thread(target=grab) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(built) == 1
    assert all(handle is built[0] for handle in handles)


def test_backend_factory_failure_is_wrapped(embedding_provider) -> None:
    def factory():
        raise RuntimeError("cannot connect")

    index = VectorIndex(factory, embedding_provider=embedding_provider)

    with pytest.raises(VectorBackendError):
        index.search("doc-a", "anything")


def test_search_failure_is_wrapped(mock_index) -> None:
    mock_index.ensure_collection(16)

    def explode(*args, **kwargs):
        raise TimeoutError("search timed out")

    mock_index.backend.search = explode  # type: ignore[method-assign]

    with pytest.raises(VectorBackendError) as excinfo:
        mock_index.search("doc-a", "anything")
    assert isinstance(excinfo.value.__cause__, TimeoutError)


def test_non_positive_top_k_returns_nothing(mock_index) -> None:
    assert mock_index.search("doc-a", "anything", top_k=0) == []
