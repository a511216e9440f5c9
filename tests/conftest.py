"""Shared fixtures running the pipeline against in-process collaborators."""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Sequence

import pytest

from docchat.config import reset_settings_cache
from docchat.embeddings import reset_embedding_provider_cache
from docchat.llm import reset_llm_adapter_cache
from docchat.logging_config import AUDIT_LOGGER_NAME
from docchat.providers import MockEmbeddingProvider
from docchat.services import reset_service_caches
from docchat.vectorstore import InMemoryVectorBackend, VectorIndex, reset_vector_index_cache


class WordTokenizer:
    """Tokenizer treating every whitespace separated word as one token."""

    def __init__(self) -> None:
        self._ids: Dict[str, int] = {}
        self._words: List[str] = []

    def encode(self, text: str) -> List[int]:
        tokens: List[int] = []
        for word in text.split():
            if word not in self._ids:
                self._ids[word] = len(self._words)
                self._words.append(word)
            tokens.append(self._ids[word])
        return tokens

    def decode(self, tokens: Sequence[int]) -> str:
        return " ".join(self._words[token] for token in tokens)


def _reset_caches() -> None:
    reset_service_caches()
    reset_vector_index_cache()
    reset_embedding_provider_cache()
    reset_llm_adapter_cache()
    reset_settings_cache()


@pytest.fixture(autouse=True)
def _offline_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("EMBEDDING_PROVIDER", "mock")
    monkeypatch.setenv("VECTOR_STORE", "mock")
    monkeypatch.setenv("AI_PROVIDER", "stub")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    _reset_caches()
    yield
    _reset_caches()


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo any ``configure_logging`` call made while a test runs."""

    tracked = [logging.getLogger(), logging.getLogger(AUDIT_LOGGER_NAME)]
    saved = [(logger, list(logger.handlers), logger.level, logger.propagate) for logger in tracked]
    yield
    for logger, handlers, level, propagate in saved:
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers[:] = handlers
        logger.setLevel(level)
        logger.propagate = propagate


@pytest.fixture
def word_tokenizer() -> WordTokenizer:
    return WordTokenizer()


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider(dimension=16)


@pytest.fixture
def mock_index(embedding_provider: MockEmbeddingProvider) -> VectorIndex:
    return VectorIndex(InMemoryVectorBackend, embedding_provider=embedding_provider)


def _build_pdf(text: str, title: str = "Sample Contract", author: str = "Jane Doe") -> bytes:
    stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        f"<< /Title ({title}) /Author ({author}) >>".encode("latin-1"),
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets: List[int] = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R /Info 6 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    return _build_pdf
