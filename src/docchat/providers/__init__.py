"""Embedding provider exports."""
from __future__ import annotations

from .base import EmbeddingProvider
from .mock_embedding import MockEmbeddingProvider

__all__ = ["EmbeddingProvider", "MockEmbeddingProvider"]
