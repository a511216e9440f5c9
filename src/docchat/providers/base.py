"""Base provider interface for embedding backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

__all__ = ["EmbeddingProvider"]


class EmbeddingProvider(ABC):
    """Turns one logical text into one embedding vector."""

    model_name: str = "unknown"

    @abstractmethod
    def embed(self, text: str | Sequence[str]) -> List[float]:
        """Return the embedding for *text* (the first text for a sequence)."""

    def close(self) -> None:
        """Release network or model resources held by the provider."""

        return None
