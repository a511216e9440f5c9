"""Deterministic embedding provider for tests and offline development."""
from __future__ import annotations

import hashlib
import math
import re
from typing import List, Sequence

from .base import EmbeddingProvider

_WORD_RE = re.compile(r"\w+", re.UNICODE)


class MockEmbeddingProvider(EmbeddingProvider):
    """Hash each word of the text into a fixed number of buckets.

    Texts that share words end up with a high cosine similarity, which is
    enough to exercise ranking without a model server.
    """

    model_name = "mock-hashing"

    def __init__(self, dimension: int = 32) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be a positive integer")
        self.dimension = dimension

    def embed(self, text: str | Sequence[str]) -> List[float]:
        if not isinstance(text, str):
            text = str(text[0]) if text else ""
        vector = [0.0] * self.dimension
        for word in _WORD_RE.findall(text.lower()):
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimension
            sign = 1.0 if digest[4] % 2 == 0 else -1.0
            vector[bucket] += sign
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]
