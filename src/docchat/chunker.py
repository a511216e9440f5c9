"""Token-window chunking backed by tiktoken encodings."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Protocol, Sequence

import tiktoken

from docchat.errors import ChunkingError
from docchat.models import Chunk

LOGGER = logging.getLogger(__name__)

DEFAULT_ENCODING = "gpt-3.5-turbo"


class Tokenizer(Protocol):
    """Encode/decode pair keyed by a named encoding."""

    def encode(self, text: str) -> Sequence[int]:
        ...

    def decode(self, tokens: Sequence[int]) -> str:
        ...


class TiktokenTokenizer:
    """Adapter exposing a tiktoken encoding through :class:`Tokenizer`."""

    def __init__(self, encoding: tiktoken.Encoding) -> None:
        self._encoding = encoding

    @property
    def name(self) -> str:
        return self._encoding.name

    def encode(self, text: str) -> List[int]:
        # Special-token markers inside documents are plain text here.
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        return self._encoding.decode(list(tokens))


@lru_cache(maxsize=8)
def get_tokenizer(encoding: str = DEFAULT_ENCODING) -> TiktokenTokenizer:
    """Resolve *encoding* as a model name first, then as an encoding name."""

    try:
        resolved = tiktoken.encoding_for_model(encoding)
    except KeyError:
        try:
            resolved = tiktoken.get_encoding(encoding)
        except Exception as exc:
            raise ChunkingError(f"Unknown tokenizer encoding {encoding!r}", cause=exc) from exc
    except Exception as exc:
        raise ChunkingError(f"Failed to load tokenizer for {encoding!r}", cause=exc) from exc
    return TiktokenTokenizer(resolved)


@dataclass(slots=True)
class ChunkingConfig:
    chunk_tokens: int = 800
    overlap_tokens: int = 100
    encoding: str = DEFAULT_ENCODING


def chunk_text(
    text: str,
    chunk_tokens: int = 800,
    overlap_tokens: int = 100,
    encoding: str = DEFAULT_ENCODING,
    *,
    tokenizer: Optional[Tokenizer] = None,
    page: Optional[int] = None,
) -> List[Chunk]:
    """Split *text* into overlapping token windows.

    Windows hold ``chunk_tokens`` tokens and start ``chunk_tokens -
    overlap_tokens`` tokens apart (never less than one token). The final
    window may be shorter and ends the sequence. ``chunk_index`` follows
    emission order starting at zero.
    """

    if not text:
        return []
    if isinstance(chunk_tokens, bool) or not isinstance(chunk_tokens, int) or chunk_tokens <= 0:
        raise ChunkingError(f"chunk_tokens must be a positive integer, got {chunk_tokens!r}")
    overlap = max(0, int(overlap_tokens or 0))
    step = max(1, chunk_tokens - overlap)

    encoder = tokenizer or get_tokenizer(encoding)
    try:
        tokens = list(encoder.encode(text))
    except ChunkingError:
        raise
    except Exception as exc:
        raise ChunkingError("Failed to encode text into tokens", cause=exc) from exc

    total = len(tokens)
    chunks: List[Chunk] = []
    start = 0
    while start < total:
        end = min(start + chunk_tokens, total)
        try:
            window_text = encoder.decode(tokens[start:end])
        except Exception as exc:
            raise ChunkingError(
                f"Failed to decode token window [{start}, {end})", cause=exc
            ) from exc
        chunks.append(Chunk(chunk_index=len(chunks), text=window_text, page=page))
        if end == total:
            break
        start += step

    LOGGER.debug(
        "Chunked %s tokens into %s windows (size=%s overlap=%s)",
        total,
        len(chunks),
        chunk_tokens,
        overlap,
    )
    return chunks


def chunk_with_config(
    text: str, config: ChunkingConfig, *, tokenizer: Optional[Tokenizer] = None
) -> List[Chunk]:
    return chunk_text(
        text,
        chunk_tokens=config.chunk_tokens,
        overlap_tokens=config.overlap_tokens,
        encoding=config.encoding,
        tokenizer=tokenizer,
    )


__all__ = [
    "ChunkingConfig",
    "DEFAULT_ENCODING",
    "TiktokenTokenizer",
    "Tokenizer",
    "chunk_text",
    "chunk_with_config",
    "get_tokenizer",
]
