from __future__ import annotations

import math

import pytest

from docchat.chunker import ChunkingConfig, chunk_text, chunk_with_config, get_tokenizer
from docchat.errors import ChunkingError


def _words(count: int) -> str:
    return " ".join(f"w{index}" for index in range(count))


def test_empty_text_returns_no_chunks(word_tokenizer) -> None:
    assert chunk_text("", tokenizer=word_tokenizer) == []
    # empty input short-circuits before the configuration is validated
    assert chunk_text("", chunk_tokens=0, tokenizer=word_tokenizer) == []


def test_five_thousand_tokens_produce_three_overlapping_windows(word_tokenizer) -> None:
    chunks = chunk_text(_words(5000), chunk_tokens=2000, overlap_tokens=200, tokenizer=word_tokenizer)

    assert len(chunks) == 3
    bounds = [(chunk.text.split()[0], chunk.text.split()[-1]) for chunk in chunks]
    assert bounds == [("w0", "w1999"), ("w1800", "w3799"), ("w3600", "w4999")]
    assert [len(chunk.text.split()) for chunk in chunks] == [2000, 2000, 1400]


@pytest.mark.parametrize(
    ("total", "size", "overlap"),
    [(1, 10, 2), (10, 10, 2), (11, 10, 2), (1900, 1000, 100), (2500, 1000, 100), (37, 5, 1)],
)
def test_chunk_count_matches_window_formula(word_tokenizer, total: int, size: int, overlap: int) -> None:
    chunks = chunk_text(_words(total), chunk_tokens=size, overlap_tokens=overlap, tokenizer=word_tokenizer)

    expected = 1 if total <= size else math.ceil((total - overlap) / (size - overlap))
    assert len(chunks) == expected


def test_adjacent_chunks_share_overlap_tokens(word_tokenizer) -> None:
    chunks = chunk_text(_words(50), chunk_tokens=10, overlap_tokens=3, tokenizer=word_tokenizer)

    for current, following in zip(chunks, chunks[1:]):
        assert current.text.split()[-3:] == following.text.split()[:3]


def test_chunk_indices_follow_emission_order(word_tokenizer) -> None:
    chunks = chunk_text(_words(95), chunk_tokens=10, overlap_tokens=0, tokenizer=word_tokenizer, page=4)

    assert [chunk.chunk_index for chunk in chunks] == list(range(10))
    assert all(chunk.page == 4 for chunk in chunks)


def test_overlap_equal_to_chunk_size_still_advances(word_tokenizer) -> None:
    chunks = chunk_text(_words(8), chunk_tokens=5, overlap_tokens=5, tokenizer=word_tokenizer)

    assert [chunk.text.split()[0] for chunk in chunks] == ["w0", "w1", "w2", "w3"]


def test_negative_overlap_is_treated_as_zero(word_tokenizer) -> None:
    chunks = chunk_text(_words(12), chunk_tokens=5, overlap_tokens=-3, tokenizer=word_tokenizer)

    assert [chunk.text.split()[0] for chunk in chunks] == ["w0", "w5", "w10"]


@pytest.mark.parametrize("size", [0, -1, 1.5, True, None])
def test_invalid_chunk_size_raises(word_tokenizer, size) -> None:
    with pytest.raises(ChunkingError):
        chunk_text("some text", chunk_tokens=size, tokenizer=word_tokenizer)


def test_decode_failure_is_wrapped() -> None:
    class BrokenDecoder:
        def encode(self, text: str) -> list[int]:
            return [1, 2, 3]

        def decode(self, tokens) -> str:
            raise ValueError("bad token")

    with pytest.raises(ChunkingError) as excinfo:
        chunk_text("abc", tokenizer=BrokenDecoder())

    assert isinstance(excinfo.value.__cause__, ValueError)


def test_encode_failure_is_wrapped() -> None:
    class BrokenEncoder:
        def encode(self, text: str) -> list[int]:
            raise UnicodeError("cannot encode")

        def decode(self, tokens) -> str:
            return ""

    with pytest.raises(ChunkingError) as excinfo:
        chunk_text("abc", tokenizer=BrokenEncoder())

    assert isinstance(excinfo.value.__cause__, UnicodeError)


def test_chunk_with_config_uses_config_values(word_tokenizer) -> None:
    config = ChunkingConfig(chunk_tokens=4, overlap_tokens=1)

    chunks = chunk_with_config(_words(10), config, tokenizer=word_tokenizer)

    assert [chunk.text.split()[0] for chunk in chunks] == ["w0", "w3", "w6"]


def test_unknown_encoding_raises_chunking_error() -> None:
    with pytest.raises(ChunkingError):
        get_tokenizer("definitely-not-an-encoding")
