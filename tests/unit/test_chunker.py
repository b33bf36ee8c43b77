"""Tests for fixed-window and recursive text chunking."""
import pytest

from chatrag.errors import InvalidInputError
from chatrag.rag.chunker import (
    RecursiveTextChunker,
    TextChunker,
    build_chunker,
    chunk_text,
    estimate_tokens,
)


def test_window_chunks_overlap_and_positions():
    chunker = TextChunker(chunk_size=4, chunk_overlap=2)

    chunks = chunker.chunk_text("abcdefghij")

    assert [c.content for c in chunks] == ["abcd", "cdef", "efgh", "ghij", "ij"]
    assert [(c.start_char, c.end_char) for c in chunks] == [
        (0, 4), (2, 6), (4, 8), (6, 10), (8, 10),
    ]
    assert [c.index for c in chunks] == [0, 1, 2, 3, 4]
    assert [c.id for c in chunks] == ["chunk-0", "chunk-1", "chunk-2", "chunk-3", "chunk-4"]


def test_chunk_content_matches_source_slice():
    text = "The quick brown fox jumps over the lazy dog. " * 20
    chunks = TextChunker(chunk_size=50, chunk_overlap=10).chunk_text(text)

    for chunk in chunks:
        assert chunk.content == text[chunk.start_char:chunk.end_char]
        assert len(chunk.content) <= 50
        assert chunk.tokens == estimate_tokens(chunk.content)

    # Consecutive windows leave no gaps
    assert chunks[0].start_char == 0
    assert chunks[-1].end_char == len(text)
    for previous, current in zip(chunks, chunks[1:]):
        assert previous.start_char < current.start_char <= previous.end_char


def test_overlap_not_smaller_than_size_is_clamped():
    chunker = TextChunker(chunk_size=4, chunk_overlap=10)

    assert chunker.chunk_overlap == 3
    assert chunker.requested_overlap == 10

    chunks = chunker.chunk_text("abcdef")
    starts = [c.start_char for c in chunks]

    assert starts == sorted(set(starts))
    assert chunks[-1].end_char == 6


def test_empty_text_returns_no_chunks():
    assert TextChunker(chunk_size=10, chunk_overlap=2).chunk_text("") == []


def test_chunking_errors_return_empty_list():
    assert TextChunker(chunk_size=10, chunk_overlap=2).chunk_text(None) == []


def test_whitespace_windows_are_skipped():
    text = "abcd" + " " * 8 + "efgh"
    chunks = TextChunker(chunk_size=4, chunk_overlap=0).chunk_text(text)

    assert [c.content for c in chunks] == ["abcd", "efgh"]
    assert [c.index for c in chunks] == [0, 1]
    assert chunks[1].start_char == 12


def test_document_id_prefixes_ids_and_metadata_is_copied():
    chunks = TextChunker(chunk_size=5, chunk_overlap=0).chunk_text(
        "hello world", document_id="doc-1", metadata={"source": "notes.md"}
    )

    assert chunks[0].id == "doc-1-chunk-0"
    assert chunks[0].metadata == {"source": "notes.md", "document_id": "doc-1"}
    assert chunks[1].metadata is not chunks[0].metadata


@pytest.mark.parametrize("size,overlap", [(0, 0), (-5, 0), (10, -1)])
def test_invalid_parameters_raise(size, overlap):
    with pytest.raises(InvalidInputError):
        TextChunker(chunk_size=size, chunk_overlap=overlap)


def test_default_window_covers_whole_text():
    text = "x" * 2500

    chunks = chunk_text(text)

    assert chunks[0].end_char == 1000
    assert chunks[1].start_char == 800
    assert chunks[-1].end_char == 2500


def test_chunk_stats():
    chunker = TextChunker(chunk_size=4, chunk_overlap=2)
    chunks = chunker.chunk_text("abcdefghij")

    stats = chunker.get_chunk_stats(chunks)

    assert stats["chunk_count"] == 5
    assert stats["min_chunk_size"] == 2
    assert stats["max_chunk_size"] == 4
    assert stats["overlap"] == 2
    assert chunker.get_chunk_stats([])["chunk_count"] == 0


def test_recursive_chunker_prefers_paragraphs():
    text = "First paragraph about Python.\n\nSecond paragraph about graphs.\n\nThird one."
    chunker = RecursiveTextChunker(chunk_size=40, chunk_overlap=0)

    chunks = chunker.chunk_text(text, document_id="doc-2")

    assert [c.content for c in chunks] == [
        "First paragraph about Python.",
        "Second paragraph about graphs.",
        "Third one.",
    ]
    for chunk in chunks:
        assert text[chunk.start_char:chunk.end_char] == chunk.content
    assert chunks[2].id == "doc-2-chunk-2"


def test_build_chunker_selects_strategy():
    assert build_chunker("window", 10, 2).strategy == "window"
    assert isinstance(build_chunker("recursive", 10, 2), RecursiveTextChunker)

    with pytest.raises(InvalidInputError):
        build_chunker("sentences", 10, 2)
