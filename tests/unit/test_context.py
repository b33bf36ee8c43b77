"""Tests for context assembly and source citations."""
import pytest

from chatrag.rag.context import (
    ELLIPSIS,
    NO_RELEVANT_INFORMATION,
    SNIPPET_LENGTH,
    assemble_context,
    make_snippet,
)
from chatrag.rag.similarity import ScoredCandidate


def test_empty_results_report_no_relevant_information():
    assembled = assemble_context([])

    assert assembled.context_text == ""
    assert assembled.sources == []
    assert assembled.has_relevant_information is False
    assert assembled.avg_similarity is None
    assert assembled.message == NO_RELEVANT_INFORMATION


def test_context_blocks_are_numbered_in_rank_order():
    results = [
        ScoredCandidate(id="c1", content="Python is a language.", similarity=0.9),
        ScoredCandidate(id="c2", content="Graphs have edges.", similarity=0.5),
    ]

    assembled = assemble_context(results)

    assert assembled.context_text == "[1] Python is a language.\n\n[2] Graphs have edges."
    assert [s.source_number for s in assembled.sources] == [1, 2]
    assert [s.id for s in assembled.sources] == ["c1", "c2"]
    assert assembled.has_relevant_information is True
    assert assembled.avg_similarity == pytest.approx(0.7)
    assert assembled.message is None


def test_long_content_is_truncated_in_snippet_only():
    content = "x" * (SNIPPET_LENGTH + 50)

    assembled = assemble_context([ScoredCandidate(id="long", content=content, similarity=0.8)])

    assert assembled.sources[0].snippet == "x" * SNIPPET_LENGTH + ELLIPSIS
    assert content in assembled.context_text


def test_short_snippet_has_no_ellipsis():
    assert make_snippet("short text") == "short text"
    assert make_snippet("y" * SNIPPET_LENGTH) == "y" * SNIPPET_LENGTH
