"""Formatting of retrieved chunks into prompt context and citations."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from chatrag.rag.similarity import ScoredCandidate

SNIPPET_LENGTH = 200
ELLIPSIS = "..."
NO_RELEVANT_INFORMATION = "I couldn't find any relevant information to answer your question."


@dataclass(frozen=True)
class SourceCitation:
    """A numbered reference back to a retrieved chunk."""

    id: str
    snippet: str
    similarity: float
    source_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "snippet": self.snippet,
            "similarity": self.similarity,
            "source_number": self.source_number,
        }


@dataclass
class AssembledContext:
    context_text: str
    sources: List[SourceCitation] = field(default_factory=list)
    has_relevant_information: bool = False
    avg_similarity: Optional[float] = None
    message: Optional[str] = None


def make_snippet(content: str, length: int = SNIPPET_LENGTH) -> str:
    """Truncate content to ``length`` characters, marking truncation with an ellipsis."""
    if len(content) > length:
        return content[:length] + ELLIPSIS
    return content


def assemble_context(results: Sequence[ScoredCandidate]) -> AssembledContext:
    """Build a numbered context block and citations from ranked results.

    Args:
        results: Retrieved chunks, best first

    Returns:
        AssembledContext; for no results, an empty context flagged with
        NO_RELEVANT_INFORMATION
    """
    if not results:
        return AssembledContext(
            context_text="",
            sources=[],
            has_relevant_information=False,
            avg_similarity=None,
            message=NO_RELEVANT_INFORMATION,
        )

    blocks = []
    sources = []
    for number, result in enumerate(results, 1):
        blocks.append(f"[{number}] {result.content}")
        sources.append(
            SourceCitation(
                id=result.id,
                snippet=make_snippet(result.content),
                similarity=result.similarity,
                source_number=number,
            )
        )

    return AssembledContext(
        context_text="\n\n".join(blocks),
        sources=sources,
        has_relevant_information=True,
        avg_similarity=sum(r.similarity for r in results) / len(results),
    )
