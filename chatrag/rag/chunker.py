"""Text chunking with overlap for RAG pipeline.

Implements character-based chunking to avoid tokenizer dependencies.
"""
import math
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import structlog
from langchain_text_splitters import RecursiveCharacterTextSplitter

from chatrag import config
from chatrag.errors import InvalidInputError

logger = structlog.get_logger()

# Extra loop iterations allowed beyond the expected window count
ITERATION_SLACK = 100


@dataclass(frozen=True)
class TextChunk:
    """A contiguous slice of source text with position information."""

    id: str
    content: str
    index: int
    start_char: int
    end_char: int
    tokens: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "index": self.index,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "tokens": self.tokens,
            "metadata": dict(self.metadata),
        }


def estimate_tokens(text: str) -> int:
    """Rough token estimate: 1 token ≈ 4 characters of English text."""
    return math.ceil(len(text) / 4)


def make_chunk_id(index: int, document_id: Optional[str] = None) -> str:
    if document_id:
        return f"{document_id}-chunk-{index}"
    return f"chunk-{index}"


class TextChunker:
    """Character-based text chunker with overlap support."""

    strategy = "window"

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ):
        """Initialize the text chunker.

        An overlap that is not smaller than the chunk size is clamped to
        ``chunk_size - 1`` so the scan position always advances.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)

        Raises:
            InvalidInputError: If chunk_size is not positive or overlap is negative
        """
        chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        if chunk_size <= 0:
            raise InvalidInputError(
                f"Chunk size must be positive, got {chunk_size}", field="chunk_size"
            )
        if chunk_overlap < 0:
            raise InvalidInputError(
                f"Chunk overlap must not be negative, got {chunk_overlap}",
                field="chunk_overlap",
            )

        self.chunk_size = chunk_size
        self.requested_overlap = chunk_overlap
        self.chunk_overlap = min(chunk_overlap, chunk_size - 1)

        if self.chunk_overlap != chunk_overlap:
            logger.warning(
                "chunk_overlap_clamped",
                requested_overlap=chunk_overlap,
                effective_overlap=self.chunk_overlap,
                chunk_size=chunk_size,
            )

        logger.info(
            "chunker_initialized",
            strategy=self.strategy,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk_text(
        self,
        text: str,
        document_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[TextChunk]:
        """Split text into overlapping chunks.

        Chunking is best effort: unexpected errors are logged and an empty
        list is returned.

        Args:
            text: Text to chunk
            document_id: Optional id used to prefix chunk ids
            metadata: Optional metadata copied onto every chunk

        Returns:
            List of TextChunk objects in source order
        """
        try:
            if len(text) == 0:
                return []

            chunks = self._split(text, document_id, metadata or {})

            logger.info(
                "text_chunked",
                strategy=self.strategy,
                text_length=len(text),
                chunk_count=len(chunks),
                avg_chunk_size=(
                    sum(len(c.content) for c in chunks) // len(chunks) if chunks else 0
                ),
            )
            return chunks

        except Exception as e:
            logger.error(
                "chunking_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return []

    def _split(
        self, text: str, document_id: Optional[str], metadata: Dict[str, Any]
    ) -> List[TextChunk]:
        text_length = len(text)
        step = self.chunk_size - self.chunk_overlap
        max_iterations = math.ceil(text_length / step) + ITERATION_SLACK

        chunks = []
        start = 0
        iterations = 0

        while start < text_length:
            if iterations >= max_iterations:
                logger.warning(
                    "chunk_iteration_cap_reached",
                    max_iterations=max_iterations,
                    position=start,
                    text_length=text_length,
                )
                break
            iterations += 1

            end = min(start + self.chunk_size, text_length)
            content = text[start:end]

            # Whitespace-only windows are skipped without consuming an index
            if not content.strip():
                start = end
                continue

            index = len(chunks)
            chunk_metadata = dict(metadata)
            if document_id:
                chunk_metadata["document_id"] = document_id

            chunks.append(
                TextChunk(
                    id=make_chunk_id(index, document_id),
                    content=content,
                    index=index,
                    start_char=start,
                    end_char=end,
                    tokens=estimate_tokens(content),
                    metadata=chunk_metadata,
                )
            )

            # Move to next chunk with overlap, never backwards or in place
            next_start = end - self.chunk_overlap
            start = next_start if next_start > start else end

        return chunks

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of TextChunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


class RecursiveTextChunker(TextChunker):
    """Chunker that prefers paragraph, line and word boundaries.

    Delegates splitting to LangChain's RecursiveCharacterTextSplitter and
    maps its output back onto TextChunk positions.
    """

    strategy = "recursive"

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        separators: Optional[List[str]] = None,
    ):
        super().__init__(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            length_function=len,
            separators=separators or ["\n\n", "\n", " ", ""],
            add_start_index=True,
        )

    def _split(
        self, text: str, document_id: Optional[str], metadata: Dict[str, Any]
    ) -> List[TextChunk]:
        chunks = []
        search_from = 0

        for doc in self.splitter.create_documents([text]):
            content = doc.page_content
            if not content.strip():
                continue

            start = doc.metadata.get("start_index", -1)
            if start < 0:
                start = text.find(content, search_from)
            if start < 0:
                logger.warning("recursive_chunk_position_unknown", preview=content[:50])
                start = search_from
            search_from = start + 1

            index = len(chunks)
            chunk_metadata = dict(metadata)
            if document_id:
                chunk_metadata["document_id"] = document_id

            chunks.append(
                TextChunk(
                    id=make_chunk_id(index, document_id),
                    content=content,
                    index=index,
                    start_char=start,
                    end_char=min(start + len(content), len(text)),
                    tokens=estimate_tokens(content),
                    metadata=chunk_metadata,
                )
            )

        return chunks


def build_chunker(
    strategy: Optional[str] = None,
    chunk_size: Optional[int] = None,
    chunk_overlap: Optional[int] = None,
) -> TextChunker:
    """Create a chunker for the given strategy name.

    Args:
        strategy: "window" or "recursive" (default from config)
        chunk_size: Size of each chunk in characters
        chunk_overlap: Overlap between chunks in characters

    Returns:
        TextChunker instance

    Raises:
        InvalidInputError: If the strategy is unknown
    """
    strategy = strategy or config.CHUNK_STRATEGY

    if strategy == "window":
        return TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    if strategy == "recursive":
        return RecursiveTextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

    raise InvalidInputError(f"Unknown chunk strategy: {strategy}", field="strategy")


# Convenience function
def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> List[TextChunk]:
    """Chunk text with fixed-size overlapping windows.

    Args:
        text: Text to chunk
        chunk_size: Window size in characters
        overlap: Overlap between consecutive windows in characters

    Returns:
        List of TextChunk objects
    """
    return TextChunker(chunk_size=chunk_size, chunk_overlap=overlap).chunk_text(text)
