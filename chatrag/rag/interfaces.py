"""Interfaces the RAG core consumes from its collaborators."""
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from chatrag.rag.similarity import Candidate, ScoredCandidate


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed texts, index-aligned with the input; fails as a whole."""
        ...


class ChatProvider(Protocol):
    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        response_format: str = "text",
    ) -> str:
        ...


class ChunkStorage(Protocol):
    """Storage backend for embedded chunks.

    Backends may also offer ``native_vector_search(query_vector, limit)``;
    the retriever treats it as an optional fast path.
    """

    async def write_chunks(self, records: Sequence[Any]) -> int:
        ...

    async def fetch_all_chunks_with_embeddings(self) -> List[Candidate]:
        ...


@runtime_checkable
class NativeVectorSearch(Protocol):
    async def native_vector_search(
        self, query_vector: Sequence[float], limit: int
    ) -> List[ScoredCandidate]:
        ...
