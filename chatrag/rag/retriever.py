"""Retriever for semantic search over stored chunks.

Handles:
- Native vector search through the storage backend (fast path)
- Manual cosine ranking over all stored embeddings (fallback)
- Consistent ordering and limiting regardless of which path ran
"""
from typing import List, Optional, Sequence
import structlog

from chatrag import config
from chatrag.errors import ExhaustedFallbackError, InvalidInputError
from chatrag.rag.interfaces import ChunkStorage, NativeVectorSearch
from chatrag.rag.similarity import ScoredCandidate, rank_and_limit

logger = structlog.get_logger()


def order_results(results: Sequence[ScoredCandidate], limit: int) -> List[ScoredCandidate]:
    """Stable sort by descending similarity, then truncate to ``limit``."""
    return sorted(results, key=lambda r: r.similarity, reverse=True)[:limit]


class Retriever:
    """Similarity-ranked retrieval with graceful degradation."""

    def __init__(self, store: ChunkStorage, prefer_native: Optional[bool] = None):
        """Initialize the retriever.

        Args:
            store: Chunk storage backend
            prefer_native: Try the backend's native vector search first
                (default from config)
        """
        self.store = store
        self.prefer_native = (
            config.NATIVE_VECTOR_SEARCH if prefer_native is None else prefer_native
        )

        logger.info(
            "retriever_initialized",
            store=type(store).__name__,
            prefer_native=self.prefer_native,
            native_available=self.native_available,
        )

    @property
    def native_available(self) -> bool:
        return isinstance(self.store, NativeVectorSearch)

    async def retrieve(
        self, query_vector: Sequence[float], limit: int
    ) -> List[ScoredCandidate]:
        """Retrieve the chunks most similar to a query vector.

        Args:
            query_vector: Query embedding
            limit: Maximum number of results

        Returns:
            Scored chunks, best first, at most ``limit`` long

        Raises:
            InvalidInputError: If the query vector is empty or limit is not positive
            ExhaustedFallbackError: If no retrieval path succeeded
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidInputError(
                f"Limit must be a positive integer, got {limit!r}", field="limit"
            )
        if query_vector is None or len(query_vector) == 0:
            raise InvalidInputError("Query vector must not be empty", field="query_vector")

        logger.info(
            "retrieval_started",
            dimension=len(query_vector),
            limit=limit,
        )

        if self.prefer_native and self.native_available:
            try:
                results = await self.store.native_vector_search(query_vector, limit)
                results = order_results(results, limit)
                logger.info(
                    "retrieval_completed",
                    path="native",
                    results_returned=len(results),
                    top_similarity=results[0].similarity if results else None,
                )
                return results
            except Exception as e:
                logger.warning(
                    "native_vector_search_failed_falling_back",
                    error=str(e),
                    error_type=type(e).__name__,
                )

        try:
            candidates = await self.store.fetch_all_chunks_with_embeddings()
            results = order_results(rank_and_limit(query_vector, candidates, limit), limit)
        except Exception as e:
            logger.error(
                "retrieval_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExhaustedFallbackError(
                f"Semantic search failed: {e}",
                details={"limit": limit, "dimension": len(query_vector)},
            ) from e

        logger.info(
            "retrieval_completed",
            path="manual",
            candidates_scored=len(candidates),
            results_returned=len(results),
            top_similarity=results[0].similarity if results else None,
        )

        return results
