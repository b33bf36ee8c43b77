"""Semantic search and retrieval-augmented answers over the knowledge graph."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import structlog

from chatrag import config
from chatrag.errors import InvalidInputError
from chatrag.rag.context import NO_RELEVANT_INFORMATION, SourceCitation, assemble_context
from chatrag.rag.interfaces import ChatProvider, EmbeddingProvider
from chatrag.rag.retriever import Retriever
from chatrag.rag.similarity import ScoredCandidate

logger = structlog.get_logger()

SYSTEM_PROMPT = """You are a helpful AI assistant that answers questions based on the provided context.
Use the context below to answer the user's question accurately and concisely.
If the context doesn't contain enough information to answer the question, say so.
Always cite the source numbers [1], [2], etc. when referencing information from the context."""

USER_PROMPT = """Context:
{context}

Question: {query}

Please provide a comprehensive answer based on the context above."""


@dataclass
class RAGAnswer:
    query: str
    answer: str
    sources: List[SourceCitation] = field(default_factory=list)
    context: Optional[List[ScoredCandidate]] = None
    chunks_retrieved: int = 0
    avg_similarity: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "answer": self.answer,
            "sources": [s.to_dict() for s in self.sources],
            "context": (
                [c.to_dict() for c in self.context] if self.context is not None else None
            ),
            "metadata": {
                "chunks_retrieved": self.chunks_retrieved,
                "avg_similarity": self.avg_similarity,
            },
        }


class QueryService:
    """Answers queries using the retriever and the chat model."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        retriever: Retriever,
        llm: ChatProvider,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ):
        self.embedder = embedder
        self.retriever = retriever
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens

    @staticmethod
    def _validate_query(query: Any) -> str:
        if not isinstance(query, str) or not query.strip():
            raise InvalidInputError("Query string is required", field="query")
        return query

    async def semantic_search(
        self, query: str, limit: Optional[int] = None
    ) -> List[ScoredCandidate]:
        """Embed a query and return the most similar chunks.

        Raises:
            InvalidInputError: If the query is empty or limit is invalid
            ExternalDependencyError: If embedding fails
            ExhaustedFallbackError: If retrieval fails
        """
        query = self._validate_query(query)
        limit = config.SEARCH_LIMIT if limit is None else limit

        query_embedding = await self.embedder.embed(query)
        results = await self.retriever.retrieve(query_embedding, limit)

        logger.info(
            "semantic_search_completed",
            query_length=len(query),
            limit=limit,
            results=len(results),
        )
        return results

    async def rag_query(
        self,
        query: str,
        limit: Optional[int] = None,
        include_context: bool = True,
    ) -> RAGAnswer:
        """Answer a question from retrieved context.

        When nothing relevant is retrieved the model is not called and the
        answer says so.

        Args:
            query: User question
            limit: Number of chunks to retrieve (default from config)
            include_context: Include the retrieved chunks in the answer

        Returns:
            RAGAnswer
        """
        limit = config.RAG_LIMIT if limit is None else limit
        results = await self.semantic_search(query, limit)
        assembled = assemble_context(results)

        if not assembled.has_relevant_information:
            logger.info("no_relevant_context_found", query_preview=query[:100])
            return RAGAnswer(
                query=query,
                answer=assembled.message or NO_RELEVANT_INFORMATION,
                sources=[],
                context=[] if include_context else None,
            )

        answer = await self.llm.chat_completion(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": USER_PROMPT.format(context=assembled.context_text, query=query),
                },
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format="text",
        )

        logger.info(
            "rag_answer_generated",
            chunks_retrieved=len(results),
            avg_similarity=assembled.avg_similarity,
            answer_length=len(answer),
        )

        return RAGAnswer(
            query=query,
            answer=answer,
            sources=assembled.sources,
            context=list(results) if include_context else None,
            chunks_retrieved=len(results),
            avg_similarity=assembled.avg_similarity,
        )
