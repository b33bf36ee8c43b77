"""Construction and lifecycle of the application's collaborators.

Everything is built once by ``build_services`` and passed explicitly to the
API and scripts, so tests can swap in fakes.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import structlog

from chatrag import config
from chatrag.graph.extractor import EntityExtractor
from chatrag.graph.store import GraphStore
from chatrag.llm_client import LLMClient
from chatrag.rag.chunker import TextChunker, build_chunker
from chatrag.rag.ingest import IngestPipeline
from chatrag.rag.query import QueryService
from chatrag.rag.retriever import Retriever
from chatrag.rag.text_extractor import TextExtractor

logger = structlog.get_logger()


@dataclass
class Services:
    llm: LLMClient
    store: GraphStore
    chunker: TextChunker
    retriever: Retriever
    ingest: IngestPipeline
    query: QueryService

    async def initialize(self, check_llm: bool = True) -> None:
        """Prepare the store and, optionally, verify the LLM provider."""
        await self.store.initialize()
        if check_llm:
            await self.llm.initialize()
        logger.info("services_initialized", check_llm=check_llm)

    async def close(self) -> None:
        await self.store.close()
        logger.info("services_closed")


def build_services(
    llm: Optional[LLMClient] = None,
    store: Optional[GraphStore] = None,
    documents_dir: Optional[Path] = None,
    chunk_strategy: Optional[str] = None,
    chunk_size: Optional[int] = None,
    chunk_overlap: Optional[int] = None,
) -> Services:
    """Wire up the application's services.

    Every argument defaults to the configured implementation.
    """
    llm = llm or LLMClient()
    store = store or GraphStore()
    chunker = build_chunker(chunk_strategy, chunk_size, chunk_overlap)
    retriever = Retriever(store, prefer_native=config.NATIVE_VECTOR_SEARCH)

    ingest = IngestPipeline(
        text_extractor=TextExtractor(documents_dir),
        chunker=chunker,
        embedder=llm,
        store=store,
        entity_extractor=EntityExtractor(llm),
    )
    query = QueryService(embedder=llm, retriever=retriever, llm=llm)

    return Services(
        llm=llm,
        store=store,
        chunker=chunker,
        retriever=retriever,
        ingest=ingest,
        query=query,
    )
