"""Ingest pipeline for building the knowledge graph from documents.

Orchestrates:
- Text extraction
- Text chunking
- Embedding generation
- Chunk and embedding storage
- Entity and relationship extraction
- Graph storage
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import structlog

from chatrag.errors import ExternalDependencyError, InvalidInputError
from chatrag.graph.extractor import EntityExtractor, ExtractionResult
from chatrag.graph.models import ChunkRecord, GraphEntity, GraphRelationship
from chatrag.graph.store import GraphStore
from chatrag.rag.chunker import TextChunk, TextChunker
from chatrag.rag.interfaces import EmbeddingProvider
from chatrag.rag.text_extractor import ParsedDocument, TextExtractor

logger = structlog.get_logger()


def _chunk_fields(chunk: Any) -> Tuple[str, str, Dict[str, Any]]:
    if isinstance(chunk, dict):
        chunk_id, content, metadata = chunk.get("id"), chunk.get("content"), chunk.get("metadata")
    else:
        chunk_id = getattr(chunk, "id", None)
        content = getattr(chunk, "content", None)
        metadata = getattr(chunk, "metadata", None)

    if not chunk_id or not content:
        raise InvalidInputError(
            "Invalid chunk structure, each chunk must have id and content", field="chunks"
        )
    return chunk_id, content, dict(metadata or {})


@dataclass
class IngestResult:
    document: ParsedDocument
    chunks: List[ChunkRecord] = field(default_factory=list)
    graph: ExtractionResult = field(default_factory=ExtractionResult)
    graph_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self, include_embeddings: bool = False) -> Dict[str, Any]:
        exclude = None if include_embeddings else {"embedding"}
        return {
            "document": self.document.to_dict(),
            "chunks": [c.model_dump(exclude=exclude) for c in self.chunks],
            **self.graph.to_dict(),
            "graph_counts": self.graph_counts,
        }


class IngestPipeline:
    """Pipeline for ingesting documents into the knowledge graph."""

    def __init__(
        self,
        text_extractor: TextExtractor,
        chunker: TextChunker,
        embedder: EmbeddingProvider,
        store: GraphStore,
        entity_extractor: EntityExtractor,
    ):
        self.text_extractor = text_extractor
        self.chunker = chunker
        self.embedder = embedder
        self.store = store
        self.entity_extractor = entity_extractor

        self.stats = {
            "documents_processed": 0,
            "documents_failed": 0,
            "chunks_created": 0,
            "embeddings_generated": 0,
            "nodes_stored": 0,
            "relationships_stored": 0,
        }

        logger.info(
            "ingest_pipeline_initialized",
            chunk_strategy=chunker.strategy,
            chunk_size=chunker.chunk_size,
            chunk_overlap=chunker.chunk_overlap,
        )

    def extract_text(self, file_path: str, file_type: Optional[str] = None) -> ParsedDocument:
        return self.text_extractor.parse_document(file_path, file_type)

    def chunk_document(
        self,
        text: str,
        document_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[TextChunk]:
        return self.chunker.chunk_text(text, document_id=document_id, metadata=metadata)

    async def embed_chunks(self, chunks: Sequence[Any]) -> List[ChunkRecord]:
        """Generate embeddings for chunks.

        Args:
            chunks: TextChunk objects or dicts with id and content

        Returns:
            ChunkRecord list, index-aligned with the input

        Raises:
            InvalidInputError: If chunks are malformed or empty
            ExternalDependencyError: If embedding fails (no partial results)
        """
        if not isinstance(chunks, (list, tuple)) or not chunks:
            raise InvalidInputError("chunks array required", field="chunks")

        fields = [_chunk_fields(chunk) for chunk in chunks]

        embeddings = await self.embedder.embed_batch([content for _, content, _ in fields])
        if len(embeddings) != len(fields):
            raise ExternalDependencyError(
                "Embedding provider returned a different number of vectors",
                dependency="embeddings",
                details={"requested": len(fields), "returned": len(embeddings)},
            )
        self.stats["embeddings_generated"] += len(embeddings)

        return [
            ChunkRecord(id=chunk_id, content=content, embedding=embedding, metadata=metadata)
            for (chunk_id, content, metadata), embedding in zip(fields, embeddings)
        ]

    async def store_chunks(self, records: Sequence[Any]) -> int:
        return await self.store.write_chunks(records)

    async def extract_graph(self, chunks: Sequence[Any]) -> ExtractionResult:
        return await self.entity_extractor.extract(chunks)

    async def store_graph(
        self,
        nodes: Sequence[GraphEntity],
        relationships: Sequence[GraphRelationship],
    ) -> Dict[str, int]:
        counts = await self.store.store_entities_and_relationships(nodes, relationships)
        self.stats["nodes_stored"] += counts["nodes"]
        self.stats["relationships_stored"] += counts["relationships"]
        return counts

    async def process_document(
        self,
        file_path: str,
        file_type: Optional[str] = None,
        extract_graph: bool = True,
    ) -> IngestResult:
        """Run the full pipeline for one document.

        Args:
            file_path: Document path (see TextExtractor.parse_document)
            file_type: Optional explicit document type
            extract_graph: Also extract and store entities and relationships

        Returns:
            IngestResult

        Raises:
            ChatRAGError: If any step fails
        """
        logger.info("ingesting_document", path=file_path, type=file_type)

        try:
            document = self.extract_text(file_path, file_type)
            await self.store.write_document(
                document.id, document.title, document.type, document.metadata
            )

            chunks = self.chunk_document(
                document.content,
                document_id=document.id,
                metadata={"source": document.title},
            )
            result = IngestResult(document=document)

            if not chunks:
                logger.warning("no_chunks_created", document_id=document.id)
                self.stats["documents_processed"] += 1
                return result

            result.chunks = await self.embed_chunks(chunks)
            await self.store_chunks(result.chunks)
            self.stats["chunks_created"] += len(result.chunks)

            if extract_graph:
                result.graph = await self.extract_graph(chunks)
                result.graph_counts = await self.store_graph(
                    result.graph.nodes, result.graph.relationships
                )

        except Exception as e:
            self.stats["documents_failed"] += 1
            logger.error(
                "document_ingestion_failed",
                path=file_path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        self.stats["documents_processed"] += 1

        logger.info(
            "document_ingested",
            document_id=document.id,
            chunks_created=len(result.chunks),
            nodes=len(result.graph.nodes),
            relationships=len(result.graph.relationships),
        )

        return result
