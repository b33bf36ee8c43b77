"""SQLite-backed knowledge graph store with FAISS vector search.

Stores:
- Documents that were ingested
- Text chunks with their embeddings
- Extracted entities (nodes) and relationships (edges)

Cosine search over chunk embeddings runs natively on a FAISS inner-product
index of L2-normalised vectors. The index is rebuilt lazily after writes.
"""
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np
import structlog

from chatrag import config
from chatrag.errors import ExternalDependencyError, InvalidInputError
from chatrag.graph.models import ChunkRecord, GraphEntity, GraphRelationship
from chatrag.rag.similarity import Candidate, ScoredCandidate, cosine_similarity

logger = structlog.get_logger()

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        type TEXT NOT NULL,
        metadata_json TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chunks (
        id TEXT PRIMARY KEY,
        document_id TEXT,
        content TEXT NOT NULL,
        embedding_json TEXT NOT NULL,
        dimension INTEGER NOT NULL,
        metadata_json TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_chunks_document_id
    ON chunks(document_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS entities (
        id TEXT PRIMARY KEY,
        label TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        properties_json TEXT,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS relationships (
        id TEXT PRIMARY KEY,
        source_id TEXT NOT NULL REFERENCES entities(id),
        target_id TEXT NOT NULL REFERENCES entities(id),
        type TEXT NOT NULL,
        description TEXT,
        properties_json TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_relationships_source
    ON relationships(source_id)
    """,
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class GraphStore:
    """Knowledge graph persistence for chunks, entities and relationships."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the store.

        Args:
            db_path: SQLite database file (default from config)
        """
        self.db_path = Path(db_path or config.GRAPH_DB_PATH)

        # Lazily built FAISS index over chunk embeddings
        self._index: Optional[faiss.Index] = None
        self._index_rows: List[Candidate] = []

        logger.info("graph_store_created", db_path=str(self.db_path))

    def get_connection(self) -> sqlite3.Connection:
        """Get a connection with row_factory set to sqlite3.Row."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _invalidate_index(self) -> None:
        self._index = None
        self._index_rows = []

    async def initialize(self) -> bool:
        """Create the database file and schema if they don't exist.

        Raises:
            ExternalDependencyError: If the database cannot be initialized
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = self.get_connection()
        try:
            for statement in SCHEMA:
                conn.execute(statement)
            conn.commit()
            logger.info("graph_store_initialized", db_path=str(self.db_path))
            return True
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("graph_store_init_failed", error=str(e))
            raise ExternalDependencyError(
                f"Graph store initialization failed: {e}", dependency="storage"
            ) from e
        finally:
            conn.close()

    async def write_document(
        self, document_id: str, title: str, doc_type: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Record an ingested document."""
        conn = self.get_connection()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO documents (id, title, type, metadata_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (document_id, title, doc_type, json.dumps(metadata or {}, default=str), _now()),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("document_write_failed", document_id=document_id, error=str(e))
            raise ExternalDependencyError(
                f"Storing document failed: {e}", dependency="storage"
            ) from e
        finally:
            conn.close()

    async def write_chunks(self, records: Sequence[Any]) -> int:
        """Upsert chunks with embeddings in a single transaction.

        Either every record is written or none is.

        Args:
            records: ChunkRecord instances or dicts with id, content, embedding

        Returns:
            Number of chunks written

        Raises:
            InvalidInputError: If any record is malformed
            ExternalDependencyError: If the write fails
        """
        chunks = ChunkRecord.validate_records(records)
        if not chunks:
            return 0

        created_at = _now()
        rows = [
            (
                chunk.id,
                chunk.metadata.get("document_id"),
                chunk.content,
                json.dumps(chunk.embedding),
                len(chunk.embedding),
                json.dumps(chunk.metadata, default=str),
                created_at,
            )
            for chunk in chunks
        ]

        conn = self.get_connection()
        try:
            conn.executemany(
                """
                INSERT OR REPLACE INTO chunks
                    (id, document_id, content, embedding_json, dimension, metadata_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("chunk_write_failed", count=len(rows), error=str(e))
            raise ExternalDependencyError(
                f"Storing chunks with embeddings failed: {e}", dependency="storage"
            ) from e
        finally:
            conn.close()

        self._invalidate_index()

        logger.info("chunks_written", count=len(rows))
        return len(rows)

    async def fetch_all_chunks_with_embeddings(self) -> List[Candidate]:
        """Fetch every stored chunk with its embedding, in insertion order.

        Raises:
            ExternalDependencyError: If the read fails
        """
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "SELECT id, content, embedding_json FROM chunks ORDER BY rowid"
            ).fetchall()
        except sqlite3.Error as e:
            logger.error("chunk_read_failed", error=str(e))
            raise ExternalDependencyError(
                f"Reading chunks failed: {e}", dependency="storage"
            ) from e
        finally:
            conn.close()

        return [
            Candidate(id=row["id"], content=row["content"], embedding=json.loads(row["embedding_json"]))
            for row in rows
        ]

    async def _ensure_index(self) -> Optional[faiss.Index]:
        if self._index is not None:
            return self._index

        candidates = await self.fetch_all_chunks_with_embeddings()
        if not candidates:
            return None

        dimensions = {len(c.embedding) for c in candidates}
        if len(dimensions) != 1:
            raise InvalidInputError(
                "Stored embeddings have mixed dimensions",
                details={"dimensions": sorted(dimensions)},
            )

        vectors = np.array([c.embedding for c in candidates], dtype=np.float32)
        faiss.normalize_L2(vectors)

        index = faiss.IndexFlatIP(vectors.shape[1])
        index.add(vectors)

        self._index = index
        self._index_rows = list(candidates)

        logger.info(
            "vector_index_built",
            dimension=index.d,
            vector_count=index.ntotal,
            index_type="IndexFlatIP",
        )
        return index

    async def native_vector_search(
        self, query_vector: Sequence[float], limit: int
    ) -> List[ScoredCandidate]:
        """Rank stored chunks by cosine similarity using the FAISS index.

        Args:
            query_vector: Query embedding
            limit: Maximum number of results

        Returns:
            Scored chunks, best first; ties keep insertion order

        Raises:
            InvalidInputError: On dimension mismatch
        """
        index = await self._ensure_index()
        if index is None:
            return []

        query = np.array([query_vector], dtype=np.float32)
        if query.shape[1] != index.d:
            raise InvalidInputError(
                f"Query dimension mismatch: expected {index.d}, got {query.shape[1]}",
                field="query_vector",
            )
        faiss.normalize_L2(query)

        # Flat index search is exhaustive; FAISS selects the rows, scores are
        # recomputed in float64 so float32 near-ties rank as in manual search
        _, positions = index.search(query, index.ntotal)

        ranked = sorted(
            (
                (int(position), cosine_similarity(query_vector, self._index_rows[position].embedding))
                for position in positions[0]
                if position >= 0
            ),
            key=lambda item: (-item[1], item[0]),
        )

        results = []
        for position, score in ranked[:limit]:
            row = self._index_rows[position]
            results.append(ScoredCandidate(id=row.id, content=row.content, similarity=score))

        logger.info(
            "native_vector_search_completed",
            limit=limit,
            results_found=len(results),
        )
        return results

    async def store_entities_and_relationships(
        self,
        nodes: Sequence[GraphEntity],
        relationships: Sequence[GraphRelationship],
    ) -> Dict[str, int]:
        """Upsert extracted nodes and relationships in one transaction.

        Relationships whose source or target node does not exist are skipped.

        Returns:
            Counts of stored nodes, stored relationships and skipped relationships

        Raises:
            ExternalDependencyError: If the write fails (nothing is stored)
        """
        now = _now()
        stored_relationships = 0
        skipped_relationships = 0

        conn = self.get_connection()
        try:
            for node in nodes:
                conn.execute(
                    """
                    INSERT INTO entities (id, label, name, description, properties_json, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        label = excluded.label,
                        name = excluded.name,
                        description = excluded.description,
                        properties_json = excluded.properties_json,
                        updated_at = excluded.updated_at
                    """,
                    (
                        node.id,
                        node.label,
                        node.name,
                        node.description,
                        json.dumps(node.properties, default=str),
                        now,
                    ),
                )

            for rel in relationships:
                endpoints = conn.execute(
                    "SELECT COUNT(*) FROM entities WHERE id IN (?, ?)",
                    (rel.source, rel.target),
                ).fetchone()[0]
                expected = 1 if rel.source == rel.target else 2
                if endpoints < expected:
                    logger.warning(
                        "relationship_endpoint_missing",
                        relationship_id=rel.id,
                        source=rel.source,
                        target=rel.target,
                    )
                    skipped_relationships += 1
                    continue

                conn.execute(
                    """
                    INSERT OR REPLACE INTO relationships
                        (id, source_id, target_id, type, description, properties_json, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        rel.id,
                        rel.source,
                        rel.target,
                        rel.relationship_type,
                        rel.description,
                        json.dumps(rel.properties, default=str),
                        now,
                    ),
                )
                stored_relationships += 1

            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("graph_write_failed", error=str(e))
            raise ExternalDependencyError(
                f"Storing nodes and relationships failed: {e}", dependency="storage"
            ) from e
        finally:
            conn.close()

        logger.info(
            "graph_written",
            nodes=len(nodes),
            relationships=stored_relationships,
            relationships_skipped=skipped_relationships,
        )

        return {
            "nodes": len(nodes),
            "relationships": stored_relationships,
            "relationships_skipped": skipped_relationships,
        }

    async def get_entity(self, entity_id: str) -> Optional[Dict[str, Any]]:
        conn = self.get_connection()
        try:
            row = conn.execute("SELECT * FROM entities WHERE id = ?", (entity_id,)).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        entity = dict(row)
        entity["properties"] = json.loads(entity.pop("properties_json") or "{}")
        return entity

    async def get_relationships(self, entity_id: str) -> List[Dict[str, Any]]:
        """Relationships that start or end at the given entity."""
        conn = self.get_connection()
        try:
            rows = conn.execute(
                """
                SELECT * FROM relationships
                WHERE source_id = ? OR target_id = ?
                ORDER BY rowid
                """,
                (entity_id, entity_id),
            ).fetchall()
        finally:
            conn.close()

        relationships = []
        for row in rows:
            rel = dict(row)
            rel["properties"] = json.loads(rel.pop("properties_json") or "{}")
            relationships.append(rel)
        return relationships

    def get_stats(self) -> Dict[str, Any]:
        """Get row counts for each table."""
        conn = self.get_connection()
        try:
            counts = {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in ("documents", "chunks", "entities", "relationships")
            }
        finally:
            conn.close()

        return {
            "db_path": str(self.db_path),
            **counts,
            "vector_index_loaded": self._index is not None,
        }

    async def clear(self) -> None:
        """Delete everything in the store."""
        logger.warning("clearing_graph_store", db_path=str(self.db_path))

        conn = self.get_connection()
        try:
            for table in ("relationships", "entities", "chunks", "documents"):
                conn.execute(f"DELETE FROM {table}")
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise ExternalDependencyError(
                f"Clearing graph store failed: {e}", dependency="storage"
            ) from e
        finally:
            conn.close()

        self._invalidate_index()

    async def close(self) -> None:
        self._invalidate_index()
