"""Quart application exposing ingestion and query endpoints."""
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, Field, ValidationError
from quart import Quart, jsonify, request
import structlog

from chatrag import config
from chatrag.errors import ChatRAGError, InvalidInputError
from chatrag.graph.models import GraphEntity, GraphRelationship
from chatrag.logging_config import configure_logging
from chatrag.rag.chunker import build_chunker
from chatrag.services import Services, build_services

logger = structlog.get_logger()

RequestModel = TypeVar("RequestModel", bound=BaseModel)


class DocumentRequest(BaseModel):
    file_path: str = Field(min_length=1, validation_alias=AliasChoices("file_path", "filePath"))
    type: Optional[str] = None


class ProcessDocumentRequest(DocumentRequest):
    extract_graph: bool = Field(
        default=True, validation_alias=AliasChoices("extract_graph", "extractGraph")
    )


class BreakTextRequest(BaseModel):
    text: str = Field(min_length=1)
    chunk_size: Optional[int] = Field(
        default=None, gt=0, validation_alias=AliasChoices("chunk_size", "chunkSize")
    )
    chunk_overlap: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("chunk_overlap", "overlap")
    )
    strategy: Optional[str] = None


class ChunksRequest(BaseModel):
    chunks: List[Dict[str, Any]] = Field(min_length=1)


class GraphRequest(BaseModel):
    nodes: List[GraphEntity]
    relationships: List[GraphRelationship]


class SemanticSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=config.SEARCH_LIMIT, gt=0, le=config.MAX_QUERY_LIMIT)


class RAGQueryRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=config.RAG_LIMIT, gt=0, le=config.MAX_QUERY_LIMIT)
    include_context: bool = Field(
        default=True, validation_alias=AliasChoices("include_context", "includeContext")
    )


async def parse_body(model: Type[RequestModel]) -> RequestModel:
    """Validate the JSON request body against a pydantic model.

    Raises:
        InvalidInputError: If the body is not a JSON object
        ValidationError: If the body doesn't match the model
    """
    data = await request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return model.model_validate(data)


def create_app(services: Optional[Services] = None) -> Quart:
    """Create the Quart app.

    Args:
        services: Application services (built from config if not provided)

    Returns:
        Configured Quart app
    """
    app = Quart(__name__)
    services = services or build_services()
    app.extensions["chatrag"] = services

    @app.before_serving
    async def startup():
        await services.initialize()

    @app.after_serving
    async def shutdown():
        await services.close()

    @app.route("/")
    async def index():
        return jsonify({
            "message": "ChatRAG API",
            "status": "running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": config.APP_VERSION,
        })

    # Ingestion

    @app.route("/ingest/extract-text", methods=["POST"])
    async def extract_text():
        body = await parse_body(DocumentRequest)
        document = services.ingest.extract_text(body.file_path, body.type)
        return jsonify({"success": True, "data": document.to_dict()})

    @app.route("/ingest/break-text", methods=["POST"])
    async def break_text():
        body = await parse_body(BreakTextRequest)

        chunker = services.chunker
        if body.chunk_size is not None or body.chunk_overlap is not None or body.strategy:
            chunker = build_chunker(
                body.strategy or chunker.strategy,
                body.chunk_size if body.chunk_size is not None else chunker.chunk_size,
                body.chunk_overlap if body.chunk_overlap is not None else chunker.requested_overlap,
            )

        chunks = chunker.chunk_text(body.text)
        return jsonify({
            "success": True,
            "data": [c.to_dict() for c in chunks],
            "stats": chunker.get_chunk_stats(chunks),
        })

    @app.route("/ingest/embed-chunks", methods=["POST"])
    async def embed_chunks():
        body = await parse_body(ChunksRequest)
        records = await services.ingest.embed_chunks(body.chunks)
        return jsonify({
            "success": True,
            "data": {
                "chunks_length": len(records),
                "chunks_with_embeddings": [
                    {**r.model_dump(), "embedding_length": len(r.embedding)} for r in records
                ],
            },
        })

    @app.route("/ingest/store-chunks-embeddings-graph", methods=["POST"])
    async def store_chunks():
        body = await parse_body(ChunksRequest)
        stored = await services.ingest.store_chunks(body.chunks)
        return jsonify({
            "success": True,
            "message": f"Stored {stored} chunks and embeddings in graph",
        })

    @app.route("/ingest/extract-document-nodes-relationships-graph", methods=["POST"])
    async def extract_graph():
        body = await parse_body(ChunksRequest)
        result = await services.ingest.extract_graph(body.chunks)
        return jsonify({"success": True, "data": result.to_dict()})

    @app.route("/ingest/store-extracted-nodes-relationships-graph", methods=["POST"])
    async def store_graph():
        body = await parse_body(GraphRequest)
        counts = await services.ingest.store_graph(body.nodes, body.relationships)
        return jsonify({
            "success": True,
            "message": (
                f"Stored {counts['nodes']} nodes and "
                f"{counts['relationships']} relationships in graph"
            ),
            "data": counts,
        })

    @app.route("/ingest/process-document-pipeline", methods=["POST"])
    async def process_document():
        body = await parse_body(ProcessDocumentRequest)
        result = await services.ingest.process_document(
            body.file_path, body.type, extract_graph=body.extract_graph
        )
        return jsonify({
            "success": True,
            "message": "Document Ingestion completed successfully",
            "data": result.to_dict(),
        })

    # Querying

    @app.route("/query/semantic", methods=["POST"])
    async def semantic_search():
        body = await parse_body(SemanticSearchRequest)
        results = await services.query.semantic_search(body.query, body.limit)
        return jsonify({
            "success": True,
            "data": {
                "query": body.query,
                "results": [r.to_dict() for r in results],
                "count": len(results),
            },
        })

    @app.route("/query/rag", methods=["POST"])
    async def rag_query():
        body = await parse_body(RAGQueryRequest)
        answer = await services.query.rag_query(
            body.query, body.limit, include_context=body.include_context
        )
        return jsonify({"success": True, "data": answer.to_dict()})

    # Health

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - check the LLM provider and the graph store."""
        checks = {"status": "healthy", "llm": False, "store": False}

        try:
            models = await services.llm.list_models()
            checks["llm"] = True
            checks["models"] = len(models)
        except ChatRAGError as e:
            checks["status"] = "unhealthy"
            checks["error"] = e.message

        try:
            checks["store_stats"] = services.store.get_stats()
            checks["store"] = True
        except Exception as e:
            logger.error("store_health_check_failed", error=str(e))
            checks["status"] = "unhealthy"
            checks["error"] = str(e)

        status_code = 200 if checks["status"] == "healthy" else 503
        return jsonify(checks), status_code

    # Errors

    @app.errorhandler(ValidationError)
    async def validation_error(error: ValidationError):
        logger.warning("request_validation_failed", errors=error.error_count())
        return jsonify({
            "success": False,
            "error": "Invalid request body",
            "details": json.loads(error.json(include_url=False)),
        }), 400

    @app.errorhandler(InvalidInputError)
    async def invalid_input(error: InvalidInputError):
        logger.warning("invalid_input", error=error.message, details=error.details)
        return jsonify({
            "success": False,
            "error": error.message,
            "details": json.loads(json.dumps(error.details, default=str)),
        }), 400

    @app.errorhandler(ChatRAGError)
    async def chatrag_error(error: ChatRAGError):
        logger.error(
            "request_failed",
            error=error.message,
            error_type=type(error).__name__,
            details=error.details,
        )
        return jsonify({"success": False, "error": error.message}), 500

    @app.errorhandler(404)
    async def not_found(error):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    async def internal_error(error):
        logger.error("internal_server_error", error=str(error))
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return app


if __name__ == "__main__":
    # For development - use scripts/serve.py (hypercorn) otherwise
    configure_logging()
    create_app().run(host=config.HOST, port=config.PORT, debug=True)
