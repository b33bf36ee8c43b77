"""Entity and relationship extraction from chunk text with an LLM."""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import structlog
from pydantic import ValidationError

from chatrag.errors import InvalidInputError, ParseFailureError
from chatrag.graph.models import GraphEntity, GraphRelationship
from chatrag.rag.interfaces import ChatProvider

logger = structlog.get_logger()

SYSTEM_PROMPT = "You are an expert at extracting entities and relationships from text."

EXTRACTION_PROMPT = """Extract entities and relationships from the text below.
Return valid JSON only, in this format:
{{
  "nodes": [
    {{"id": "string", "name": "string", "type": "string", "description": "string", "properties": {{"key": "value"}}}}
  ],
  "relationships": [
    {{"id": "string", "source": "string", "target": "string", "type": "string", "description": "string", "properties": {{"key": "value"}}}}
  ]
}}
Relationship "source" and "target" must be node ids.

Text: \"\"\"{text}\"\"\"
"""


@dataclass
class ExtractionResult:
    nodes: List[GraphEntity] = field(default_factory=list)
    relationships: List[GraphRelationship] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.model_dump() for n in self.nodes],
            "relationships": [r.model_dump() for r in self.relationships],
        }


def decode_nested_json(payload: Any) -> Any:
    """Recursively decode values that are JSON-encoded objects or arrays.

    Other strings, including ones that are not valid JSON, are returned unchanged.
    """
    if isinstance(payload, str):
        if not payload.strip().startswith(("{", "[")):
            return payload
        try:
            return decode_nested_json(json.loads(payload))
        except ValueError:
            return payload

    if isinstance(payload, list):
        return [decode_nested_json(item) for item in payload]

    if isinstance(payload, dict):
        return {key: decode_nested_json(value) for key, value in payload.items()}

    return payload


def _chunk_content(chunk: Any) -> str:
    if isinstance(chunk, dict):
        chunk_id, content = chunk.get("id"), chunk.get("content")
    else:
        chunk_id, content = getattr(chunk, "id", None), getattr(chunk, "content", None)

    if not chunk_id or not content:
        raise InvalidInputError("Each chunk must have id and content", field="chunks")
    return content


class EntityExtractor:
    """Extracts a knowledge graph fragment from chunks with a chat model."""

    def __init__(self, llm: ChatProvider, max_tokens: int = 1500):
        self.llm = llm
        self.max_tokens = max_tokens

    async def extract(self, chunks: Sequence[Any]) -> ExtractionResult:
        """Extract entities and relationships from chunk texts.

        Args:
            chunks: Chunks (objects or dicts) with id and content

        Returns:
            ExtractionResult with validated nodes and relationships

        Raises:
            InvalidInputError: If chunks are malformed
            ParseFailureError: If the model reply cannot be interpreted
            ExternalDependencyError: If the model call fails
        """
        if not isinstance(chunks, (list, tuple)):
            raise InvalidInputError("Chunks must be an array", field="chunks")

        combined_text = "\n\n".join(_chunk_content(chunk) for chunk in chunks)

        response = await self.llm.chat_completion(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": EXTRACTION_PROMPT.format(text=combined_text)},
            ],
            temperature=0,
            max_tokens=self.max_tokens,
            response_format="json_object",
        )

        result = self.parse_response(response)

        logger.info(
            "entities_extracted",
            chunk_count=len(chunks),
            nodes=len(result.nodes),
            relationships=len(result.relationships),
        )
        return result

    @staticmethod
    def parse_response(response: str) -> ExtractionResult:
        """Parse and validate the model's JSON reply.

        Raises:
            ParseFailureError: On invalid JSON, wrong shape or invalid records
        """
        try:
            parsed = json.loads(response)
        except ValueError as e:
            logger.error("extraction_json_invalid", error=str(e), preview=response[:200])
            raise ParseFailureError(f"Failed to parse JSON from model response: {e}") from e

        if not isinstance(parsed, dict):
            raise ParseFailureError("Invalid data format from model response")

        nodes = parsed.get("nodes")
        relationships = parsed.get("relationships")
        if not isinstance(nodes, list) or not isinstance(relationships, list):
            raise ParseFailureError(
                "Invalid data format from model response",
                details={"keys": sorted(parsed.keys())},
            )

        try:
            return ExtractionResult(
                nodes=[GraphEntity.model_validate(n) for n in decode_nested_json(nodes)],
                relationships=[
                    GraphRelationship.model_validate(r) for r in decode_nested_json(relationships)
                ],
            )
        except ValidationError as e:
            raise ParseFailureError(
                "Invalid nodes or relationships format from model response",
                details={"errors": e.errors(include_url=False)},
            ) from e
