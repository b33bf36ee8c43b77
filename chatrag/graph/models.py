"""Models for chunks, entities and relationships stored in the graph."""
import re
from typing import Any, Dict, List, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from chatrag.errors import InvalidInputError

DEFAULT_NODE_LABEL = "Entity"
DEFAULT_RELATIONSHIP_TYPE = "RELATED_TO"
MAX_LABEL_LENGTH = 64

_NODE_LABEL_PATTERN = re.compile(r"^[A-Z][A-Za-z0-9]*$")
_RELATIONSHIP_TYPE_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


def node_label(raw: Any) -> str:
    """Map a free-form entity type onto a safe PascalCase label.

    "research paper" -> "ResearchPaper"; anything unusable -> "Entity".
    """
    words = re.findall(r"[A-Za-z0-9]+", str(raw or ""))
    label = "".join(w[:1].upper() + w[1:] for w in words)[:MAX_LABEL_LENGTH]
    if not _NODE_LABEL_PATTERN.match(label):
        return DEFAULT_NODE_LABEL
    return label


def relationship_type(raw: Any) -> str:
    """Map a free-form relationship type onto a safe UPPER_SNAKE name.

    "works at" -> "WORKS_AT"; anything unusable -> "RELATED_TO".
    """
    name = re.sub(r"[^A-Z0-9]+", "_", str(raw or "").upper()).strip("_")[:MAX_LABEL_LENGTH]
    if not _RELATIONSHIP_TYPE_PATTERN.match(name):
        return DEFAULT_RELATIONSHIP_TYPE
    return name


def _to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _to_properties(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    return {"value": value}


class ChunkRecord(BaseModel):
    """A chunk ready for storage, with its embedding."""

    id: str = Field(min_length=1)
    content: str = Field(min_length=1)
    embedding: List[float] = Field(min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def validate_records(cls, records: Sequence[Any]) -> List["ChunkRecord"]:
        """Validate a batch of records (models or dicts).

        Raises:
            InvalidInputError: If records is not a list or any record is malformed
        """
        if not isinstance(records, (list, tuple)):
            raise InvalidInputError("Chunks must be an array", field="chunks")

        validated = []
        for position, record in enumerate(records):
            if isinstance(record, cls):
                validated.append(record)
                continue
            try:
                validated.append(cls.model_validate(record))
            except ValidationError as e:
                raise InvalidInputError(
                    "Each chunk must have id, content, and embedding",
                    field="chunks",
                    details={"position": position, "errors": e.errors(include_url=False)},
                ) from e
        return validated


class GraphEntity(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    type: str = DEFAULT_NODE_LABEL
    description: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "name", mode="before")
    @classmethod
    def coerce_identifiers(cls, value: Any) -> Any:
        return _to_str(value)

    @field_validator("properties", mode="before")
    @classmethod
    def coerce_properties(cls, value: Any) -> Dict[str, Any]:
        return _to_properties(value)

    @field_validator("description", "type", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def label(self) -> str:
        return node_label(self.type)


class GraphRelationship(BaseModel):
    id: str = Field(min_length=1)
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    type: str = DEFAULT_RELATIONSHIP_TYPE
    description: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "source", "target", mode="before")
    @classmethod
    def coerce_identifiers(cls, value: Any) -> Any:
        return _to_str(value)

    @field_validator("properties", mode="before")
    @classmethod
    def coerce_properties(cls, value: Any) -> Dict[str, Any]:
        return _to_properties(value)

    @field_validator("description", "type", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def relationship_type(self) -> str:
        return relationship_type(self.type)
