"""Cosine similarity scoring and in-process ranking of candidate chunks."""
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence

import numpy as np

from chatrag.errors import InvalidInputError


@dataclass(frozen=True)
class Candidate:
    """A stored chunk and its embedding, as fetched for ranking."""

    id: str
    content: str
    embedding: Sequence[float]


@dataclass(frozen=True)
class ScoredCandidate:
    """A chunk scored against a query vector."""

    id: str
    content: str
    similarity: float

    @property
    def score(self) -> float:
        return self.similarity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "similarity": self.similarity,
            "score": self.similarity,
        }


def _as_vector(values: Sequence[float], name: str) -> np.ndarray:
    try:
        vector = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} is not a numeric vector: {e}", field=name) from e

    if vector.ndim != 1:
        raise InvalidInputError(
            f"{name} must be a flat vector, got shape {vector.shape}", field=name
        )
    return vector


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1], or 0.0 when either vector has zero magnitude

    Raises:
        InvalidInputError: If the vectors differ in length or are not numeric
    """
    vec_a = _as_vector(a, "a")
    vec_b = _as_vector(b, "b")

    if vec_a.shape != vec_b.shape:
        raise InvalidInputError(
            "Vectors must have the same length",
            details={"len_a": len(vec_a), "len_b": len(vec_b)},
        )

    magnitude = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if magnitude == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / magnitude)


def to_candidate(item: Any) -> Candidate:
    """Coerce a Candidate, mapping or (id, content, vector) tuple into a Candidate.

    Raises:
        InvalidInputError: If a required field is missing
    """
    if isinstance(item, Candidate):
        candidate = item
    elif isinstance(item, Mapping):
        embedding = item.get("embedding", item.get("vector"))
        candidate = Candidate(
            id=item.get("id"), content=item.get("content"), embedding=embedding
        )
    elif isinstance(item, (tuple, list)) and len(item) == 3:
        candidate = Candidate(id=item[0], content=item[1], embedding=item[2])
    else:
        raise InvalidInputError(
            f"Unsupported candidate record: {type(item).__name__}", field="candidates"
        )

    if not candidate.id or candidate.content is None or candidate.embedding is None:
        raise InvalidInputError(
            "Each candidate must have id, content, and embedding",
            field="candidates",
            details={"id": candidate.id},
        )
    return candidate


def rank_and_limit(
    query: Sequence[float], candidates: Iterable[Any], limit: int
) -> List[ScoredCandidate]:
    """Score every candidate against the query and keep the best ``limit``.

    Sorting is stable, so candidates with equal similarity keep their
    input order.

    Args:
        query: Query embedding
        candidates: Candidate records (see ``to_candidate``)
        limit: Maximum number of results

    Returns:
        Scored candidates sorted by descending similarity

    Raises:
        InvalidInputError: If limit is not positive or a record is malformed
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidInputError(f"Limit must be a positive integer, got {limit!r}", field="limit")

    scored = []
    for item in candidates:
        candidate = to_candidate(item)
        scored.append(
            ScoredCandidate(
                id=candidate.id,
                content=candidate.content,
                similarity=cosine_similarity(query, candidate.embedding),
            )
        )

    scored.sort(key=lambda c: c.similarity, reverse=True)
    return scored[:limit]
