"""Exception hierarchy for ChatRAG.

Every error carries a human-readable message plus an optional ``details``
dict with context for logs and API responses.
"""
from typing import Any, Dict, Optional


class ChatRAGError(Exception):
    """Base exception for all ChatRAG errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InvalidInputError(ChatRAGError):
    """Raised when a caller supplies malformed input (records, vectors, limits)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class ExternalDependencyError(ChatRAGError):
    """Raised when the LLM provider or the storage backend fails."""

    def __init__(
        self,
        message: str,
        dependency: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if dependency:
            details["dependency"] = dependency
        super().__init__(message, details)


class ParseFailureError(ChatRAGError):
    """Raised when structured output (LLM JSON, document content) cannot be interpreted."""


class ExhaustedFallbackError(ChatRAGError):
    """Raised when neither the native nor the manual retrieval path produced results."""
