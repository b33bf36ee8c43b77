"""Document text extraction for ingestion.

Handles:
- Plain text files
- Markdown files with YAML frontmatter
- CSV files (rendered as a JSON array of rows)
- PDF files
"""
import csv
import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import structlog
import yaml
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from chatrag import config
from chatrag.errors import InvalidInputError, ParseFailureError

logger = structlog.get_logger()

EXTENSION_TYPES = {
    ".txt": "txt",
    ".md": "md",
    ".markdown": "md",
    ".csv": "csv",
    ".pdf": "pdf",
}
SUPPORTED_TYPES = ("txt", "md", "csv", "pdf")


@dataclass
class ParsedDocument:
    """Extracted document text with metadata."""

    id: str
    title: str
    content: str
    type: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "type": self.type,
            "metadata": self.metadata,
        }


class TextExtractor:
    """Reads supported document types from disk and returns their text."""

    # Regex for YAML frontmatter (must be at start of file)
    FRONTMATTER_PATTERN = re.compile(
        r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL | re.MULTILINE
    )

    def __init__(self, documents_dir: Optional[Path] = None):
        """Initialize the extractor.

        Args:
            documents_dir: Root directory documents must live under (default from config)
        """
        self.documents_dir = Path(documents_dir or config.DOCUMENTS_DIR).resolve()

    def resolve_path(self, file_path: str) -> Path:
        """Resolve a path under the documents directory.

        Raises:
            InvalidInputError: If the path is empty, escapes the directory or doesn't exist
        """
        if not file_path:
            raise InvalidInputError("filePath is required", field="file_path")

        path = Path(file_path)
        if not path.is_absolute():
            path = self.documents_dir / path
        path = path.resolve()

        if not path.is_relative_to(self.documents_dir):
            raise InvalidInputError(
                f"File is outside the documents directory: {file_path}", field="file_path"
            )
        if not path.is_file():
            raise InvalidInputError(f"File not found: {file_path}", field="file_path")

        return path

    def detect_type(self, path: Path) -> str:
        """Map a file extension onto a supported document type.

        Raises:
            InvalidInputError: For unsupported extensions
        """
        doc_type = EXTENSION_TYPES.get(path.suffix.lower())
        if doc_type is None:
            raise InvalidInputError(
                f"Unsupported file extension: {path.suffix or '(none)'}", field="file_path"
            )
        return doc_type

    def parse_document(self, file_path: str, file_type: Optional[str] = None) -> ParsedDocument:
        """Extract a document's text and metadata.

        Args:
            file_path: Absolute path, or a path relative to the documents directory
            file_type: One of txt, md, csv, pdf (detected from the extension if omitted)

        Returns:
            ParsedDocument

        Raises:
            InvalidInputError: If the file is missing, outside the documents
                directory or of an unsupported type
            ParseFailureError: If the content cannot be read
        """
        path = self.resolve_path(file_path)

        if file_type is not None and file_type not in SUPPORTED_TYPES:
            raise InvalidInputError(f"Unsupported file type: {file_type}", field="type")
        doc_type = file_type or self.detect_type(path)

        content, extra_metadata = self.extract_text(path, doc_type)

        metadata = {
            "size": len(content),
            "file_path": str(path),
            "extracted_at": datetime.now(timezone.utc).isoformat(),
            **extra_metadata,
        }

        document = ParsedDocument(
            id=f"doc-{uuid.uuid4().hex[:12]}",
            title=path.name,
            content=content,
            type=doc_type,
            metadata=metadata,
        )

        logger.info(
            "document_parsed",
            document_id=document.id,
            path=str(path),
            type=doc_type,
            content_length=len(content),
        )

        return document

    def extract_text(self, path: Path, doc_type: str) -> Tuple[str, Dict[str, Any]]:
        """Dispatch to the reader for ``doc_type``.

        Returns:
            Tuple of (text, extra_metadata)
        """
        readers = {
            "txt": self._extract_txt,
            "md": self._extract_markdown,
            "csv": self._extract_csv,
            "pdf": self._extract_pdf,
        }
        reader = readers.get(doc_type)
        if reader is None:
            raise InvalidInputError(f"Unsupported file type: {doc_type}", field="type")
        return reader(path)

    def _read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.error("document_encoding_error", path=str(path), error=str(e))
            raise ParseFailureError(f"Failed to read text file: {e}") from e

    def _extract_txt(self, path: Path) -> Tuple[str, Dict[str, Any]]:
        return self._read_text(path), {}

    def _extract_markdown(self, path: Path) -> Tuple[str, Dict[str, Any]]:
        content = self._read_text(path)
        frontmatter, body = self._parse_frontmatter(content)

        metadata = {}
        if frontmatter:
            # Convert date/datetime objects to ISO format strings
            metadata["frontmatter"] = {
                key: value.isoformat() if hasattr(value, "isoformat") else value
                for key, value in frontmatter.items()
            }
        return body, metadata

    def _parse_frontmatter(self, content: str) -> Tuple[Dict[str, Any], str]:
        """Extract YAML frontmatter from markdown content.

        Returns:
            Tuple of (frontmatter_dict, content_without_frontmatter)
        """
        match = self.FRONTMATTER_PATTERN.match(content)
        if not match:
            return {}, content

        yaml_content = match.group(1)
        try:
            frontmatter = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            logger.warning(
                "frontmatter_parse_error",
                error=str(e),
                yaml_preview=yaml_content[:100],
            )
            frontmatter = {}

        if not isinstance(frontmatter, dict):
            frontmatter = {}

        return frontmatter, content[match.end() :]

    def _extract_csv(self, path: Path) -> Tuple[str, Dict[str, Any]]:
        try:
            with open(path, newline="", encoding="utf-8") as f:
                rows = list(csv.DictReader(f))
        except (csv.Error, UnicodeDecodeError) as e:
            raise ParseFailureError(f"Failed to extract CSV: {e}") from e

        return json.dumps(rows, indent=2, ensure_ascii=False), {"row_count": len(rows)}

    def _extract_pdf(self, path: Path) -> Tuple[str, Dict[str, Any]]:
        try:
            reader = PdfReader(str(path))
            pages = [page.extract_text() or "" for page in reader.pages]
        except (PdfReadError, OSError, ValueError) as e:
            raise ParseFailureError(f"Failed to extract PDF: {e}") from e

        return "\n".join(pages), {"page_count": len(pages)}
