"""ChatRAG: document ingestion, knowledge graph storage and retrieval-augmented answers."""

__version__ = "1.0.0"
