"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document text extraction
- Text chunking with overlap
- Cosine similarity ranking
- Retrieval with native and manual search paths
- Context assembly and answer generation
- Document ingestion
"""
