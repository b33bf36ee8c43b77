"""Knowledge graph components.

This package contains modules for:
- Chunk, entity and relationship models
- LLM-driven entity and relationship extraction
- SQLite graph storage with FAISS vector search
"""
