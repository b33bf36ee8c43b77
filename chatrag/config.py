"""Application configuration with sensible defaults."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env before reading any settings
load_dotenv()

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("CHATRAG_DATA_DIR", str(BASE_DIR / "data")))
DOCUMENTS_DIR = Path(os.getenv("DOCUMENTS_DIR", str(BASE_DIR / "documents")))

# LLM provider (any OpenAI-compatible endpoint; defaults to a local Ollama)
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "http://localhost:11434/v1")
LLM_API_KEY = os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", ""))
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemma3:12b")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "mxbai-embed-large:latest")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60.0"))
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "64"))

# Chunking parameters (character-based, tokens are estimated at 4 chars each)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))
CHUNK_STRATEGY = os.getenv("CHUNK_STRATEGY", "window")  # window | recursive

# Retrieval
SEARCH_LIMIT = int(os.getenv("SEARCH_LIMIT", "10"))
RAG_LIMIT = int(os.getenv("RAG_LIMIT", "5"))
MAX_QUERY_LIMIT = int(os.getenv("MAX_QUERY_LIMIT", "100"))
NATIVE_VECTOR_SEARCH = os.getenv("NATIVE_VECTOR_SEARCH", "true").lower() in ("1", "true", "yes")

# Database
GRAPH_DB_PATH = Path(os.getenv("GRAPH_DB_PATH", str(DATA_DIR / "graph.sqlite")))

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "4000"))
APP_VERSION = "1.0.0"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
