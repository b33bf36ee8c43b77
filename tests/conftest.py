"""Shared fixtures: a fake LLM provider and a temporary graph store."""
import json
from pathlib import Path

import pytest
import pytest_asyncio

from chatrag.errors import InvalidInputError
from chatrag.graph.store import GraphStore
from chatrag.services import build_services

EXTRACTION_RESPONSE = json.dumps({
    "nodes": [
        {"id": "python", "name": "Python", "type": "programming language", "description": "A language"},
        {"id": "guido", "name": "Guido van Rossum", "type": "person"},
    ],
    "relationships": [
        {"id": "r1", "source": "guido", "target": "python", "type": "created"},
    ],
})


class FakeLLM:
    """In-memory stand-in for LLMClient.

    Embeddings are chosen by the first keyword found in the text, so tests
    can control similarity without a model.
    """

    def __init__(self, vectors=None, default_vector=None, chat_response="Answer citing [1]."):
        self.vectors = vectors if vectors is not None else {
            "python": [1.0, 0.0, 0.0],
            "graph": [0.0, 1.0, 0.0],
        }
        self.default_vector = default_vector or [0.0, 0.0, 1.0]
        self.chat_response = chat_response
        self.extraction_response = EXTRACTION_RESPONSE
        self.models = ["fake-chat", "fake-embed"]
        self.chat_calls = []
        self.embed_calls = []
        self.fail_embeddings = None

    def _vector(self, text):
        lowered = text.lower()
        for keyword, vector in self.vectors.items():
            if keyword in lowered:
                return list(vector)
        return list(self.default_vector)

    async def embed(self, text):
        self.embed_calls.append([text])
        if self.fail_embeddings:
            raise self.fail_embeddings
        return self._vector(text)

    async def embed_batch(self, texts):
        if not texts:
            raise InvalidInputError("Input texts array is empty", field="texts")
        self.embed_calls.append(list(texts))
        if self.fail_embeddings:
            raise self.fail_embeddings
        return [self._vector(t) for t in texts]

    async def chat_completion(
        self, messages, model=None, temperature=0.7, max_tokens=1000, response_format="text"
    ):
        self.chat_calls.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": response_format,
        })
        if response_format == "json_object":
            return self.extraction_response
        return self.chat_response

    async def list_models(self):
        return list(self.models)

    async def initialize(self):
        return True


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> GraphStore:
    """Initialized GraphStore backed by a temporary SQLite file."""
    graph_store = GraphStore(db_path=tmp_path / "data" / "graph.sqlite")
    await graph_store.initialize()
    yield graph_store
    await graph_store.close()


@pytest.fixture
def documents_dir(tmp_path: Path) -> Path:
    """Documents directory with a few sample files."""
    docs = tmp_path / "documents"
    docs.mkdir()

    (docs / "python.md").write_text(
        "---\ntitle: Python Notes\ntags: [python, language]\n---\n"
        "Python is a programming language created by Guido van Rossum.\n",
        encoding="utf-8",
    )
    (docs / "graphs.txt").write_text(
        "A knowledge graph stores entities and the relationships between them.\n",
        encoding="utf-8",
    )
    (docs / "people.csv").write_text(
        "name,role\nAda,engineer\nGrace,admiral\n",
        encoding="utf-8",
    )
    return docs


@pytest.fixture
def services(fake_llm, store, documents_dir):
    """Services wired with the fake LLM, a temporary store and small chunks."""
    return build_services(
        llm=fake_llm,
        store=store,
        documents_dir=documents_dir,
        chunk_strategy="window",
        chunk_size=200,
        chunk_overlap=20,
    )
