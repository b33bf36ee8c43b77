"""Tests for the SQLite graph store and its FAISS vector search."""
import pytest

from chatrag.errors import InvalidInputError
from chatrag.graph.models import ChunkRecord, GraphEntity, GraphRelationship


@pytest.mark.asyncio
async def test_write_and_fetch_chunks_in_insertion_order(store):
    written = await store.write_chunks([
        {"id": "c2", "content": "second", "embedding": [0.0, 1.0]},
        {"id": "c1", "content": "first", "embedding": [1.0, 0.0], "metadata": {"document_id": "d"}},
    ])

    candidates = await store.fetch_all_chunks_with_embeddings()

    assert written == 2
    assert [c.id for c in candidates] == ["c2", "c1"]
    assert candidates[1].embedding == [1.0, 0.0]


@pytest.mark.asyncio
async def test_write_chunks_upserts_by_id(store):
    await store.write_chunks([ChunkRecord(id="c1", content="old", embedding=[1.0, 0.0])])
    await store.write_chunks([ChunkRecord(id="c1", content="new", embedding=[0.0, 1.0])])

    candidates = await store.fetch_all_chunks_with_embeddings()

    assert len(candidates) == 1
    assert candidates[0].content == "new"


@pytest.mark.asyncio
async def test_malformed_batch_writes_nothing(store):
    with pytest.raises(InvalidInputError) as exc_info:
        await store.write_chunks([
            {"id": "ok", "content": "fine", "embedding": [1.0]},
            {"id": "bad", "content": "no embedding"},
        ])

    assert exc_info.value.message == "Each chunk must have id, content, and embedding"
    assert await store.fetch_all_chunks_with_embeddings() == []


@pytest.mark.asyncio
async def test_write_chunks_requires_a_list(store):
    with pytest.raises(InvalidInputError):
        await store.write_chunks("not a list")

    assert await store.write_chunks([]) == 0


@pytest.mark.asyncio
async def test_native_search_on_empty_store(store):
    assert await store.native_vector_search([1.0, 0.0], 5) == []


@pytest.mark.asyncio
async def test_native_search_ranks_by_cosine(store):
    await store.write_chunks([
        ChunkRecord(id="a", content="alpha", embedding=[1.0, 0.0]),
        ChunkRecord(id="b", content="beta", embedding=[0.0, 1.0]),
        ChunkRecord(id="c", content="gamma", embedding=[3.0, 3.0]),
    ])

    results = await store.native_vector_search([2.0, 0.0], 2)

    assert [r.id for r in results] == ["a", "c"]
    assert results[0].similarity == pytest.approx(1.0, abs=1e-6)
    assert results[1].similarity == pytest.approx(0.7071, abs=1e-4)


@pytest.mark.asyncio
async def test_native_search_sees_new_writes(store):
    await store.write_chunks([ChunkRecord(id="a", content="alpha", embedding=[1.0, 0.0])])
    await store.native_vector_search([1.0, 0.0], 1)

    await store.write_chunks([ChunkRecord(id="b", content="beta", embedding=[0.0, 1.0])])
    results = await store.native_vector_search([0.0, 1.0], 1)

    assert results[0].id == "b"


@pytest.mark.asyncio
async def test_native_search_dimension_mismatch_raises(store):
    await store.write_chunks([ChunkRecord(id="a", content="alpha", embedding=[1.0, 0.0])])

    with pytest.raises(InvalidInputError):
        await store.native_vector_search([1.0, 0.0, 0.0], 1)


@pytest.mark.asyncio
async def test_store_entities_and_relationships(store):
    nodes = [
        GraphEntity(id="python", name="Python", type="programming language"),
        GraphEntity(id="guido", name="Guido", type="person"),
    ]
    relationships = [
        GraphRelationship(id="r1", source="guido", target="python", type="created by"),
        GraphRelationship(id="r2", source="guido", target="missing", type="knows"),
    ]

    counts = await store.store_entities_and_relationships(nodes, relationships)

    assert counts == {"nodes": 2, "relationships": 1, "relationships_skipped": 1}

    entity = await store.get_entity("python")
    assert entity["label"] == "ProgrammingLanguage"
    assert entity["name"] == "Python"

    rels = await store.get_relationships("guido")
    assert [r["id"] for r in rels] == ["r1"]
    assert rels[0]["type"] == "CREATED_BY"


@pytest.mark.asyncio
async def test_entities_are_upserted(store):
    await store.store_entities_and_relationships(
        [GraphEntity(id="e1", name="Old", description="first")], []
    )
    await store.store_entities_and_relationships(
        [GraphEntity(id="e1", name="New", description="second")], []
    )

    entity = await store.get_entity("e1")

    assert entity["name"] == "New"
    assert entity["description"] == "second"
    assert store.get_stats()["entities"] == 1


@pytest.mark.asyncio
async def test_stats_and_clear(store):
    await store.write_document("doc-1", "notes.md", "md", {"size": 10})
    await store.write_chunks([ChunkRecord(id="c1", content="text", embedding=[1.0])])

    stats = store.get_stats()
    assert stats["documents"] == 1
    assert stats["chunks"] == 1

    await store.clear()

    stats = store.get_stats()
    assert stats["documents"] == 0
    assert stats["chunks"] == 0
    assert await store.native_vector_search([1.0], 1) == []
