"""Tests for the document ingestion pipeline."""
import pytest

from chatrag.errors import ExternalDependencyError, InvalidInputError


@pytest.mark.asyncio
async def test_process_document_stores_chunks_and_graph(services, fake_llm):
    result = await services.ingest.process_document("python.md")

    assert result.document.type == "md"
    # A short document gives one full window plus its overlap tail
    assert [c.id for c in result.chunks] == [
        f"{result.document.id}-chunk-0",
        f"{result.document.id}-chunk-1",
    ]
    assert result.chunks[1].content == result.document.content[-20:]
    chunk = result.chunks[0]
    assert chunk.content == result.document.content
    assert chunk.metadata == {"source": "python.md", "document_id": result.document.id}
    assert chunk.embedding == [1.0, 0.0, 0.0]

    assert {n.id for n in result.graph.nodes} == {"python", "guido"}
    assert result.graph_counts == {"nodes": 2, "relationships": 1, "relationships_skipped": 0}

    stats = services.store.get_stats()
    assert stats["documents"] == 1
    assert stats["chunks"] == 2
    assert stats["entities"] == 2
    assert stats["relationships"] == 1

    assert services.ingest.stats["documents_processed"] == 1
    assert services.ingest.stats["chunks_created"] == 2


@pytest.mark.asyncio
async def test_process_document_without_graph_extraction(services, fake_llm):
    result = await services.ingest.process_document("graphs.txt", extract_graph=False)

    assert fake_llm.chat_calls == []
    assert result.graph.nodes == []
    assert services.store.get_stats()["chunks"] == 2


@pytest.mark.asyncio
async def test_long_document_produces_overlapping_chunks(services, documents_dir):
    (documents_dir / "long.txt").write_text("word " * 100, encoding="utf-8")

    result = await services.ingest.process_document("long.txt", extract_graph=False)

    assert len(result.chunks) > 1
    assert [c.id.rsplit("-", 1)[1] for c in result.chunks] == [
        str(i) for i in range(len(result.chunks))
    ]


@pytest.mark.asyncio
async def test_process_document_failure_is_counted_and_raised(services, fake_llm):
    fake_llm.fail_embeddings = ExternalDependencyError("embedding down", dependency="llm")

    with pytest.raises(ExternalDependencyError):
        await services.ingest.process_document("graphs.txt")

    assert services.ingest.stats["documents_failed"] == 1
    assert services.store.get_stats()["chunks"] == 0


@pytest.mark.asyncio
async def test_embed_chunks_keeps_order_and_metadata(services):
    records = await services.ingest.embed_chunks([
        {"id": "c1", "content": "About graphs", "metadata": {"page": 1}},
        {"id": "c2", "content": "About Python"},
    ])

    assert [r.id for r in records] == ["c1", "c2"]
    assert records[0].embedding == [0.0, 1.0, 0.0]
    assert records[0].metadata == {"page": 1}
    assert records[1].metadata == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("chunks", [[], None, [{"id": "c1"}], [{"content": "no id"}]])
async def test_embed_chunks_rejects_bad_input(services, chunks):
    with pytest.raises(InvalidInputError):
        await services.ingest.embed_chunks(chunks)


@pytest.mark.asyncio
async def test_store_graph_updates_stats(services):
    result = await services.ingest.extract_graph([{"id": "c1", "content": "Python and Guido"}])

    counts = await services.ingest.store_graph(result.nodes, result.relationships)

    assert counts["nodes"] == 2
    assert services.ingest.stats["relationships_stored"] == 1


@pytest.mark.asyncio
async def test_embed_chunks_rejects_short_embedding_batch(services, fake_llm):
    async def one_vector(texts):
        return [[1.0, 0.0, 0.0]]

    fake_llm.embed_batch = one_vector

    with pytest.raises(ExternalDependencyError) as exc_info:
        await services.ingest.embed_chunks([
            {"id": "c1", "content": "first"},
            {"id": "c2", "content": "second"},
        ])

    assert exc_info.value.details["requested"] == 2
    assert exc_info.value.details["returned"] == 1
