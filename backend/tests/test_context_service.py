"""
Tests for context assembly and citations.
"""

import pytest

from notebook_rag.models.vector_models import DocumentChunk
from notebook_rag.services.context_service import ContextAssembler, make_excerpt
from notebook_rag.services.vector_index import VectorIndex

from conftest import FakeEmbeddingClient, vec

QUERY = "What is X?"


def seed_chunk(db, document_id: int, chunk_index: int, text: str, vector):
    chunk = DocumentChunk(document_id=document_id, chunk_index=chunk_index, text=text)
    db.add(chunk)
    db.flush()
    VectorIndex(db).upsert(document_id, chunk.id, vector, text, chunk_index=chunk_index)
    db.commit()
    return chunk


@pytest.fixture
def three_documents(db, make_document):
    """Three documents where only two chunks are similar enough to the query."""
    docs = [make_document("alpha.pdf"), make_document("beta.md"), make_document("gamma.txt")]
    seed_chunk(db, docs[0].id, 0, "X is a variable used in algebra. " * 10, vec(0.8, 0.6))
    seed_chunk(db, docs[1].id, 0, "X marks the spot.", vec(1.0, 0.0))
    seed_chunk(db, docs[1].id, 1, "Unrelated gardening advice.", vec(0.0, 1.0))
    seed_chunk(db, docs[2].id, 0, "Cooking pasta takes ten minutes.", vec(0.1, 1.0))
    return docs


def query_client():
    return FakeEmbeddingClient(vector_for=lambda text: vec(1.0, 0.0))


@pytest.mark.asyncio
async def test_only_chunks_above_threshold_become_sources(db, three_documents):
    assembler = ContextAssembler(db, query_client(), match_threshold=0.3, match_count=8, excerpt_chars=150)

    context = await assembler.build_context(QUERY, [d.id for d in three_documents])

    assert context.prompt_context.count("[Source ") == 2
    assert context.prompt_context.startswith("[Source 1: beta.md]\nX marks the spot.")
    assert "[Source 2: alpha.pdf]" in context.prompt_context
    assert len(context.citations) == 2
    assert [c.filename for c in context.citations] == ["beta.md", "alpha.pdf"]
    scores = [r.score for r in context.results]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_excerpt_is_verbatim_prefix(db, three_documents):
    assembler = ContextAssembler(db, query_client(), excerpt_chars=40)

    context = await assembler.build_context(QUERY, [d.id for d in three_documents])

    by_chunk = {r.chunk_id: r.text for r in context.results}
    for citation in context.citations:
        text = by_chunk[citation.chunk_id]
        excerpt = citation.excerpt[:-3] if citation.excerpt.endswith("...") else citation.excerpt
        assert text.startswith(excerpt)
        assert len(excerpt) <= 40
    assert context.citations[1].excerpt.endswith("...")
    assert context.citations[0].excerpt == "X marks the spot."


@pytest.mark.asyncio
async def test_no_documents_gives_empty_context(db):
    client = query_client()
    context = await ContextAssembler(db, client).build_context(QUERY, [])

    assert context.prompt_context == ""
    assert context.citations == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_query_embedding_failure_degrades_to_empty_context(db, three_documents):
    assembler = ContextAssembler(db, FakeEmbeddingClient(always_fail=True))

    context = await assembler.build_context(QUERY, [d.id for d in three_documents])

    assert context.prompt_context == ""
    assert context.sources_used == 0


def test_make_excerpt():
    assert make_excerpt("short", 150) == "short"
    assert make_excerpt("abcdef", 3) == "abc..."


@pytest.mark.asyncio
async def test_zero_match_count_is_respected(db, three_documents):
    client = query_client()
    assembler = ContextAssembler(db, client, match_threshold=0.0, match_count=0)

    context = await assembler.build_context(QUERY, [d.id for d in three_documents])

    assert context.citations == []
    assert context.sources_used == 0
