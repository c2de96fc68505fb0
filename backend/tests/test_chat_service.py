"""
Tests for the chat orchestrator.
"""

import httpx
import pytest

from notebook_rag.core.exceptions import GenerationError, NotFoundError
from notebook_rag.models import sql_models as models
from notebook_rag.models.vector_models import DocumentChunk
from notebook_rag.services.chat_service import ChatOrchestrator, bound_history, build_system_prompt
from notebook_rag.services.context_service import ContextAssembler
from notebook_rag.services.ollama_service import OllamaGenerationClient
from notebook_rag.services.prompts import NO_DOCUMENTS_MESSAGE
from notebook_rag.services.vector_index import VectorIndex

from conftest import FakeEmbeddingClient, FakeGenerationClient, vec


def make_orchestrator(db, generation_client, embedding_client=None, history_turns=6):
    assembler = ContextAssembler(db, embedding_client or FakeEmbeddingClient())
    return ChatOrchestrator(db, assembler, generation_client, history_turns=history_turns)


def stored_messages(db, notebook_id):
    return db.query(models.ChatMessage).filter(
        models.ChatMessage.notebook_id == notebook_id
    ).order_by(models.ChatMessage.created_at, models.ChatMessage.id).all()


@pytest.fixture
def indexed_document(db, make_document):
    document = make_document("cells.txt", summary="An introduction to plant cells.", tags=["biology"],
                             status=models.STATUS_PROCESSED)
    chunk = DocumentChunk(document_id=document.id, chunk_index=0, text="Chloroplasts perform photosynthesis.")
    db.add(chunk)
    db.flush()
    VectorIndex(db).upsert(document.id, chunk.id, vec(1.0), chunk.text)
    db.commit()
    return document


@pytest.mark.asyncio
async def test_notebook_without_documents_returns_fixed_message(db, notebook):
    generation_client = FakeGenerationClient("should not be used")

    answer = await make_orchestrator(db, generation_client).answer("What is X?", notebook.id)

    assert answer.success
    assert answer.text == NO_DOCUMENTS_MESSAGE
    assert answer.citations == []
    assert generation_client.calls == []


@pytest.mark.asyncio
async def test_missing_notebook_raises(db):
    with pytest.raises(NotFoundError):
        await make_orchestrator(db, FakeGenerationClient()).answer("hi", 9999)


@pytest.mark.asyncio
async def test_answer_with_citations_is_persisted(db, notebook, indexed_document):
    generation_client = FakeGenerationClient("Chloroplasts do it [Source 1].")

    answer = await make_orchestrator(db, generation_client).answer("Where does photosynthesis happen?", notebook.id)

    assert answer.success
    assert answer.sources_used == 1
    assert answer.citations[0].filename == "cells.txt"

    system = generation_client.calls[0]["system"]
    assert "SAME LANGUAGE" in system
    assert "An introduction to plant cells." in system
    assert "[Source 1: cells.txt]" in system

    messages = stored_messages(db, notebook.id)
    assert [m.role for m in messages] == ["user", "assistant"]
    assert messages[1].citations[0]["chunk_id"] == answer.citations[0].chunk_id


@pytest.mark.asyncio
async def test_nothing_retrieved_still_calls_generation(db, notebook, indexed_document):
    generation_client = FakeGenerationClient("Based on the overview...")
    embedding_client = FakeEmbeddingClient(vector_for=lambda text: vec(0.0, 1.0))

    answer = await make_orchestrator(db, generation_client, embedding_client).answer("Unrelated?", notebook.id)

    assert answer.success
    assert answer.citations == []
    assert "No content retrieved." in generation_client.calls[0]["system"]


@pytest.mark.asyncio
async def test_generation_failure_becomes_visible_assistant_turn(db, notebook, indexed_document):
    generation_client = FakeGenerationClient(error=GenerationError("Ollama Error (500)"))

    answer = await make_orchestrator(db, generation_client).answer("Hello?", notebook.id)

    assert not answer.success
    assert answer.error == "Ollama Error (500)"
    assert len(generation_client.calls) == 1
    messages = stored_messages(db, notebook.id)
    assert messages[-1].role == "assistant"
    assert messages[-1].content == answer.text


@pytest.mark.asyncio
async def test_history_bounded_to_last_turns(db, notebook, indexed_document):
    generation_client = FakeGenerationClient("ok")
    history = [{"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"} for i in range(10)]

    await make_orchestrator(db, generation_client).answer("next", notebook.id, history=history)

    sent = generation_client.calls[0]["history"]
    assert [h["content"] for h in sent] == [f"turn {i}" for i in range(4, 10)]


@pytest.mark.asyncio
async def test_stored_transcript_used_when_no_history_given(db, notebook, indexed_document):
    generation_client = FakeGenerationClient("first answer")
    orchestrator = make_orchestrator(db, generation_client)

    await orchestrator.answer("first question", notebook.id)
    await orchestrator.answer("second question", notebook.id)

    sent = generation_client.calls[1]["history"]
    assert [h["content"] for h in sent] == ["first question", "first answer"]


def test_bound_history_zero_turns():
    assert bound_history([{"role": "user", "content": "a"}], 0) == []


def test_system_prompt_without_summaries_has_no_overview():
    prompt = build_system_prompt([], "")
    assert "DOCUMENT OVERVIEW" not in prompt
    assert prompt.endswith("No content retrieved.")


@pytest.mark.asyncio
async def test_non_json_ollama_reply_becomes_visible_assistant_turn(db, notebook, indexed_document):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>proxy error</html>"))
    generation_client = OllamaGenerationClient(base_url="http://ollama.test", timeout=5, transport=transport)

    answer = await make_orchestrator(db, generation_client).answer("Hello?", notebook.id)

    assert not answer.success
    assert answer.error == "Invalid response from Ollama"
    messages = stored_messages(db, notebook.id)
    assert [m.role for m in messages] == ["user", "assistant"]
    assert messages[-1].content == answer.text
