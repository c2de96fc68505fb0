"""
End-to-end tests for the HTTP routers with FastAPI TestClient.

Database, capability clients and storage are replaced through
app.dependency_overrides; the app lifespan is not run.
"""

import pytest
from fastapi.testclient import TestClient

from notebook_rag.core import dependencies
from notebook_rag.core.database import get_db
from notebook_rag.main import app
from notebook_rag.services.file_service import LocalFileStorage
from notebook_rag.services.prompts import NO_DOCUMENTS_MESSAGE

from conftest import FakeEmbeddingClient, FakeGenerationClient


@pytest.fixture
def generation_client():
    return FakeGenerationClient([
        '{"summary": "Notes about chloroplasts.", "tags": ["Plants"]}',
        "Chloroplasts [Source 1].",
    ])


@pytest.fixture
def client(db, tmp_path, generation_client):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_embedding_client] = lambda: FakeEmbeddingClient()
    app.dependency_overrides[dependencies.get_generation_client] = lambda: generation_client
    app.dependency_overrides[dependencies.get_storage] = lambda: LocalFileStorage(str(tmp_path))
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_notebook(client, name="Plants") -> int:
    response = client.post("/api/notebooks/", json={"name": name, "user_id": "u1"})
    assert response.status_code == 200
    return response.json()["id"]


def upload(client, notebook_id, filename="notes.txt", content=b"Chloroplasts perform photosynthesis.\n\nThey hold chlorophyll."):
    return client.post(
        f"/api/notebooks/{notebook_id}/documents",
        files=[("files", (filename, content, "text/plain"))],
    )


def test_health(client):
    assert client.get("/").status_code == 200


def test_notebook_crud(client):
    notebook_id = create_notebook(client)

    assert client.get(f"/api/notebooks/{notebook_id}").json()["name"] == "Plants"
    assert [n["id"] for n in client.get("/api/notebooks/", params={"user_id": "u1"}).json()] == [notebook_id]
    assert client.get("/api/notebooks/999").status_code == 404


def test_upload_indexes_document(client):
    notebook_id = create_notebook(client)

    response = upload(client, notebook_id)

    assert response.status_code == 200
    document = response.json()[0]
    assert document["status"] == "processed"
    assert document["summary"] == "Notes about chloroplasts."
    assert document["tags"] == ["plants"]

    summary = client.get(f"/api/notebooks/{notebook_id}/summary").json()
    assert summary["source_count"] == 1
    assert summary["tags"] == ["plants"]


def test_upload_unsupported_type_marks_failed(client):
    notebook_id = create_notebook(client)

    document = upload(client, notebook_id, filename="archive.zip", content=b"PK\x03\x04").json()[0]

    assert document["status"] == "failed"
    assert "Unsupported file type" in document["error_message"]


def test_chat_without_documents(client, generation_client):
    notebook_id = create_notebook(client)

    body = client.post("/api/chats/message", json={"message": "What is X?", "notebook_id": notebook_id}).json()

    assert body["response"] == NO_DOCUMENTS_MESSAGE
    assert body["citations"] == []
    assert generation_client.calls == []


def test_chat_with_citations_and_transcript(client):
    notebook_id = create_notebook(client)
    upload(client, notebook_id)

    body = client.post("/api/chats/message", json={"message": "Where?", "notebook_id": notebook_id}).json()

    assert body["success"]
    assert body["response"] == "Chloroplasts [Source 1]."
    assert body["citations"][0]["filename"] == "notes.txt"

    messages = client.get(f"/api/chats/{notebook_id}/messages").json()
    assert [m["role"] for m in messages] == ["user", "assistant"]


def test_chat_unknown_notebook(client):
    response = client.post("/api/chats/message", json={"message": "hi", "notebook_id": 4242})

    assert response.status_code == 404
    assert response.json()["detail"]["type"] == "NotFoundError"


def test_search_context(client):
    notebook_id = create_notebook(client)
    upload(client, notebook_id)

    hits = client.post("/api/chats/search_context", json={"query": "chlorophyll", "notebook_id": notebook_id}).json()

    assert len(hits) == 1
    assert hits[0]["score"] == pytest.approx(1.0)


def test_studio_missing_notebook(client):
    assert client.post("/api/studio/mindmap", json={"notebook_id": 777}).status_code == 404


def test_delete_notebook(client, tmp_path):
    notebook_id = create_notebook(client)
    upload(client, notebook_id)

    assert client.delete(f"/api/notebooks/{notebook_id}").json() == {"ok": True}
    assert client.get(f"/api/notebooks/{notebook_id}").status_code == 404
    assert not any(p.is_file() for p in tmp_path.rglob("*"))


def test_reprocess_and_delete_document(client):
    notebook_id = create_notebook(client)
    document_id = upload(client, notebook_id).json()[0]["id"]

    reprocessed = client.post(f"/api/documents/{document_id}/reprocess").json()
    assert reprocessed["status"] == "processed"
    assert reprocessed["chunk_count"] == 1

    assert client.delete(f"/api/documents/{document_id}").status_code == 200
    assert client.get(f"/api/notebooks/{notebook_id}/documents").json() == []
