"""
Tests for notebook aggregation and ordered deletion.
"""

from datetime import datetime

import pytest

from notebook_rag.core.exceptions import NotFoundError
from notebook_rag.models import sql_models as models
from notebook_rag.models.vector_models import DocumentChunk, EmbeddingRecord
from notebook_rag.services import notebook_service
from notebook_rag.services.file_service import LocalFileStorage, build_storage_path
from notebook_rag.services.vector_index import VectorIndex

from conftest import vec


class RecordingStorage:
    """Records the order of blob deletion relative to the vector rows."""

    def __init__(self, db, document_ids):
        self.db = db
        self.document_ids = document_ids
        self.deleted = []
        self.embeddings_left_at_delete = None

    def delete(self, paths):
        self.embeddings_left_at_delete = self.db.query(EmbeddingRecord).filter(
            EmbeddingRecord.document_id.in_(self.document_ids)
        ).count()
        self.deleted.extend(paths)
        return len(paths)


@pytest.fixture
def populated_notebook(db, notebook, make_document):
    """5 documents with 8 chunks each and a short transcript."""
    index = VectorIndex(db)
    documents = []
    for d in range(5):
        doc = make_document(f"doc{d}.txt", storage_path=f"{notebook.id}/2024-01-01/{d}_doc{d}.txt")
        for i in range(8):
            chunk = DocumentChunk(document_id=doc.id, chunk_index=i, text=f"doc {d} chunk {i}")
            db.add(chunk)
            db.flush()
            index.upsert(doc.id, chunk.id, vec(1.0, i), chunk.text, chunk_index=i)
        documents.append(doc)
    db.add(models.ChatMessage(notebook_id=notebook.id, role="user", content="hello"))
    db.add(models.ChatMessage(notebook_id=notebook.id, role="assistant", content="hi"))
    db.commit()
    return documents


def test_delete_notebook_removes_every_row(db, notebook, populated_notebook):
    document_ids = [d.id for d in populated_notebook]
    notebook_id = notebook.id
    assert db.query(DocumentChunk).filter(DocumentChunk.document_id.in_(document_ids)).count() == 40
    storage = RecordingStorage(db, document_ids)

    notebook_service.delete_notebook(db, storage, notebook_id)

    assert db.query(EmbeddingRecord).filter(EmbeddingRecord.document_id.in_(document_ids)).count() == 0
    assert db.query(DocumentChunk).filter(DocumentChunk.document_id.in_(document_ids)).count() == 0
    assert db.query(models.Document).filter(models.Document.id.in_(document_ids)).count() == 0
    assert db.query(models.ChatMessage).filter(models.ChatMessage.notebook_id == notebook_id).count() == 0
    assert db.query(models.Notebook).filter(models.Notebook.id == notebook_id).count() == 0


def test_vectors_are_gone_before_blobs(db, notebook, populated_notebook):
    storage = RecordingStorage(db, [d.id for d in populated_notebook])

    notebook_service.delete_notebook(db, storage, notebook.id)

    assert storage.embeddings_left_at_delete == 0
    assert len(storage.deleted) == 5


def test_delete_document_leaves_siblings(db, notebook, populated_notebook):
    target, sibling = populated_notebook[0], populated_notebook[1]
    storage = RecordingStorage(db, [target.id])

    notebook_service.delete_document(db, storage, target.id)

    assert db.query(EmbeddingRecord).filter(EmbeddingRecord.document_id == target.id).count() == 0
    assert db.query(EmbeddingRecord).filter(EmbeddingRecord.document_id == sibling.id).count() == 8
    assert storage.deleted == [f"{notebook.id}/2024-01-01/0_doc0.txt"]


def test_delete_missing_notebook(db):
    with pytest.raises(NotFoundError):
        notebook_service.delete_notebook(db, RecordingStorage(db, []), 12345)


def test_notebook_summary_dedups_and_caps_tags(db, notebook, make_document):
    make_document("a.pdf", summary="About A.", tags=["one", "two", "three", "four", "five"])
    make_document("b.pdf", summary=None, tags=["two", "six", "seven", "eight", "nine", "ten"])

    summary = notebook_service.build_notebook_summary(db, notebook.id)

    assert summary.title == "Biology 101"
    assert summary.source_count == 2
    assert [s.doc_name for s in summary.summaries] == ["a.pdf"]
    assert summary.tags == ["one", "two", "three", "four", "five", "six", "seven", "eight"]


def test_local_file_storage_round_trip(tmp_path):
    storage = LocalFileStorage(str(tmp_path))
    path = build_storage_path(3, "../../etc/My Notes?.pdf", now=datetime(2024, 5, 1, 12, 0, 0))

    storage.put(path, b"content")

    assert path.startswith("3/2024-05-01/")
    assert path.endswith("_My Notes_.pdf")
    assert storage.get(path) == b"content"
    assert storage.delete([path, "3/missing.txt"]) == 1


def test_local_file_storage_rejects_escaping_paths(tmp_path):
    with pytest.raises(ValueError):
        LocalFileStorage(str(tmp_path)).put("../outside.txt", b"x")
