"""
Notebook-level aggregation (summary view, tag set) and ordered deletion.

Deletion always removes vector rows first, then stored blobs, then the
relational rows, so an interrupted delete never leaves embeddings pointing
at a document that no longer exists.
"""
import logging
from typing import Iterable, List

from sqlalchemy.orm import Session

from notebook_rag.core.config import settings
from notebook_rag.core.exceptions import NotFoundError
from notebook_rag.models import sql_models as models
from notebook_rag.schemas import DocumentSummary, NotebookSummary
from notebook_rag.services.vector_index import VectorIndex

logger = logging.getLogger(__name__)


def get_notebook(db: Session, notebook_id: int) -> models.Notebook:
    notebook = db.query(models.Notebook).filter(models.Notebook.id == notebook_id).first()
    if not notebook:
        raise NotFoundError("Notebook", notebook_id)
    return notebook


def get_documents(db: Session, notebook_id: int) -> List[models.Document]:
    return db.query(models.Document).filter(
        models.Document.notebook_id == notebook_id
    ).order_by(models.Document.created_at, models.Document.id).all()


def collect_tags(documents: Iterable[models.Document], limit: int) -> List[str]:
    tags = []
    for doc in documents:
        for tag in doc.tags or []:
            if tag not in tags:
                tags.append(tag)
            if len(tags) >= limit:
                return tags
    return tags


def build_notebook_summary(db: Session, notebook_id: int) -> NotebookSummary:
    notebook = get_notebook(db, notebook_id)
    documents = get_documents(db, notebook_id)
    return NotebookSummary(
        title=notebook.name,
        summaries=[DocumentSummary(doc_name=doc.filename, summary=doc.summary) for doc in documents if doc.summary],
        tags=collect_tags(documents, settings.NOTEBOOK_SUMMARY_MAX_TAGS),
        source_count=len(documents),
    )


def _remove_blobs(storage, documents: List[models.Document]):
    paths = [doc.storage_path for doc in documents if doc.storage_path]
    if not paths:
        return
    try:
        storage.delete(paths)
    except OSError as e:
        # Rows still go; an orphaned blob is harmless, an orphaned vector is not
        logger.error(f"Could not remove stored files {paths}: {e}")


def delete_document(db: Session, storage, document_id: int):
    document = db.query(models.Document).filter(models.Document.id == document_id).first()
    if not document:
        raise NotFoundError("Document", document_id)

    VectorIndex(db).delete_by_document_ids([document_id])
    _remove_blobs(storage, [document])
    db.delete(document)
    db.commit()
    logger.info(f"Deleted document {document_id}")


def delete_notebook(db: Session, storage, notebook_id: int):
    notebook = get_notebook(db, notebook_id)
    documents = get_documents(db, notebook_id)
    document_ids = [doc.id for doc in documents]

    # 1. Vectors and chunks
    VectorIndex(db).delete_by_document_ids(document_ids)
    # 2. Stored blobs
    _remove_blobs(storage, documents)
    # 3. Relational rows
    try:
        if document_ids:
            db.query(models.Document).filter(models.Document.id.in_(document_ids)).delete(synchronize_session="fetch")
        db.query(models.ChatMessage).filter(models.ChatMessage.notebook_id == notebook_id).delete(synchronize_session="fetch")
        db.delete(notebook)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted notebook {notebook_id} with {len(document_ids)} documents")
