from fastapi import APIRouter, UploadFile, File, Form, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from notebook_rag.core.database import get_db
from notebook_rag.core.dependencies import get_embedding_client, get_generation_client, get_storage
from notebook_rag.core.exceptions import ExtractionError, NotFoundError, app_error_to_http
from notebook_rag.models import sql_models as models
from notebook_rag import schemas
from notebook_rag.services import file_service, notebook_service
from notebook_rag.services.ingestion import DocumentIndexer

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_indexer(
    db: Session = Depends(get_db),
    embedding_client=Depends(get_embedding_client),
    generation_client=Depends(get_generation_client),
) -> DocumentIndexer:
    return DocumentIndexer(db, embedding_client, generation_client)


@router.post("/notebooks/{notebook_id}/documents", response_model=List[schemas.Document])
async def upload_documents(
    notebook_id: int,
    files: List[UploadFile] = File(...),
    extracted_text: Optional[str] = Form(None), # client-side extraction, single file only
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
    indexer: DocumentIndexer = Depends(_get_indexer),
):
    """
    Stores each file, extracts its text and indexes it. Files are processed
    one after another; a failing file is marked failed and the rest continue.
    """
    try:
        notebook_service.get_notebook(db, notebook_id)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)

    document_ids = []
    for upload in files:
        data = await upload.read()
        await upload.close()

        storage_path = file_service.build_storage_path(notebook_id, upload.filename)
        storage.put(storage_path, data)

        document = models.Document(
            notebook_id=notebook_id,
            filename=upload.filename,
            storage_path=storage_path,
            file_size=len(data),
            media_type=upload.content_type or "application/octet-stream",
            status=models.STATUS_UNPROCESSED,
        )
        db.add(document)
        db.commit()
        db.refresh(document)
        document_ids.append(document.id)

        if extracted_text and len(files) == 1:
            text = extracted_text
        else:
            try:
                text = file_service.extract_text_from_file(storage.full_path(storage_path))
            except ExtractionError as e:
                indexer.mark_failed(document.id, e.message)
                continue

        await indexer.index_document(document.id, text)

    return db.query(models.Document).filter(models.Document.id.in_(document_ids)).order_by(models.Document.id).all()


@router.post("/documents/{document_id}/reprocess", response_model=schemas.Document)
async def reprocess_document(
    document_id: int,
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
    indexer: DocumentIndexer = Depends(_get_indexer),
):
    document = db.query(models.Document).filter(models.Document.id == document_id).first()
    if not document:
        raise app_error_to_http(NotFoundError("Document", document_id), status_code=404)

    text = document.extracted_text
    if not text and document.storage_path:
        try:
            text = file_service.extract_text_from_file(storage.full_path(document.storage_path))
        except ExtractionError as e:
            indexer.mark_failed(document_id, e.message)
            db.refresh(document)
            return document

    await indexer.index_document(document_id, text or "")
    db.refresh(document)
    return document


@router.delete("/documents/{document_id}")
def delete_document(document_id: int, db: Session = Depends(get_db), storage=Depends(get_storage)):
    try:
        notebook_service.delete_document(db, storage, document_id)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)
    return {"ok": True}
