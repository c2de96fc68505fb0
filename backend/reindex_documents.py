import sys
import os
import asyncio
import logging

# Add backend directory to sys.path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from notebook_rag.core.database import SessionLocal, init_db
from notebook_rag.core.dependencies import get_embedding_client, get_generation_client, get_storage
from notebook_rag.core.exceptions import ExtractionError
from notebook_rag.models import sql_models as models
from notebook_rag.services import file_service
from notebook_rag.services.ingestion import DocumentIndexer

# Configure Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def reindex_all(notebook_id: int = None):
    """
    Re-runs indexing for every stored document. Saved extracted text is reused;
    documents without it are extracted again from their stored file.
    """
    init_db()
    db = SessionLocal()
    storage = get_storage()
    indexer = DocumentIndexer(db, get_embedding_client(), get_generation_client())
    try:
        query = db.query(models.Document)
        if notebook_id is not None:
            query = query.filter(models.Document.notebook_id == notebook_id)
        documents = query.order_by(models.Document.id).all()
        logger.info(f"Found {len(documents)} documents to re-index.")

        for doc in documents:
            logger.info(f"Re-indexing: {doc.filename} (ID: {doc.id})")
            text = doc.extracted_text
            if not text:
                if not doc.storage_path:
                    logger.warning(f"No text and no stored file for {doc.id}. Skipping.")
                    continue
                try:
                    text = file_service.extract_text_from_file(storage.full_path(doc.storage_path))
                except ExtractionError as e:
                    indexer.mark_failed(doc.id, e.message)
                    continue

            report = await indexer.index_document(doc.id, text)
            logger.info(f"{doc.filename}: {report.status}, {report.embedded_count}/{report.chunk_count} chunks")
    finally:
        db.close()


if __name__ == "__main__":
    asyncio.run(reindex_all(int(sys.argv[1]) if len(sys.argv) > 1 else None))
