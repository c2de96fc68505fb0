import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from notebook_rag.core.config import settings
from notebook_rag.core.exceptions import EmbeddingProviderError, GenerationError, NotFoundError
from notebook_rag.models import sql_models as models
from notebook_rag.models.vector_models import DocumentChunk, EmbeddingRecord, CHUNK_EMBEDDED, CHUNK_FAILED
from notebook_rag.services.chunker import chunk_text, TextChunk
from notebook_rag.services.prompts import SUMMARY_PROMPT
from notebook_rag.services.structured_output import parse_structured
from notebook_rag.services.vector_index import VectorIndex

# Configure Logging
logger = logging.getLogger(__name__)

EMBED_ATTEMPTS = 2 # first try + one retry


@dataclass
class ChunkEmbedding:
    chunk: TextChunk
    vector: Optional[List[float]] = None
    error: Optional[str] = None


@dataclass
class IndexingReport:
    document_id: int
    status: str
    chunk_count: int = 0
    embedded_count: int = 0
    failed_chunks: List[int] = field(default_factory=list)
    error: Optional[str] = None


def normalize_tags(raw_tags, limit: int) -> List[str]:
    """Lower-cases, strips and de-duplicates tags, preserving first-seen order."""
    tags = []
    if isinstance(raw_tags, str):
        raw_tags = raw_tags.split(",")
    for tag in raw_tags or []:
        if not isinstance(tag, str):
            continue
        tag = " ".join(tag.split()).lower()
        if tag and tag not in tags:
            tags.append(tag)
        if len(tags) >= limit:
            break
    return tags


class DocumentIndexer:
    """
    Runs one document through chunking, embedding, persistence and
    summarization: unprocessed -> processing -> processed | failed.
    """

    def __init__(self, db: Session, embedding_client, generation_client,
                 max_chunk_chars: int = None, overlap_chars: int = None, concurrency: int = None):
        self.db = db
        self.embedding_client = embedding_client
        self.generation_client = generation_client
        self.vector_index = VectorIndex(db)
        self.max_chunk_chars = settings.CHUNK_MAX_CHARS if max_chunk_chars is None else max_chunk_chars
        self.overlap_chars = settings.CHUNK_OVERLAP_CHARS if overlap_chars is None else overlap_chars
        self.concurrency = settings.EMBEDDING_CONCURRENCY if concurrency is None else concurrency
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    def _get_document(self, document_id: int) -> models.Document:
        document = self.db.query(models.Document).filter(models.Document.id == document_id).first()
        if not document:
            raise NotFoundError("Document", document_id)
        return document

    def mark_failed(self, document_id: int, reason: str) -> IndexingReport:
        document = self._get_document(document_id)
        document.status = models.STATUS_FAILED
        document.error_message = reason
        self.db.commit()
        logger.error(f"Document {document_id} ({document.filename}) failed: {reason}")
        return IndexingReport(document_id=document_id, status=models.STATUS_FAILED, error=reason)

    async def index_document(self, document_id: int, text: str) -> IndexingReport:
        document = self._get_document(document_id)
        logger.info(f"Processing document {document_id}: {document.filename}")

        document.status = models.STATUS_PROCESSING
        document.error_message = None
        document.extracted_text = text
        self.db.commit()

        # 1. Chunking
        chunks = chunk_text(text or "", self.max_chunk_chars, self.overlap_chars)
        logger.info(f"Generated {len(chunks)} chunks.")
        if not chunks:
            return self.mark_failed(document_id, "No text could be extracted from the document.")

        # 2. Embedding (bounded concurrency, failures stay local to their chunk)
        embeddings = await self._embed_chunks(chunks)
        embedded = [e for e in embeddings if e.vector is not None]
        failed = [e for e in embeddings if e.vector is None]

        # 3. Storage (replaces any previous run)
        try:
            self._store_chunks(document_id, embeddings)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Indexing failed: {e}")
            return self.mark_failed(document_id, f"Could not store chunks: {e}")

        document = self._get_document(document_id)
        document.chunk_count = len(chunks)
        document.embedded_chunk_count = len(embedded)

        if not embedded:
            document.summary = None
            document.tags = []
            report = self.mark_failed(document_id, "Embedding failed for every chunk.")
            report.chunk_count = len(chunks)
            report.failed_chunks = [e.chunk.index for e in failed]
            return report

        # 4. Summary and tags, keyed by document id
        summary, tags = await self._summarize(text)
        self.store_summary(document_id, summary, tags)

        document.status = models.STATUS_PROCESSED
        self.db.commit()
        logger.info(f"Indexed {len(embedded)}/{len(chunks)} chunks for document {document_id}.")

        return IndexingReport(
            document_id=document_id,
            status=models.STATUS_PROCESSED,
            chunk_count=len(chunks),
            embedded_count=len(embedded),
            failed_chunks=[e.chunk.index for e in failed],
        )

    async def _embed_chunks(self, chunks: List[TextChunk]) -> List[ChunkEmbedding]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def embed_one(chunk: TextChunk) -> ChunkEmbedding:
            async with semaphore:
                last_error = None
                for attempt in range(1, EMBED_ATTEMPTS + 1):
                    try:
                        vector = await self.embedding_client.embed(chunk.text)
                        return ChunkEmbedding(chunk=chunk, vector=vector)
                    except EmbeddingProviderError as e:
                        last_error = e
                        logger.warning(f"Embedding chunk {chunk.index} failed (attempt {attempt}/{EMBED_ATTEMPTS}): {e.message}")
                    except Exception as e:
                        # Untyped failures are not retried
                        logger.exception(f"Embedding chunk {chunk.index} failed unexpectedly")
                        return ChunkEmbedding(chunk=chunk, error=f"Unexpected embedding error: {e}")
                return ChunkEmbedding(chunk=chunk, error=last_error.message)

        return list(await asyncio.gather(*(embed_one(chunk) for chunk in chunks)))

    def _store_chunks(self, document_id: int, embeddings: List[ChunkEmbedding]):
        self.vector_index.delete_by_document_ids([document_id], commit=False)

        rows = []
        for item in embeddings:
            row = DocumentChunk(
                document_id=document_id,
                chunk_index=item.chunk.index,
                text=item.chunk.text,
                char_length=item.chunk.char_length,
                char_start=item.chunk.start,
                embedding_status=CHUNK_EMBEDDED if item.vector is not None else CHUNK_FAILED,
                error_message=item.error,
            )
            self.db.add(row)
            rows.append((row, item))
        self.db.flush()

        for row, item in rows:
            if item.vector is not None:
                self.vector_index.upsert(document_id, row.id, item.vector, row.text, chunk_index=row.chunk_index)
        self.db.commit()

    async def _summarize(self, text: str) -> Tuple[Optional[str], List[str]]:
        head = text[:settings.SUMMARY_INPUT_CHARS]
        prompt = SUMMARY_PROMPT.format(max_tags=settings.MAX_TAGS_PER_DOCUMENT, content=head)
        try:
            response = await self.generation_client.generate(prompt, json_mode=True)
        except GenerationError as e:
            logger.warning(f"Summary generation failed: {e.message}")
            return None, []

        outcome = parse_structured(response, expect=dict)
        if not outcome.ok:
            # Keep the prose answer as summary rather than nothing
            return response.strip()[:2000] or None, []

        summary = outcome.value.get("summary")
        summary = summary.strip() if isinstance(summary, str) and summary.strip() else None
        return summary, normalize_tags(outcome.value.get("tags"), settings.MAX_TAGS_PER_DOCUMENT)

    def store_summary(self, document_id: int, summary: Optional[str], tags: List[str]):
        """
        Persists summary/tags on the document and refreshes the copy kept on
        its embedding rows.
        """
        document = self._get_document(document_id)
        document.summary = summary
        document.tags = list(tags)
        self.db.query(EmbeddingRecord).filter(EmbeddingRecord.document_id == document_id).update(
            {"summary": summary, "tags": list(tags)}, synchronize_session=False
        )
        self.db.commit()
