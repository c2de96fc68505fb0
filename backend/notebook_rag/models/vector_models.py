from sqlalchemy import Column, Integer, String, UnicodeText, DateTime, ForeignKey, JSON, UniqueConstraint
from pgvector.sqlalchemy import Vector
from datetime import datetime
from notebook_rag.core.config import settings
from notebook_rag.core.database import Base

CHUNK_EMBEDDED = "embedded"
CHUNK_FAILED = "failed"


class DocumentChunk(Base):
    __tablename__ = 'document_chunks'
    __table_args__ = (
        UniqueConstraint('document_id', 'chunk_index', name='uq_chunk_document_index'),
    )

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey('documents.id', ondelete='CASCADE'), index=True)
    chunk_index = Column(Integer, nullable=False)
    text = Column(UnicodeText)
    char_length = Column(Integer, default=0)
    char_start = Column(Integer, default=0) # offset into the extracted text
    embedding_status = Column(String(20), default=CHUNK_EMBEDDED)
    error_message = Column(UnicodeText, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class EmbeddingRecord(Base):
    __tablename__ = 'embeddings'

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey('documents.id', ondelete='CASCADE'), index=True)
    chunk_id = Column(Integer, ForeignKey('document_chunks.id', ondelete='CASCADE'), unique=True)
    chunk_index = Column(Integer, default=0)
    chunk_text = Column(UnicodeText)
    embedding = Column(Vector(settings.EMBEDDING_DIM))

    # Materialized copy of Document.summary / Document.tags
    summary = Column(UnicodeText, nullable=True)
    tags = Column(JSON, nullable=True)
