from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, BigInteger, Unicode, UnicodeText, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from notebook_rag.core.database import Base

# Document processing states
STATUS_UNPROCESSED = "unprocessed"
STATUS_PROCESSING = "processing"
STATUS_PROCESSED = "processed"
STATUS_FAILED = "failed"


class Notebook(Base):
    __tablename__ = 'notebooks'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Unicode(255), default='Untitled notebook')
    user_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    documents = relationship("Document", back_populates="notebook", order_by="Document.created_at.desc()")
    messages = relationship("ChatMessage", back_populates="notebook", order_by="ChatMessage.created_at")


class Document(Base):
    __tablename__ = 'documents'

    id = Column(Integer, primary_key=True, index=True)
    notebook_id = Column(Integer, ForeignKey('notebooks.id', ondelete='CASCADE'), index=True)

    filename = Column(Unicode(255))
    storage_path = Column(Unicode(500), nullable=True)
    file_size = Column(BigInteger, default=0)
    media_type = Column(Unicode(100), default='application/octet-stream')
    created_at = Column(DateTime, default=datetime.utcnow)

    status = Column(String(20), default=STATUS_UNPROCESSED)
    error_message = Column(UnicodeText, nullable=True)
    extracted_text = Column(UnicodeText, nullable=True)
    chunk_count = Column(Integer, default=0)
    embedded_chunk_count = Column(Integer, default=0)

    # Document-level knowledge; copied onto its embedding rows on every index run
    summary = Column(UnicodeText, nullable=True)
    tags = Column(JSON, default=list)

    notebook = relationship("Notebook", back_populates="documents")


class ChatMessage(Base):
    __tablename__ = 'chat_messages'

    id = Column(Integer, primary_key=True, index=True)
    notebook_id = Column(Integer, ForeignKey('notebooks.id', ondelete='CASCADE'), index=True)
    user_id = Column(String(64), nullable=True)
    role = Column(String(20)) # user, assistant
    content = Column(UnicodeText)
    citations = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)

    notebook = relationship("Notebook", back_populates="messages")
