"""
Shared test fixtures.

Provides: in-memory SQLite session, fake capability clients, vector helper.
Settings are read at import time, so the test environment is set before any
notebook_rag module is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMBEDDING_DIM"] = "8"

from typing import Callable, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from notebook_rag.core.config import settings
from notebook_rag.core.database import Base, init_db
from notebook_rag.core.exceptions import EmbeddingProviderError, GenerationError
from notebook_rag.models import sql_models as models


def vec(*values: float) -> List[float]:
    """Pads the given leading components with zeros up to the index dimensionality."""
    return list(values) + [0.0] * (settings.EMBEDDING_DIM - len(values))


class FakeEmbeddingClient:
    """
    Deterministic embed(text). `vector_for` maps text to a vector; `failures`
    maps a text to how many times it fails before succeeding.
    """

    def __init__(self, vector_for: Optional[Callable[[str], List[float]]] = None,
                 failures: Optional[Dict[str, int]] = None, always_fail: bool = False):
        self.vector_for = vector_for or (lambda text: vec(1.0))
        self.failures = dict(failures or {})
        self.always_fail = always_fail
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.always_fail:
            raise EmbeddingProviderError("Embedding provider unavailable")
        if self.failures.get(text, 0) > 0:
            self.failures[text] -= 1
            raise EmbeddingProviderError("Transient embedding failure")
        return self.vector_for(text)


class FakeGenerationClient:
    """Returns queued responses in order (the last one repeats); records every call."""

    def __init__(self, responses=None, error: Optional[GenerationError] = None):
        if isinstance(responses, str):
            responses = [responses]
        self.responses = list(responses or ['{"summary": "A test document.", "tags": ["Testing", "notes"]}'])
        self.error = error
        self.calls: List[dict] = []

    async def generate(self, prompt, history=None, system=None, json_mode=False) -> str:
        self.calls.append({"prompt": prompt, "history": history, "system": system, "json_mode": json_mode})
        if self.error:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def notebook(db) -> models.Notebook:
    notebook = models.Notebook(name="Biology 101", user_id="user-1")
    db.add(notebook)
    db.commit()
    db.refresh(notebook)
    return notebook


@pytest.fixture
def make_document(db, notebook):
    """Factory for Document rows in the default notebook."""

    def _make(filename: str = "notes.txt", summary: str = None, tags: List[str] = None,
              notebook_id: int = None, status: str = models.STATUS_UNPROCESSED,
              extracted_text: str = None, storage_path: str = None) -> models.Document:
        document = models.Document(
            notebook_id=notebook_id or notebook.id,
            filename=filename,
            summary=summary,
            tags=tags or [],
            status=status,
            extracted_text=extracted_text,
            storage_path=storage_path,
        )
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    return _make


@pytest.fixture
def embedding_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def generation_client() -> FakeGenerationClient:
    return FakeGenerationClient()
