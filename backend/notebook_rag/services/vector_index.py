"""
Vector index over chunk embeddings.

On PostgreSQL the cosine similarity is computed by pgvector in SQL. Other
dialects (SQLite in tests, local runs) score the candidate rows in-process
with numpy. Both paths share the same ranking, so ordering, dedup and
threshold semantics do not depend on the backend.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence

import numpy as np
from sqlalchemy.orm import Query, Session

from notebook_rag.models.vector_models import DocumentChunk, EmbeddingRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    chunk_id: int
    document_id: int
    chunk_index: int
    text: str
    score: float


def rank_results(results: Iterable[SearchResult], match_threshold: float, match_count: int) -> List[SearchResult]:
    """
    Drops results below the threshold, keeps the best score per chunk id and
    orders by score descending, then chunk_index, document_id, chunk_id.
    """
    best = {}
    for result in results:
        if result.score < match_threshold:
            continue
        current = best.get(result.chunk_id)
        if current is None or result.score > current.score:
            best[result.chunk_id] = result

    ranked = sorted(best.values(), key=lambda r: (-r.score, r.chunk_index, r.document_id, r.chunk_id))
    return ranked[:max(match_count, 0)]


def cosine_scores(query_vector: Sequence[float], vectors: np.ndarray) -> np.ndarray:
    query = np.asarray(query_vector, dtype=np.float32)
    norms = np.linalg.norm(vectors, axis=1) * np.linalg.norm(query)
    dots = vectors @ query
    # Zero vectors have no direction; score them 0
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)


class VectorIndex:
    def __init__(self, db: Session):
        self.db = db

    def upsert(self, document_id: int, chunk_id: int, vector: Sequence[float], text: str, chunk_index: int = 0) -> EmbeddingRecord:
        """Inserts or replaces the embedding row of a chunk. The caller commits."""
        record = self.db.query(EmbeddingRecord).filter(EmbeddingRecord.chunk_id == chunk_id).first()
        if record is None:
            record = EmbeddingRecord(chunk_id=chunk_id)
            self.db.add(record)
        record.document_id = document_id
        record.chunk_index = chunk_index
        record.chunk_text = text
        record.embedding = list(vector)
        return record

    def search(self, query_vector: Sequence[float], match_threshold: float, match_count: int,
               filter_document_ids: Sequence[int]) -> List[SearchResult]:
        if not filter_document_ids or match_count <= 0:
            return []

        if self.db.get_bind().dialect.name == "postgresql":
            candidates = self._search_pgvector(query_vector, match_threshold, match_count, filter_document_ids)
        else:
            candidates = self._search_in_process(query_vector, filter_document_ids)

        results = rank_results(candidates, match_threshold, match_count)
        logger.info(f"Vector search over {len(filter_document_ids)} documents: "
                    f"{len(results)} results (threshold {match_threshold}, top {match_count})")
        return results

    def pgvector_query(self, query_vector, match_threshold, match_count, filter_document_ids) -> Query:
        """Top-k by cosine similarity in the database, tie-broken like rank_results."""
        similarity = 1 - EmbeddingRecord.embedding.cosine_distance(list(query_vector))
        return self.db.query(
            EmbeddingRecord.chunk_id,
            EmbeddingRecord.document_id,
            EmbeddingRecord.chunk_index,
            EmbeddingRecord.chunk_text,
            similarity.label("similarity"),
        ).filter(
            EmbeddingRecord.document_id.in_(list(filter_document_ids)),
            similarity >= match_threshold,
        ).order_by(
            similarity.desc(),
            EmbeddingRecord.chunk_index.asc(),
            EmbeddingRecord.document_id.asc(),
            EmbeddingRecord.chunk_id.asc(),
        ).limit(max(match_count, 0))

    def _search_pgvector(self, query_vector, match_threshold, match_count, filter_document_ids) -> List[SearchResult]:
        rows = self.pgvector_query(query_vector, match_threshold, match_count, filter_document_ids).all()

        return [
            SearchResult(chunk_id=row.chunk_id, document_id=row.document_id, chunk_index=row.chunk_index,
                         text=row.chunk_text, score=float(row.similarity))
            for row in rows
        ]

    def _search_in_process(self, query_vector, filter_document_ids) -> List[SearchResult]:
        rows = self.db.query(EmbeddingRecord).filter(
            EmbeddingRecord.document_id.in_(list(filter_document_ids))
        ).all()
        if not rows:
            return []

        matrix = np.vstack([np.asarray(row.embedding, dtype=np.float32) for row in rows])
        scores = cosine_scores(query_vector, matrix)
        return [
            SearchResult(chunk_id=row.chunk_id, document_id=row.document_id, chunk_index=row.chunk_index,
                         text=row.chunk_text, score=float(score))
            for row, score in zip(rows, scores)
        ]

    def delete_by_document_ids(self, document_ids: Sequence[int], commit: bool = True) -> int:
        """
        Removes every embedding and chunk row of the given documents in one
        transaction, so a concurrent search sees either all or none of them.
        """
        if not document_ids:
            return 0
        ids = list(document_ids)
        try:
            deleted = self.db.query(EmbeddingRecord).filter(
                EmbeddingRecord.document_id.in_(ids)
            ).delete(synchronize_session="fetch")
            self.db.query(DocumentChunk).filter(
                DocumentChunk.document_id.in_(ids)
            ).delete(synchronize_session="fetch")
            if commit:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Deleted {deleted} embeddings for document ids: {ids}")
        return deleted
