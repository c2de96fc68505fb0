import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from sqlalchemy.orm import Session

from notebook_rag.core.config import settings
from notebook_rag.core.exceptions import EmbeddingProviderError
from notebook_rag.models import sql_models as models
from notebook_rag.schemas import Citation
from notebook_rag.services.vector_index import SearchResult, VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class AssembledContext:
    prompt_context: str = ""
    citations: List[Citation] = field(default_factory=list)
    results: List[SearchResult] = field(default_factory=list)

    @property
    def sources_used(self) -> int:
        return len(self.citations)


def make_excerpt(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class ContextAssembler:
    """
    Turns a question into numbered source blocks plus the matching citations.
    """

    def __init__(self, db: Session, embedding_client, match_threshold: float = None,
                 match_count: int = None, excerpt_chars: int = None):
        self.db = db
        self.embedding_client = embedding_client
        self.vector_index = VectorIndex(db)
        self.match_threshold = settings.MATCH_THRESHOLD if match_threshold is None else match_threshold
        self.match_count = settings.MATCH_COUNT if match_count is None else match_count
        self.excerpt_chars = settings.EXCERPT_CHARS if excerpt_chars is None else excerpt_chars

    def _filenames(self, document_ids: Sequence[int]) -> Dict[int, str]:
        rows = self.db.query(models.Document.id, models.Document.filename).filter(
            models.Document.id.in_(list(document_ids))
        ).all()
        return {row.id: row.filename for row in rows}

    async def build_context(self, query: str, document_ids: Sequence[int]) -> AssembledContext:
        if not document_ids:
            return AssembledContext()

        try:
            query_vector = await self.embedding_client.embed(query)
        except EmbeddingProviderError as e:
            logger.error(f"Query embedding failed, answering from summaries only: {e.message}")
            return AssembledContext()

        results = self.vector_index.search(query_vector, self.match_threshold, self.match_count, document_ids)
        filenames = self._filenames(document_ids)

        blocks = []
        citations = []
        seen = set()
        for result in results:
            if result.chunk_id in seen:
                continue
            seen.add(result.chunk_id)
            filename = filenames.get(result.document_id, "Unknown document")
            blocks.append(f"[Source {len(blocks) + 1}: {filename}]\n{result.text}")
            citations.append(Citation(
                chunk_id=result.chunk_id,
                document_id=result.document_id,
                filename=filename,
                excerpt=make_excerpt(result.text, self.excerpt_chars),
            ))

        logger.info(f"Assembled {len(blocks)} source blocks for query: {query[:50]}")
        return AssembledContext(prompt_context="\n\n".join(blocks), citations=citations, results=results)
