from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from notebook_rag.core.database import get_db
from notebook_rag.core.config import settings
from notebook_rag.core.dependencies import get_embedding_client, get_generation_client
from notebook_rag.core.exceptions import EmbeddingProviderError, NotFoundError, app_error_to_http
from notebook_rag.models import sql_models as models
from notebook_rag import schemas
from notebook_rag.services import notebook_service
from notebook_rag.services.chat_service import ChatOrchestrator
from notebook_rag.services.context_service import ContextAssembler
from notebook_rag.services.vector_index import VectorIndex

router = APIRouter()


@router.post("/message", response_model=schemas.ChatResponse)
async def send_message(
    message_in: schemas.ChatRequest,
    db: Session = Depends(get_db),
    embedding_client=Depends(get_embedding_client),
    generation_client=Depends(get_generation_client),
):
    assembler = ContextAssembler(db, embedding_client)
    orchestrator = ChatOrchestrator(db, assembler, generation_client)

    history = None
    if message_in.conversation_history is not None:
        history = [turn.model_dump() for turn in message_in.conversation_history]

    try:
        answer = await orchestrator.answer(
            message_in.message,
            message_in.notebook_id,
            history=history,
            user_id=message_in.user_id,
        )
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)

    return schemas.ChatResponse(
        success=answer.success,
        response=answer.text,
        citations=answer.citations,
        sources_used=answer.sources_used,
        error=answer.error,
    )


@router.get("/{notebook_id}/messages", response_model=List[schemas.ChatMessage])
def read_messages(notebook_id: int, db: Session = Depends(get_db)):
    try:
        notebook_service.get_notebook(db, notebook_id)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)
    return db.query(models.ChatMessage).filter(
        models.ChatMessage.notebook_id == notebook_id
    ).order_by(models.ChatMessage.created_at, models.ChatMessage.id).all()


@router.post("/search_context", response_model=List[schemas.SearchHit])
async def search_context_endpoint(
    query_in: schemas.SearchRequest,
    db: Session = Depends(get_db),
    embedding_client=Depends(get_embedding_client),
):
    """
    Search the vector index for chunks of this notebook's documents.
    """
    try:
        documents = notebook_service.get_documents(db, notebook_service.get_notebook(db, query_in.notebook_id).id)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)
    if not documents:
        return []

    try:
        query_vector = await embedding_client.embed(query_in.query)
    except EmbeddingProviderError as e:
        raise app_error_to_http(e, status_code=502)

    results = VectorIndex(db).search(
        query_vector, settings.MATCH_THRESHOLD, query_in.match_count, [doc.id for doc in documents]
    )
    return [schemas.SearchHit(**vars(result)) for result in results]
