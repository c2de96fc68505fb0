from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from notebook_rag.core.database import get_db
from notebook_rag.core.dependencies import get_generation_client, get_image_client, get_speech_client
from notebook_rag.core.exceptions import NotFoundError, app_error_to_http
from notebook_rag import schemas
from notebook_rag.services.studio_service import StudioService

router = APIRouter()


def _get_studio(
    db: Session = Depends(get_db),
    generation_client=Depends(get_generation_client),
    speech_client=Depends(get_speech_client),
    image_client=Depends(get_image_client),
) -> StudioService:
    return StudioService(db, generation_client, speech_client=speech_client, image_client=image_client)


@router.post("/mindmap", response_model=schemas.MindMapResponse)
async def generate_mind_map(request: schemas.MindMapRequest, studio: StudioService = Depends(_get_studio)):
    try:
        return await studio.mind_map(request.notebook_id, request.notebook_name)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)


@router.post("/flashcards", response_model=schemas.FlashcardResponse)
async def generate_flashcards(request: schemas.FlashcardRequest, studio: StudioService = Depends(_get_studio)):
    try:
        return await studio.flashcards(request.notebook_id, request.count)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)


@router.post("/quiz", response_model=schemas.QuizResponse)
async def generate_quiz(request: schemas.QuizRequest, studio: StudioService = Depends(_get_studio)):
    try:
        return await studio.quiz(request.notebook_id, request.count, request.difficulty)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)


@router.post("/report", response_model=schemas.ReportResponse)
async def generate_report(request: schemas.ReportRequest, studio: StudioService = Depends(_get_studio)):
    try:
        return await studio.report(request.notebook_id, request.report_type)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)


@router.post("/audio", response_model=schemas.AudioResponse)
async def generate_audio(request: schemas.AudioRequest, studio: StudioService = Depends(_get_studio)):
    try:
        return await studio.audio(request.notebook_id, request.audio_type, request.voice)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)


@router.post("/infographic", response_model=schemas.InfographicResponse)
async def generate_infographic(request: schemas.StudioRequest, studio: StudioService = Depends(_get_studio)):
    try:
        return await studio.infographic(request.notebook_id)
    except NotFoundError as e:
        raise app_error_to_http(e, status_code=404)
