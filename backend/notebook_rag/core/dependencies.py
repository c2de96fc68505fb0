"""
FastAPI dependency providers. Tests swap these through app.dependency_overrides.
"""
from functools import lru_cache

from notebook_rag.core.config import settings
from notebook_rag.services.file_service import LocalFileStorage
from notebook_rag.services.media_service import ImageClient, SpeechClient
from notebook_rag.services.ollama_service import OllamaEmbeddingClient, OllamaGenerationClient


@lru_cache
def get_embedding_client() -> OllamaEmbeddingClient:
    return OllamaEmbeddingClient()


@lru_cache
def get_generation_client() -> OllamaGenerationClient:
    return OllamaGenerationClient()


@lru_cache
def get_speech_client() -> SpeechClient:
    return SpeechClient()


@lru_cache
def get_image_client() -> ImageClient:
    return ImageClient()


@lru_cache
def get_storage() -> LocalFileStorage:
    return LocalFileStorage(settings.UPLOAD_DIR)
