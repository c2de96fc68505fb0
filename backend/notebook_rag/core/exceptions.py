"""
Error taxonomy for the indexing, retrieval and generation pipelines.
"""

from fastapi import HTTPException


class AppBaseError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ExtractionError(AppBaseError):
    """Text extraction from an upload failed. The document is marked failed."""


class EmbeddingProviderError(AppBaseError):
    """The embedding capability failed or was given unusable input."""


class EmbeddingTimeoutError(EmbeddingProviderError):
    def __init__(self, timeout: float):
        super().__init__(
            message=f"Embedding request timed out after {timeout:g}s",
            detail="The embedding provider did not answer in time.",
        )


class GenerationError(AppBaseError):
    """The language model call failed."""


class GenerationTimeoutError(GenerationError):
    def __init__(self, timeout: float):
        super().__init__(
            message=f"Generation request timed out after {timeout:g}s",
            detail="The language model did not answer in time.",
        )


class SpeechSynthesisError(AppBaseError):
    """The speech synthesis capability failed."""


class ImageGenerationError(AppBaseError):
    """The image generation capability failed."""


class ParseError(AppBaseError):
    """Structured model output could not be parsed, even after repair."""


class NotFoundError(AppBaseError):
    """A notebook or document does not exist."""
    def __init__(self, entity: str, entity_id):
        super().__init__(
            message=f"{entity} not found",
            detail=f"No {entity.lower()} with id {entity_id}.",
        )


# ── Utility: convert to HTTPException ────────────────────

def app_error_to_http(error: AppBaseError, status_code: int = 400) -> HTTPException:
    """Convert an AppBaseError to an HTTPException with consistent JSON body."""
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error.message,
            "detail": error.detail,
            "type": type(error).__name__,
        },
    )
