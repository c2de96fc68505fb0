import asyncio
import httpx
import ollama
from typing import List, Dict, Optional
from notebook_rag.core.config import settings
from notebook_rag.core.exceptions import (
    EmbeddingProviderError, EmbeddingTimeoutError,
    GenerationError, GenerationTimeoutError,
)
import logging

# Configure Logging
logger = logging.getLogger(__name__)


async def check_ollama_connection(base_url: str = None) -> bool:
    """
    Logs whether the Ollama server answers. Startup continues either way;
    individual calls surface their own errors.
    """
    base_url = base_url or settings.OLLAMA_BASE_URL
    logger.info(f"Checking Ollama connection at: {base_url}...")
    try:
        async with httpx.AsyncClient(timeout=3.0) as client:
            response = await client.get(f"{base_url}/api/tags")
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Ollama ({base_url}) is unavailable: {e}")
        return False
    logger.info(f"Ollama ({base_url}) is ONLINE.")
    return True


class OllamaEmbeddingClient:
    """
    embed(text) -> fixed-length vector, backed by the Ollama embeddings API.
    """

    def __init__(self, base_url: str = None, model: str = None,
                 dimensions: int = None, timeout: float = None):
        self.model = model or settings.EMBEDDING_MODEL
        self.dimensions = dimensions or settings.EMBEDDING_DIM
        self.timeout = timeout or settings.EMBEDDING_TIMEOUT
        self.client = ollama.AsyncClient(host=base_url or settings.OLLAMA_BASE_URL)

    async def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingProviderError("Cannot embed empty text")

        try:
            response = await asyncio.wait_for(
                self.client.embeddings(model=self.model, prompt=text),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise EmbeddingTimeoutError(self.timeout)
        except ollama.ResponseError as e:
            raise EmbeddingProviderError(f"Ollama embedding error ({e.status_code})", detail=e.error)
        except (httpx.HTTPError, ConnectionError) as e:
            raise EmbeddingProviderError("Could not connect to Ollama", detail=str(e))

        try:
            vector = [float(v) for v in response["embedding"] or []]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingProviderError("Invalid embedding response from Ollama", detail=str(e))

        if len(vector) < self.dimensions:
            raise EmbeddingProviderError(
                "Embedding has the wrong dimensionality",
                detail=f"expected {self.dimensions}, got {len(vector)}",
            )
        # Truncate to the index dimensionality
        return vector[:self.dimensions]


class OllamaGenerationClient:
    """
    generate(prompt, history) -> text, backed by Ollama /api/chat (non-streaming).
    """

    def __init__(self, base_url: str = None, model: str = None, timeout: float = None,
                 transport: httpx.AsyncBaseTransport = None):
        self.base_url = base_url or settings.OLLAMA_BASE_URL
        self.model = model or settings.CHAT_MODEL
        self.timeout = timeout or settings.GENERATION_TIMEOUT
        self.transport = transport

    async def generate(self, prompt: str, history: Optional[List[Dict]] = None,
                       system: Optional[str] = None, json_mode: bool = False) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        for msg in history or []:
            messages.append({"role": msg["role"], "content": msg["content"]})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
        }
        if json_mode:
            payload["format"] = "json"

        logger.info(f"Generation request: model={self.model}, messages={len(messages)}, "
                    f"prompt preview: {prompt[:50]}...")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/api/chat", json=payload)
        except httpx.TimeoutException:
            raise GenerationTimeoutError(self.timeout)
        except httpx.HTTPError as e:
            raise GenerationError("Could not connect to Ollama", detail=str(e))

        if response.status_code != 200:
            raise GenerationError(f"Ollama Error ({response.status_code})", detail=response.text[:500])

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError("Invalid response from Ollama", detail=f"{e}; body starts with: {response.text[:200]}")
        if not isinstance(data, dict):
            raise GenerationError("Invalid response from Ollama", detail=f"expected an object, got {type(data).__name__}")
        if "error" in data:
            raise GenerationError("Ollama Error", detail=str(data["error"]))

        message = data.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise GenerationError("Empty response from model")
        return content
