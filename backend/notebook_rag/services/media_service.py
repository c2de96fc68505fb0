"""
Speech synthesis and image generation clients (OpenAI-compatible HTTP APIs),
plus the WAV container used for headerless PCM audio.
"""
import base64
import logging
import struct
from dataclasses import dataclass

import httpx

from notebook_rag.core.config import settings
from notebook_rag.core.exceptions import SpeechSynthesisError, ImageGenerationError

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44


def wrap_pcm_as_wav(pcm: bytes, sample_rate: int = 24000, channels: int = 1, bits_per_sample: int = 16) -> bytes:
    """Prepends a 44-byte RIFF/WAVE header (PCM format 1) to raw samples."""
    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF", 36 + len(pcm), b"WAVE",
        b"fmt ", 16, 1, channels, sample_rate, byte_rate, block_align, bits_per_sample,
        b"data", len(pcm),
    )
    return header + pcm


def ensure_wav(audio: bytes, sample_rate: int = 24000) -> bytes:
    if audio[:4] == b"RIFF" and audio[8:12] == b"WAVE":
        return audio
    return wrap_pcm_as_wav(audio, sample_rate=sample_rate)


def _auth_headers(api_key: str) -> dict:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


class SpeechClient:
    """synthesize(text, voice) -> raw 16-bit mono PCM (or WAV) bytes."""

    def __init__(self, base_url: str = None, model: str = None, api_key: str = None, timeout: float = None,
                 transport: httpx.AsyncBaseTransport = None):
        self.base_url = base_url or settings.SPEECH_BASE_URL
        self.model = model or settings.SPEECH_MODEL
        self.api_key = api_key if api_key is not None else settings.SPEECH_API_KEY
        self.timeout = timeout or settings.SPEECH_TIMEOUT
        self.transport = transport

    async def synthesize(self, text: str, voice: str = None) -> bytes:
        payload = {
            "model": self.model,
            "input": text,
            "voice": voice or settings.SPEECH_VOICE,
            "response_format": "pcm",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/audio/speech", json=payload,
                                             headers=_auth_headers(self.api_key))
        except httpx.TimeoutException:
            raise SpeechSynthesisError(f"Speech synthesis timed out after {self.timeout:g}s")
        except httpx.HTTPError as e:
            raise SpeechSynthesisError("Could not connect to the speech service", detail=str(e))

        if response.status_code != 200:
            raise SpeechSynthesisError(f"TTS API error: {response.status_code}", detail=response.text[:500])
        if not response.content:
            raise SpeechSynthesisError("No audio data in TTS response")
        return response.content


@dataclass
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"


class ImageClient:
    """generate_image(prompt) -> GeneratedImage."""

    def __init__(self, base_url: str = None, model: str = None, api_key: str = None, timeout: float = None,
                 transport: httpx.AsyncBaseTransport = None):
        self.base_url = base_url or settings.IMAGE_BASE_URL
        self.model = model or settings.IMAGE_MODEL
        self.api_key = api_key if api_key is not None else settings.IMAGE_API_KEY
        self.timeout = timeout or settings.IMAGE_TIMEOUT
        self.transport = transport

    async def generate_image(self, prompt: str) -> GeneratedImage:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": "1792x1024",
            "response_format": "b64_json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/images/generations", json=payload,
                                             headers=_auth_headers(self.api_key))
        except httpx.TimeoutException:
            raise ImageGenerationError(f"Image generation timed out after {self.timeout:g}s")
        except httpx.HTTPError as e:
            raise ImageGenerationError("Could not connect to the image service", detail=str(e))

        if response.status_code != 200:
            logger.error(f"Image API error: {response.text[:500]}")
            raise ImageGenerationError("Failed to generate image", detail=f"status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ImageGenerationError("Invalid response from the image service", detail=str(e))

        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or not items or not isinstance(items[0], dict) or not items[0].get("b64_json"):
            raise ImageGenerationError("No image generated")
        return GeneratedImage(data=base64.b64decode(items[0]["b64_json"]), mime_type="image/png")
