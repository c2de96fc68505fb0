"""
Tests for the WAV container around raw PCM speech output and the image client.
"""

import base64
import struct

import httpx
import pytest

from notebook_rag.core.exceptions import ImageGenerationError
from notebook_rag.services.media_service import ImageClient, ensure_wav, wrap_pcm_as_wav


def test_wav_header_layout():
    pcm = b"\x01\x02" * 100
    wav = wrap_pcm_as_wav(pcm)

    assert len(wav) == 44 + len(pcm)
    assert wav[0:4] == b"RIFF"
    assert struct.unpack("<I", wav[4:8])[0] == 36 + len(pcm)
    assert wav[8:12] == b"WAVE"
    assert wav[12:16] == b"fmt "

    fmt_size, audio_format, channels, sample_rate, byte_rate, block_align, bits = struct.unpack("<IHHIIHH", wav[16:36])
    assert (fmt_size, audio_format, channels, sample_rate, bits) == (16, 1, 1, 24000, 16)
    assert byte_rate == 48000
    assert block_align == 2

    assert wav[36:40] == b"data"
    assert struct.unpack("<I", wav[40:44])[0] == len(pcm)
    assert wav[44:] == pcm


def test_ensure_wav_keeps_existing_container():
    wav = wrap_pcm_as_wav(b"\x00" * 8, sample_rate=16000)
    assert ensure_wav(wav) is wav


def test_ensure_wav_wraps_headerless_pcm():
    assert ensure_wav(b"\x00" * 8, sample_rate=22050)[24:28] == struct.pack("<I", 22050)


@pytest.mark.asyncio
async def test_image_client_non_json_body_raises_image_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>"))
    client = ImageClient(base_url="http://images.test", model="img", api_key="", timeout=5, transport=transport)

    with pytest.raises(ImageGenerationError) as exc_info:
        await client.generate_image("A diagram of a cell")

    assert exc_info.value.message == "Invalid response from the image service"


@pytest.mark.asyncio
async def test_image_client_decodes_b64_payload():
    payload = {"data": [{"b64_json": base64.b64encode(b"\x89PNG").decode()}]}
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
    client = ImageClient(base_url="http://images.test", model="img", api_key="", timeout=5, transport=transport)

    image = await client.generate_image("A diagram of a cell")

    assert image.data == b"\x89PNG"
