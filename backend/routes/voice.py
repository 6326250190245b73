"""Voice endpoints: speech-to-text and streamed text-to-speech."""

import base64
import binascii
import re

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from backend.services import Services, get_services
from backend.speech import DEFAULT_MIME_TYPE
from backend.streaming import relay_audio

from .models import SynthesizeBody, TranscribeBody

router = APIRouter()

_DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)

AUDIO_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx buffering
}


def decode_audio_field(value: str, mime_type: str | None = None) -> tuple[bytes, str]:
    """Decode a base64 string or `data:<mime>;base64,<data>` URL.

    Raises ValueError on a malformed data URL or invalid base64.
    """
    if value.startswith("data:"):
        m = _DATA_URL_RE.match(value)
        if not m:
            raise ValueError("Invalid data URL format")
        mime_type, value = m.group(1), m.group(2)
    try:
        audio = base64.b64decode(value)
    except binascii.Error as e:
        raise ValueError("Audio must be valid base64") from e
    return audio, mime_type or DEFAULT_MIME_TYPE


@router.post("/voice/transcribe")
async def transcribe(request: Request, services: Services = Depends(get_services)):
    """Transcribe raw audio/* bytes or JSON {audio: base64 | data URL}."""
    content_type = request.headers.get("content-type", "")
    model_id = None
    if content_type.startswith("audio/"):
        audio = await request.body()
        mime_type = content_type.split(";")[0]
    elif "json" in content_type:
        try:
            body = TranscribeBody.model_validate(await request.json())
        except (ValueError, ValidationError):
            raise HTTPException(400, "Invalid JSON body")
        if not body.audio:
            raise HTTPException(
                400,
                'Audio data is required. Send as raw audio/* or JSON with base64 "audio" field.',
            )
        try:
            audio, mime_type = decode_audio_field(body.audio, body.mime_type)
        except ValueError as e:
            raise HTTPException(400, str(e))
        model_id = body.model_id
    else:
        raise HTTPException(
            400,
            'Audio data is required. Send as raw audio/* or JSON with base64 "audio" field.',
        )

    if not audio:
        raise HTTPException(400, "Audio buffer is empty")

    text = await services.speech.transcribe(audio, mime_type, model_id)
    return {"success": True, "text": text}


@router.post("/voice/synthesize")
async def synthesize(
    body: SynthesizeBody, request: Request, services: Services = Depends(get_services)
):
    """Stream synthesized speech (audio/mpeg) back with chunked transfer."""
    if not body.text:
        raise HTTPException(400, "Text is required")
    upstream = await services.speech.synthesize(body.text, body.voice_settings())
    return StreamingResponse(
        relay_audio(upstream, request.is_disconnected),
        media_type="audio/mpeg",
        headers=AUDIO_HEADERS,
    )
