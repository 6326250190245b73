"""ElevenLabs speech client: speech-to-text and streaming text-to-speech.

    transcribe    POST {base}/speech-to-text, multipart (model_id, file)
                  Response: {"text": "..."}
    synthesize    POST {base}/text-to-speech/{voice_id}/stream
                  Response: audio/mpeg bytes, chunked

synthesize() checks the upstream status before returning, so callers can
still answer with a JSON error; after that the returned iterator only yields
bytes and closes the upstream response when it is closed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "audio/webm"


class VoiceSettings(BaseModel):
    voice_id: str | None = None
    model: str | None = None
    stability: float = 0.5
    similarity_boost: float = 0.75
    style: float = 0.0
    use_speaker_boost: bool = True


class SpeechError(RuntimeError):
    """Raised when the speech API cannot be reached or returns an error."""


class ElevenLabsClient:
    """Async HTTP client for the ElevenLabs speech API.

    Args:
        api_key:   xi-api-key. Calls fail with SpeechError when empty.
        base_url:  API root. Defaults to "https://api.elevenlabs.io/v1".
        voice_id:  Default voice for synthesis.
        tts_model: Default synthesis model (low latency).
        stt_model: Default transcription model.
        timeout:   HTTP timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.elevenlabs.io/v1",
        voice_id: str = "qAZH0aMXY8tw1QufPN0D",
        tts_model: str = "eleven_turbo_v2_5",
        stt_model: str = "scribe_v1",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._voice_id = voice_id
        self._tts_model = tts_model
        self._stt_model = stt_model
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise SpeechError("ELEVENLABS_API_KEY is not configured")
        return {"xi-api-key": self._api_key}

    async def transcribe(
        self, audio: bytes, mime_type: str = DEFAULT_MIME_TYPE, model_id: str | None = None
    ) -> str:
        """Return the transcript of an audio clip."""
        headers = self._headers()
        extension = mime_type.split("/")[-1].split(";")[0] or "webm"
        files = {"file": (f"audio.{extension}", audio, mime_type)}
        data = {"model_id": model_id or self._stt_model}
        url = f"{self._base_url}/speech-to-text"
        logger.debug("stt call bytes=%d mime=%s", len(audio), mime_type)

        try:
            async with self._client() as client:
                resp = await client.post(url, headers=headers, data=data, files=files)
        except httpx.TransportError as e:
            raise SpeechError(f"Cannot reach ElevenLabs STT API: {e}") from e
        if resp.is_error:
            raise SpeechError(f"ElevenLabs STT API error: {resp.status_code} - {resp.text}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise SpeechError("ElevenLabs STT API returned a non-JSON response") from e
        text = payload.get("text") if isinstance(payload, dict) else None
        if text is None:
            raise SpeechError("Unexpected response format from ElevenLabs STT API")
        return text

    def _synthesis_request(self, text: str, options: VoiceSettings) -> tuple[str, dict]:
        voice_id = options.voice_id or self._voice_id
        url = f"{self._base_url}/text-to-speech/{voice_id}/stream"
        body = {
            "text": text,
            "model_id": options.model or self._tts_model,
            "voice_settings": {
                "stability": options.stability,
                "similarity_boost": options.similarity_boost,
                "style": options.style,
                "use_speaker_boost": options.use_speaker_boost,
            },
        }
        return url, body

    async def synthesize(
        self, text: str, options: VoiceSettings | None = None
    ) -> AsyncIterator[bytes]:
        """Start a synthesis stream; raises SpeechError before any byte is produced."""
        headers = {**self._headers(), "Content-Type": "application/json"}
        url, body = self._synthesis_request(text, options or VoiceSettings())
        logger.debug("tts call chars=%d url=%s", len(text), url)

        client = self._client()
        try:
            resp = await client.send(
                client.build_request("POST", url, json=body, headers=headers), stream=True
            )
        except httpx.TransportError as e:
            await client.aclose()
            raise SpeechError(f"Cannot reach ElevenLabs TTS API: {e}") from e

        if resp.is_error:
            detail = (await resp.aread()).decode(errors="replace")
            await resp.aclose()
            await client.aclose()
            raise SpeechError(f"ElevenLabs TTS API error: {resp.status_code} - {detail}")

        return _iter_audio(client, resp)

    async def synthesize_to_bytes(self, text: str, options: VoiceSettings | None = None) -> bytes:
        """Collect a whole synthesis into memory."""
        stream = await self.synthesize(text, options)
        chunks = [chunk async for chunk in stream]
        return b"".join(chunks)


async def _iter_audio(client: httpx.AsyncClient, resp: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in resp.aiter_bytes():
            yield chunk
    except httpx.TransportError as e:
        raise SpeechError(f"ElevenLabs audio stream interrupted: {e}") from e
    finally:
        await resp.aclose()
        await client.aclose()
