"""Pydantic request models for API endpoints."""

from pydantic import Field

from dark_stories.models import GameSession, Message, WireModel

from backend.speech import VoiceSettings


class ChatBody(WireModel):
    messages: list[Message] = Field(min_length=1)
    game_session: GameSession | None = None


class TranscribeBody(WireModel):
    audio: str = ""  # base64 or data URL
    mime_type: str | None = None
    model_id: str | None = None


class SynthesizeBody(WireModel):
    text: str = ""
    voice_id: str | None = None
    model: str | None = None
    stability: float | None = None
    similarity_boost: float | None = None
    style: float | None = None
    use_speaker_boost: bool | None = None

    def voice_settings(self) -> VoiceSettings:
        """Voice settings with defaults for every field the client left out."""
        given = self.model_dump(exclude={"text"}, exclude_none=True)
        return VoiceSettings(**given)
