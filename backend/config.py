"""Application settings.

Built once at startup (`Settings.from_env()` after `.env` is loaded) and
handed to each collaborator; nothing reads the environment per request.

Environment variables:
  OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL
  LLM_TEMPERATURE, LLM_MAX_TOKENS, LLM_TIMEOUT
  ELEVENLABS_API_KEY, ELEVENLABS_BASE_URL, ELEVENLABS_VOICE_ID,
  ELEVENLABS_TTS_MODEL, ELEVENLABS_STT_MODEL
  DATA_DIR, PRESETS_DIR, CORS_ORIGINS (comma-separated), LOG_LEVEL
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

ROOT = Path(__file__).parent.parent

# Env var name → settings field
_ENV_FIELDS: dict[str, str] = {
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_BASE_URL": "openai_base_url",
    "OPENAI_MODEL": "openai_model",
    "LLM_TEMPERATURE": "temperature",
    "LLM_MAX_TOKENS": "max_tokens",
    "LLM_TIMEOUT": "llm_timeout",
    "ELEVENLABS_API_KEY": "elevenlabs_api_key",
    "ELEVENLABS_BASE_URL": "elevenlabs_base_url",
    "ELEVENLABS_VOICE_ID": "voice_id",
    "ELEVENLABS_TTS_MODEL": "tts_model",
    "ELEVENLABS_STT_MODEL": "stt_model",
    "DATA_DIR": "data_dir",
    "PRESETS_DIR": "presets_dir",
    "LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4.1"
    temperature: float = 0.8
    max_tokens: int = 1000
    llm_timeout: float = 120.0

    elevenlabs_api_key: str = ""
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"
    voice_id: str = "qAZH0aMXY8tw1QufPN0D"
    tts_model: str = "eleven_turbo_v2_5"
    stt_model: str = "scribe_v1"

    data_dir: Path = ROOT / "data"
    presets_dir: Path = ROOT / "presets"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, level: str) -> str:
        return level.strip().upper()

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Read settings from the environment; unset or empty vars keep defaults."""
        env = os.environ if env is None else env
        fields: dict = {}
        for var, name in _ENV_FIELDS.items():
            value = env.get(var, "")
            if value:
                fields[name] = value
        origins = env.get("CORS_ORIGINS", "")
        if origins:
            fields["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        return cls.model_validate(fields)
