"""Collaborators built once at startup and shared by every request.

Routes reach them through `Depends(get_services)`; none of them holds
per-request or per-player state.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from fastapi import Request

from dark_stories.game import GameMaster
from dark_stories.llm import LLM, HttpLLM
from dark_stories.storage import StoryStore, load_preset_stories, seed_stories

from .config import Settings
from .speech import ElevenLabsClient

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: StoryStore
    llm: LLM
    speech: ElevenLabsClient
    game: GameMaster


def build_services(
    settings: Settings,
    store: StoryStore | None = None,
    llm: LLM | None = None,
    speech: ElevenLabsClient | None = None,
    rng: random.Random | None = None,
) -> Services:
    """Wire collaborators from settings; explicit arguments win (tests pass stubs)."""
    if store is None:
        store = StoryStore(settings.data_dir)
        _seed_if_empty(store, settings)
    if llm is None:
        llm = HttpLLM(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.llm_timeout,
        )
    if speech is None:
        speech = ElevenLabsClient(
            api_key=settings.elevenlabs_api_key,
            base_url=settings.elevenlabs_base_url,
            voice_id=settings.voice_id,
            tts_model=settings.tts_model,
            stt_model=settings.stt_model,
        )
    return Services(
        settings=settings,
        store=store,
        llm=llm,
        speech=speech,
        game=GameMaster(store, llm, rng=rng),
    )


def _seed_if_empty(store: StoryStore, settings: Settings) -> None:
    presets = settings.presets_dir / "stories.json"
    if store.list_stories() or not presets.is_file():
        return
    logger.info("Story store is empty, seeding from %s", presets)
    seed_stories(store, load_preset_stories(presets))


def get_services(request: Request) -> Services:
    return request.app.state.services
