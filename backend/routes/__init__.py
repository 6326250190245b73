"""FastAPI endpoints.

Endpoint groups: chat (complete + SSE stream), stories, voice (transcribe +
synthesize), health. All failures answer {"success": false, "message": ...}.
"""

from fastapi import APIRouter

from .chat import router as chat_router
from .health import router as health_router
from .stories import router as stories_router
from .voice import router as voice_router

router = APIRouter()
router.include_router(health_router)
router.include_router(chat_router)
router.include_router(stories_router)
router.include_router(voice_router)
