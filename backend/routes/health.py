"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from backend.services import Services, get_services

router = APIRouter()

SERVICE_NAME = "dark-stories-api"
VERSION = "1.0.0"


def _flag(configured: bool) -> str:
    return "configured" if configured else "not_configured"


@router.get("/health")
async def health(services: Services = Depends(get_services)):
    """Liveness plus which upstream credentials are set."""
    settings = services.settings
    return {
        "status": "ok",
        "message": "Dark Stories API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": VERSION,
        "checks": {
            "api": "healthy",
            "openai": _flag(bool(settings.openai_api_key)),
            "elevenlabs": _flag(bool(settings.elevenlabs_api_key)),
        },
    }
