"""Story catalogue endpoint."""

from fastapi import APIRouter, Depends

from backend.services import Services, get_services
from dark_stories.models import Difficulty, StoryFilters

router = APIRouter()


@router.get("/stories")
async def list_stories(
    difficulty: Difficulty | None = None,
    category: str | None = None,
    redact: bool = False,
    services: Services = Depends(get_services),
):
    """List stories. Solutions are included unless redact=true."""
    stories = services.store.list_stories(
        StoryFilters(difficulty=difficulty, category=category)
    )
    if redact:
        payload = [s.public() for s in stories]
    else:
        payload = [s.model_dump(by_alias=True, exclude_none=True) for s in stories]
    return {"success": True, "stories": payload}
