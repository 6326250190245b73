"""Chat endpoints: one-shot and streamed turns of the game."""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from backend.services import Services, get_services
from backend.streaming import SSE_HEADERS, prime, relay_chat

from .models import ChatBody

router = APIRouter()


@router.post("/chat")
async def chat(body: ChatBody, services: Services = Depends(get_services)):
    """Run one turn and return the full reply with the reconciled session."""
    result = await services.game.respond(body.messages, body.game_session)
    return {
        "success": True,
        "message": result.message().model_dump(by_alias=True, exclude_none=True),
        **result.session.metadata(),
    }


@router.post("/chat/stream")
async def chat_stream(body: ChatBody, services: Services = Depends(get_services)):
    """Run one turn as Server-Sent Events: chunks, then one metadata event."""
    turn = services.game.stream(body.messages, body.game_session)
    chunks = await prime(turn.chunks)
    return StreamingResponse(
        relay_chat(turn, chunks), media_type="text/event-stream", headers=SSE_HEADERS,
    )
