"""Streaming relays for chat text (Server-Sent Events) and synthesis audio.

Both relays are async generators handed to Starlette's StreamingResponse,
which awaits every send before pulling the next chunk. Upstream reads
therefore pause while the client's transport buffer is full and resume once
it drains.

When the client goes away the generator is closed (or the audio relay sees
`is_disconnected`), and the upstream iterator is closed in a `finally`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from dark_stories.game import StreamingTurn
from dark_stories.llm import LLMError

from .speech import SpeechError

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx buffering
}


def sse_event(payload: dict[str, Any]) -> str:
    """Format one `data:` event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def aclose(stream: AsyncIterator) -> None:
    close = getattr(stream, "aclose", None)
    if close is not None:
        await close()


async def prime(stream: AsyncIterator) -> AsyncIterator:
    """Pull the first item now so upstream failures surface before headers are sent.

    Returns an iterator that replays that item followed by the rest.
    """
    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        await aclose(stream)
        return _empty()
    except BaseException:
        await aclose(stream)
        raise
    return _replay(first, stream)


async def _empty() -> AsyncIterator:
    return
    yield


async def _replay(first: Any, stream: AsyncIterator) -> AsyncIterator:
    try:
        yield first
        async for item in stream:
            yield item
    finally:
        await aclose(stream)


async def relay_chat(turn: StreamingTurn, chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    """Relay text chunks as `{chunk}` events, then one `{metadata}` event.

    The metadata event is computed from the accumulated text, so it is always
    the last event. A failure mid-stream becomes a single `{error}` event.
    """
    parts: list[str] = []
    try:
        async for chunk in chunks:
            parts.append(chunk)
            yield sse_event({"chunk": chunk})
        streamed = "".join(parts)
        result = turn.finish(streamed)
        tail = result.text[len(streamed):]
        if tail:
            yield sse_event({"chunk": tail})
        yield sse_event({"metadata": result.session.metadata()})
    except LLMError as e:
        logger.error("Chat stream failed after %d chunks: %s", len(parts), e)
        yield sse_event({"error": str(e)})
    except Exception as e:
        logger.exception("Chat stream failed after %d chunks", len(parts))
        yield sse_event({"error": str(e) or "Stream error occurred"})
    finally:
        await aclose(chunks)


async def relay_audio(
    upstream: AsyncIterator[bytes],
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[bytes]:
    """Relay audio bytes until upstream ends or the client disconnects.

    Headers are already committed, so upstream failures only end the body.
    """
    sent = 0
    try:
        async for chunk in upstream:
            if is_disconnected is not None and await is_disconnected():
                logger.info("Client disconnected during audio relay after %d chunks", sent)
                break
            sent += 1
            yield chunk
    except SpeechError as e:
        logger.error("Audio stream failed after %d chunks: %s", sent, e)
    finally:
        await aclose(upstream)
        logger.debug("Audio relay closed after %d chunks", sent)
