"""Session creation and reconciliation.

The client owns the durable session and sends it back on every call. The
server derives the next session from it once per request/response cycle and
returns the result; nothing is kept server-side between calls.
"""

from __future__ import annotations

import logging

from dark_stories.models import (
    BEFORE_STORY_SELECTION,
    STORY_COMPLETED,
    STORY_ONGOING,
    GameSession,
    GameState,
    Story,
)

logger = logging.getLogger(__name__)


def new_session(session_id: str | None = None, user_id: str | None = None) -> GameSession:
    """Start of a browsing session: selection phase, nothing completed."""
    return GameSession(
        game_state=BEFORE_STORY_SELECTION,
        completed_story_ids=[],
        session_id=session_id,
        user_id=user_id,
    )


def reset_after_completion(session: GameSession, detected: GameState) -> GameSession:
    """Apply the phase detected on the request transcript, before any model call.

    A session that was already completed and is still detected as completed
    means the player wrote again after the reveal: route them back to story
    selection and drop the finished story.
    """
    if session.game_state == STORY_COMPLETED and detected == STORY_COMPLETED:
        logger.info("New message after completion of %s, back to selection",
                    session.selected_story_id)
        return session.model_copy(update={
            "game_state": BEFORE_STORY_SELECTION,
            "selected_story_id": None,
        })
    return session.model_copy(update={"game_state": detected})


def reconcile(
    session: GameSession,
    detected: GameState,
    selected_story: Story | None = None,
) -> GameSession:
    """Merge the phase detected on the full post-response transcript into session.

    A story selected during this turn always wins over the marker scan.
    """
    if selected_story is not None:
        return session.model_copy(update={
            "game_state": STORY_ONGOING,
            "selected_story_id": selected_story.id,
        })

    if detected == STORY_COMPLETED:
        story_id = session.selected_story_id
        if not story_id:
            logger.warning("Story completed without a selected story id")
            return session.model_copy(update={"game_state": STORY_COMPLETED})
        completed = list(session.completed_story_ids)
        if story_id not in completed:
            completed.append(story_id)
        return session.model_copy(update={
            "game_state": STORY_COMPLETED,
            "completed_story_ids": completed,
        })

    if detected == STORY_ONGOING:
        if not session.selected_story_id:
            logger.warning("Story ongoing without a selected story id")
        return session.model_copy(update={"game_state": STORY_ONGOING})

    if detected != session.game_state:
        return session.model_copy(update={"game_state": detected})

    return session
