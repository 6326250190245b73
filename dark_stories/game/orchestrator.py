"""Game master: runs one chat turn end-to-end.

Turn flow:
  1. Detect the phase on the request transcript and apply the
     reset-after-completion rule to the incoming session.
  2. Dispatch on the phase:
       before_story_selection        → selection agent (may pick a story)
       story_ongoing/story_completed → narrator agent for the selected story
  3. Call the LLM, either in one shot (respond) or streamed (stream).
  4. If a story was picked but the text lacks its Title/Description labels,
     append them.
  5. Re-detect the phase on transcript + response and reconcile the session.

A streamed turn is planned before any chunk is produced, so precondition
errors (no selected story, unknown story) surface before the response starts.
"""

from __future__ import annotations

import logging
import random
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from dark_stories.llm import LLM
from dark_stories.models import (
    BEFORE_STORY_SELECTION,
    GameSession,
    Message,
    Story,
)
from dark_stories.storage import StoryStore

from .agents import NarratorAgent, SelectionAgent
from .detector import MarkerDetector, PhaseDetector, extract_story_info
from .session import new_session, reconcile, reset_after_completion

logger = logging.getLogger(__name__)

Stage = Literal["selection", "narrator"]


class GameError(RuntimeError):
    """A turn cannot run with the session the client sent."""


class StoryNotSelectedError(GameError):
    def __init__(self) -> None:
        super().__init__("Story ID is required for narrator agent")


class StoryNotFoundError(GameError):
    def __init__(self, story_id: str) -> None:
        super().__init__(f"Story with ID {story_id} not found")
        self.story_id = story_id


@dataclass
class TurnPlan:
    stage: Stage
    transcript: list[Message]
    llm_messages: list[dict]
    session: GameSession  # after the reset rule, before this turn's response
    selected_story: Story | None = None


@dataclass
class TurnResult:
    text: str
    session: GameSession

    def message(self) -> Message:
        return Message(
            role="assistant",
            content=self.text,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


class StreamingTurn:
    """A planned turn whose text arrives as chunks.

    Iterate `chunks`, then call `finish` with the accumulated text to get the
    closing tail (possibly empty) and the reconciled session.
    """

    def __init__(self, master: GameMaster, plan: TurnPlan) -> None:
        self.plan = plan
        self._master = master
        self.chunks: AsyncIterator[str] = master.llm.stream(plan.stage, plan.llm_messages)

    def finish(self, text: str) -> TurnResult:
        return self._master.finish_turn(self.plan, text)


class GameMaster:
    def __init__(
        self,
        store: StoryStore,
        llm: LLM,
        detector: PhaseDetector | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.llm = llm
        self.detector = detector or MarkerDetector()
        self.selection = SelectionAgent(store, rng=rng)
        self.narrator = NarratorAgent()

    def plan_turn(self, transcript: Sequence[Message], session: GameSession | None) -> TurnPlan:
        transcript = list(transcript)
        session = session or new_session()
        detected = self.detector.detect(
            transcript, session.game_state, session.selected_story_id
        )
        session = reset_after_completion(session, detected)

        if session.game_state == BEFORE_STORY_SELECTION:
            selection = self.selection.plan(transcript, session.completed_story_ids)
            return TurnPlan(
                stage="selection",
                transcript=transcript,
                llm_messages=selection.messages,
                session=session,
                selected_story=selection.selected_story,
            )

        if not session.selected_story_id:
            raise StoryNotSelectedError()
        story = self.store.get_story(session.selected_story_id)
        if story is None:
            raise StoryNotFoundError(session.selected_story_id)
        return TurnPlan(
            stage="narrator",
            transcript=transcript,
            llm_messages=self.narrator.plan(transcript, story),
            session=session,
        )

    def finish_turn(self, plan: TurnPlan, text: str) -> TurnResult:
        """Complete the response text and reconcile the session.

        TurnResult.text is the full response; a streaming caller sends
        text[len(streamed):] as its final chunk.
        """
        story = plan.selected_story
        if story is not None:
            reply = [*plan.transcript, Message(role="assistant", content=text or " ")]
            if extract_story_info(reply) is None:
                text = f"{text}\n\nTitle: {story.title}\nDescription: {story.description}"

        full = [*plan.transcript, Message(role="assistant", content=text or " ")]
        detected = self.detector.detect(
            full, plan.session.game_state, plan.session.selected_story_id
        )
        session = reconcile(plan.session, detected, story)
        logger.info(
            "Turn finished stage=%s state=%s story=%s",
            plan.stage, session.game_state, session.selected_story_id,
        )
        return TurnResult(text=text, session=session)

    async def respond(
        self, transcript: Sequence[Message], session: GameSession | None = None
    ) -> TurnResult:
        plan = self.plan_turn(transcript, session)
        text = await self.llm.complete(plan.stage, plan.llm_messages)
        return self.finish_turn(plan, text)

    def stream(
        self, transcript: Sequence[Message], session: GameSession | None = None
    ) -> StreamingTurn:
        return StreamingTurn(self, self.plan_turn(transcript, session))
