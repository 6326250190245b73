"""Core domain models.

Stories, transcript messages and the client-held game session. Every HTTP
boundary validates and serialises through these types. Wire names are
camelCase (``gameState``, ``selectedStoryId``); snake_case field names are
accepted on input too.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant", "system"]

Difficulty = Literal["easy", "medium", "hard"]

GameState = Literal["before_story_selection", "story_ongoing", "story_completed"]

BEFORE_STORY_SELECTION: GameState = "before_story_selection"
STORY_ONGOING: GameState = "story_ongoing"
STORY_COMPLETED: GameState = "story_completed"


class WireModel(BaseModel):
    """Base for models that travel to and from the browser client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(WireModel):
    """One turn of the transcript. Order is replayed verbatim to the agents."""

    role: Role
    content: str = Field(min_length=1)
    timestamp: str | None = None


class Story(WireModel):
    """A mystery record. ``solution`` stays server-side until the reveal."""

    id: str
    title: str
    description: str
    solution: str
    difficulty: Difficulty
    category: str = "mystery"
    tags: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    def public(self) -> dict:
        """Wire dump without the solution."""
        return self.model_dump(by_alias=True, exclude={"solution"}, exclude_none=True)


class StoryFilters(BaseModel):
    difficulty: Difficulty | None = None
    category: str | None = None
    tags: list[str] | None = None  # match any
    exclude_ids: list[str] = Field(default_factory=list)


class StoryInfo(BaseModel):
    """Labelled fields scraped from a generated message."""

    title: str | None = None
    description: str | None = None
    solution: str | None = None


class GameSession(WireModel):
    """Client-held game state, round-tripped on every call.

    The server never stores it; each request is reconciled on its own.
    """

    game_state: GameState = BEFORE_STORY_SELECTION
    selected_story_id: str | None = None
    completed_story_ids: list[str] = Field(default_factory=list)
    session_id: str | None = None
    user_id: str | None = None

    @field_validator("completed_story_ids")
    @classmethod
    def _dedupe(cls, ids: list[str]) -> list[str]:
        return list(dict.fromkeys(ids))

    def metadata(self) -> dict:
        """The phase fields reported back to the client after a turn."""
        return self.model_dump(
            by_alias=True,
            include={"game_state", "selected_story_id", "completed_story_ids"},
            exclude_none=True,
        )
