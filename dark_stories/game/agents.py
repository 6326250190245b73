"""Selection and narrator agents.

Neither agent talks to the network itself. Each one turns the transcript
(plus story data) into the chat payload for the upstream model; the game
master sends it and consumes the text.

Selection readiness and preference parsing are keyword heuristics over the
conversation in English and Portuguese.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from dark_stories.models import Difficulty, Message, Story, StoryFilters
from dark_stories.prompts import (
    ALL_COMPLETED_PROMPT,
    NARRATOR_PROMPT,
    SELECTION_PROMPT,
    STORY_CONTEXT_PROMPT,
    render_prompt,
)
from dark_stories.storage import StoryStore

logger = logging.getLogger(__name__)

READY_KEYWORDS: tuple[str, ...] = ("yes", "sim", "start", "começar", "choose", "escolher")

# Conversations longer than this with a non-trivial last user turn count as ready.
MIN_MESSAGES_FOR_READY = 4
MIN_USER_CHARS_FOR_READY = 10

_DIFFICULTY_KEYWORDS: tuple[tuple[Difficulty, tuple[str, ...]], ...] = (
    ("easy", ("easy", "fácil")),
    ("hard", ("hard", "difícil", "difficult")),
    ("medium", ("medium", "médio", "intermediate")),
)
_GROUP_KEYWORDS = ("friend", "amigo", "group", "grupo")
_ALONE_KEYWORDS = ("alone", "sozinho", "solo")


@dataclass
class Preferences:
    difficulty: Difficulty | None = None
    playing_with_friends: bool | None = None


@dataclass
class SelectionPlan:
    """What the selection agent decided for this turn."""

    messages: list[dict]
    selected_story: Story | None = None
    all_completed: bool = False
    preferences: Preferences = field(default_factory=Preferences)


def to_chat_messages(transcript: Sequence[Message]) -> list[dict]:
    return [{"role": m.role, "content": m.content} for m in transcript]


def with_system_prompt(messages: list[dict], prompt: str) -> list[dict]:
    """Replace the first system message with prompt, or prepend one."""
    for i, msg in enumerate(messages):
        if msg["role"] == "system":
            messages[i] = {"role": "system", "content": prompt}
            return messages
    messages.insert(0, {"role": "system", "content": prompt})
    return messages


def last_user_message(transcript: Sequence[Message]) -> Message | None:
    for msg in reversed(transcript):
        if msg.role == "user":
            return msg
    return None


def is_ready_to_select(transcript: Sequence[Message]) -> bool:
    """Has the player agreed to start, or talked long enough to pick for them?"""
    text = " ".join(m.content for m in transcript).lower()
    if any(keyword in text for keyword in READY_KEYWORDS):
        return True
    last_user = last_user_message(transcript)
    return (
        len(transcript) > MIN_MESSAGES_FOR_READY
        and last_user is not None
        and len(last_user.content) > MIN_USER_CHARS_FOR_READY
    )


def extract_preferences(transcript: Sequence[Message]) -> Preferences:
    """Difficulty and group preferences from what the player wrote."""
    text = " ".join(m.content.lower() for m in transcript if m.role == "user")
    prefs = Preferences()
    for difficulty, keywords in _DIFFICULTY_KEYWORDS:
        if any(k in text for k in keywords):
            prefs.difficulty = difficulty
            break
    if any(k in text for k in _GROUP_KEYWORDS):
        prefs.playing_with_friends = True
    elif any(k in text for k in _ALONE_KEYWORDS):
        prefs.playing_with_friends = False
    return prefs


class SelectionAgent:
    """Chats about preferences and picks a random story not yet completed."""

    def __init__(self, store: StoryStore, rng: random.Random | None = None) -> None:
        self._store = store
        self._rng = rng

    def plan(self, transcript: Sequence[Message], completed_ids: list[str]) -> SelectionPlan:
        messages = to_chat_messages(transcript)
        available = self._store.available_stories(completed_ids)
        plan = SelectionPlan(messages=messages, all_completed=not available)

        if plan.all_completed:
            logger.info("No available stories, all %d completed", len(completed_ids))
        elif is_ready_to_select(transcript):
            plan.preferences = extract_preferences(transcript)
            logger.info("Player ready to select a story, preferences=%s", plan.preferences)
            plan.selected_story = self._pick(completed_ids, plan.preferences)
        else:
            logger.debug("Player not ready to select a story yet")

        if plan.selected_story is not None:
            # The solution stays with the narrator.
            messages.append({
                "role": "user",
                "content": render_prompt(STORY_CONTEXT_PROMPT, {
                    "title": plan.selected_story.title,
                    "description": plan.selected_story.description,
                }),
            })

        if plan.all_completed:
            prompt = ALL_COMPLETED_PROMPT
        else:
            prompt = render_prompt(SELECTION_PROMPT, {"available_count": len(available)})
        with_system_prompt(messages, prompt)
        return plan

    def _pick(self, completed_ids: list[str], prefs: Preferences) -> Story | None:
        story = None
        if prefs.difficulty:
            story = self._store.random_story(
                completed_ids, StoryFilters(difficulty=prefs.difficulty), rng=self._rng
            )
            if story is None:
                logger.info("No %s stories left, picking from any difficulty", prefs.difficulty)
        if story is None:
            story = self._store.random_story(completed_ids, rng=self._rng)
        return story


class NarratorAgent:
    """Narrates exactly one story and reveals it behind a "Solution:" label."""

    def plan(self, transcript: Sequence[Message], story: Story) -> list[dict]:
        prompt = render_prompt(NARRATOR_PROMPT, {
            "title": story.title,
            "description": story.description,
            "solution": story.solution,
        })
        return with_system_prompt(to_chat_messages(transcript), prompt)
