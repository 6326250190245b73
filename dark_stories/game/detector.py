"""Phase detection from generated text.

The agents write prose; the only bridge back to the state machine is a set of
labelled markers in the most recent assistant message ("Solution:",
"Title:", "Let's begin", ...). Matching is a case-insensitive substring test
over English and Portuguese tokens.

Only the latest assistant turn is inspected: older turns may still carry
markers from a story that was already introduced or solved.

Callers depend on the PhaseDetector protocol, so the marker rules can be
replaced by a structured-output contract without touching them.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Protocol

from dark_stories.models import (
    BEFORE_STORY_SELECTION,
    STORY_COMPLETED,
    STORY_ONGOING,
    GameState,
    Message,
    StoryInfo,
)

logger = logging.getLogger(__name__)

SOLUTION_MARKERS: tuple[str, ...] = (
    "solution:",
    "solução:",
    "the answer is",
    "a resposta é",
    "here is the full solution",
    "aqui está a solução completa",
)

INTRODUCTION_MARKERS: tuple[str, ...] = (
    "title:",
    "description:",
    "let's begin",
    "vamos começar",
    "now let's start",
    "agora vamos começar",
)


class PhaseDetector(Protocol):
    def detect(
        self,
        transcript: Sequence[Message],
        prior: GameState | None,
        selected_story_id: str | None = None,
    ) -> GameState: ...


def last_assistant_message(transcript: Sequence[Message]) -> Message | None:
    for msg in reversed(transcript):
        if msg.role == "assistant":
            return msg
    return None


def _contains_any(text: str, markers: Sequence[str]) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


class MarkerDetector:
    """Substring marker rules over the latest assistant message."""

    def __init__(
        self,
        solution_markers: Sequence[str] = SOLUTION_MARKERS,
        introduction_markers: Sequence[str] = INTRODUCTION_MARKERS,
    ) -> None:
        self._solution = tuple(m.lower() for m in solution_markers)
        self._introduction = tuple(m.lower() for m in introduction_markers)

    def detect(
        self,
        transcript: Sequence[Message],
        prior: GameState | None,
        selected_story_id: str | None = None,
    ) -> GameState:
        if prior is None:
            return BEFORE_STORY_SELECTION

        latest = last_assistant_message(transcript)
        text = latest.content if latest else ""

        if prior == STORY_ONGOING:
            if _contains_any(text, self._solution):
                logger.info("Story completion detected (story=%s)", selected_story_id)
                return STORY_COMPLETED
            return STORY_ONGOING

        if prior == BEFORE_STORY_SELECTION:
            # A selected id means the markers belong to an earlier introduction.
            if not selected_story_id and _contains_any(text, self._introduction):
                return STORY_ONGOING
            return BEFORE_STORY_SELECTION

        return prior


_default_detector = MarkerDetector()


def detect_game_state(
    transcript: Sequence[Message],
    prior: GameState | None = None,
    selected_story_id: str | None = None,
) -> GameState:
    """Detect the phase with the default marker rules."""
    return _default_detector.detect(transcript, prior, selected_story_id)


# ── Labelled field extraction ────────────────────────────

_TITLE_RE = re.compile(r"title:\s*[\"']?([^\"'\n]+)[\"']?", re.IGNORECASE)


def _field_re(label: str) -> re.Pattern:
    # Quoted values end at the closing quote; bare values at a blank line,
    # the next label or the end of the message.
    return re.compile(
        label + r":\s*(?:\"([^\"]*)\"|(.+?)(?=\n\s*\n|\n\s*(?:title|description|solution):|$))",
        re.IGNORECASE | re.DOTALL,
    )


_DESCRIPTION_RE = _field_re("description")
_SOLUTION_RE = _field_re("solution")


def _match(pattern: re.Pattern, text: str) -> str | None:
    m = pattern.search(text)
    if not m:
        return None
    value = next((g for g in m.groups() if g is not None), "").strip()
    return value or None


def extract_story_info(transcript: Sequence[Message]) -> StoryInfo | None:
    """Pull Title/Description/Solution fields out of the latest assistant message.

    Returns None when none of the three labels is present.
    """
    latest = last_assistant_message(transcript)
    if latest is None:
        return None
    text = latest.content
    info = StoryInfo(
        title=_match(_TITLE_RE, text),
        description=_match(_DESCRIPTION_RE, text),
        solution=_match(_SOLUTION_RE, text),
    )
    if info.title is None and info.description is None and info.solution is None:
        return None
    return info
