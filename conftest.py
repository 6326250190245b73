import re

import pytest

from dark_stories.llm import LLMError
from dark_stories.models import Message, Story
from dark_stories.storage import StoryStore

TEST_STORIES = [
    Story(
        id="S1",
        title="The butler",
        description="A rich man is found dead in his locked study.",
        solution="The butler did it, using the spare key hidden in the clock.",
        difficulty="medium",
        tags=["murder", "mansion"],
    ),
    Story(
        id="S2",
        title="A glass of water",
        description="A man asks for water and the waiter points a gun at him.",
        solution="He had hiccups; the scare cured them.",
        difficulty="easy",
        tags=["bar", "gun"],
    ),
    Story(
        id="S3",
        title="Lost",
        description="Jack walks with a compass and cannot find his way back.",
        solution="He stopped exactly at the North Pole.",
        difficulty="hard",
        category="puzzle",
        tags=["compass"],
    ),
]


def _chunks(text: str) -> list[str]:
    """Split into word-sized chunks that join back to the exact text."""
    return re.findall(r"\S+\s*|\s+", text)


class StubLLM:
    """Canned LLM: returns responses in order and records (stage, messages) calls.

    `fail_after` makes stream() raise LLMError after that many chunks;
    complete() raises immediately when it is set.
    """

    def __init__(self, responses: list[str] | None = None, fail_after: int | None = None) -> None:
        self.responses = list(responses or [])
        self.fail_after = fail_after
        self.calls: list[tuple[str, list[dict]]] = []
        self.closed = False

    def _next(self) -> str:
        return self.responses.pop(0) if self.responses else ""

    async def complete(self, stage: str, messages: list[dict]) -> str:
        self.calls.append((stage, messages))
        if self.fail_after is not None:
            raise LLMError("LLM backend returned HTTP 503")
        return self._next()

    async def stream(self, stage: str, messages: list[dict]):
        self.calls.append((stage, messages))
        try:
            for i, chunk in enumerate(_chunks(self._next())):
                if self.fail_after is not None and i >= self.fail_after:
                    raise LLMError("LLM stream interrupted")
                yield chunk
            if self.fail_after == 0:
                raise LLMError("LLM backend returned HTTP 503")
        finally:
            self.closed = True

    @property
    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]

    def system_prompt(self, index: int = 0) -> str:
        return next(m["content"] for m in self.calls[index][1] if m["role"] == "system")


@pytest.fixture
def store(tmp_path) -> StoryStore:
    """A story store holding TEST_STORIES (S1 medium, S2 easy, S3 hard)."""
    s = StoryStore(tmp_path / "data")
    for story in TEST_STORIES:
        s.save_story(story)
    return s


@pytest.fixture
def stub_llm():
    """Factory: stub_llm(["reply 1", "reply 2"], fail_after=None) -> StubLLM."""
    return StubLLM


@pytest.fixture
def msg():
    """Factory: msg("user", "hello") -> Message."""
    def _make(role: str, content: str) -> Message:
        return Message(role=role, content=content)
    return _make
