"""Tests for dark_stories.game.orchestrator: full turns through GameMaster."""

import random

import pytest

from dark_stories.game import GameMaster, StoryNotFoundError, StoryNotSelectedError
from dark_stories.llm import LLMError
from dark_stories.models import GameSession, Message


def _t(*pairs: tuple[str, str]) -> list[Message]:
    return [Message(role=role, content=content) for role, content in pairs]


def _session(state: str, story_id: str | None = None, completed: list[str] | None = None) -> GameSession:
    return GameSession(
        game_state=state, selected_story_id=story_id, completed_story_ids=completed or [],
    )


@pytest.fixture
def master(store, stub_llm):
    def _make(*responses: str, fail_after: int | None = None) -> GameMaster:
        return GameMaster(store, stub_llm(list(responses), fail_after=fail_after), rng=random.Random(0))
    return _make


# ---------------------------------------------------------------------------
# Selection phase
# ---------------------------------------------------------------------------

class TestSelectionTurns:
    async def test_first_turn_without_session(self, master) -> None:
        gm = master("Welcome to Dark Stories! Want me to choose a story?")
        result = await gm.respond(_t(("user", "Hello there")))
        assert result.session.game_state == "before_story_selection"
        assert result.session.selected_story_id is None
        assert gm.llm.stages == ["selection"]

    async def test_easy_start_selects_easy_story(self, master) -> None:
        gm = master("Perfect! Let's begin.\nTitle: A glass of water\nDescription: A man asks for water.")
        session = _session("before_story_selection")
        result = await gm.respond(_t(("user", "I want an easy one, let's start")), session)
        assert result.session.game_state == "story_ongoing"
        assert result.session.selected_story_id == "S2"
        assert result.session.completed_story_ids == []

    async def test_missing_labels_appended_to_selection_reply(self, master) -> None:
        gm = master("Great choice, here we go!")
        result = await gm.respond(_t(("user", "easy, let's start")), _session("before_story_selection"))
        assert result.text.startswith("Great choice, here we go!\n\nTitle: A glass of water\n")
        assert "Description: A man asks for water" in result.text
        assert "hiccups" not in result.text
        assert result.session.selected_story_id == "S2"

    async def test_existing_labels_left_alone(self, master) -> None:
        reply = "Let's begin.\nTitle: A glass of water\nDescription: A man asks for water."
        gm = master(reply)
        result = await gm.respond(_t(("user", "easy, start")), _session("before_story_selection"))
        assert result.text == reply

    async def test_empty_story_id_treated_as_unselected(self, master) -> None:
        gm = master("Title: Invented story")
        session = _session("before_story_selection", "")
        result = await gm.respond(_t(("user", "Hello there")), session)
        assert result.session.game_state == "story_ongoing"

    async def test_all_completed_selects_nothing(self, master) -> None:
        gm = master("Congratulations, you have completed every story!")
        session = _session("before_story_selection", completed=["S1", "S2", "S3"])
        result = await gm.respond(_t(("user", "yes, let's start")), session)
        assert result.session.game_state == "before_story_selection"
        assert result.session.selected_story_id is None
        assert result.text == "Congratulations, you have completed every story!"
        assert "All available stories have been completed" in gm.llm.system_prompt()

    async def test_introduction_marker_without_pick_starts_story(self, master) -> None:
        gm = master("Title: Invented story")
        result = await gm.respond(_t(("user", "Hello there")), _session("before_story_selection"))
        # No story was picked, so the marker alone drives the phase.
        assert result.session.game_state == "story_ongoing"
        assert result.session.selected_story_id is None


# ---------------------------------------------------------------------------
# Narrator phase
# ---------------------------------------------------------------------------

class TestNarratorTurns:
    async def test_question_keeps_story_ongoing(self, master) -> None:
        gm = master("No.")
        session = _session("story_ongoing", "S1")
        result = await gm.respond(_t(("user", "Was he poisoned?")), session)
        assert result.session.game_state == "story_ongoing"
        assert result.session.selected_story_id == "S1"
        assert gm.llm.stages == ["narrator"]
        assert "spare key hidden in the clock" in gm.llm.system_prompt()

    async def test_solution_completes_story(self, master) -> None:
        gm = master("Yes! Solution: the butler did it")
        session = _session("story_ongoing", "S1")
        result = await gm.respond(_t(("user", "Did the butler do it?")), session)
        assert result.session.game_state == "story_completed"
        assert result.session.completed_story_ids == ["S1"]

    async def test_solution_in_request_transcript_completes_story(self, master) -> None:
        gm = master("Thanks for playing!")
        transcript = _t(
            ("user", "Did the butler do it?"),
            ("assistant", "...Solution: the butler did it"),
            ("user", "Wow!"),
        )
        result = await gm.respond(transcript, _session("story_ongoing", "S1"))
        assert result.session.game_state == "story_completed"
        assert result.session.completed_story_ids == ["S1"]
        assert gm.llm.stages == ["narrator"]

    async def test_message_after_completion_returns_to_selection(self, master) -> None:
        gm = master("Want another story?")
        transcript = _t(
            ("assistant", "Solution: the butler did it"),
            ("user", "That was fun, another?"),
        )
        session = _session("story_completed", "S1", ["S1"])
        result = await gm.respond(transcript, session)
        assert gm.llm.stages == ["selection"]
        assert result.session.game_state == "before_story_selection"
        assert result.session.selected_story_id is None
        assert result.session.completed_story_ids == ["S1"]

    async def test_stale_solution_does_not_complete_new_story(self, master) -> None:
        gm = master("It's not relevant.")
        transcript = _t(
            ("assistant", "Solution: the butler did it"),
            ("user", "start"),
            ("assistant", "Title: A glass of water\nDescription: A man asks for water."),
            ("user", "Was it a real gun?"),
        )
        result = await gm.respond(transcript, _session("story_ongoing", "S2", ["S1"]))
        assert result.session.game_state == "story_ongoing"
        assert result.session.completed_story_ids == ["S1"]

    async def test_narrator_without_story_raises(self, master) -> None:
        gm = master("No.")
        with pytest.raises(StoryNotSelectedError, match="Story ID is required"):
            await gm.respond(_t(("user", "Was he poisoned?")), _session("story_ongoing"))
        assert gm.llm.calls == []

    async def test_unknown_story_raises(self, master) -> None:
        gm = master("No.")
        with pytest.raises(StoryNotFoundError):
            await gm.respond(_t(("user", "Was he poisoned?")), _session("story_ongoing", "gone"))

    async def test_llm_error_propagates(self, master) -> None:
        gm = master("No.", fail_after=0)
        with pytest.raises(LLMError):
            await gm.respond(_t(("user", "Was he poisoned?")), _session("story_ongoing", "S1"))


# ---------------------------------------------------------------------------
# Streaming turns
# ---------------------------------------------------------------------------

class TestStreamingTurns:
    async def test_chunks_then_finish(self, master) -> None:
        gm = master("Yes! Solution: the butler did it")
        turn = gm.stream(_t(("user", "The butler?")), _session("story_ongoing", "S1"))
        chunks = [c async for c in turn.chunks]
        assert len(chunks) > 1
        result = turn.finish("".join(chunks))
        assert result.text == "Yes! Solution: the butler did it"
        assert result.session.completed_story_ids == ["S1"]

    async def test_precondition_checked_before_streaming(self, master) -> None:
        gm = master("No.")
        with pytest.raises(StoryNotSelectedError):
            gm.stream(_t(("user", "Was he poisoned?")), _session("story_ongoing"))

    async def test_finish_adds_story_tail(self, master) -> None:
        gm = master("Here we go!")
        turn = gm.stream(_t(("user", "easy, start")), _session("before_story_selection"))
        streamed = "".join([c async for c in turn.chunks])
        result = turn.finish(streamed)
        assert result.text.startswith(streamed)
        assert result.text[len(streamed):].startswith("\n\nTitle: A glass of water")


def test_turn_result_message_is_timestamped(store, stub_llm) -> None:
    gm = GameMaster(store, stub_llm())
    plan = gm.plan_turn(_t(("user", "hi")), None)
    message = gm.finish_turn(plan, "Hello!").message()
    assert message.role == "assistant"
    assert message.content == "Hello!"
    assert message.timestamp
