"""Tests for dark_stories.game.session: reset rule and reconciliation."""

from dark_stories.game.session import new_session, reconcile, reset_after_completion
from dark_stories.models import GameSession, Story

LOST = Story(
    id="S3", title="Lost", description="Jack walks.", solution="North Pole.", difficulty="hard",
)


def _session(state: str, story_id: str | None = None, completed: list[str] | None = None) -> GameSession:
    return GameSession(
        game_state=state, selected_story_id=story_id, completed_story_ids=completed or [],
    )


def test_new_session() -> None:
    session = new_session("sess-1", "user-1")
    assert session.game_state == "before_story_selection"
    assert session.completed_story_ids == []
    assert session.session_id == "sess-1"
    assert session.user_id == "user-1"


# ---------------------------------------------------------------------------
# reset_after_completion
# ---------------------------------------------------------------------------

class TestResetAfterCompletion:
    def test_completed_twice_returns_to_selection(self) -> None:
        session = _session("story_completed", "S1", ["S1"])
        reset = reset_after_completion(session, "story_completed")
        assert reset.game_state == "before_story_selection"
        assert reset.selected_story_id is None
        assert reset.completed_story_ids == ["S1"]

    def test_adopts_detected_phase(self) -> None:
        session = _session("story_ongoing", "S1")
        assert reset_after_completion(session, "story_completed").game_state == "story_completed"

    def test_input_not_mutated(self) -> None:
        session = _session("story_completed", "S1", ["S1"])
        reset_after_completion(session, "story_completed")
        assert session.game_state == "story_completed"
        assert session.selected_story_id == "S1"


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------

class TestReconcile:
    def test_fresh_selection_starts_story(self) -> None:
        session = _session("before_story_selection", completed=["S1"])
        result = reconcile(session, "before_story_selection", LOST)
        assert result.game_state == "story_ongoing"
        assert result.selected_story_id == "S3"
        assert result.completed_story_ids == ["S1"]

    def test_completion_appends_story(self) -> None:
        result = reconcile(_session("story_ongoing", "S1"), "story_completed")
        assert result.game_state == "story_completed"
        assert result.selected_story_id == "S1"
        assert result.completed_story_ids == ["S1"]

    def test_completion_is_idempotent(self) -> None:
        once = reconcile(_session("story_ongoing", "S1"), "story_completed")
        twice = reconcile(once, "story_completed")
        assert twice.completed_story_ids == ["S1"]

    def test_completion_without_story_id(self, caplog) -> None:
        result = reconcile(_session("story_ongoing"), "story_completed")
        assert result.game_state == "story_completed"
        assert result.completed_story_ids == []
        assert "without a selected story id" in caplog.text

    def test_ongoing_keeps_story(self) -> None:
        result = reconcile(_session("story_ongoing", "S1"), "story_ongoing")
        assert result.game_state == "story_ongoing"
        assert result.selected_story_id == "S1"

    def test_ongoing_without_story_warns(self, caplog) -> None:
        result = reconcile(_session("before_story_selection"), "story_ongoing")
        assert result.game_state == "story_ongoing"
        assert "Story ongoing without a selected story id" in caplog.text

    def test_unchanged_phase_returns_session(self) -> None:
        session = _session("before_story_selection")
        assert reconcile(session, "before_story_selection") is session

    def test_other_phase_change_adopted(self) -> None:
        result = reconcile(_session("story_completed", "S1", ["S1"]), "before_story_selection")
        assert result.game_state == "before_story_selection"

    def test_completed_ids_never_shrink(self) -> None:
        session = _session("story_ongoing", "S2", ["S1"])
        for detected in ("before_story_selection", "story_ongoing", "story_completed"):
            assert set(session.completed_story_ids) <= set(
                reconcile(session, detected).completed_story_ids
            )
