"""Game-state protocol: phase detection, session reconciliation, agent dispatch.

Phases:
  before_story_selection   the selection agent chats and may pick a story
  story_ongoing            the narrator answers Yes / No / It's not relevant
  story_completed          the narrator revealed "Solution: ..."

The client holds the session; every request is reconciled independently.
"""

from .detector import (  # noqa: F401
    MarkerDetector,
    PhaseDetector,
    detect_game_state,
    extract_story_info,
)
from .orchestrator import (  # noqa: F401
    GameError,
    GameMaster,
    StoryNotFoundError,
    StoryNotSelectedError,
    StreamingTurn,
    TurnResult,
)
from .session import new_session, reconcile, reset_after_completion  # noqa: F401
