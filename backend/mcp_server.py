"""FastMCP server exposing the story catalogue as MCP tools.

Tools:
  - list_stories(difficulty): catalogue without solutions
  - remaining_stories(completed_ids): stories a player has not finished yet

The store is replaced via set_store() for tests, or opened from DATA_DIR
when run as __main__. Solutions never leave this server.

Usage:
    uv run python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from dark_stories.models import StoryFilters
from dark_stories.storage import StoryStore

mcp = FastMCP("dark-stories")

_store: StoryStore | None = None


def set_store(store: StoryStore | None) -> None:
    """Replace the active story store (used in tests)."""
    global _store
    _store = store


def get_store() -> StoryStore:
    if _store is None:
        raise RuntimeError("Call set_store() before using the MCP server")
    return _store


@mcp.tool()
def list_stories(difficulty: str = "") -> list[dict]:
    """List mystery stories (title, description, difficulty, tags). Optionally filter by difficulty."""
    filters = StoryFilters(difficulty=difficulty or None)
    return [s.public() for s in get_store().list_stories(filters)]


@mcp.tool()
def remaining_stories(completed_ids: list[str]) -> dict:
    """Count and list the stories not yet completed by a player."""
    available = get_store().available_stories(completed_ids)
    return {
        "remaining": len(available),
        "titles": [s.title for s in available],
    }


if __name__ == "__main__":
    from dotenv import load_dotenv

    from backend.config import Settings
    load_dotenv()
    set_store(StoryStore(Settings.from_env().data_dir))
    mcp.run()
