"""JSON file story store.

The whole catalogue lives in one flat JSON file under a configurable base
directory. There is no database or ORM: reads and writes go through plain
helper methods that load and dump JSON.

Directory layout:

    {base}/
      stories.json    ← list of Story objects, keyed by "id"

Story ids are opaque to callers; the seeder derives them from the title
slug ("A glass of water" → "a-glass-of-water").
"""

from __future__ import annotations

import json
import logging
import random
import re
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dark_stories.models import Story, StoryFilters

logger = logging.getLogger(__name__)


def slugify(title: str) -> str:
    """Convert a title to a stable story id.

    "Not now...!" → "not-now"
    """
    text = unicodedata.normalize("NFKD", title)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)  # strip apostrophes/quotes before hyphenation
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    return text or "untitled"


class StoryStore:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)
        self._path = base_path / "stories.json"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read(self) -> list[Story]:
        if not self._path.exists():
            return []
        return [Story.model_validate(s) for s in json.loads(self._path.read_text())]

    def _write(self, stories: list[Story]) -> None:
        self._path.write_text(json.dumps(
            [s.model_dump(exclude_none=True) for s in stories], indent=2, ensure_ascii=False,
        ))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_stories(self, filters: StoryFilters | None = None) -> list[Story]:
        """All stories matching every given filter, in file order."""
        stories = self._read()
        if filters is None:
            return stories
        if filters.difficulty:
            stories = [s for s in stories if s.difficulty == filters.difficulty]
        if filters.category:
            stories = [s for s in stories if s.category == filters.category]
        if filters.tags:
            wanted = set(filters.tags)
            stories = [s for s in stories if wanted.intersection(s.tags)]
        if filters.exclude_ids:
            excluded = set(filters.exclude_ids)
            before = len(stories)
            stories = [s for s in stories if s.id not in excluded]
            logger.debug("Filtered out %d completed stories", before - len(stories))
        return stories

    def get_story(self, story_id: str) -> Story | None:
        for story in self._read():
            if story.id == story_id:
                return story
        return None

    def available_stories(
        self, completed_ids: list[str] | None = None, filters: StoryFilters | None = None
    ) -> list[Story]:
        """Stories not yet completed, optionally narrowed by filters."""
        merged = (filters or StoryFilters()).model_copy(
            update={"exclude_ids": list(completed_ids or [])}
        )
        return self.list_stories(merged)

    def random_story(
        self,
        completed_ids: list[str] | None = None,
        filters: StoryFilters | None = None,
        rng: random.Random | None = None,
    ) -> Story | None:
        """Pick uniformly among available stories. None when nothing is left."""
        available = self.available_stories(completed_ids, filters)
        if not available:
            logger.info("No available stories (completed=%d)", len(completed_ids or []))
            return None
        story = (rng or random).choice(available)
        logger.info("Selected random story %r (id=%s)", story.title, story.id)
        return story

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_story(self, story: Story) -> Story:
        """Upsert a story by id, stamping created/updated times."""
        now = datetime.now(timezone.utc).isoformat()
        stories = self._read()
        for i, s in enumerate(stories):
            if s.id == story.id:
                story = story.model_copy(update={
                    "created_at": s.created_at or now, "updated_at": now,
                })
                stories[i] = story
                break
        else:
            story = story.model_copy(update={
                "created_at": story.created_at or now, "updated_at": now,
            })
            stories.append(story)
        self._write(stories)
        return story

    def delete_story(self, story_id: str) -> bool:
        stories = self._read()
        kept = [s for s in stories if s.id != story_id]
        if len(kept) == len(stories):
            return False
        self._write(kept)
        return True


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

def load_preset_stories(path: Path) -> list[dict[str, Any]]:
    """Read a preset catalogue: a JSON list of story dicts (id optional)."""
    return json.loads(path.read_text())


def seed_stories(
    store: StoryStore, stories: list[dict[str, Any]], force: bool = False
) -> dict[str, int]:
    """Add preset stories, skipping titles already in the store.

    With force=True, stories sharing a title are replaced. Returns
    {"added": n, "skipped": n}.
    """
    added = skipped = 0
    for raw in stories:
        existing = [s for s in store.list_stories() if s.title == raw["title"]]
        if existing and not force:
            logger.info("Story %r already exists, skipping", raw["title"])
            skipped += 1
            continue
        for s in existing:
            store.delete_story(s.id)
        data = dict(raw)
        data.setdefault("id", slugify(raw["title"]))
        store.save_story(Story.model_validate(data))
        added += 1
    logger.info("Seed completed: added=%d skipped=%d", added, skipped)
    return {"added": added, "skipped": skipped}
