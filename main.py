"""Dark Stories: dev launcher. Optionally seeds the story store, then starts the API."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Dark Stories dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Story store directory (default: ./data)")
    parser.add_argument("--seed", action="store_true",
                        help="Load presets/stories.json into the store before starting")
    parser.add_argument("--force", action="store_true",
                        help="With --seed, replace stories that already exist")
    args = parser.parse_args()

    if args.seed:
        from backend.config import Settings
        from dark_stories.storage import StoryStore, load_preset_stories, seed_stories
        settings = Settings.from_env()
        store = StoryStore(args.data_dir or settings.data_dir)
        counts = seed_stories(
            store, load_preset_stories(settings.presets_dir / "stories.json"), force=args.force,
        )
        print(f"Seeded stories: added={counts['added']} skipped={counts['skipped']}")

    # Build env for the subprocess so the backend picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    proc = subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:create_app", "--factory", "--reload",
         "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    )

    def shutdown(*_):
        print("\nShutting down...")
        proc.terminate()
        proc.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    proc.wait()


if __name__ == "__main__":
    main()
