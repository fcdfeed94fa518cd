"""Runtime configuration, read from the environment."""

import os
from pathlib import Path

from pydantic import BaseModel

DEFAULT_CLAUDE_DIR = Path.home() / ".claude"
DEFAULT_DB_PATH = Path.home() / ".claude-deck" / "data.duckdb"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7722


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Settings(BaseModel):
    claude_dir: Path = DEFAULT_CLAUDE_DIR
    db_path: Path = DEFAULT_DB_PATH
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    # 0 disables the background re-sync loop
    sync_interval_seconds: int = 0
    sync_on_startup: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            claude_dir=Path(os.getenv("CLAUDE_DECK_CLAUDE_DIR", str(DEFAULT_CLAUDE_DIR))).expanduser(),
            db_path=Path(os.getenv("CLAUDE_DECK_DB_PATH", str(DEFAULT_DB_PATH))).expanduser(),
            host=os.getenv("CLAUDE_DECK_HOST", DEFAULT_HOST),
            port=_env_int("CLAUDE_DECK_PORT", DEFAULT_PORT),
            sync_interval_seconds=_env_int("CLAUDE_DECK_SYNC_INTERVAL", 0),
            sync_on_startup=_env_bool("CLAUDE_DECK_SYNC_ON_STARTUP", True),
        )
