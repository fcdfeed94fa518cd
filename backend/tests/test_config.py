from pathlib import Path

from claude_deck.config import DEFAULT_PORT, Settings


def test_defaults(monkeypatch):
    for name in (
        "CLAUDE_DECK_CLAUDE_DIR",
        "CLAUDE_DECK_DB_PATH",
        "CLAUDE_DECK_HOST",
        "CLAUDE_DECK_PORT",
        "CLAUDE_DECK_SYNC_INTERVAL",
        "CLAUDE_DECK_SYNC_ON_STARTUP",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.claude_dir == Path.home() / ".claude"
    assert settings.db_path == Path.home() / ".claude-deck" / "data.duckdb"
    assert settings.port == DEFAULT_PORT == 7722
    assert settings.sync_interval_seconds == 0
    assert settings.sync_on_startup is True


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CLAUDE_DECK_CLAUDE_DIR", str(tmp_path / "claude"))
    monkeypatch.setenv("CLAUDE_DECK_DB_PATH", str(tmp_path / "deck.duckdb"))
    monkeypatch.setenv("CLAUDE_DECK_PORT", "9000")
    monkeypatch.setenv("CLAUDE_DECK_SYNC_INTERVAL", "30")
    monkeypatch.setenv("CLAUDE_DECK_SYNC_ON_STARTUP", "no")

    settings = Settings.from_env()

    assert settings.claude_dir == tmp_path / "claude"
    assert settings.db_path == tmp_path / "deck.duckdb"
    assert settings.port == 9000
    assert settings.sync_interval_seconds == 30
    assert settings.sync_on_startup is False


def test_invalid_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("CLAUDE_DECK_PORT", "not-a-port")
    monkeypatch.setenv("CLAUDE_DECK_SYNC_INTERVAL", "soon")

    settings = Settings.from_env()

    assert settings.port == DEFAULT_PORT
    assert settings.sync_interval_seconds == 0
