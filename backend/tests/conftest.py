import pytest

from claude_deck.services.database import SessionStore
from log_records import (
    assistant,
    tool_result,
    tool_use,
    text,
    usage,
    user,
    write_jsonl,
)

PROJECT_DIR_NAME = "-Users-me-work-acme-api"
SESSION_ID = "550e8400-e29b-41d4-a716-446655440000"
AGENT_ID = "agent-a1b2c3"


@pytest.fixture
def claude_dir(tmp_path):
    claude_dir = tmp_path / ".claude"
    (claude_dir / "projects").mkdir(parents=True)
    return claude_dir


@pytest.fixture
def store():
    store = SessionStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def sample_session_file(claude_dir):
    """A session that reads a file, runs a sub-agent and gets both results back."""
    project_dir = claude_dir / "projects" / PROJECT_DIR_NAME
    session_path = write_jsonl(
        project_dir / f"{SESSION_ID}.jsonl",
        [
            user("2024-01-01T12:00:00Z", "Find the bug"),
            assistant(
                "m1",
                "2024-01-01T12:00:05Z",
                [text("Looking"), tool_use("t1", "Read", {"file_path": "/x.py"})],
                tokens=usage(100, 50),
            ),
            user(
                "2024-01-01T12:00:06Z",
                [tool_result("t1", "print('hi')")],
                external=False,
            ),
            assistant(
                "m2",
                "2024-01-01T12:00:10Z",
                [tool_use("t2", "Task", {"prompt": "search the code"})],
                tokens=usage(200, 20),
            ),
            user(
                "2024-01-01T12:01:00Z",
                [tool_result("t2", "found it")],
                external=False,
            ),
        ],
    )
    write_jsonl(
        project_dir / SESSION_ID / "subagents" / f"{AGENT_ID}.jsonl",
        [
            user("2024-01-01T12:00:11Z", "Search the code for the bug"),
            assistant(
                "s1",
                "2024-01-01T12:00:12Z",
                [tool_use("st1", "Grep", {"pattern": "bug"})],
                tokens=usage(10, 5),
            ),
            user("2024-01-01T12:00:13Z", [tool_result("st1", "a.py:1")], external=False),
            assistant("s2", "2024-01-01T12:00:20Z", [text("It is in a.py")], tokens=usage(10, 5)),
        ],
    )
    return project_dir, session_path
