import pytest

from claude_deck.models.entries import TokenUsage
from claude_deck.services.log_parser import (
    MAX_TOOL_INPUT_LENGTH,
    TRUNCATION_MARKER,
    extract_text,
    parse_session_file,
    parse_subagent_file,
    truncate,
)
from claude_deck.services.metrics import estimate_cost
from conftest import AGENT_ID, SESSION_ID
from log_records import (
    MODEL,
    assistant,
    compaction,
    text,
    tool_result,
    tool_use,
    usage,
    user,
    write_jsonl,
)


def parse(path, session_id="s1"):
    return parse_session_file(path, session_id, "acme/api", "-acme-api", "2024-01-01T00:00:00+00:00")


def test_truncate():
    assert truncate("abc", 3) == "abc"
    assert truncate("abcd", 3) == "abc" + TRUNCATION_MARKER


def test_extract_text_joins_text_blocks():
    assert extract_text(None) == ""
    assert extract_text("plain") == "plain"


def test_duplicate_message_id_counts_once_but_usage_twice(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", [text("Reading the file")], tokens=usage(100, 50)),
            assistant(
                "m1",
                "2024-01-01T12:00:01Z",
                [tool_use("read_file", "Read", {"file_path": "/a.ts"})],
                tokens=usage(100, 50),
            ),
            user(
                "2024-01-01T12:00:02Z",
                [tool_result("read_file", "export const a = 1;")],
                external=False,
            ),
            user("2024-01-01T12:00:03Z", "done"),
        ],
    )

    session = parse(path)

    assert session.message_count == 2
    assistant_messages = [m for m in session.messages if m.role == "assistant"]
    assert len(assistant_messages) == 1
    assert assistant_messages[0].content == "Reading the file"
    assert [m.content for m in session.messages if m.role == "user"] == ["done"]
    assert session.input_tokens == 200
    assert session.output_tokens == 100
    assert session.model == MODEL
    assert session.turn_count == 1

    assert len(session.tool_calls) == 1
    call = session.tool_calls[0]
    assert call.tool_name == "Read"
    assert call.tool_input == '{"file_path":"/a.ts"}'
    assert call.status == "success"
    assert call.tool_response == "export const a = 1;"
    assert call.subagent_id is None


def test_session_cost_is_sum_over_every_usage_record(tmp_path):
    first = usage(1000, 200, cache_read=5000, cache_write=300)
    second = usage(10, 20)
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", [text("a")], tokens=first),
            assistant("m1", "2024-01-01T12:00:00Z", [text("a")], tokens=first),
            assistant("m2", "2024-01-01T12:00:05Z", [text("b")], model="claude-opus-4-6", tokens=second),
        ],
    )

    session = parse(path)

    expected = 2 * estimate_cost(MODEL, TokenUsage(**first)) + estimate_cost(
        "claude-opus-4-6", TokenUsage(**second)
    )
    assert session.estimated_cost_usd == pytest.approx(expected)
    assert session.cache_read_tokens == 10000
    assert session.cache_create_tokens == 600
    assert session.peak_context_tokens == 1000 + 5000 + 300
    # Both models were seen once as distinct messages; the first one wins the tie
    assert session.model == MODEL


def test_primary_model_is_most_frequent(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", "x", model="claude-haiku-4-5"),
            assistant("m2", "2024-01-01T12:00:01Z", "y", model="claude-opus-4-6"),
            assistant("m3", "2024-01-01T12:00:02Z", "z", model="claude-opus-4-6"),
        ],
    )
    assert parse(path).model == "claude-opus-4-6"


def test_first_prompt_skips_injected_markup(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            user("2024-01-01T12:00:00Z", "<local-command-caveat>caveat</local-command-caveat>"),
            user("2024-01-01T12:00:01Z", [text("<system-reminder>hint</system-reminder>Fix the login page")]),
            user("2024-01-01T12:00:02Z", "Second prompt"),
            user("2024-01-01T12:00:03Z", "Internal note", external=False),
        ],
    )

    session = parse(path)

    assert session.first_prompt == "Fix the login page"
    assert [m.content for m in session.messages] == ["Fix the login page", "Second prompt"]


def test_turns_count_changes_of_speaker(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            user("2024-01-01T12:00:00Z", "one"),
            assistant("m1", "2024-01-01T12:00:01Z", "a"),
            assistant("m2", "2024-01-01T12:00:02Z", "b"),
            user("2024-01-01T12:00:03Z", "two"),
            assistant("m3", "2024-01-01T12:00:04Z", "c"),
        ],
    )
    assert parse(path).turn_count == 2


def test_first_tool_result_wins(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", [tool_use("t1", "Bash", {"command": "ls"})]),
            user(
                "2024-01-01T12:00:01Z",
                [tool_result("t1", "from block")],
                external=False,
                toolUseID="t1",
                toolUseResult={"stdout": "from payload"},
            ),
            user("2024-01-01T12:00:02Z", [tool_result("t1", "late result")], external=False),
        ],
    )

    call = parse(path).tool_calls[0]
    assert call.status == "success"
    assert call.tool_response == '{"stdout":"from payload"}'


def test_structured_tool_result_content_is_serialized(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", [tool_use("t1", "Read")]),
            user(
                "2024-01-01T12:00:01Z",
                [tool_result("t1", [{"type": "text", "text": "ok"}])],
                external=False,
            ),
        ],
    )
    assert parse(path).tool_calls[0].tool_response == '[{"type":"text","text":"ok"}]'


def test_unresolved_tool_calls_stay_pending(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant(
                "m1",
                "2024-01-01T12:00:00Z",
                [tool_use("t1", "Bash"), tool_use("t2", "Edit"), tool_use("t1", "Bash")],
            ),
            user("2024-01-01T12:00:01Z", [tool_result("t2", "edited"), tool_result("zz", "stray")]),
        ],
    )

    calls = parse(path).tool_calls
    assert [c.tool_use_id for c in calls] == ["t1", "t2"]
    assert [c.status for c in calls] == ["pending", "success"]
    assert calls[0].tool_response is None


def test_long_payloads_are_truncated(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", [tool_use("t1", "Write", {"content": "x" * 5000})]),
            user("2024-01-01T12:00:01Z", [tool_result("t1", "y" * 5000)], external=False),
        ],
    )

    call = parse(path).tool_calls[0]
    assert len(call.tool_input) == MAX_TOOL_INPUT_LENGTH + len(TRUNCATION_MARKER)
    assert call.tool_input.endswith(TRUNCATION_MARKER)
    assert call.tool_response == "y" * 2000 + TRUNCATION_MARKER


def test_malformed_and_unknown_lines_are_skipped(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            "this is not json",
            "",
            '{"type": "assistant"}',
            {"type": "summary", "summary": "old session"},
            assistant("m1", "2024-01-01T12:00:00Z", "hello", tokens=usage(1, 1)),
            '{"type": "assistant", "message": {"id": "m2", "content": ',
        ],
    )

    session = parse(path)
    assert session.message_count == 1
    assert session.input_tokens == 1


def test_compactions_and_duration(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            user("2024-01-01T12:00:00Z", "start"),
            compaction("2024-01-01T12:30:00Z", trigger="manual", pre_tokens=150_000),
            {"type": "system", "subtype": "compact_boundary", "timestamp": "2024-01-01T12:40:00Z"},
            assistant("m1", "2024-01-01T13:00:00.500Z", "end"),
        ],
    )

    session = parse(path)

    assert len(session.compactions) == 1
    assert session.compactions[0].trigger == "manual"
    assert session.compactions[0].pre_tokens == 150_000
    assert session.started_at == "2024-01-01T12:00:00Z"
    assert session.ended_at == "2024-01-01T13:00:00.500Z"
    assert session.duration_ms == 3_600_500


def test_session_without_timestamps_has_no_duration(tmp_path):
    path = write_jsonl(tmp_path / "s1.jsonl", [{"type": "assistant", "message": {"id": "m1", "content": "hi"}}])
    session = parse(path)
    assert session.duration_ms is None
    assert session.started_at is None


def test_parse_session_file(sample_session_file):
    _, session_path = sample_session_file

    session = parse_session_file(session_path, SESSION_ID, "acme/api", "-acme-api", "mtime")

    assert session.id == SESSION_ID
    assert session.first_prompt == "Find the bug"
    assert session.message_count == 2
    assert session.tool_call_count == 2
    assert session.input_tokens == 300
    assert session.output_tokens == 70
    assert session.estimated_cost_usd == pytest.approx(0.00195)
    assert session.duration_ms == 60_000
    assert session.jsonl_path == str(session_path)
    assert session.subagents == []
    successes = [c for c in session.tool_calls if c.status == "success"]
    assert len(successes) <= session.tool_call_count


def test_parse_subagent_file(sample_session_file):
    project_dir, _ = sample_session_file
    path = project_dir / SESSION_ID / "subagents" / f"{AGENT_ID}.jsonl"

    subagent, tool_calls = parse_subagent_file(path, AGENT_ID, SESSION_ID)

    assert subagent.id == AGENT_ID
    assert subagent.session_id == SESSION_ID
    assert subagent.agent_type == "Explore"
    assert subagent.prompt == "Search the code for the bug"
    assert subagent.result_summary == "It is in a.py"
    assert subagent.input_tokens == 20
    assert subagent.output_tokens == 10
    assert subagent.tool_call_count == 1
    assert subagent.duration_ms == 9000
    assert tool_calls[0].subagent_id == AGENT_ID
    assert tool_calls[0].status == "success"
    assert tool_calls[0].tool_response == "a.py:1"


def test_subagent_prompt_and_summary_are_capped(tmp_path):
    path = write_jsonl(
        tmp_path / "agent.jsonl",
        [
            user("2024-01-01T12:00:00Z", "p" * 800),
            assistant("m1", "2024-01-01T12:00:01Z", [text("first")]),
            assistant("m2", "2024-01-01T12:00:02Z", [text("r" * 800)]),
        ],
    )

    subagent, _ = parse_subagent_file(path, "agent", "s1")

    assert subagent.prompt == "p" * 500
    assert subagent.result_summary == "r" * 500
    assert subagent.agent_type == "general-purpose"


def test_missing_file_raises_os_error(tmp_path):
    with pytest.raises(OSError):
        parse(tmp_path / "missing.jsonl")


def test_null_assistant_content_still_counts_usage(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", [text("first")], tokens=usage(100, 50)),
            {
                "type": "assistant",
                "timestamp": "2024-01-01T12:00:01Z",
                "message": {"id": "m2", "model": MODEL, "content": None, "usage": usage(100, 50)},
            },
        ],
    )

    session = parse(path)

    assert session.input_tokens == 200
    assert session.output_tokens == 100
    assert [m.content for m in session.messages] == ["first"]


def test_null_is_error_still_resolves_tool_call(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", [tool_use("t1", "Bash", {"command": "ls"})]),
            user(
                "2024-01-01T12:00:01Z",
                [{**tool_result("t1", "a.txt"), "is_error": None}],
                external=False,
            ),
        ],
    )

    call = parse(path).tool_calls[0]
    assert call.status == "success"
    assert call.tool_response == "a.txt"


def test_null_user_message_still_delivers_tool_use_result(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant("m1", "2024-01-01T12:00:00Z", [tool_use("t1", "Bash", {"command": "ls"})]),
            {
                "type": "user",
                "timestamp": "2024-01-01T12:00:01Z",
                "message": None,
                "toolUseID": "t1",
                "toolUseResult": {"stdout": "a.txt"},
            },
        ],
    )

    call = parse(path).tool_calls[0]
    assert call.status == "success"
    assert call.tool_response == '{"stdout":"a.txt"}'


def test_stray_values_in_content_list_are_skipped(tmp_path):
    path = write_jsonl(
        tmp_path / "s1.jsonl",
        [
            assistant(
                "m1",
                "2024-01-01T12:00:00Z",
                ["oops", 42, tool_use("t1", "Read", {"file_path": "/a.ts"})],
                tokens=usage(10, 5),
            ),
        ],
    )

    session = parse(path)

    assert [c.tool_name for c in session.tool_calls] == ["Read"]
    assert session.input_tokens == 10
