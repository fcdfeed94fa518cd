"""Builders for JSONL log records used across the tests."""

import json
from pathlib import Path
from typing import Any

MODEL = "claude-sonnet-4-6"


def usage(input_tokens: int = 0, output_tokens: int = 0, cache_read: int = 0, cache_write: int = 0) -> dict:
    return {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "cache_read_input_tokens": cache_read,
        "cache_creation_input_tokens": cache_write,
    }


def text(value: str) -> dict:
    return {"type": "text", "text": value}


def tool_use(tool_id: str, name: str, tool_input: Any = None) -> dict:
    return {"type": "tool_use", "id": tool_id, "name": name, "input": tool_input or {}}


def tool_result(tool_id: str, content: Any) -> dict:
    return {"type": "tool_result", "tool_use_id": tool_id, "content": content}


def assistant(
    msg_id: str,
    timestamp: str,
    content: list[dict] | str,
    *,
    model: str = MODEL,
    tokens: dict | None = None,
) -> dict:
    message: dict[str, Any] = {"id": msg_id, "role": "assistant", "model": model, "content": content}
    if tokens is not None:
        message["usage"] = tokens
    return {"type": "assistant", "timestamp": timestamp, "message": message}


def user(timestamp: str, content: list[dict] | str, *, external: bool = True, **extra: Any) -> dict:
    record = {
        "type": "user",
        "timestamp": timestamp,
        "message": {"role": "user", "content": content},
        **extra,
    }
    if external:
        record["userType"] = "external"
    return record


def compaction(timestamp: str, trigger: str = "auto", pre_tokens: int = 0) -> dict:
    return {
        "type": "system",
        "subtype": "compact_boundary",
        "timestamp": timestamp,
        "compactMetadata": {"trigger": trigger, "preTokens": pre_tokens},
    }


def write_jsonl(path: Path, records: list[dict | str]) -> Path:
    """Write records one per line; strings are written verbatim."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        for record in records:
            f.write(record if isinstance(record, str) else json.dumps(record))
            f.write("\n")
    return path
