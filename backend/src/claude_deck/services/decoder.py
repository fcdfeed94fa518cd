"""Decoding of raw JSONL lines into typed log entries."""

import orjson
from pydantic import ValidationError

from ..models.entries import (
    AssistantEntry,
    CompactBoundaryEntry,
    LogEntry,
    UnknownEntry,
    UserEntry,
)


class DecodeError(ValueError):
    """A log line could not be decoded; callers drop the line and carry on."""


def decode_entry(line: str | bytes) -> LogEntry:
    """Decode one JSONL line.

    Raises:
        DecodeError: the line is not a JSON object, or a recognized entry
            type does not have the expected shape.
    """
    try:
        record = orjson.loads(line)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}") from e

    if not isinstance(record, dict):
        raise DecodeError(f"expected a JSON object, got {type(record).__name__}")

    entry_type = record.get("type")
    try:
        if entry_type == "assistant":
            return AssistantEntry.model_validate(record)
        if entry_type == "user":
            return UserEntry.model_validate(record)
        if entry_type == "system" and record.get("subtype") == "compact_boundary":
            return CompactBoundaryEntry.model_validate(record)
        return UnknownEntry(
            type=str(entry_type) if entry_type is not None else "",
            timestamp=record.get("timestamp") if isinstance(record.get("timestamp"), str) else "",
        )
    except ValidationError as e:
        raise DecodeError(f"malformed {entry_type} entry: {e.error_count()} error(s)") from e
