"""Streaming parsers for session and sub-agent JSONL logs.

Each parse is a single forward pass over the file. The same logical
assistant message can be logged more than once (one record per content
block, plus re-deliveries), and tool results arrive in a later user record
than the tool invocation. The per-pass state below reconciles both:

* message ids seen so far, so text, model tallies and turns are taken once;
* tool_use id -> index into the tool call list, so a result is matched in O(1).

Token usage is summed from every assistant record, duplicates included,
matching how the agent's own usage accounting adds them up.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import orjson

from ..models.entries import (
    AssistantEntry,
    CompactBoundaryEntry,
    ContentBlock,
    LogEntry,
    TextBlock,
    TokenUsage,
    ToolResult,
    ToolUse,
    UserEntry,
)
from ..models.responses import (
    ParsedCompaction,
    ParsedMessage,
    ParsedToolCall,
    SessionAggregate,
    SubagentAggregate,
)
from ..utils.datetime import duration_ms
from .decoder import DecodeError, decode_entry
from .heuristics import classify_agent_type, clean_prompt
from .metrics import estimate_cost

# Stored payloads are capped; anything longer is cut and marked with TRUNCATION_MARKER.
MAX_TOOL_INPUT_LENGTH = 2000
MAX_TOOL_RESPONSE_LENGTH = 2000
MAX_SUBAGENT_TEXT_LENGTH = 500
TRUNCATION_MARKER = "..."


def truncate(text: str, limit: int) -> str:
    """Cap text at ``limit`` characters, appending a marker when cut."""
    return text[:limit] + TRUNCATION_MARKER if len(text) > limit else text


def serialize_payload(value: Any) -> str:
    """Compact JSON rendering of a tool input or result."""
    return orjson.dumps(value).decode()


def extract_text(content: list[ContentBlock] | str | None) -> str:
    """Join the text blocks of a message."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "\n".join(block.text for block in content if isinstance(block, TextBlock))


def iter_log_entries(path: Path) -> Iterator[LogEntry]:
    """Yield decoded entries from a JSONL file, skipping blank and malformed lines.

    Raises:
        OSError: the file cannot be opened or read.
    """
    with open(path, "rb") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                yield decode_entry(line)
            except DecodeError:
                continue


class _TranscriptPass:
    """Mutable state for one parse of one transcript file.

    Created at the start of a pass and discarded at the end; never shared
    between files.
    """

    def __init__(self, subagent_id: str | None = None) -> None:
        self.subagent_id = subagent_id
        self.tool_calls: list[ParsedToolCall] = []
        self.tool_use_index: dict[str, int] = {}
        self.seen_message_ids: set[str] = set()
        self.model_counts: dict[str, int] = {}

        self.input_tokens = 0
        self.output_tokens = 0
        self.cache_read_tokens = 0
        self.cache_create_tokens = 0
        self.total_cost = 0.0

        self.started_at: str | None = None
        self.ended_at: str | None = None

    def observe(self, entry: LogEntry) -> None:
        if entry.timestamp:
            if self.started_at is None:
                self.started_at = entry.timestamp
            self.ended_at = entry.timestamp

    def mark_message(self, entry: AssistantEntry) -> bool:
        """Record the message id; returns True the first time an id is seen."""
        msg = entry.message
        already_seen = msg.id is not None and msg.id in self.seen_message_ids
        if msg.id is not None:
            self.seen_message_ids.add(msg.id)
        if msg.model and not already_seen:
            self.model_counts[msg.model] = self.model_counts.get(msg.model, 0) + 1
        return not already_seen

    def add_usage(self, model: str | None, usage: TokenUsage) -> float:
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.cache_read_tokens += usage.cache_read_input_tokens
        self.cache_create_tokens += usage.cache_creation_input_tokens
        cost = estimate_cost(model, usage)
        self.total_cost += cost
        return cost

    def record_tool_use(self, block: ToolUse, timestamp: str) -> None:
        if block.id in self.tool_use_index:
            return
        self.tool_use_index[block.id] = len(self.tool_calls)
        self.tool_calls.append(
            ParsedToolCall(
                tool_use_id=block.id,
                tool_name=block.name,
                tool_input=truncate(serialize_payload(block.input), MAX_TOOL_INPUT_LENGTH),
                timestamp=timestamp,
                subagent_id=self.subagent_id,
            )
        )

    def resolve(self, tool_use_id: str | None, response: str) -> None:
        """Attach a result to its pending tool call; the first result wins."""
        if tool_use_id is None:
            return
        idx = self.tool_use_index.get(tool_use_id)
        if idx is None:
            return
        call = self.tool_calls[idx]
        if call.status != "pending":
            return
        call.status = "success"
        call.tool_response = truncate(response, MAX_TOOL_RESPONSE_LENGTH)

    def resolve_tool_results(self, entry: UserEntry) -> None:
        if entry.toolUseResult and entry.toolUseID:
            self.resolve(entry.toolUseID, serialize_payload(entry.toolUseResult))

        content = entry.message.content
        if isinstance(content, list):
            for block in content:
                if isinstance(block, ToolResult):
                    response = (
                        block.content
                        if isinstance(block.content, str)
                        else serialize_payload(block.content if block.content is not None else "")
                    )
                    self.resolve(block.tool_use_id, response)

    def primary_model(self) -> str | None:
        """Most frequent model; ties go to the model seen first."""
        primary = None
        max_count = 0
        for model, count in self.model_counts.items():
            if count > max_count:
                primary = model
                max_count = count
        return primary

    def duration_ms(self) -> int | None:
        return duration_ms(self.started_at, self.ended_at)


class _SessionPass(_TranscriptPass):
    def __init__(self) -> None:
        super().__init__(subagent_id=None)
        self.messages: list[ParsedMessage] = []
        self.compactions: list[ParsedCompaction] = []
        self.first_prompt: str | None = None
        self.turn_count = 0
        self.last_role: str | None = None
        self.peak_context_tokens = 0

    def feed(self, entry: LogEntry) -> None:
        self.observe(entry)
        if isinstance(entry, AssistantEntry):
            self._on_assistant(entry)
        elif isinstance(entry, UserEntry):
            self._on_user(entry)
        elif isinstance(entry, CompactBoundaryEntry):
            self._on_compaction(entry)

    def _on_assistant(self, entry: AssistantEntry) -> None:
        msg = entry.message
        is_new = self.mark_message(entry)

        turn_cost = 0.0
        if msg.usage is not None:
            turn_cost = self.add_usage(msg.model, msg.usage)
            self.peak_context_tokens = max(self.peak_context_tokens, msg.usage.context_tokens)

        if isinstance(msg.content, list):
            for block in msg.content:
                if isinstance(block, ToolUse):
                    self.record_tool_use(block, entry.timestamp)

        if is_new:
            text = extract_text(msg.content)
            if text.strip():
                self.messages.append(
                    ParsedMessage(
                        role="assistant",
                        content=text,
                        timestamp=entry.timestamp,
                        model=msg.model,
                        cost_usd=turn_cost,
                    )
                )
            if self.last_role != "assistant":
                self.turn_count += 1
            self.last_role = "assistant"

    def _on_user(self, entry: UserEntry) -> None:
        if entry.is_external:
            text = clean_prompt(extract_text(entry.message.content))
            if text:
                self.messages.append(
                    ParsedMessage(role="user", content=text, timestamp=entry.timestamp)
                )
                if self.first_prompt is None:
                    self.first_prompt = text

        self.resolve_tool_results(entry)

        if entry.is_external:
            self.last_role = "user"

    def _on_compaction(self, entry: CompactBoundaryEntry) -> None:
        meta = entry.compactMetadata
        if meta is None:
            return
        self.compactions.append(
            ParsedCompaction(
                timestamp=entry.timestamp,
                trigger=meta.trigger,
                pre_tokens=meta.preTokens,
            )
        )


class _SubagentPass(_TranscriptPass):
    def __init__(self, agent_id: str) -> None:
        super().__init__(subagent_id=agent_id)
        self.prompt: str | None = None
        self.last_assistant_text: str | None = None

    def feed(self, entry: LogEntry) -> None:
        self.observe(entry)
        if isinstance(entry, AssistantEntry):
            msg = entry.message
            self.mark_message(entry)
            if msg.usage is not None:
                self.add_usage(msg.model, msg.usage)
            if isinstance(msg.content, list):
                for block in msg.content:
                    if isinstance(block, ToolUse):
                        self.record_tool_use(block, entry.timestamp)
                    elif isinstance(block, TextBlock):
                        self.last_assistant_text = block.text
        elif isinstance(entry, UserEntry):
            if self.prompt is None and entry.is_external:
                text = extract_text(entry.message.content)
                if text:
                    self.prompt = text[:MAX_SUBAGENT_TEXT_LENGTH]
            self.resolve_tool_results(entry)


def parse_session_file(
    path: Path,
    session_id: str,
    project: str,
    project_hash: str,
    jsonl_mtime: str,
) -> SessionAggregate:
    """Parse a session log into a fully materialized aggregate.

    The sub-agent fields are left empty; the ingestion service fills them in.

    Raises:
        OSError: the file cannot be read.
    """
    state = _SessionPass()
    for entry in iter_log_entries(path):
        state.feed(entry)

    return SessionAggregate(
        id=session_id,
        project=project,
        project_hash=project_hash,
        first_prompt=state.first_prompt,
        model=state.primary_model(),
        input_tokens=state.input_tokens,
        output_tokens=state.output_tokens,
        cache_read_tokens=state.cache_read_tokens,
        cache_create_tokens=state.cache_create_tokens,
        estimated_cost_usd=state.total_cost,
        message_count=len(state.messages),
        tool_call_count=len(state.tool_calls),
        turn_count=state.turn_count,
        peak_context_tokens=state.peak_context_tokens,
        started_at=state.started_at,
        ended_at=state.ended_at,
        duration_ms=state.duration_ms(),
        jsonl_path=str(path),
        jsonl_mtime=jsonl_mtime,
        tool_calls=state.tool_calls,
        messages=state.messages,
        compactions=state.compactions,
    )


def parse_subagent_file(
    path: Path, agent_id: str, session_id: str
) -> tuple[SubagentAggregate, list[ParsedToolCall]]:
    """Parse a sub-agent log; its tool calls are tagged with ``agent_id``.

    Raises:
        OSError: the file cannot be read.
    """
    state = _SubagentPass(agent_id)
    for entry in iter_log_entries(path):
        state.feed(entry)

    summary = state.last_assistant_text
    subagent = SubagentAggregate(
        id=agent_id,
        session_id=session_id,
        agent_type=classify_agent_type(state.prompt),
        model=state.primary_model(),
        prompt=state.prompt,
        input_tokens=state.input_tokens,
        output_tokens=state.output_tokens,
        cache_read_tokens=state.cache_read_tokens,
        cache_create_tokens=state.cache_create_tokens,
        estimated_cost_usd=state.total_cost,
        tool_call_count=len(state.tool_calls),
        duration_ms=state.duration_ms(),
        result_summary=summary[:MAX_SUBAGENT_TEXT_LENGTH] if summary is not None else None,
    )
    return subagent, state.tool_calls
