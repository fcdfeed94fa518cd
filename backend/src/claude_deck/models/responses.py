"""Pydantic models for parsed sessions and API responses."""

from typing import Literal

from pydantic import BaseModel, Field, computed_field

ToolCallStatus = Literal["pending", "success"]


class CostBreakdown(BaseModel):
    """Cost breakdown by token type."""

    input_cost: float = 0.0
    output_cost: float = 0.0
    cache_creation_cost: float = 0.0
    cache_read_cost: float = 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_cost(self) -> float:
        return sum(
            [
                self.input_cost,
                self.output_cost,
                self.cache_creation_cost,
                self.cache_read_cost,
            ]
        )


# ============================================================================
# Parsed aggregates (produced by the log parser, persisted by the store)
# ============================================================================


class ParsedToolCall(BaseModel):
    """One tool invocation and, once it arrives, its result.

    Payloads are serialized JSON capped at a fixed length, so stored inputs
    and responses may be truncated.
    """

    tool_use_id: str | None = None
    tool_name: str
    tool_input: str | None = None
    tool_response: str | None = None
    status: ToolCallStatus = "pending"
    timestamp: str = ""
    subagent_id: str | None = None


class ParsedMessage(BaseModel):
    """One rendered user or assistant turn."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: str = ""
    model: str | None = None
    cost_usd: float | None = None


class ParsedCompaction(BaseModel):
    """One context compaction."""

    timestamp: str = ""
    trigger: str = "auto"
    pre_tokens: int = 0


class TokenTotals(BaseModel):
    """Summed token counters shared by session and subagent aggregates."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_create_tokens: int = 0
    estimated_cost_usd: float = 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_tokens(self) -> int:
        return sum(
            [
                self.input_tokens,
                self.output_tokens,
                self.cache_read_tokens,
                self.cache_create_tokens,
            ]
        )


class SubagentAggregate(TokenTotals):
    """Parsed sub-agent transcript."""

    id: str
    session_id: str
    agent_type: str | None = None
    model: str | None = None
    prompt: str | None = None
    tool_call_count: int = 0
    duration_ms: int | None = None
    result_summary: str | None = None


class SessionAggregate(TokenTotals):
    """Everything one parse pass learned about a session."""

    id: str
    project: str
    project_hash: str
    first_prompt: str | None = None
    model: str | None = None
    message_count: int = 0
    tool_call_count: int = 0
    subagent_count: int = 0
    turn_count: int = 0
    peak_context_tokens: int = 0
    started_at: str | None = None
    ended_at: str | None = None
    duration_ms: int | None = None
    jsonl_path: str = ""
    jsonl_mtime: str = ""
    tool_calls: list[ParsedToolCall] = Field(default_factory=list)
    messages: list[ParsedMessage] = Field(default_factory=list)
    subagents: list[SubagentAggregate] = Field(default_factory=list)
    compactions: list[ParsedCompaction] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Outcome of one sweep over the projects directory."""

    parsed: int = 0
    skipped: int = 0
    errors: int = 0
    total_sessions: int = 0


# ============================================================================
# Query responses
# ============================================================================


class SessionSummary(TokenTotals):
    """Stored session row, as listed and fetched through the API.

    Status values: completed (the only value a finished parse writes).
    """

    id: str
    project: str
    project_hash: str
    first_prompt: str | None = None
    model: str | None = None
    status: str = "completed"
    message_count: int = 0
    tool_call_count: int = 0
    subagent_count: int = 0
    turn_count: int = 0
    peak_context_tokens: int = 0
    started_at: str | None = None
    ended_at: str | None = None
    duration_ms: int | None = None
    compaction_count: int = 0
    peak_context_pct: float = 0.0
    synced_at: str | None = None
    jsonl_path: str = ""
    jsonl_mtime: str = ""


class SessionListResponse(BaseModel):
    """List of sessions response."""

    sessions: list[SessionSummary] = Field(default_factory=list)
    total: int = 0


class TimelineEntry(BaseModel):
    """A tool call or a message, as merged into a session timeline."""

    kind: Literal["tool_call", "message"]
    timestamp: str = ""
    # tool_call fields
    subagent_id: str | None = None
    tool_use_id: str | None = None
    tool_name: str | None = None
    tool_input: str | None = None
    tool_response: str | None = None
    status: str | None = None
    # message fields
    role: str | None = None
    content: str | None = None
    model: str | None = None
    cost_usd: float | None = None


class SyncStatus(BaseModel):
    """Last sync time and number of stored sessions."""

    last_synced_at: str | None = None
    session_count: int = 0


class GroupStats(BaseModel):
    """Sessions, cost and tokens for one group (model, project or day)."""

    key: str | None = None
    sessions: int = 0
    cost: float = 0.0
    tokens: int = 0


class ToolCount(BaseModel):
    """Number of calls to one tool."""

    tool: str
    count: int = 0


class StatsResponse(BaseModel):
    """Aggregate statistics across stored sessions."""

    total_sessions: int = 0
    total_cost: float = 0.0
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_create_tokens: int = 0
    avg_cost_per_session: float = 0.0
    by_model: list[GroupStats] = Field(default_factory=list)
    by_project: list[GroupStats] = Field(default_factory=list)
    by_day: list[GroupStats] = Field(default_factory=list)
    top_tools: list[ToolCount] = Field(default_factory=list)


# ============================================================================
# Session insights
# ============================================================================


class FileReadPattern(BaseModel):
    """A file read more than once in a session."""

    file: str
    count: int


class SessionPhase(BaseModel):
    """Summary of one activity category.

    Category values: explore, research, write, execute, other.
    """

    name: str
    category: str
    tool_count: int = 0
    duration_ms: int = 0
    cost_usd: float = 0.0


class WebFetchDetail(BaseModel):
    """Outcome of one WebFetch/WebSearch call."""

    tool: str
    url: str
    timestamp: str = ""
    is_error: bool = False
    error_detail: str = ""


class WebFetchStats(BaseModel):
    """Web fetch success/error summary."""

    total: int = 0
    errors: int = 0
    success_rate: float = 1.0
    details: list[WebFetchDetail] = Field(default_factory=list)


class CompactionInfo(BaseModel):
    """Compactions that happened in a session."""

    count: int = 0
    compactions: list[ParsedCompaction] = Field(default_factory=list)


class SessionInsights(BaseModel):
    """Behavioral insights derived from a session timeline."""

    file_reads: list[FileReadPattern] = Field(default_factory=list)
    phases: list[SessionPhase] = Field(default_factory=list)
    web_fetches: WebFetchStats = Field(default_factory=WebFetchStats)
    tool_distribution: list[ToolCount] = Field(default_factory=list)
    total_tool_calls: int = 0
    session_duration_ms: int = 0
    compaction: CompactionInfo = Field(default_factory=CompactionInfo)
    cost_by_category: dict[str, float] = Field(default_factory=dict)
