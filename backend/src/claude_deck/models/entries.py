"""Pydantic models for Claude Code log entries."""

from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    ValidationInfo,
    field_validator,
    model_validator,
)


class CacheCreation(BaseModel):
    """Cache-write token counts split by ephemeral cache lifetime."""

    ephemeral_5m_input_tokens: int = 0
    ephemeral_1h_input_tokens: int = 0

    @field_validator("*", mode="before")
    @classmethod
    def _none_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class TokenUsage(BaseModel):
    """Token usage statistics from a single API turn."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation: CacheCreation | None = None
    service_tier: str | None = None

    @field_validator(
        "input_tokens",
        "output_tokens",
        "cache_creation_input_tokens",
        "cache_read_input_tokens",
        mode="before",
    )
    @classmethod
    def _none_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def context_tokens(self) -> int:
        """Tokens sent to the model in this turn (fresh input plus both cache classes)."""
        return self.input_tokens + self.cache_read_input_tokens + self.cache_creation_input_tokens


class TextBlock(BaseModel):
    """Plain text content block."""

    type: Literal["text"] = "text"
    text: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ToolUse(BaseModel):
    """Tool use block from assistant message."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Any = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Tool result block from user message."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: Any = None
    is_error: bool | None = None


class OtherBlock(BaseModel):
    """Any content block this package does not interpret (thinking, image, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str | None = None
    value: Any = None

    @model_validator(mode="before")
    @classmethod
    def _wrap_non_objects(cls, data: Any) -> Any:
        # Stray strings or numbers in a content list are kept, not rejected
        return data if isinstance(data, dict) else {"value": data}


def _block_kind(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in ("text", "tool_use", "tool_result") else "other"


ContentBlock = Annotated[
    Annotated[TextBlock, Tag("text")]
    | Annotated[ToolUse, Tag("tool_use")]
    | Annotated[ToolResult, Tag("tool_result")]
    | Annotated[OtherBlock, Tag("other")],
    Discriminator(_block_kind),
]


class AssistantMessage(BaseModel):
    """Assistant message content."""

    id: str | None = None
    role: str = "assistant"
    content: list[ContentBlock] | str | None = Field(default_factory=list)
    model: str | None = None
    stop_reason: str | None = None
    usage: TokenUsage | None = None


class UserMessage(BaseModel):
    """User message content."""

    role: str = "user"
    content: list[ContentBlock] | str | None = None


class BaseEntry(BaseModel):
    """Base log entry with common fields.

    Timestamps are kept as the ISO-8601 strings found in the log so that
    timelines can be merged with plain string ordering.
    """

    timestamp: str = ""
    uuid: str | None = None
    sessionId: str | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _missing_timestamp(cls, value: Any) -> Any:
        return "" if value is None else value


class AssistantEntry(BaseEntry):
    """Assistant turn."""

    type: Literal["assistant"] = "assistant"
    message: AssistantMessage


class UserEntry(BaseEntry):
    """User turn, either typed by a person (external) or produced by the harness."""

    type: Literal["user"] = "user"
    message: UserMessage = Field(default_factory=UserMessage)
    userType: str | None = None
    toolUseResult: Any = None
    toolUseID: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def _missing_message(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_external(self) -> bool:
        return self.userType == "external"


class CompactMetadata(BaseModel):
    """Details attached to a compaction boundary."""

    trigger: str = "auto"
    preTokens: int = 0

    @field_validator("trigger", "preTokens", mode="before")
    @classmethod
    def _defaults_for_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return "auto" if info.field_name == "trigger" else 0
        return value


class CompactBoundaryEntry(BaseEntry):
    """System marker written when the context window was compacted."""

    type: Literal["system"] = "system"
    subtype: Literal["compact_boundary"] = "compact_boundary"
    compactMetadata: CompactMetadata | None = None


class UnknownEntry(BaseEntry):
    """Entry of a type the parsers do not act on (summary, progress, ...)."""

    type: str


LogEntry = AssistantEntry | UserEntry | CompactBoundaryEntry | UnknownEntry
