"""Behavioral insights derived from a session timeline.

Everything here is a pure function of the merged, time-ordered timeline
(tool calls and messages) of one session.
"""

from collections import Counter
from collections.abc import Iterable, Sequence

import orjson

from ..models.responses import (
    CompactionInfo,
    FileReadPattern,
    ParsedCompaction,
    SessionInsights,
    SessionPhase,
    TimelineEntry,
    ToolCount,
    WebFetchDetail,
    WebFetchStats,
)
from ..utils.datetime import duration_ms
from .heuristics import CATEGORY_LABELS, WEB_TOOLS, looks_like_error, tool_category

MAX_ERROR_DETAIL_LENGTH = 100


def _tool_calls(timeline: Iterable[TimelineEntry]) -> list[TimelineEntry]:
    return [entry for entry in timeline if entry.kind == "tool_call" and entry.tool_name]


def _load_json(payload: str | None) -> object | None:
    if not payload:
        return None
    try:
        return orjson.loads(payload)
    except orjson.JSONDecodeError:
        return None


def segment_phases(tool_calls: Sequence[TimelineEntry]) -> list[SessionPhase]:
    """Group maximal runs of same-category tool calls.

    A run lasts from its first call to its last call (zero for a single call).
    """
    phases: list[SessionPhase] = []
    if not tool_calls:
        return phases

    def close(category: str, first: TimelineEntry, last: TimelineEntry, count: int) -> None:
        phases.append(
            SessionPhase(
                name=CATEGORY_LABELS[category],
                category=category,
                tool_count=count,
                duration_ms=duration_ms(first.timestamp, last.timestamp) or 0,
            )
        )

    current = tool_category(tool_calls[0].tool_name or "")
    run_start = tool_calls[0]
    run_count = 1
    for prev, call in zip(tool_calls, tool_calls[1:], strict=False):
        category = tool_category(call.tool_name or "")
        if category == current:
            run_count += 1
            continue
        close(current, run_start, prev, run_count)
        current, run_start, run_count = category, call, 1
    close(current, run_start, tool_calls[-1], run_count)
    return phases


def summarize_phases(phases: Iterable[SessionPhase]) -> list[SessionPhase]:
    """Collapse runs into one entry per category, in order of first appearance."""
    summary: dict[str, SessionPhase] = {}
    for phase in phases:
        existing = summary.get(phase.category)
        if existing is None:
            summary[phase.category] = phase.model_copy()
        else:
            existing.tool_count += phase.tool_count
            existing.duration_ms += phase.duration_ms
    return list(summary.values())


def cost_by_category(timeline: Iterable[TimelineEntry]) -> dict[str, float]:
    """Split each assistant turn's cost evenly over the tool calls that follow it.

    A turn runs from one assistant message to the next. Turns without tool
    calls, or without cost, attribute nothing.
    """
    totals: dict[str, float] = {}
    turn_cost = 0.0
    turn_categories: list[str] = []

    def flush() -> None:
        if turn_cost > 0 and turn_categories:
            share = turn_cost / len(turn_categories)
            for category in turn_categories:
                totals[category] = totals.get(category, 0.0) + share

    for entry in timeline:
        if entry.kind == "message" and entry.role == "assistant":
            flush()
            turn_cost = entry.cost_usd or 0.0
            turn_categories = []
        elif entry.kind == "tool_call" and entry.tool_name:
            turn_categories.append(tool_category(entry.tool_name))
    flush()

    return totals


def find_repeated_reads(tool_calls: Iterable[TimelineEntry]) -> list[FileReadPattern]:
    """Files read two or more times, most-read first."""
    counts: Counter[str] = Counter()
    for call in tool_calls:
        if call.tool_name != "Read":
            continue
        payload = _load_json(call.tool_input)
        if isinstance(payload, dict) and (path := payload.get("file_path")):
            counts[str(path)] += 1
    return [
        FileReadPattern(file=path, count=count)
        for path, count in counts.most_common()
        if count >= 2
    ]


def classify_web_fetch(response: str | None) -> tuple[bool, str]:
    """Decide whether a WebFetch/WebSearch response is an error.

    Returns:
        (is_error, error_detail)
    """
    if not response:
        return True, "No response"

    try:
        payload = orjson.loads(response)
    except orjson.JSONDecodeError:
        if looks_like_error(response):
            return True, response[:MAX_ERROR_DETAIL_LENGTH]
        return False, ""

    if isinstance(payload, dict) and (payload.get("error") or payload.get("is_error") is True):
        detail = payload.get("error") or payload.get("message") or "Failed"
        return True, str(detail)
    return False, ""


def web_fetch_stats(tool_calls: Iterable[TimelineEntry]) -> WebFetchStats:
    details: list[WebFetchDetail] = []
    for call in tool_calls:
        if call.tool_name not in WEB_TOOLS:
            continue
        payload = _load_json(call.tool_input)
        target = ""
        if isinstance(payload, dict):
            target = payload.get("url") or payload.get("query") or ""
        is_error, error_detail = classify_web_fetch(call.tool_response)
        details.append(
            WebFetchDetail(
                tool=call.tool_name or "",
                url=str(target) or "(unknown)",
                timestamp=call.timestamp,
                is_error=is_error,
                error_detail=error_detail,
            )
        )

    total = len(details)
    errors = sum(1 for d in details if d.is_error)
    return WebFetchStats(
        total=total,
        errors=errors,
        success_rate=(total - errors) / total if total else 1.0,
        details=details,
    )


def build_insights(
    timeline: Sequence[TimelineEntry],
    *,
    compactions: Sequence[ParsedCompaction] = (),
    session_duration_ms: int = 0,
) -> SessionInsights:
    """Derive phases, repeated reads, web fetch outcomes and cost attribution."""
    tool_calls = _tool_calls(timeline)
    top_level = [call for call in tool_calls if call.subagent_id is None]

    distribution = Counter(call.tool_name or "" for call in tool_calls)
    category_costs = cost_by_category(timeline)

    phases = summarize_phases(segment_phases(top_level))
    for phase in phases:
        phase.cost_usd = category_costs.get(phase.category, 0.0)

    return SessionInsights(
        file_reads=find_repeated_reads(tool_calls),
        phases=phases,
        web_fetches=web_fetch_stats(tool_calls),
        tool_distribution=[
            ToolCount(tool=tool, count=count) for tool, count in distribution.most_common()
        ],
        total_tool_calls=len(tool_calls),
        session_duration_ms=session_duration_ms,
        compaction=CompactionInfo(count=len(compactions), compactions=list(compactions)),
        cost_by_category=category_costs,
    )
