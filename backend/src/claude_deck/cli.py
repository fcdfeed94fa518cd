"""CLI entry point for Claude Deck."""

import argparse
import webbrowser
from datetime import timedelta
from pathlib import Path
from threading import Timer

import uvicorn
from loguru import logger

from .config import Settings
from .models.responses import StatsResponse
from .services.database import SessionStore
from .services.heuristics import short_model_name
from .services.ingest import sync_all
from .services.metrics import format_cost
from .utils.datetime import now_utc

TOP_N = 10


def open_browser(url: str) -> None:
    """Open the browser after a short delay."""
    webbrowser.open(url)


def build_parser() -> argparse.ArgumentParser:
    defaults = Settings.from_env()
    parser = argparse.ArgumentParser(
        prog="claude-deck",
        description="Claude Deck - cost and behavior analytics for Claude Code sessions",
    )
    parser.add_argument(
        "--claude-dir",
        type=Path,
        default=defaults.claude_dir,
        help=f"Claude data directory (default: {defaults.claude_dir})",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=defaults.db_path,
        help=f"DuckDB database path (default: {defaults.db_path})",
    )
    parser.add_argument(
        "--host",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=defaults.port,
        help=f"Port to bind to (default: {defaults.port})",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )

    commands = parser.add_subparsers(dest="command")
    commands.add_parser("sync", help="Sync session logs without starting the server")
    stats = commands.add_parser("stats", help="Print aggregate stats")
    stats.add_argument("--days", type=int, default=30, help="Last N days (default: 30)")
    stats.add_argument("--project", default=None, help="Filter by project name")

    parser.set_defaults(sync_interval_seconds=defaults.sync_interval_seconds)
    return parser


def format_stats(stats: StatsResponse, days: int) -> str:
    lines = [
        f"Claude Deck Stats (last {days} days)",
        "-" * 40,
        f"Sessions:     {stats.total_sessions}",
        f"API value:    {format_cost(stats.total_cost)}",
        f"Avg/session:  {format_cost(stats.avg_cost_per_session)} (API equivalent)",
        f"Total tokens: {stats.total_tokens / 1_000_000:.1f}M",
    ]

    if stats.by_model:
        lines += ["", "By Model:"]
        for group in stats.by_model:
            name = short_model_name(group.key or "unknown")
            lines.append(f"  {name}: {group.sessions} sessions, {format_cost(group.cost)}")

    if stats.by_project:
        lines += ["", "By Project:"]
        for group in stats.by_project[:TOP_N]:
            lines.append(f"  {group.key}: {group.sessions} sessions, {format_cost(group.cost)}")

    if stats.top_tools:
        lines += ["", "Top Tools:"]
        for tool in stats.top_tools[:TOP_N]:
            lines.append(f"  {tool.tool}: {tool.count}")

    return "\n".join(lines)


def run_sync(settings: Settings) -> None:
    print("Syncing Claude Code sessions...")
    with SessionStore(settings.db_path) as store:
        result = sync_all(store, settings.claude_dir)
    print(
        f"Done: {result.parsed} parsed, {result.skipped} skipped, {result.errors} errors. "
        f"Total: {result.total_sessions} sessions."
    )


def run_stats(settings: Settings, days: int, project: str | None) -> None:
    after = (now_utc() - timedelta(days=days)).isoformat()
    with SessionStore(settings.db_path) as store:
        sync_all(store, settings.claude_dir)
        stats = store.get_stats(after=after, project=project)
    print()
    print(format_stats(stats, days))


def run_server(settings: Settings, open_in_browser: bool) -> None:
    from .main import create_app

    print("Syncing Claude Code sessions...")
    with SessionStore(settings.db_path) as store:
        result = sync_all(store, settings.claude_dir)
        total_cost = store.get_stats().total_cost
    print(f"Synced: {result.parsed} new, {result.skipped} unchanged, {result.errors} errors")

    url = f"http://{settings.host}:{settings.port}"
    print(
        f"\nClaude Deck ready at {url} - {result.total_sessions} sessions synced "
        f"({format_cost(total_cost)} API value)"
    )
    logger.info(f"Starting Claude Deck at {url}")

    if open_in_browser:
        # Open browser after a short delay to allow server to start
        Timer(1.5, open_browser, args=[url]).start()

    app = create_app(settings.model_copy(update={"sync_on_startup": False}))
    uvicorn.run(app, host=settings.host, port=settings.port)


def main(argv: list[str] | None = None) -> None:
    """Run the Claude Deck CLI."""
    args = build_parser().parse_args(argv)
    settings = Settings(
        claude_dir=args.claude_dir,
        db_path=args.db,
        host=args.host,
        port=args.port,
        sync_interval_seconds=args.sync_interval_seconds,
    )

    if args.command == "sync":
        run_sync(settings)
    elif args.command == "stats":
        run_stats(settings, args.days, args.project)
    else:
        run_server(settings, open_in_browser=not args.no_browser)


if __name__ == "__main__":
    main()
