"""Discover session logs under a Claude directory and sync them into the store.

Layout::

    <claude_dir>/projects/<encoded-project-path>/<session-id>.jsonl
    <claude_dir>/projects/<encoded-project-path>/<session-id>/subagents/<agent-id>.jsonl

A session is re-parsed only when its file modification time differs from the
one recorded at the previous sync.
"""

from collections.abc import Iterator
from pathlib import Path

from loguru import logger

from ..models.responses import SessionAggregate, SyncResult
from ..utils.datetime import mtime_to_iso
from .database import SessionStore
from .log_parser import parse_session_file, parse_subagent_file

PROJECTS_SUBDIR = "projects"
SUBAGENTS_SUBDIR = "subagents"


def decode_project_path(dir_name: str) -> str:
    """Turn an encoded project directory name into a display name.

    Directory names are the project path with ``/`` replaced by ``-``; only
    the last two segments are kept, e.g.
    ``-Users-me-work-acme-api`` -> ``acme/api``.
    """
    segments = [part for part in dir_name.split("-") if part]
    if len(segments) >= 2:
        return "/".join(segments[-2:])
    return "/".join(segments) or dir_name


def iter_project_dirs(claude_dir: Path) -> Iterator[Path]:
    projects_dir = claude_dir / PROJECTS_SUBDIR
    if not projects_dir.is_dir():
        return
    for path in sorted(projects_dir.iterdir()):
        if path.is_dir():
            yield path


def iter_session_files(project_dir: Path) -> Iterator[Path]:
    """Session logs sitting directly in a project directory."""
    for path in sorted(project_dir.glob("*.jsonl")):
        if path.is_file():
            yield path


def iter_subagent_files(project_dir: Path, session_id: str) -> Iterator[Path]:
    subagent_dir = project_dir / session_id / SUBAGENTS_SUBDIR
    if not subagent_dir.is_dir():
        return
    for path in sorted(subagent_dir.glob("*.jsonl")):
        if path.is_file():
            yield path


def _attach_subagents(session: SessionAggregate, project_dir: Path) -> int:
    """Parse the session's sub-agent logs into it; returns the number that failed."""
    failures = 0
    for path in iter_subagent_files(project_dir, session.id):
        try:
            subagent, tool_calls = parse_subagent_file(path, path.stem, session.id)
        except Exception as e:
            failures += 1
            logger.warning(f"Failed to parse sub-agent log {path}: {e}")
            continue
        session.subagents.append(subagent)
        session.tool_calls.extend(tool_calls)
    session.subagent_count = len(session.subagents)
    return failures


def sync_all(store: SessionStore, claude_dir: Path) -> SyncResult:
    """Sync every session log under ``claude_dir`` into ``store``.

    A failing file is counted and logged; the sweep always completes and
    the failing session keeps whatever was stored for it before.
    """
    with store.sync_lock:
        return _sync_locked(store, claude_dir)


def _sync_locked(store: SessionStore, claude_dir: Path) -> SyncResult:
    parsed = skipped = errors = 0

    try:
        project_dirs = list(iter_project_dirs(claude_dir))
    except OSError as e:
        errors += 1
        logger.error(f"Cannot list projects under {claude_dir}: {e}")
        project_dirs = []

    for project_dir in project_dirs:
        project = decode_project_path(project_dir.name)
        project_hash = project_dir.name

        try:
            session_files = list(iter_session_files(project_dir))
        except OSError as e:
            errors += 1
            logger.error(f"Cannot list sessions in {project_dir}: {e}")
            continue

        for path in session_files:
            session_id = path.stem
            try:
                mtime = mtime_to_iso(path.stat().st_mtime)
                if store.get_session_mtime(session_id) == mtime:
                    skipped += 1
                    continue

                session = parse_session_file(path, session_id, project, project_hash, mtime)
                errors += _attach_subagents(session, project_dir)
                store.replace_session(session)
                parsed += 1
                logger.debug(
                    f"Parsed session {session_id}: {len(session.tool_calls)} tool calls, "
                    f"{session.subagent_count} sub-agents"
                )
            except Exception as e:
                errors += 1
                logger.error(f"Error syncing {path}: {e}")

    result = SyncResult(
        parsed=parsed,
        skipped=skipped,
        errors=errors,
        total_sessions=store.count_sessions(),
    )
    logger.info(
        f"Sync finished: {result.parsed} parsed, {result.skipped} skipped, "
        f"{result.errors} errors, {result.total_sessions} sessions stored"
    )
    return result
