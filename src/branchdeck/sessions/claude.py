"""Claude session discovery and transcript relocation.

Sessions come from two places under ``~/.claude/projects/<project-dir>/``: the
``<session-id>.jsonl`` transcripts themselves and the optional
``sessions-index.json`` that Claude keeps beside them. Both are merged by
session id.
"""

from __future__ import annotations

import dataclasses
import json
import logging as py_logging
import re
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from branchdeck.errors import BranchDeckError, ExitCode
from branchdeck.tree.models import SessionProvider, SessionSummary

logger = py_logging.getLogger(__name__)

CLAUDE_PROJECTS_DIR = Path("~/.claude/projects")
INDEX_FILENAME = "sessions-index.json"

_PROJECT_DIR_PATTERN = re.compile(r"[^A-Za-z0-9-]")


class SessionIndexEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    session_id: str = Field(alias="sessionId")
    full_path: str = Field(default="", alias="fullPath")
    project_path: str = Field(alias="projectPath")
    git_branch: str | None = Field(default=None, alias="gitBranch")
    summary: str | None = None
    first_prompt: str | None = Field(default=None, alias="firstPrompt")
    modified: str = ""
    message_count: int | None = Field(default=None, alias="messageCount")


class SessionIndex(BaseModel):
    model_config = ConfigDict(extra="allow")

    entries: list[SessionIndexEntry] = Field(default_factory=list)


def projects_dir(path: str | Path | None = None) -> Path:
    return Path(path or CLAUDE_PROJECTS_DIR).expanduser()


def path_to_project_dir(path: str | Path) -> str:
    """Directory name Claude uses for a project, e.g. ``/a/b.c`` -> ``-a-b-c``."""
    return _PROJECT_DIR_PATTERN.sub("-", str(path))


def parse_modified(value: str) -> int:
    """ISO 8601 timestamp to unix milliseconds; unparseable values map to 0."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return int(datetime.fromisoformat(raw).timestamp() * 1000)
    except ValueError:
        return 0


def read_sessions_index(project_dir: Path) -> SessionIndex:
    index_path = project_dir / INDEX_FILENAME
    if not index_path.exists():
        return SessionIndex()
    try:
        raw = json.loads(index_path.read_bytes())
        return SessionIndex.model_validate(raw)
    except (ValueError, ValidationError) as exc:
        raise BranchDeckError(
            f"Unreadable session index: {index_path}",
            code=ExitCode.DATA_SOURCE_ERROR,
            hint=str(exc).splitlines()[0],
        ) from exc


def write_sessions_index(project_dir: Path, index: SessionIndex) -> Path:
    project_dir.mkdir(parents=True, exist_ok=True)
    index_path = project_dir / INDEX_FILENAME
    payload = index.model_dump(by_alias=True, exclude_none=True)
    index_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return index_path


def to_summary(entry: SessionIndexEntry) -> SessionSummary:
    return SessionSummary(
        session_id=entry.session_id,
        project_path=entry.project_path,
        provider=SessionProvider.CLAUDE,
        modified=parse_modified(entry.modified),
        summary=entry.summary,
        first_prompt=entry.first_prompt,
        message_count=entry.message_count,
        git_branch=entry.git_branch,
    )


def parse_transcript(path: Path) -> SessionSummary:
    """Summarize a ``<session-id>.jsonl`` transcript.

    ``cwd`` and ``gitBranch`` come from the first line carrying them, the first
    prompt from the first user line with string content, the summary from the
    last ``summary`` line. Lines that are not valid UTF-8 JSON objects are
    skipped.
    """
    modified = int(path.stat().st_mtime * 1000)
    cwd: str | None = None
    git_branch: str | None = None
    first_prompt: str | None = None
    summary: str | None = None
    message_count = 0

    with path.open("rb") as handle:
        for line in handle:
            try:
                value = json.loads(line)
            except ValueError:
                continue
            if not isinstance(value, dict):
                continue
            if cwd is None and isinstance(value.get("cwd"), str):
                cwd = value["cwd"]
            if git_branch is None and isinstance(value.get("gitBranch"), str):
                git_branch = value["gitBranch"]

            line_type = value.get("type")
            if line_type == "user":
                message_count += 1
                message = value.get("message")
                content = message.get("content") if isinstance(message, dict) else None
                if first_prompt is None and isinstance(content, str):
                    first_prompt = content
            elif line_type == "summary" and isinstance(value.get("summary"), str):
                summary = value["summary"]

    return SessionSummary(
        session_id=path.stem,
        project_path=cwd or "",
        provider=SessionProvider.CLAUDE,
        modified=modified,
        summary=summary,
        first_prompt=first_prompt,
        message_count=message_count,
        git_branch=git_branch,
    )


def merge_index_entry(transcript: SessionSummary, entry: SessionSummary) -> SessionSummary:
    """Fill what the transcript lacks from its index entry.

    The transcript wins for ``modified`` and ``message_count``; the index wins for
    the summary.
    """
    return dataclasses.replace(
        transcript,
        project_path=transcript.project_path or entry.project_path,
        summary=entry.summary or transcript.summary,
        first_prompt=transcript.first_prompt or entry.first_prompt,
        git_branch=transcript.git_branch or entry.git_branch,
    )


def scan_transcripts(base: Path) -> dict[str, SessionSummary]:
    found: dict[str, SessionSummary] = {}
    for path in sorted(base.glob("*/*.jsonl")):
        try:
            found[path.stem] = parse_transcript(path)
        except OSError as exc:
            logger.warning("Skipping Claude transcript path=%s error=%s", path, exc)
    return found


def scan_index_entries(base: Path) -> list[SessionSummary]:
    entries: list[SessionSummary] = []
    for index_path in sorted(base.glob(f"*/{INDEX_FILENAME}")):
        try:
            index = read_sessions_index(index_path.parent)
        except (BranchDeckError, OSError) as exc:
            logger.warning("Skipping session index path=%s error=%s", index_path, exc)
            continue
        entries.extend(to_summary(entry) for entry in index.entries)
    return entries


def scan_sessions(root: str | Path | None = None) -> list[SessionSummary]:
    base = projects_dir(root)
    if not base.is_dir():
        return []
    sessions = scan_transcripts(base)
    transcripts = len(sessions)
    for entry in scan_index_entries(base):
        existing = sessions.get(entry.session_id)
        sessions[entry.session_id] = entry if existing is None else merge_index_entry(existing, entry)
    logger.debug(
        "Loaded %s Claude sessions transcripts=%s root=%s", len(sessions), transcripts, base
    )
    return list(sessions.values())


def relocate_session(
    session_id: str,
    source_project_path: str | Path,
    target_project_path: str | Path,
    *,
    root: str | Path | None = None,
) -> Path:
    """Move a session transcript and its index entry to another project.

    The transcript file is moved first. When the source index lists the session,
    that index is rewritten without the entry and the target index gains it with
    updated paths; otherwise only the transcript moves.
    """
    base = projects_dir(root)
    source_dir = base / path_to_project_dir(source_project_path)
    target_dir = base / path_to_project_dir(target_project_path)
    source_jsonl = source_dir / f"{session_id}.jsonl"
    target_jsonl = target_dir / f"{session_id}.jsonl"

    if not source_jsonl.exists():
        raise BranchDeckError(
            f"Session file not found: {source_jsonl}",
            code=ExitCode.DATA_SOURCE_ERROR,
        )

    source_index = read_sessions_index(source_dir)
    position = next(
        (idx for idx, item in enumerate(source_index.entries) if item.session_id == session_id),
        None,
    )

    target_dir.mkdir(parents=True, exist_ok=True)
    source_jsonl.rename(target_jsonl)
    if position is None:
        logger.info("Relocated unindexed session id=%s from=%s to=%s", session_id, source_dir, target_dir)
        return target_jsonl

    entry = source_index.entries.pop(position)
    entry.project_path = str(target_project_path)
    entry.full_path = str(target_jsonl)
    write_sessions_index(source_dir, source_index)

    target_index = read_sessions_index(target_dir)
    target_index.entries = [item for item in target_index.entries if item.session_id != session_id]
    target_index.entries.append(entry)
    write_sessions_index(target_dir, target_index)
    logger.info("Relocated session id=%s from=%s to=%s", session_id, source_dir, target_dir)
    return target_jsonl
