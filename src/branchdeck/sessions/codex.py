"""Codex session discovery from ``~/.codex``."""

from __future__ import annotations

import json
import logging as py_logging
from pathlib import Path

from branchdeck.tree.models import SessionProvider, SessionSummary

logger = py_logging.getLogger(__name__)

CODEX_HOME = Path("~/.codex")


def load_first_prompts(history_path: Path) -> dict[str, str]:
    prompts: dict[str, str] = {}
    if not history_path.exists():
        return prompts
    with history_path.open("rb") as handle:
        for line in handle:
            try:
                data = json.loads(line)
            except ValueError:
                continue
            if not isinstance(data, dict):
                continue
            session_id = data.get("session_id")
            text = data.get("text")
            if isinstance(session_id, str) and isinstance(text, str):
                prompts.setdefault(session_id, text)
    return prompts


def parse_session_file(path: Path, first_prompts: dict[str, str]) -> SessionSummary | None:
    with path.open("rb") as handle:
        first_line = handle.readline()
    try:
        meta = json.loads(first_line)
    except ValueError:
        # Covers invalid UTF-8 as well as malformed JSON.
        return None
    if not isinstance(meta, dict) or meta.get("type") != "session_meta":
        return None
    payload = meta.get("payload")
    if not isinstance(payload, dict):
        return None
    session_id = payload.get("id")
    if not isinstance(session_id, str) or not session_id:
        return None

    git_info = payload.get("git")
    branch = git_info.get("branch") if isinstance(git_info, dict) else None
    cwd = payload.get("cwd")
    return SessionSummary(
        session_id=session_id,
        project_path=cwd if isinstance(cwd, str) else "",
        provider=SessionProvider.CODEX,
        modified=int(path.stat().st_mtime * 1000),
        first_prompt=first_prompts.get(session_id),
        git_branch=branch if isinstance(branch, str) else None,
    )


def scan_sessions(home: str | Path | None = None) -> list[SessionSummary]:
    base = Path(home or CODEX_HOME).expanduser()
    sessions_dir = base / "sessions"
    if not sessions_dir.is_dir():
        return []

    first_prompts = load_first_prompts(base / "history.jsonl")
    sessions: list[SessionSummary] = []
    for path in sorted(sessions_dir.glob("*/*/*/*.jsonl")):
        try:
            parsed = parse_session_file(path, first_prompts)
        except OSError as exc:
            logger.warning("Skipping Codex session path=%s error=%s", path, exc)
            continue
        if parsed is None:
            logger.debug("Ignoring Codex file without session_meta path=%s", path)
            continue
        sessions.append(parsed)
    logger.debug("Loaded %s Codex sessions root=%s", len(sessions), base)
    return sessions
