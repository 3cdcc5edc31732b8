"""Launch descriptor model and command builders."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from branchdeck.tree.models import SessionProvider, SessionSummary, WorktreeInfo

DEFAULT_TITLE_WIDTH = 30
ELLIPSIS = "..."


class DescriptorKind(str, Enum):
    EDITOR = "editor"
    SESSION = "session"


@dataclass(frozen=True)
class LaunchDescriptor:
    kind: DescriptorKind
    name: str
    cwd: Path
    title: str
    commands: tuple[str, ...]
    session_id: str = ""


def truncate_title(text: str, max_width: int = DEFAULT_TITLE_WIDTH) -> str:
    stripped = text.strip()
    first_line = stripped.splitlines()[0] if stripped else ""
    if len(first_line) <= max_width:
        return first_line
    if max_width <= len(ELLIPSIS):
        return first_line[:max_width]
    return first_line[: max_width - len(ELLIPSIS)] + ELLIPSIS


def display_title(session: SessionSummary, max_width: int = DEFAULT_TITLE_WIDTH) -> str:
    for candidate in (session.summary, session.first_prompt):
        if candidate and candidate.strip():
            return truncate_title(candidate, max_width)
    return truncate_title(session.provider.placeholder_title, max_width)


def resume_command(session: SessionSummary) -> str:
    quoted = shlex.quote(session.session_id)
    if session.provider is SessionProvider.CODEX:
        return f"codex resume {quoted}"
    return f"claude --resume {quoted}"


def editor_command(editor: str) -> str:
    return f"{editor} ."


def checkout_command(branch: str) -> str:
    return f"git checkout {shlex.quote(branch)}"


def editor_descriptor(
    worktree: WorktreeInfo,
    *,
    name: str,
    editor: str,
    pre_commands: list[str],
) -> LaunchDescriptor:
    return LaunchDescriptor(
        kind=DescriptorKind.EDITOR,
        name=name,
        cwd=worktree.path,
        title=worktree.name,
        commands=(*pre_commands, editor_command(editor)),
    )


def session_descriptor(
    session: SessionSummary,
    worktree: WorktreeInfo,
    *,
    name: str,
    title_width: int = DEFAULT_TITLE_WIDTH,
) -> LaunchDescriptor:
    return LaunchDescriptor(
        kind=DescriptorKind.SESSION,
        name=name,
        cwd=worktree.path,
        title=display_title(session, title_width),
        commands=(resume_command(session),),
        session_id=session.session_id,
    )
