"""Map the navigation tree onto a scrollable, line-indexed viewport."""

from __future__ import annotations

from dataclasses import dataclass

from typing_extensions import assert_never

from branchdeck.tree.models import Cursor, CursorLevel
from branchdeck.tree.navigation import NavigationModel


@dataclass
class Viewport:
    offset: int = 0

    def ensure_visible(self, line: int, height: int) -> int:
        """Scroll the minimum amount so ``offset <= line < offset + height``."""
        if height < 1:
            return self.offset
        if line < self.offset:
            self.offset = line
        elif line >= self.offset + height:
            self.offset = line - height + 1
        return self.offset

    def visible_range(self, total: int, height: int) -> range:
        if height < 1:
            return range(0)
        start = min(self.offset, max(0, total - 1))
        return range(start, min(total, start + height))


def ensure_selection_visible(model: NavigationModel, viewport: Viewport, height: int) -> int:
    return viewport.ensure_visible(model.selected_line_index(), height)


@dataclass(frozen=True)
class TreeLine:
    cursor: Cursor
    depth: int
    text: str
    selected: bool


def _worktree_selector(model: NavigationModel, cursor: Cursor) -> str:
    repo = model.repos[cursor.repo_idx]
    branch = repo.branches[cursor.branch_idx]
    parts = []
    for index, (worktree, state) in enumerate(zip(repo.worktrees, repo.worktree_states)):
        mark = "*" if index == branch.selected_worktree_idx else " "
        flag = "!" if state.is_dirty else ("~" if state.has_paused_marker else "")
        parts.append(f"[{mark}] {worktree.name}{flag}")
    return " ".join(parts)


def describe(model: NavigationModel, cursor: Cursor) -> str:
    repo = model.repos[cursor.repo_idx]
    level = cursor.level
    if level is CursorLevel.REPO:
        arrow = "v" if repo.expanded else ">"
        return f"{arrow} {repo.name}"
    if level is CursorLevel.BRANCH:
        branch = repo.branches[cursor.branch_idx]
        arrow = "v" if branch.expanded else ">"
        return f"{arrow} {branch.name} ({_worktree_selector(model, cursor)})"
    if level is CursorLevel.SESSION:
        branch = repo.branches[cursor.branch_idx]
        session = branch.sessions[cursor.session_idx]
        checkbox = "[x]" if session.session_id in branch.selected_sessions else "[ ]"
        label = session.summary or session.first_prompt or session.provider.placeholder_title
        first_line = label.strip().splitlines()[0] if label.strip() else session.provider.placeholder_title
        return f"{checkbox} {first_line}"
    assert_never(level)


_DEPTH = {CursorLevel.REPO: 0, CursorLevel.BRANCH: 1, CursorLevel.SESSION: 2}


def flatten(model: NavigationModel) -> list[TreeLine]:
    return [
        TreeLine(
            cursor=cursor,
            depth=_DEPTH[cursor.level],
            text=describe(model, cursor),
            selected=cursor == model.cursor,
        )
        for cursor in model.visible_cursors()
    ]
