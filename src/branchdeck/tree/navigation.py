"""Cursor and selection state over the repository/branch/session tree."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Iterator
from dataclasses import dataclass

from typing_extensions import assert_never

from branchdeck.errors import BranchDeckError
from branchdeck.git.oracle import WorktreeStateOracle
from branchdeck.provider import TreeDataProvider
from branchdeck.tree.models import (
    BranchNode,
    Cursor,
    CursorLevel,
    RepoData,
    RepoNode,
    SessionSummary,
    WorktreeInfo,
    WorktreeRuntimeState,
    build_repo_node,
    check_repo_invariants,
)

logger = py_logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundWorktree:
    index: int
    worktree: WorktreeInfo
    state: WorktreeRuntimeState


class NavigationModel:
    """Owns the realized tree plus the cursor.

    Every mutator is total: on an empty tree, or when the cursor sits on a
    level the operation does not apply to, it returns without effect.
    """

    def __init__(self, repos: list[RepoNode] | None = None) -> None:
        self.repos: list[RepoNode] = []
        self.cursor = Cursor()
        self.last_error = ""
        if repos is not None:
            self.load(repos)

    @property
    def is_empty(self) -> bool:
        return not self.repos

    def refresh(self, source: TreeDataProvider, oracle: WorktreeStateOracle, filter_text: str) -> bool:
        """Rebuild the tree wholesale; keep prior state when the data source fails."""
        try:
            repo_data = source.fetch(filter_text)
            nodes = [self._realize(data, oracle) for data in repo_data]
        except BranchDeckError as exc:
            logger.error("Tree refresh failed filter=%r: %s", filter_text, exc)
            self.last_error = exc.message
            return False
        self.load(nodes)
        self.last_error = ""
        logger.debug("Tree refreshed filter=%r repos=%s", filter_text, len(nodes))
        return True

    @staticmethod
    def _realize(data: RepoData, oracle: WorktreeStateOracle) -> RepoNode:
        states = [oracle.probe(worktree.path) for worktree in data.worktrees]
        return build_repo_node(data, states)

    def load(self, repos: list[RepoNode]) -> None:
        for repo in repos:
            check_repo_invariants(repo)
        self.repos = list(repos)
        self._repair_cursor()

    def _repair_cursor(self) -> None:
        if not self.repos:
            self.cursor = Cursor()
            return

        current = self.cursor
        repo_idx = current.repo_idx if current.repo_idx < len(self.repos) else 0
        repo = self.repos[repo_idx]
        branch_idx = current.branch_idx if current.branch_idx < len(repo.branches) else 0
        level = current.level
        session_idx = current.session_idx

        if level is CursorLevel.SESSION:
            sessions = repo.branches[branch_idx].sessions if repo.branches else []
            visible = repo.expanded and bool(repo.branches) and repo.branches[branch_idx].expanded
            if session_idx >= len(sessions) or not visible:
                level = CursorLevel.BRANCH
        if level is CursorLevel.BRANCH and (not repo.branches or not repo.expanded):
            level = CursorLevel.REPO

        if level is CursorLevel.REPO:
            self.cursor = Cursor.at_repo(repo_idx)
        elif level is CursorLevel.BRANCH:
            self.cursor = Cursor.at_branch(repo_idx, branch_idx)
        elif level is CursorLevel.SESSION:
            self.cursor = Cursor.at_session(repo_idx, branch_idx, session_idx)
        else:
            assert_never(level)

    def visible_cursors(self) -> Iterator[Cursor]:
        """Depth-first walk over the nodes that expand flags leave visible."""
        for repo_idx, repo in enumerate(self.repos):
            yield Cursor.at_repo(repo_idx)
            if not repo.expanded:
                continue
            for branch_idx, branch in enumerate(repo.branches):
                yield Cursor.at_branch(repo_idx, branch_idx)
                if not branch.expanded:
                    continue
                for session_idx in range(len(branch.sessions)):
                    yield Cursor.at_session(repo_idx, branch_idx, session_idx)

    def line_count(self) -> int:
        return sum(1 for _ in self.visible_cursors())

    def selected_line_index(self) -> int:
        for line, cursor in enumerate(self.visible_cursors()):
            if cursor == self.cursor:
                return line
        return 0

    def _step(self, delta: int) -> None:
        if not self.repos:
            return
        order = list(self.visible_cursors())
        current = self.selected_line_index()
        target = max(0, min(len(order) - 1, current + delta))
        self.cursor = order[target]

    def move_up(self, lines: int = 1) -> None:
        self._step(-lines)

    def move_down(self, lines: int = 1) -> None:
        self._step(lines)

    def move_to_top(self) -> None:
        if self.repos:
            self.cursor = Cursor.at_repo(0)

    def move_to_bottom(self) -> None:
        if not self.repos:
            return
        for cursor in self.visible_cursors():
            self.cursor = cursor

    def current_repo(self) -> RepoNode | None:
        if not self.repos:
            return None
        return self.repos[self.cursor.repo_idx]

    def current_branch(self) -> BranchNode | None:
        repo = self.current_repo()
        if repo is None or self.cursor.level is CursorLevel.REPO:
            return None
        return repo.branches[self.cursor.branch_idx]

    def current_session(self) -> SessionSummary | None:
        branch = self.current_branch()
        if branch is None or self.cursor.level is not CursorLevel.SESSION:
            return None
        return branch.sessions[self.cursor.session_idx]

    def bound_worktree(self) -> BoundWorktree | None:
        repo = self.current_repo()
        branch = self.current_branch()
        if repo is None or branch is None or not repo.worktrees:
            return None
        index = branch.selected_worktree_idx
        return BoundWorktree(index=index, worktree=repo.worktrees[index], state=repo.worktree_states[index])

    def update_worktree_state(self, index: int, state: WorktreeRuntimeState) -> None:
        repo = self.current_repo()
        if repo is not None and 0 <= index < len(repo.worktree_states):
            repo.worktree_states[index] = state

    def cycle_worktree(self, delta: int) -> None:
        repo = self.current_repo()
        branch = self.current_branch()
        if repo is None or branch is None or not repo.worktrees:
            return
        branch.selected_worktree_idx = (branch.selected_worktree_idx + delta) % len(repo.worktrees)

    def toggle_session(self) -> None:
        branch = self.current_branch()
        session = self.current_session()
        if branch is None or session is None:
            return
        if session.session_id in branch.selected_sessions:
            branch.selected_sessions.discard(session.session_id)
        else:
            branch.selected_sessions.add(session.session_id)

    def toggle_expand(self) -> None:
        repo = self.current_repo()
        if repo is None:
            return
        level = self.cursor.level
        if level is CursorLevel.REPO:
            repo.expanded = not repo.expanded
        elif level is CursorLevel.BRANCH:
            branch = repo.branches[self.cursor.branch_idx]
            branch.expanded = not branch.expanded
        elif level is CursorLevel.SESSION:
            return
        else:
            assert_never(level)
