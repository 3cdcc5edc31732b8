"""Repository/branch/session tree model shared by navigation and launch."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from branchdeck.errors import BranchDeckError, ExitCode


class SessionProvider(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"

    @property
    def placeholder_title(self) -> str:
        return f"{self.value.capitalize()} session"


@dataclass(frozen=True)
class WorktreeInfo:
    path: Path
    name: str
    checked_out_branch: str | None = None

    @classmethod
    def from_path(cls, path: str | Path, checked_out_branch: str | None = None) -> WorktreeInfo:
        resolved = Path(path)
        return cls(path=resolved, name=resolved.name or str(resolved), checked_out_branch=checked_out_branch)


@dataclass(frozen=True)
class WorktreeRuntimeState:
    is_dirty: bool = False
    has_paused_marker: bool = False


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    project_path: str
    provider: SessionProvider = SessionProvider.CLAUDE
    modified: int = 0
    summary: str | None = None
    first_prompt: str | None = None
    message_count: int | None = None
    git_branch: str | None = None


@dataclass
class BranchData:
    name: str
    sessions: list[SessionSummary] = field(default_factory=list)


@dataclass
class RepoData:
    name: str
    path: Path
    worktrees: list[WorktreeInfo] = field(default_factory=list)
    branches: list[BranchData] = field(default_factory=list)


@dataclass
class BranchNode:
    data: BranchData
    selected_worktree_idx: int = 0
    selected_sessions: set[str] = field(default_factory=set)
    expanded: bool = True

    @property
    def name(self) -> str:
        return self.data.name

    @property
    def sessions(self) -> list[SessionSummary]:
        return self.data.sessions

    def selected_session_summaries(self) -> list[SessionSummary]:
        """Selected sessions in display order."""
        return [item for item in self.sessions if item.session_id in self.selected_sessions]


@dataclass
class RepoNode:
    data: RepoData
    branches: list[BranchNode]
    worktree_states: list[WorktreeRuntimeState]
    expanded: bool = True

    @property
    def name(self) -> str:
        return self.data.name

    @property
    def worktrees(self) -> list[WorktreeInfo]:
        return self.data.worktrees


class CursorLevel(str, Enum):
    REPO = "repo"
    BRANCH = "branch"
    SESSION = "session"


@dataclass(frozen=True)
class Cursor:
    """Single logical position in the tree.

    Indices below the cursor's level are always zero so that two cursors
    naming the same node compare equal.
    """

    level: CursorLevel = CursorLevel.REPO
    repo_idx: int = 0
    branch_idx: int = 0
    session_idx: int = 0

    @classmethod
    def at_repo(cls, repo_idx: int) -> Cursor:
        return cls(CursorLevel.REPO, repo_idx)

    @classmethod
    def at_branch(cls, repo_idx: int, branch_idx: int) -> Cursor:
        return cls(CursorLevel.BRANCH, repo_idx, branch_idx)

    @classmethod
    def at_session(cls, repo_idx: int, branch_idx: int, session_idx: int) -> Cursor:
        return cls(CursorLevel.SESSION, repo_idx, branch_idx, session_idx)


def default_worktree_index(worktrees: list[WorktreeInfo], branch: str) -> int:
    for index, worktree in enumerate(worktrees):
        if worktree.checked_out_branch == branch:
            return index
    return 0


def build_repo_node(data: RepoData, states: list[WorktreeRuntimeState]) -> RepoNode:
    branches = [
        BranchNode(data=branch, selected_worktree_idx=default_worktree_index(data.worktrees, branch.name))
        for branch in data.branches
    ]
    node = RepoNode(data=data, branches=branches, worktree_states=list(states))
    check_repo_invariants(node)
    return node


def check_repo_invariants(node: RepoNode) -> None:
    if len(node.worktree_states) != len(node.worktrees):
        raise BranchDeckError(
            f"Worktree state count mismatch for {node.name}",
            code=ExitCode.DATA_SOURCE_ERROR,
            hint=f"Expected {len(node.worktrees)} states, got {len(node.worktree_states)}.",
        )
    if len(node.branches) != len(node.data.branches):
        raise BranchDeckError(
            f"Branch node count mismatch for {node.name}",
            code=ExitCode.DATA_SOURCE_ERROR,
        )
    for branch in node.branches:
        if node.worktrees and not 0 <= branch.selected_worktree_idx < len(node.worktrees):
            raise BranchDeckError(
                f"Worktree binding out of range for {node.name}:{branch.name}",
                code=ExitCode.DATA_SOURCE_ERROR,
            )
        session_ids = [item.session_id for item in branch.sessions]
        if len(session_ids) != len(set(session_ids)):
            raise BranchDeckError(
                f"Duplicate session identifiers under {node.name}:{branch.name}",
                code=ExitCode.DATA_SOURCE_ERROR,
            )
