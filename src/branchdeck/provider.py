"""Tree data providers: the filtered repository -> branch -> session forest."""

from __future__ import annotations

import logging as py_logging
import subprocess
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from branchdeck.errors import BranchDeckError, ExitCode
from branchdeck.git.oracle import GIT_TIMEOUT_SECONDS, SubprocessRunner
from branchdeck.git.worktrees import list_worktrees
from branchdeck.tree.models import BranchData, RepoData, SessionSummary, WorktreeInfo

logger = py_logging.getLogger(__name__)

SessionSource = Callable[[], list[SessionSummary]]


class TreeDataProvider(Protocol):
    def fetch(self, filter_text: str) -> list[RepoData]: ...


def _matches(value: str, needle: str) -> bool:
    return needle in value.lower()


def filter_repos(repos: Iterable[RepoData], filter_text: str) -> list[RepoData]:
    """Keep whole repos whose name matches, else only their matching branches."""
    needle = filter_text.strip().lower()
    if not needle:
        return list(repos)

    filtered: list[RepoData] = []
    for repo in repos:
        if _matches(repo.name, needle):
            filtered.append(repo)
            continue
        branches = [branch for branch in repo.branches if _matches(branch.name, needle)]
        if branches:
            filtered.append(
                RepoData(name=repo.name, path=repo.path, worktrees=repo.worktrees, branches=branches)
            )
    return filtered


@dataclass
class StaticTreeProvider:
    repos: list[RepoData] = field(default_factory=list)

    def fetch(self, filter_text: str) -> list[RepoData]:
        return filter_repos(self.repos, filter_text)


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def sessions_for_worktrees(
    sessions: Iterable[SessionSummary], worktrees: list[WorktreeInfo]
) -> list[SessionSummary]:
    roots = [worktree.path for worktree in worktrees]
    return [
        session
        for session in sessions
        if session.project_path and any(_is_within(Path(session.project_path), root) for root in roots)
    ]


def session_branch(session: SessionSummary, worktrees: list[WorktreeInfo]) -> str | None:
    """Recorded branch, else the branch checked out where the session ran."""
    if session.git_branch:
        return session.git_branch
    for worktree in sorted(worktrees, key=lambda item: len(item.path.parts), reverse=True):
        if session.project_path and _is_within(Path(session.project_path), worktree.path):
            return worktree.checked_out_branch or None
    return None


def group_branches(worktrees: list[WorktreeInfo], sessions: list[SessionSummary]) -> list[BranchData]:
    names = {worktree.checked_out_branch for worktree in worktrees if worktree.checked_out_branch}
    owners = {session.session_id: session_branch(session, worktrees) for session in sessions}
    names.update(branch for branch in owners.values() if branch)

    branches: list[BranchData] = []
    for name in sorted(names):
        matching = [session for session in sessions if owners[session.session_id] == name]
        matching.sort(key=lambda item: item.modified, reverse=True)
        branches.append(BranchData(name=name, sessions=matching))
    return branches


class GitSessionTreeProvider:
    """Builds the forest from configured repositories and session sources."""

    def __init__(
        self,
        repo_paths: Iterable[str | Path],
        *,
        session_sources: Iterable[SessionSource] = (),
        runner: SubprocessRunner = subprocess.run,
        timeout_seconds: float = GIT_TIMEOUT_SECONDS,
    ) -> None:
        self.repo_paths = [Path(path).expanduser() for path in repo_paths]
        self.session_sources = list(session_sources)
        self.runner = runner
        self.timeout_seconds = timeout_seconds

    def _load_sessions(self) -> list[SessionSummary]:
        seen: set[str] = set()
        sessions: list[SessionSummary] = []
        for source in self.session_sources:
            try:
                loaded = source()
            except (OSError, ValueError) as exc:
                logger.warning("Session source failed source=%s error=%s", source, exc)
                continue
            for session in loaded:
                if session.session_id in seen:
                    continue
                seen.add(session.session_id)
                sessions.append(session)
        return sessions

    def _build_repo(self, repo_path: Path, sessions: list[SessionSummary]) -> RepoData | None:
        try:
            worktrees = list_worktrees(repo_path, runner=self.runner, timeout=self.timeout_seconds)
        except BranchDeckError as exc:
            if exc.code is ExitCode.DATA_SOURCE_ERROR:
                logger.warning("Skipping repository path=%s: %s", repo_path, exc.message)
                return None
            raise
        owned = sessions_for_worktrees(sessions, worktrees)
        return RepoData(
            name=repo_path.name or str(repo_path),
            path=repo_path,
            worktrees=worktrees,
            branches=group_branches(worktrees, owned),
        )

    def fetch(self, filter_text: str) -> list[RepoData]:
        sessions = self._load_sessions()
        repos: list[RepoData] = []
        for repo_path in self.repo_paths:
            repo = self._build_repo(repo_path, sessions)
            if repo is not None:
                repos.append(repo)
        repos.sort(key=lambda item: item.name.lower())
        return filter_repos(repos, filter_text)
