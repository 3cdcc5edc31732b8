"""Worktree listing via ``git worktree list --porcelain``."""

from __future__ import annotations

import logging as py_logging
import subprocess
from pathlib import Path

from branchdeck.errors import BranchDeckError, ExitCode
from branchdeck.git.oracle import GIT_TIMEOUT_SECONDS, SubprocessRunner, run_git
from branchdeck.tree.models import WorktreeInfo

logger = py_logging.getLogger(__name__)

_BRANCH_REF_PREFIX = "refs/heads/"


def parse_worktree_porcelain(output: str) -> list[WorktreeInfo]:
    worktrees: list[WorktreeInfo] = []
    current_path = ""
    current_branch: str | None = None

    def flush() -> None:
        if current_path:
            worktrees.append(WorktreeInfo.from_path(current_path, current_branch))

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line.startswith("worktree "):
            flush()
            current_path = line.split(" ", 1)[1].strip()
            current_branch = None
        elif line.startswith("branch "):
            ref = line.split(" ", 1)[1].strip()
            current_branch = ref[len(_BRANCH_REF_PREFIX):] if ref.startswith(_BRANCH_REF_PREFIX) else ref
        elif line == "detached":
            current_branch = None
    flush()
    return worktrees


def list_worktrees(
    repo_path: str | Path,
    *,
    runner: SubprocessRunner = subprocess.run,
    timeout: float = GIT_TIMEOUT_SECONDS,
) -> list[WorktreeInfo]:
    result = run_git(repo_path, ["worktree", "list", "--porcelain"], runner=runner, timeout=timeout)
    if result.returncode != 0:
        logger.error("Worktree listing failed repo=%s stderr=%s", repo_path, result.stderr.strip())
        raise BranchDeckError(
            f"Repository is not accessible: {repo_path}",
            code=ExitCode.DATA_SOURCE_ERROR,
            hint="Check the path and ensure it is a valid Git repository.",
        )
    worktrees = parse_worktree_porcelain(result.stdout)
    logger.debug("Discovered %s worktrees repo=%s", len(worktrees), repo_path)
    return worktrees
