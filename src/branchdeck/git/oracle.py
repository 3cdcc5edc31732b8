"""Per-worktree dirty / paused-work state queries and remediation commands."""

from __future__ import annotations

import logging as py_logging
import subprocess
from pathlib import Path
from typing import Protocol

from branchdeck.errors import BranchDeckError, ExitCode
from branchdeck.tree.models import WorktreeRuntimeState

logger = py_logging.getLogger(__name__)

PAUSED_MARKER_SUBJECT = "WIP: paused work"
UNDO_MARKER_COMMAND = "git reset --soft HEAD~1"
CREATE_MARKER_COMMAND = f"git add -A && git commit -m '{PAUSED_MARKER_SUBJECT}'"
GIT_TIMEOUT_SECONDS = 2.0


class SubprocessRunner(Protocol):
    def __call__(
        self,
        args: list[str],
        *,
        capture_output: bool = False,
        text: bool = False,
        check: bool = False,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]: ...


class WorktreeStateOracle(Protocol):
    def probe(self, path: Path) -> WorktreeRuntimeState: ...

    def create_paused_marker(self, path: Path) -> None: ...

    def undo_paused_marker(self, path: Path) -> None: ...


def run_git(
    path: str | Path,
    args: list[str],
    *,
    runner: SubprocessRunner = subprocess.run,
    timeout: float = GIT_TIMEOUT_SECONDS,
) -> subprocess.CompletedProcess[str]:
    cmd = ["git", "-C", str(path), *args]
    try:
        return runner(cmd, capture_output=True, text=True, check=False, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        logger.error("git timed out after %ss cmd=%s", timeout, cmd)
        raise BranchDeckError(
            f"git timed out in {path}",
            code=ExitCode.GIT_ERROR,
            hint="Check the repository for a stuck lock or slow filesystem.",
        ) from exc
    except OSError as exc:
        logger.error("git could not be started cmd=%s error=%s", cmd, exc)
        raise BranchDeckError(
            "git executable is not available",
            code=ExitCode.GIT_ERROR,
            hint="Install git and make sure it is on PATH.",
        ) from exc


class GitWorktreeOracle:
    """Answers the two state questions the launch flow needs, via git.

    A git invocation that cannot start or times out raises; a git command
    that runs but fails (missing worktree, empty history) reads as clean.
    """

    def __init__(
        self,
        runner: SubprocessRunner = subprocess.run,
        *,
        timeout_seconds: float = GIT_TIMEOUT_SECONDS,
    ) -> None:
        self.runner = runner
        self.timeout_seconds = timeout_seconds

    def _git(self, path: Path, args: list[str]) -> subprocess.CompletedProcess[str]:
        return run_git(path, args, runner=self.runner, timeout=self.timeout_seconds)

    def is_dirty(self, path: Path) -> bool:
        result = self._git(path, ["status", "--porcelain"])
        if result.returncode != 0:
            logger.warning("Dirty check failed path=%s stderr=%s", path, result.stderr.strip())
            return False
        return bool(result.stdout.strip())

    def has_paused_marker(self, path: Path) -> bool:
        result = self._git(path, ["log", "-1", "--format=%s"])
        if result.returncode != 0:
            logger.debug("No readable HEAD commit path=%s", path)
            return False
        return result.stdout.strip() == PAUSED_MARKER_SUBJECT

    def probe(self, path: Path) -> WorktreeRuntimeState:
        state = WorktreeRuntimeState(
            is_dirty=self.is_dirty(path),
            has_paused_marker=self.has_paused_marker(path),
        )
        logger.debug(
            "Probed worktree path=%s dirty=%s paused=%s",
            path,
            state.is_dirty,
            state.has_paused_marker,
        )
        return state

    def create_paused_marker(self, path: Path) -> None:
        staged = self._git(path, ["add", "-A"])
        if staged.returncode != 0:
            raise BranchDeckError(
                f"Failed to stage changes in {path}",
                code=ExitCode.GIT_ERROR,
                hint=staged.stderr.strip() or "Run `git add -A` manually.",
            )
        committed = self._git(path, ["commit", "-m", PAUSED_MARKER_SUBJECT])
        if committed.returncode != 0 and "nothing to commit" not in committed.stdout:
            raise BranchDeckError(
                f"Failed to create paused-work commit in {path}",
                code=ExitCode.GIT_ERROR,
                hint=committed.stderr.strip() or "Run `git commit` manually.",
            )
        logger.info("Created paused-work commit path=%s", path)

    def undo_paused_marker(self, path: Path) -> None:
        result = self._git(path, ["reset", "--soft", "HEAD~1"])
        if result.returncode != 0:
            raise BranchDeckError(
                f"Failed to undo paused-work commit in {path}",
                code=ExitCode.GIT_ERROR,
                hint=result.stderr.strip() or "Run `git reset --soft HEAD~1` manually.",
            )
        logger.info("Undid paused-work commit path=%s", path)
