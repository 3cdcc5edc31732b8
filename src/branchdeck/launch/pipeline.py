"""Confirm-and-launch state machine.

``confirm()`` moves Idle -> Ready, or Idle -> AwaitingConfirmation when the
bound worktree has uncommitted changes; ``answer()`` resolves the dialog.
``launch()`` is only legal from Ready and emits one editor descriptor plus one
descriptor per selected session, isolating failures per descriptor.
"""

from __future__ import annotations

import logging as py_logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from typing_extensions import assert_never

from branchdeck.errors import BranchDeckError, ExitCode
from branchdeck.git.oracle import CREATE_MARKER_COMMAND, UNDO_MARKER_COMMAND, WorktreeStateOracle
from branchdeck.launch.descriptors import (
    DEFAULT_TITLE_WIDTH,
    LaunchDescriptor,
    checkout_command,
    editor_descriptor,
    session_descriptor,
)
from branchdeck.launch.emitter import DescriptorEmitter
from branchdeck.sessions.claude import relocate_session
from branchdeck.tree.models import (
    BranchNode,
    CursorLevel,
    SessionProvider,
    SessionSummary,
    WorktreeInfo,
    WorktreeRuntimeState,
)
from branchdeck.tree.navigation import BoundWorktree, NavigationModel

logger = py_logging.getLogger(__name__)

Relocator = Callable[[str, str, Path], object]


class PipelineState(str, Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    READY = "ready"


class ConfirmAnswer(str, Enum):
    YES = "yes"
    NO = "no"
    CANCEL = "cancel"


class RemediationMode(str, Enum):
    DEFERRED = "deferred"
    IMMEDIATE = "immediate"


class Remediation(str, Enum):
    UNDO_PAUSED_MARKER = "undo-paused-marker"
    CREATE_PAUSED_MARKER = "create-paused-marker"

    @property
    def command(self) -> str:
        if self is Remediation.UNDO_PAUSED_MARKER:
            return UNDO_MARKER_COMMAND
        if self is Remediation.CREATE_PAUSED_MARKER:
            return CREATE_MARKER_COMMAND
        assert_never(self)


@dataclass(frozen=True)
class ConfirmDialog:
    message: str
    worktree_path: Path


@dataclass
class PendingLaunch:
    remediations: list[Remediation] = field(default_factory=list)

    @property
    def pre_commands(self) -> list[str]:
        return [item.command for item in self.remediations]


@dataclass(frozen=True)
class LaunchTarget:
    branch: BranchNode
    worktree: WorktreeInfo

    @property
    def needs_checkout(self) -> bool:
        return self.worktree.checked_out_branch != self.branch.name


@dataclass(frozen=True)
class LaunchFailure:
    name: str
    message: str


@dataclass
class LaunchReport:
    emitted: list[Path] = field(default_factory=list)
    failures: list[LaunchFailure] = field(default_factory=list)
    relocation_failures: list[LaunchFailure] = field(default_factory=list)
    remediation_failures: list[LaunchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def needs_relocation(session: SessionSummary, worktree: WorktreeInfo) -> bool:
    if session.provider is not SessionProvider.CLAUDE:
        return False
    return Path(session.project_path) != worktree.path


class LaunchPipeline:
    def __init__(
        self,
        navigation: NavigationModel,
        oracle: WorktreeStateOracle,
        *,
        editor: str = "code",
        title_width: int = DEFAULT_TITLE_WIDTH,
        name_prefix: str = "branchdeck",
        remediation_mode: RemediationMode = RemediationMode.DEFERRED,
        relocator: Relocator = relocate_session,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.navigation = navigation
        self.oracle = oracle
        self.editor = editor
        self.title_width = title_width
        self.name_prefix = name_prefix
        self.remediation_mode = remediation_mode
        self.relocator = relocator
        self.clock = clock
        self.state = PipelineState.IDLE
        self.dialog: ConfirmDialog | None = None
        self.pending = PendingLaunch()
        self._target: LaunchTarget | None = None

    @property
    def awaiting_confirmation(self) -> bool:
        return self.state is PipelineState.AWAITING_CONFIRMATION

    @property
    def target(self) -> LaunchTarget | None:
        return self._target

    def reset(self) -> None:
        self.state = PipelineState.IDLE
        self.dialog = None
        self.pending = PendingLaunch()
        self._target = None

    def confirm(self) -> PipelineState:
        if self.state is not PipelineState.IDLE or self.navigation.is_empty:
            return self.state
        level = self.navigation.cursor.level
        if level is CursorLevel.REPO:
            self.navigation.toggle_expand()
            return self.state
        if level is CursorLevel.BRANCH or level is CursorLevel.SESSION:
            return self._evaluate()
        assert_never(level)

    def _live_state(self, bound: BoundWorktree) -> WorktreeRuntimeState:
        try:
            state = self.oracle.probe(bound.worktree.path)
        except BranchDeckError as exc:
            logger.warning(
                "Live probe failed path=%s, using cached state: %s", bound.worktree.path, exc
            )
            return bound.state
        self.navigation.update_worktree_state(bound.index, state)
        return state

    def _evaluate(self) -> PipelineState:
        bound = self.navigation.bound_worktree()
        branch = self.navigation.current_branch()
        if bound is None or branch is None:
            logger.info("Nothing to launch: no worktree bound to the selected branch")
            return self.state

        state = self._live_state(bound)
        self.pending = PendingLaunch()
        self._target = LaunchTarget(branch=branch, worktree=bound.worktree)

        if state.has_paused_marker:
            self.pending.remediations.append(Remediation.UNDO_PAUSED_MARKER)

        if state.is_dirty:
            self.dialog = ConfirmDialog(
                message=(
                    f"Worktree '{bound.worktree.name}' has uncommitted changes.\n"
                    "Create WIP commit?"
                ),
                worktree_path=bound.worktree.path,
            )
            self.state = PipelineState.AWAITING_CONFIRMATION
            logger.debug("Awaiting confirmation for dirty worktree path=%s", bound.worktree.path)
            return self.state

        self.state = PipelineState.READY
        return self.state

    def answer(self, answer: ConfirmAnswer) -> PipelineState:
        if self.state is not PipelineState.AWAITING_CONFIRMATION:
            return self.state
        if answer is ConfirmAnswer.YES:
            self.dialog = None
            self.pending.remediations.append(Remediation.CREATE_PAUSED_MARKER)
            self.state = PipelineState.READY
        elif answer is ConfirmAnswer.NO or answer is ConfirmAnswer.CANCEL:
            logger.debug("Launch declined answer=%s", answer.value)
            self.reset()
        else:
            assert_never(answer)
        return self.state

    def _editor_pre_commands(self, target: LaunchTarget) -> list[str]:
        commands: list[str] = []
        if self.remediation_mode is RemediationMode.DEFERRED:
            commands.extend(self.pending.pre_commands)
        if target.needs_checkout:
            commands.append(checkout_command(target.branch.name))
        return commands

    def _require_target(self) -> LaunchTarget:
        if self.state is not PipelineState.READY or self._target is None:
            raise BranchDeckError(
                "No confirmed selection to launch",
                code=ExitCode.LAUNCH_ERROR,
                hint="Confirm a branch or session first.",
            )
        return self._target

    def build_descriptors(self) -> list[LaunchDescriptor]:
        target = self._require_target()
        descriptors = [
            editor_descriptor(
                target.worktree,
                name=f"{self.name_prefix}-main-{int(self.clock())}",
                editor=self.editor,
                pre_commands=self._editor_pre_commands(target),
            )
        ]
        for session in target.branch.selected_session_summaries():
            descriptors.append(
                session_descriptor(
                    session,
                    target.worktree,
                    name=f"{self.name_prefix}-session-{session.session_id[:8]}",
                    title_width=self.title_width,
                )
            )
        return descriptors

    def _apply_remediations(self, target: LaunchTarget, report: LaunchReport) -> None:
        for remediation in self.pending.remediations:
            if remediation is Remediation.UNDO_PAUSED_MARKER:
                action = self.oracle.undo_paused_marker
            elif remediation is Remediation.CREATE_PAUSED_MARKER:
                action = self.oracle.create_paused_marker
            else:
                assert_never(remediation)
            try:
                action(target.worktree.path)
            except BranchDeckError as exc:
                logger.warning("Remediation %s failed, launching anyway: %s", remediation.value, exc)
                report.remediation_failures.append(LaunchFailure(remediation.value, str(exc)))

    def _relocate_sessions(self, target: LaunchTarget, report: LaunchReport) -> None:
        for session in target.branch.selected_session_summaries():
            if not needs_relocation(session, target.worktree):
                continue
            try:
                self.relocator(session.session_id, session.project_path, target.worktree.path)
            except Exception as exc:
                logger.warning(
                    "Session relocation failed id=%s source=%s target=%s: %s",
                    session.session_id,
                    session.project_path,
                    target.worktree.path,
                    exc,
                )
                report.relocation_failures.append(LaunchFailure(session.session_id, str(exc)))

    def launch(self, emitter: DescriptorEmitter, *, dry_run: bool = False) -> LaunchReport:
        target = self._require_target()
        report = LaunchReport()
        if not dry_run:
            if self.remediation_mode is RemediationMode.IMMEDIATE:
                self._apply_remediations(target, report)
            self._relocate_sessions(target, report)

        for descriptor in self.build_descriptors():
            try:
                report.emitted.append(emitter.emit(descriptor))
            except Exception as exc:
                logger.error("Failed to emit descriptor name=%s: %s", descriptor.name, exc)
                report.failures.append(LaunchFailure(descriptor.name, str(exc)))

        logger.info(
            "Launch finished emitted=%s failed=%s worktree=%s",
            len(report.emitted),
            len(report.failures),
            target.worktree.path,
        )
        self.reset()
        return report
