"""Application context and the single input dispatcher."""

from __future__ import annotations

import logging as py_logging
from dataclasses import dataclass, field
from enum import Enum

from branchdeck.git.oracle import WorktreeStateOracle
from branchdeck.launch.emitter import DescriptorEmitter
from branchdeck.launch.pipeline import ConfirmAnswer, LaunchPipeline, LaunchReport, PipelineState
from branchdeck.provider import TreeDataProvider
from branchdeck.tree.navigation import NavigationModel
from branchdeck.tree.viewport import Viewport, ensure_selection_visible

logger = py_logging.getLogger(__name__)


class KeyAction(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    PAGE_UP = "page-up"
    PAGE_DOWN = "page-down"
    HOME = "home"
    END = "end"
    SPACE = "space"
    ENTER = "enter"
    ESCAPE = "escape"
    BACKSPACE = "backspace"
    CHAR = "char"
    INTERRUPT = "interrupt"


@dataclass(frozen=True)
class KeyEvent:
    action: KeyAction
    char: str = ""

    @classmethod
    def typed(cls, char: str) -> KeyEvent:
        return cls(KeyAction.CHAR, char)


class Outcome(str, Enum):
    CONTINUE = "continue"
    LAUNCH = "launch"
    QUIT = "quit"


_YES_KEYS = {"y", "Y"}
_NO_KEYS = {"n", "N"}


@dataclass
class AppState:
    navigation: NavigationModel
    pipeline: LaunchPipeline
    provider: TreeDataProvider
    oracle: WorktreeStateOracle
    filter: str = ""
    viewport: Viewport = field(default_factory=Viewport)
    viewport_height: int = 0
    status: str = ""

    def refresh(self) -> bool:
        ok = self.navigation.refresh(self.provider, self.oracle, self.filter)
        self.status = "" if ok else f"Refresh failed: {self.navigation.last_error}"
        self.scroll_to_selection()
        return ok

    def scroll_to_selection(self) -> None:
        ensure_selection_visible(self.navigation, self.viewport, self.viewport_height)

    def set_filter(self, value: str) -> None:
        if value == self.filter:
            return
        self.filter = value
        self.refresh()


def _handle_confirm_key(state: AppState, event: KeyEvent) -> Outcome:
    if event.action is KeyAction.CHAR and event.char in _YES_KEYS:
        answer = ConfirmAnswer.YES
    elif event.action is KeyAction.CHAR and event.char in _NO_KEYS:
        answer = ConfirmAnswer.NO
    elif event.action is KeyAction.ESCAPE:
        answer = ConfirmAnswer.CANCEL
    else:
        return Outcome.CONTINUE
    if state.pipeline.answer(answer) is PipelineState.READY:
        return Outcome.LAUNCH
    return Outcome.CONTINUE


def handle_key(state: AppState, event: KeyEvent) -> Outcome:
    if event.action is KeyAction.INTERRUPT:
        return Outcome.QUIT
    if state.pipeline.awaiting_confirmation:
        return _handle_confirm_key(state, event)

    navigation = state.navigation
    page = max(1, state.viewport_height)
    action = event.action

    if action is KeyAction.UP:
        navigation.move_up()
    elif action is KeyAction.DOWN:
        navigation.move_down()
    elif action is KeyAction.PAGE_UP:
        navigation.move_up(page)
    elif action is KeyAction.PAGE_DOWN:
        navigation.move_down(page)
    elif action is KeyAction.HOME:
        navigation.move_to_top()
    elif action is KeyAction.END:
        navigation.move_to_bottom()
    elif action is KeyAction.LEFT:
        navigation.cycle_worktree(-1)
    elif action is KeyAction.RIGHT:
        navigation.cycle_worktree(1)
    elif action is KeyAction.SPACE:
        if state.filter:
            state.set_filter(state.filter + " ")
        else:
            navigation.toggle_session()
    elif action is KeyAction.ENTER:
        if state.pipeline.confirm() is PipelineState.READY:
            return Outcome.LAUNCH
    elif action is KeyAction.ESCAPE:
        if state.filter:
            state.set_filter("")
    elif action is KeyAction.BACKSPACE:
        if state.filter:
            state.set_filter(state.filter[:-1])
    elif action is KeyAction.CHAR:
        if event.char:
            state.set_filter(state.filter + event.char)

    state.scroll_to_selection()
    return Outcome.CONTINUE


def run_launch(state: AppState, emitter: DescriptorEmitter, *, dry_run: bool = False) -> LaunchReport:
    report = state.pipeline.launch(emitter, dry_run=dry_run)
    for failure in report.relocation_failures:
        logger.warning("Session %s launched without relocation: %s", failure.name, failure.message)
    for failure in report.failures:
        logger.error("Descriptor %s was not launched: %s", failure.name, failure.message)
    return report
