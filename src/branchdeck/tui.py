"""Thin curses driver: decode keys, dump the flattened tree, loop."""

from __future__ import annotations

import curses
import logging as py_logging
import os

from branchdeck.app import AppState, KeyAction, KeyEvent, Outcome, handle_key
from branchdeck.tree.viewport import flatten

logger = py_logging.getLogger(__name__)

HEADER_LINES = 2
FOOTER_LINES = 1
HELP_TEXT = (
    "up/down move  left/right worktree  space select  enter launch  "
    "type to filter  esc clear  ctrl+c quit"
)

_KEYMAP = {
    curses.KEY_UP: KeyAction.UP,
    curses.KEY_DOWN: KeyAction.DOWN,
    curses.KEY_LEFT: KeyAction.LEFT,
    curses.KEY_RIGHT: KeyAction.RIGHT,
    curses.KEY_PPAGE: KeyAction.PAGE_UP,
    curses.KEY_NPAGE: KeyAction.PAGE_DOWN,
    curses.KEY_HOME: KeyAction.HOME,
    curses.KEY_END: KeyAction.END,
    curses.KEY_ENTER: KeyAction.ENTER,
    curses.KEY_BACKSPACE: KeyAction.BACKSPACE,
    10: KeyAction.ENTER,
    13: KeyAction.ENTER,
    27: KeyAction.ESCAPE,
    127: KeyAction.BACKSPACE,
    8: KeyAction.BACKSPACE,
    3: KeyAction.INTERRUPT,
    32: KeyAction.SPACE,
}


def decode_key(key: int | str) -> KeyEvent | None:
    """Map a ``get_wch()`` result to an event; text keys arrive as ``str``."""
    if isinstance(key, str):
        if len(key) != 1:
            return None
        action = _KEYMAP.get(ord(key)) if key.isascii() else None
        if action is not None:
            return KeyEvent(action)
        return KeyEvent.typed(key) if key.isprintable() else None
    action = _KEYMAP.get(key)
    if action is not None:
        return KeyEvent(action)
    if 33 <= key <= 126:
        return KeyEvent.typed(chr(key))
    return None


def tree_height(screen_height: int) -> int:
    return max(0, screen_height - HEADER_LINES - FOOTER_LINES)


def safe_addstr(stdscr: curses.window, y: int, x: int, text: str, attr: int = 0) -> None:
    height, width = stdscr.getmaxyx()
    if y < 0 or y >= height or x >= width:
        return
    clipped = text[: max(0, width - x - 1)]
    if not clipped:
        return
    try:
        stdscr.addstr(y, x, clipped, attr)
    except curses.error:
        return


def _draw_dialog(stdscr: curses.window, message: str) -> None:
    height, width = stdscr.getmaxyx()
    lines = [*message.splitlines(), "[y] yes   [n] no   [esc] cancel"]
    top = max(HEADER_LINES, (height - len(lines)) // 2)
    for offset, line in enumerate(lines):
        x = max(0, (width - len(line)) // 2)
        safe_addstr(stdscr, top + offset, x, line, curses.A_REVERSE)


def draw(stdscr: curses.window, state: AppState) -> None:
    stdscr.erase()
    height, _ = stdscr.getmaxyx()
    state.viewport_height = tree_height(height)
    state.scroll_to_selection()

    safe_addstr(stdscr, 0, 0, f"filter: {state.filter}", curses.A_BOLD)
    if state.status:
        safe_addstr(stdscr, 1, 0, state.status)

    lines = flatten(state.navigation)
    if not lines:
        safe_addstr(stdscr, HEADER_LINES, 0, "(no repositories)", curses.A_DIM)
    for row, index in enumerate(state.viewport.visible_range(len(lines), state.viewport_height)):
        line = lines[index]
        attr = curses.A_REVERSE if line.selected else 0
        safe_addstr(stdscr, HEADER_LINES + row, 0, "  " * line.depth + line.text, attr)

    safe_addstr(stdscr, height - 1, 0, HELP_TEXT, curses.A_DIM)
    dialog = state.pipeline.dialog
    if state.pipeline.awaiting_confirmation and dialog is not None:
        _draw_dialog(stdscr, dialog.message)
    stdscr.refresh()


def run_tui(stdscr: curses.window, state: AppState) -> Outcome:
    stdscr.keypad(True)
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    while True:
        draw(stdscr, state)
        try:
            key = stdscr.get_wch()
        except curses.error:
            continue
        event = decode_key(key)
        if event is None:
            continue
        outcome = handle_key(state, event)
        if outcome is not Outcome.CONTINUE:
            logger.debug("Leaving interactive loop outcome=%s", outcome.value)
            return outcome


def run_interactive(state: AppState) -> Outcome:
    os.environ.setdefault("ESCDELAY", "25")
    try:
        return curses.wrapper(run_tui, state)
    except KeyboardInterrupt:
        return handle_key(state, KeyEvent(KeyAction.INTERRUPT))
