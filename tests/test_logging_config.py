from __future__ import annotations

import io
import logging as py_logging
from pathlib import Path

import pytest

import branchdeck.logging as deck_logging


def test_default_log_path_is_expanded() -> None:
    path = deck_logging.default_log_path()

    assert path.is_absolute()
    assert path.name == "branchdeck.log"


def test_warning_alias_maps_to_warning_level() -> None:
    logger = deck_logging.configure_logging("warning")

    assert logger.level == deck_logging.LOG_LEVELS["WARN"]


def test_unknown_log_level_falls_back_to_info() -> None:
    logger = deck_logging.configure_logging("not-a-level")

    assert logger.level == py_logging.INFO


def test_configure_logging_resets_existing_handlers() -> None:
    logger = deck_logging.configure_logging("INFO")
    assert len(logger.handlers) == 1

    logger = deck_logging.configure_logging("INFO")
    assert len(logger.handlers) == 1


def test_configure_logging_adds_debug_file_handler(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "branchdeck.log"

    logger = deck_logging.configure_logging("ERROR", log_file=log_file)
    file_handlers = [
        handler for handler in logger.handlers if isinstance(handler, py_logging.FileHandler)
    ]

    assert len(file_handlers) == 1
    assert file_handlers[0].level == py_logging.DEBUG
    assert log_file.exists()


def test_console_off_keeps_only_file_handler(tmp_path: Path) -> None:
    stream = io.StringIO()
    log_file = tmp_path / "branchdeck.log"

    logger = deck_logging.configure_logging("INFO", stream, log_file=log_file, console=False)
    py_logging.getLogger("branchdeck.tree").info("hidden from console")

    assert all(isinstance(handler, py_logging.FileHandler) for handler in logger.handlers)
    assert stream.getvalue() == ""
    assert "hidden from console" in log_file.read_text(encoding="utf-8")


def test_console_off_without_file_installs_null_handler() -> None:
    logger = deck_logging.configure_logging("INFO", console=False)

    assert [type(handler) for handler in logger.handlers] == [py_logging.NullHandler]


def test_configure_logging_ignores_file_handler_oserror(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    def raise_os_error(*args: object, **kwargs: object) -> py_logging.Handler:
        raise OSError("disk full")

    monkeypatch.setattr(deck_logging.py_logging, "FileHandler", raise_os_error)

    logger = deck_logging.configure_logging("INFO", log_file=tmp_path / "nope" / "branchdeck.log")

    assert len(logger.handlers) == 1
