from __future__ import annotations

from branchdeck.errors import BranchDeckError, ExitCode, user_facing_error


def test_exit_codes_are_deterministic() -> None:
    assert int(ExitCode.SUCCESS) == 0
    assert int(ExitCode.INVALID_ARGS) == 2
    assert int(ExitCode.DATA_SOURCE_ERROR) == 6
    assert int(ExitCode.LAUNCH_ERROR) == 7
    assert int(ExitCode.INTERRUPTED) == 130


def test_error_string_contains_hint() -> None:
    err = BranchDeckError("git timed out", code=ExitCode.GIT_ERROR, hint="Check the lock file")
    assert "Check the lock file" in str(err)
    assert str(BranchDeckError("plain")) == "plain"


def test_error_defaults_to_runtime_error() -> None:
    assert BranchDeckError("boom").code is ExitCode.RUNTIME_ERROR


def test_user_facing_error_template() -> None:
    text = user_facing_error("No repositories configured", hint="Pass --repo")
    assert text.startswith("Error:")
    assert "Next step" in text
    assert user_facing_error("Broken") == "Error: Broken."
