from __future__ import annotations

from pathlib import Path

import pytest

from branchdeck.config import EDITOR_ENV, AppConfig, load_config


@pytest.fixture(autouse=True)
def _clean_editor_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(EDITOR_ENV, raising=False)
    monkeypatch.delenv("EDITOR", raising=False)


def test_load_defaults_when_config_missing(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "config.toml")
    assert cfg.repos == []
    assert cfg.editor == "code"
    assert cfg.launch_prefix == "branchdeck"
    assert cfg.title_width == 30
    assert cfg.remediation == "deferred"
    assert cfg.claude_sessions is True
    assert cfg.codex_sessions is True
    assert cfg.git_timeout_seconds == 2.0


def test_load_reads_all_fields(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                'repos = ["~/src/app", "/work/lib"]',
                'editor = "nvim"',
                'launch_dir = "/tmp/launch"',
                'launch_prefix = "deck"',
                'opener = "open -g"',
                "title_width = 40",
                'remediation = "immediate"',
                "codex_sessions = false",
                'claude_projects_dir = "/data/claude"',
                "git_timeout_seconds = 5",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.repos == ["~/src/app", "/work/lib"]
    assert cfg.editor == "nvim"
    assert cfg.launch_dir == "/tmp/launch"
    assert cfg.launch_prefix == "deck"
    assert cfg.opener == "open -g"
    assert cfg.title_width == 40
    assert cfg.remediation == "immediate"
    assert cfg.codex_sessions is False
    assert cfg.claude_projects_dir == "/data/claude"
    assert cfg.git_timeout_seconds == 5.0
    assert cfg.repo_paths()[0] == Path("~/src/app").expanduser()


def test_invalid_values_fall_back_field_by_field(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                'repos = ["/ok", 3, ""]',
                "title_width = 3",
                'remediation = "sometimes"',
                'launch_prefix = "a/b"',
                'claude_sessions = "yes"',
                "git_timeout_seconds = -1",
                'editor = "vim"',
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.repos == ["/ok"]
    assert cfg.title_width == 30
    assert cfg.remediation == "deferred"
    assert cfg.launch_prefix == "branchdeck"
    assert cfg.claude_sessions is True
    assert cfg.git_timeout_seconds == 2.0
    assert cfg.editor == "vim"


def test_unreadable_toml_uses_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("repos = [", encoding="utf-8")
    assert load_config(path).repos == []


def test_editor_resolution_order(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.toml"
    monkeypatch.setenv("EDITOR", "nano")
    assert load_config(path).editor == "nano"

    path.write_text('editor = "vim"', encoding="utf-8")
    assert load_config(path).editor == "vim"

    monkeypatch.setenv(EDITOR_ENV, "hx")
    assert load_config(path).editor == "hx"


def test_repo_paths_deduplicates() -> None:
    cfg = AppConfig(repos=["/work/app", "/work/app", "/work/lib"])
    assert cfg.repo_paths() == [Path("/work/app"), Path("/work/lib")]


def test_assignment_is_validated() -> None:
    cfg = AppConfig()
    with pytest.raises(ValueError):
        cfg.title_width = 500
