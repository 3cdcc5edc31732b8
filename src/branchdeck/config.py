"""XDG config loading."""

from __future__ import annotations

import logging as py_logging
import os
import sys
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from branchdeck.launch.emitter import DEFAULT_LAUNCH_DIR, default_opener

logger = py_logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/branchdeck/config.toml").expanduser()
DEFAULT_TITLE_WIDTH = 30
DEFAULT_GIT_TIMEOUT_SECONDS = 2.0
EDITOR_ENV = "BRANCHDECK_EDITOR"

_VALID_REMEDIATION = {"deferred", "immediate"}
_STRING_FIELDS = (
    "editor",
    "launch_dir",
    "launch_prefix",
    "opener",
    "claude_projects_dir",
    "codex_home",
)
_BOOL_FIELDS = ("claude_sessions", "codex_sessions")


def default_editor() -> str:
    return os.getenv("EDITOR", "").strip() or "code"


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    repos: list[str] = Field(default_factory=list)
    editor: str = Field(default_factory=default_editor)
    launch_dir: str = str(DEFAULT_LAUNCH_DIR)
    launch_prefix: str = "branchdeck"
    opener: str = Field(default_factory=default_opener)
    title_width: int = Field(default=DEFAULT_TITLE_WIDTH, ge=8, le=200)
    remediation: Literal["deferred", "immediate"] = "deferred"
    claude_sessions: bool = True
    codex_sessions: bool = True
    claude_projects_dir: str = "~/.claude/projects"
    codex_home: str = "~/.codex"
    git_timeout_seconds: float = Field(default=DEFAULT_GIT_TIMEOUT_SECONDS, gt=0, le=60)

    @field_validator("launch_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned or "/" in cleaned:
            raise ValueError(f"Invalid launch prefix: {value!r}")
        return cleaned

    def repo_paths(self) -> list[Path]:
        seen: set[Path] = set()
        paths: list[Path] = []
        for raw in self.repos:
            path = Path(raw).expanduser()
            if path in seen:
                continue
            seen.add(path)
            paths.append(path)
        return paths


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    repos = raw.get("repos", [])
    if isinstance(repos, list):
        cfg.repos = [item.strip() for item in repos if isinstance(item, str) and item.strip()]

    for name in _STRING_FIELDS:
        value = raw.get(name)
        if isinstance(value, str) and value.strip():
            try:
                setattr(cfg, name, value.strip())
            except ValueError:
                logger.warning("Ignoring invalid config value %s=%r", name, value)

    for name in _BOOL_FIELDS:
        value = raw.get(name)
        if isinstance(value, bool):
            setattr(cfg, name, value)

    title_width = raw.get("title_width", cfg.title_width)
    if isinstance(title_width, int) and not isinstance(title_width, bool) and 8 <= title_width <= 200:
        cfg.title_width = title_width

    remediation = raw.get("remediation", cfg.remediation)
    if isinstance(remediation, str) and remediation in _VALID_REMEDIATION:
        cfg.remediation = cast(Literal["deferred", "immediate"], remediation)

    timeout = raw.get("git_timeout_seconds", cfg.git_timeout_seconds)
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and 0 < timeout <= 60:
        cfg.git_timeout_seconds = float(timeout)

    return cfg


def _apply_env(cfg: AppConfig) -> AppConfig:
    env_editor = os.getenv(EDITOR_ENV, "").strip()
    if env_editor:
        cfg.editor = env_editor
    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _apply_env(AppConfig())
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Config unreadable, using defaults path=%s error=%s", resolved, exc)
        return _apply_env(AppConfig())
    if not isinstance(raw, dict):
        return _apply_env(AppConfig())
    return _apply_env(_sanitize(raw))
