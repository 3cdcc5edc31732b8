from __future__ import annotations

import io
from pathlib import Path

import pytest
import yaml

from branchdeck.errors import BranchDeckError, ExitCode
from branchdeck.launch.descriptors import DescriptorKind, LaunchDescriptor
from branchdeck.launch.emitter import (
    DryRunEmitter,
    WarpLaunchEmitter,
    build_launch_config,
    render_launch_config,
)


def _descriptor(name: str = "branchdeck-main-1") -> LaunchDescriptor:
    return LaunchDescriptor(
        kind=DescriptorKind.EDITOR,
        name=name,
        cwd=Path("/work/app"),
        title="app",
        commands=("git checkout main", "code ."),
    )


def test_launch_config_has_warp_shape() -> None:
    config = build_launch_config(_descriptor())
    assert config == {
        "name": "branchdeck-main-1",
        "windows": [
            {
                "tabs": [
                    {
                        "title": "app",
                        "layout": {
                            "cwd": "/work/app",
                            "commands": [{"exec": "git checkout main"}, {"exec": "code ."}],
                        },
                    }
                ]
            }
        ],
    }


def test_rendered_config_is_yaml_document() -> None:
    rendered = render_launch_config(_descriptor())
    assert rendered.startswith("---\n")
    assert yaml.safe_load(rendered) == build_launch_config(_descriptor())


def test_emit_writes_file_and_runs_opener(tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def runner(argv: list[str], **_: object) -> None:
        calls.append(argv)

    emitter = WarpLaunchEmitter(tmp_path, opener="open -g", runner=runner)
    path = emitter.emit(_descriptor())

    assert path == tmp_path / "branchdeck-main-1.yaml"
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["name"] == "branchdeck-main-1"
    assert calls == [["open", "-g", str(path)]]


def test_opener_failure_raises_launch_error(tmp_path: Path) -> None:
    def runner(argv: list[str], **_: object) -> None:
        raise FileNotFoundError(argv[0])

    emitter = WarpLaunchEmitter(tmp_path, opener="missing-opener", runner=runner)
    with pytest.raises(BranchDeckError) as exc:
        emitter.emit(_descriptor())
    assert exc.value.code is ExitCode.LAUNCH_ERROR


def test_cleanup_removes_only_prefixed_configs(tmp_path: Path) -> None:
    (tmp_path / "branchdeck-main-1.yaml").write_text("---\n", encoding="utf-8")
    (tmp_path / "branchdeck-session-abc.yaml").write_text("---\n", encoding="utf-8")
    (tmp_path / "personal.yaml").write_text("---\n", encoding="utf-8")

    emitter = WarpLaunchEmitter(tmp_path, opener="true", runner=lambda *args, **kwargs: None)
    removed = emitter.cleanup_old_configs()

    assert sorted(path.name for path in removed) == ["branchdeck-main-1.yaml", "branchdeck-session-abc.yaml"]
    assert [path.name for path in tmp_path.iterdir()] == ["personal.yaml"]


def test_cleanup_without_directory_is_noop(tmp_path: Path) -> None:
    emitter = WarpLaunchEmitter(tmp_path / "missing", opener="true")
    assert emitter.cleanup_old_configs() == []


def test_dry_run_prints_instead_of_writing() -> None:
    stream = io.StringIO()
    path = DryRunEmitter(stream).emit(_descriptor())
    assert path.name == "branchdeck-main-1.yaml"
    assert "exec: code ." in stream.getvalue()
