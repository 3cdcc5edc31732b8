"""Write launch descriptors as Warp launch configurations and open them."""

from __future__ import annotations

import logging as py_logging
import shlex
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, TextIO

import yaml

from branchdeck.errors import BranchDeckError, ExitCode
from branchdeck.launch.descriptors import LaunchDescriptor

logger = py_logging.getLogger(__name__)

DEFAULT_LAUNCH_DIR = Path("~/.warp/launch_configurations")


class DescriptorEmitter(Protocol):
    def emit(self, descriptor: LaunchDescriptor) -> Path: ...


def default_opener() -> str:
    return "open" if sys.platform == "darwin" else "xdg-open"


def build_launch_config(descriptor: LaunchDescriptor) -> dict[str, object]:
    return {
        "name": descriptor.name,
        "windows": [
            {
                "tabs": [
                    {
                        "title": descriptor.title,
                        "layout": {
                            "cwd": str(descriptor.cwd),
                            "commands": [{"exec": command} for command in descriptor.commands],
                        },
                    }
                ]
            }
        ],
    }


def render_launch_config(descriptor: LaunchDescriptor) -> str:
    return "---\n" + yaml.safe_dump(
        build_launch_config(descriptor),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


class WarpLaunchEmitter:
    def __init__(
        self,
        directory: str | Path = DEFAULT_LAUNCH_DIR,
        *,
        opener: str | None = None,
        prefix: str = "branchdeck",
        runner: Callable[..., object] = subprocess.Popen,
    ) -> None:
        self.directory = Path(directory).expanduser()
        self.opener = opener or default_opener()
        self.prefix = prefix
        self.runner = runner

    def write(self, descriptor: LaunchDescriptor) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{descriptor.name}.yaml"
        path.write_text(render_launch_config(descriptor), encoding="utf-8")
        logger.debug("Wrote launch config kind=%s path=%s", descriptor.kind.value, path)
        return path

    def open(self, path: Path) -> None:
        argv = [*shlex.split(self.opener), str(path)]
        try:
            self.runner(argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            raise BranchDeckError(
                f"Failed to open launch config {path.name}",
                code=ExitCode.LAUNCH_ERROR,
                hint=f"Check the opener command `{self.opener}`: {exc}",
            ) from exc

    def emit(self, descriptor: LaunchDescriptor) -> Path:
        path = self.write(descriptor)
        self.open(path)
        logger.info("Launched %s descriptor name=%s", descriptor.kind.value, descriptor.name)
        return path

    def cleanup_old_configs(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        removed: list[Path] = []
        for path in sorted(self.directory.glob(f"{self.prefix}-*.yaml")):
            try:
                path.unlink()
            except OSError as exc:
                logger.warning("Could not remove old launch config path=%s error=%s", path, exc)
                continue
            removed.append(path)
        logger.debug("Removed %s old launch configs dir=%s", len(removed), self.directory)
        return removed


class DryRunEmitter:
    """Prints descriptors instead of writing and opening them."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def emit(self, descriptor: LaunchDescriptor) -> Path:
        self.stream.write(render_launch_config(descriptor))
        self.stream.flush()
        return Path(f"{descriptor.name}.yaml")
