"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import functools
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from .app import AppState, Outcome, run_launch
from .config import AppConfig, load_config
from .errors import BranchDeckError, ExitCode, user_facing_error
from .git.oracle import GitWorktreeOracle, WorktreeStateOracle
from .launch.emitter import DescriptorEmitter, DryRunEmitter, WarpLaunchEmitter
from .launch.pipeline import LaunchPipeline, RemediationMode
from .logging import configure_logging, default_log_path
from .provider import GitSessionTreeProvider, SessionSource, TreeDataProvider
from .sessions import claude, codex
from .tree.navigation import NavigationModel

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

TuiRunner = Callable[[AppState], Outcome]


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="branchdeck",
        description="Pick a repo, branch and sessions, then open them in the terminal.",
    )
    parser.add_argument("filter", nargs="*", help="Initial filter text")
    parser.add_argument(
        "--repo",
        dest="repos",
        action="append",
        type=Path,
        default=[],
        metavar="PATH",
        help="Repository to include (repeatable, added to the configured list)",
    )
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--editor", default=None, help="Editor command, overrides config")
    parser.add_argument("--launch-dir", type=Path, default=None)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print launch configurations instead of writing and opening them",
    )
    parser.add_argument("--log-level", type=_log_level_type, default="INFO")
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def resolve_config(namespace: argparse.Namespace) -> AppConfig:
    cfg = load_config(namespace.config)
    if namespace.editor:
        cfg.editor = namespace.editor.strip() or cfg.editor
    if namespace.launch_dir is not None:
        cfg.launch_dir = str(namespace.launch_dir.expanduser())
    cfg.repos = [*cfg.repos, *(str(path) for path in namespace.repos)]
    return cfg


def session_sources(cfg: AppConfig) -> list[SessionSource]:
    sources: list[SessionSource] = []
    if cfg.claude_sessions:
        sources.append(functools.partial(claude.scan_sessions, cfg.claude_projects_dir))
    if cfg.codex_sessions:
        sources.append(functools.partial(codex.scan_sessions, cfg.codex_home))
    return sources


def build_provider(cfg: AppConfig) -> TreeDataProvider:
    repo_paths = cfg.repo_paths()
    if not repo_paths:
        raise BranchDeckError(
            "No repositories configured",
            code=ExitCode.CONFIG_ERROR,
            hint="Add `repos = [...]` to the config file or pass --repo PATH.",
        )
    return GitSessionTreeProvider(
        repo_paths,
        session_sources=session_sources(cfg),
        timeout_seconds=cfg.git_timeout_seconds,
    )


def build_emitter(cfg: AppConfig, *, dry_run: bool) -> DescriptorEmitter:
    if dry_run:
        return DryRunEmitter()
    emitter = WarpLaunchEmitter(cfg.launch_dir, opener=cfg.opener, prefix=cfg.launch_prefix)
    emitter.cleanup_old_configs()
    return emitter


def build_state(
    cfg: AppConfig,
    *,
    provider: TreeDataProvider,
    oracle: WorktreeStateOracle,
    filter_text: str = "",
) -> AppState:
    navigation = NavigationModel()
    pipeline = LaunchPipeline(
        navigation,
        oracle,
        editor=cfg.editor,
        title_width=cfg.title_width,
        name_prefix=cfg.launch_prefix,
        remediation_mode=RemediationMode(cfg.remediation),
        relocator=functools.partial(claude.relocate_session, root=cfg.claude_projects_dir),
    )
    return AppState(
        navigation=navigation,
        pipeline=pipeline,
        provider=provider,
        oracle=oracle,
        filter=filter_text,
    )


def run_interactive_flow(
    namespace: argparse.Namespace,
    *,
    log_path: Path,
    tui_runner: TuiRunner | None = None,
    provider: TreeDataProvider | None = None,
    oracle: WorktreeStateOracle | None = None,
    emitter: DescriptorEmitter | None = None,
) -> int:
    cfg = resolve_config(namespace)
    oracle = oracle or GitWorktreeOracle(timeout_seconds=cfg.git_timeout_seconds)
    provider = provider or build_provider(cfg)
    state = build_state(cfg, provider=provider, oracle=oracle, filter_text=" ".join(namespace.filter))

    if not state.refresh():
        raise BranchDeckError(
            "Could not load repositories",
            code=ExitCode.DATA_SOURCE_ERROR,
            hint=state.navigation.last_error or "Check the configured repository paths.",
        )

    emitter = emitter or build_emitter(cfg, dry_run=namespace.dry_run)

    if tui_runner is None:
        from .tui import run_interactive

        tui_runner = run_interactive

    configure_logging(level=namespace.log_level, log_file=log_path, console=False)
    try:
        outcome = tui_runner(state)
    finally:
        configure_logging(level=namespace.log_level, log_file=log_path)

    if outcome is not Outcome.LAUNCH:
        return int(ExitCode.INTERRUPTED)

    report = run_launch(state, emitter, dry_run=namespace.dry_run)
    if not report.ok:
        names = ", ".join(failure.name for failure in report.failures)
        print(
            user_facing_error(f"Failed to launch {names}", hint=f"Inspect logs: {log_path}"),
            file=sys.stderr,
        )
        return int(ExitCode.LAUNCH_ERROR)
    return int(ExitCode.SUCCESS)


def main(
    argv: Sequence[str] | None = None,
    *,
    tui_runner: TuiRunner | None = None,
    provider: TreeDataProvider | None = None,
    oracle: WorktreeStateOracle | None = None,
    emitter: DescriptorEmitter | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level, log_file=log_path)

    try:
        logger.debug("Starting interactive flow filter=%r", namespace.filter)
        return run_interactive_flow(
            namespace,
            log_path=log_path,
            tui_runner=tui_runner,
            provider=provider,
            oracle=oracle,
            emitter=emitter,
        )
    except BranchDeckError as exc:
        logger.error(
            "Handled BranchDeckError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return int(ExitCode.INTERRUPTED)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        hint = f"Inspect logs: {log_path}"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
