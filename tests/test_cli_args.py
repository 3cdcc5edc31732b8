from __future__ import annotations

import io
from contextlib import redirect_stderr
from pathlib import Path

import pytest

from branchdeck import cli
from branchdeck.app import AppState, KeyAction, KeyEvent, Outcome, handle_key
from branchdeck.config import AppConfig
from branchdeck.errors import BranchDeckError, ExitCode
from branchdeck.launch.descriptors import LaunchDescriptor
from branchdeck.provider import StaticTreeProvider
from branchdeck.tree.models import Cursor
from factories import FakeOracle, RecordingEmitter, sample_forest


@pytest.fixture(autouse=True)
def _isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("BRANCHDECK_EDITOR", raising=False)


def _launch_branch(state: AppState) -> Outcome:
    state.navigation.cursor = Cursor.at_branch(0, 1)
    return handle_key(state, KeyEvent(KeyAction.ENTER))


def _run(argv: list[str], runner, emitter: RecordingEmitter | None = None) -> int:
    return cli.main(
        argv,
        tui_runner=runner,
        provider=StaticTreeProvider(sample_forest()),
        oracle=FakeOracle(),
        emitter=emitter or RecordingEmitter(),
    )


def test_cli_help_includes_public_flags() -> None:
    help_text = cli.build_parser().format_help()
    for flag in ("--repo", "--config", "--editor", "--launch-dir", "--dry-run", "--log-level", "--log-file"):
        assert flag in help_text


def test_parse_args_collects_filter_words_and_repos() -> None:
    namespace = cli.parse_args(["api", "fix", "--repo", "/a", "--repo", "/b", "--log-level", "warning"])
    assert namespace.filter == ["api", "fix"]
    assert namespace.repos == [Path("/a"), Path("/b")]
    assert namespace.log_level == "WARN"


def test_invalid_log_level_returns_error_code() -> None:
    with redirect_stderr(io.StringIO()):
        code = cli.main(["--log-level", "loud"])
    assert code == 2


def test_missing_repositories_is_config_error(tmp_path: Path) -> None:
    stream = io.StringIO()
    with redirect_stderr(stream):
        code = cli.main(["--config", str(tmp_path / "none.toml")], tui_runner=lambda state: Outcome.QUIT)
    assert code == int(ExitCode.CONFIG_ERROR)
    assert "No repositories configured" in stream.getvalue()


def test_launch_outcome_emits_descriptors_and_succeeds() -> None:
    emitter = RecordingEmitter()
    assert _run([], _launch_branch, emitter) == int(ExitCode.SUCCESS)
    assert [item.kind.value for item in emitter.emitted] == ["editor"]


def test_initial_filter_is_applied_before_tui() -> None:
    seen: dict[str, object] = {}

    def runner(state: AppState) -> Outcome:
        seen["filter"] = state.filter
        seen["repos"] = [repo.name for repo in state.navigation.repos]
        return Outcome.QUIT

    assert _run(["beta"], runner) == int(ExitCode.INTERRUPTED)
    assert seen == {"filter": "beta", "repos": ["beta"]}


def test_editor_flag_overrides_config() -> None:
    emitter = RecordingEmitter()
    _run(["--editor", "nvim"], _launch_branch, emitter)
    assert emitter.emitted[0].commands[-1] == "nvim ."


class _BrokenEmitter(RecordingEmitter):
    def emit(self, descriptor: LaunchDescriptor) -> Path:
        raise OSError("opener missing")


def test_emission_failure_returns_launch_error() -> None:
    stream = io.StringIO()
    with redirect_stderr(stream):
        assert _run([], _launch_branch, _BrokenEmitter()) == int(ExitCode.LAUNCH_ERROR)
    assert "Failed to launch branchdeck-main-" in stream.getvalue()


def test_initial_refresh_failure_is_data_source_error() -> None:
    class _Offline:
        def fetch(self, filter_text: str) -> list:
            raise BranchDeckError("offline", code=ExitCode.DATA_SOURCE_ERROR)

    stream = io.StringIO()
    with redirect_stderr(stream):
        code = cli.main([], tui_runner=lambda state: Outcome.QUIT, provider=_Offline(), oracle=FakeOracle())
    assert code == int(ExitCode.DATA_SOURCE_ERROR)
    assert "offline" in stream.getvalue()


def test_unexpected_exception_maps_to_runtime_error() -> None:
    def runner(state: AppState) -> Outcome:
        raise RuntimeError("curses exploded")

    stream = io.StringIO()
    with redirect_stderr(stream):
        code = _run([], runner)
    assert code == int(ExitCode.RUNTIME_ERROR)
    assert "Inspect logs" in stream.getvalue()


def test_dry_run_prints_yaml(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(
        ["--dry-run"],
        tui_runner=_launch_branch,
        provider=StaticTreeProvider(sample_forest()),
        oracle=FakeOracle(),
    )
    assert code == int(ExitCode.SUCCESS)
    assert "branchdeck-main-" in capsys.readouterr().out


def test_session_sources_follow_config_toggles() -> None:
    cfg = AppConfig(claude_sessions=True, codex_sessions=False)
    assert len(cli.session_sources(cfg)) == 1


def test_old_launch_configs_are_removed_at_startup(tmp_path: Path) -> None:
    launch_dir = tmp_path / "launch"
    launch_dir.mkdir()
    (launch_dir / "branchdeck-main-1.yaml").write_text("---\n", encoding="utf-8")
    (launch_dir / "personal.yaml").write_text("---\n", encoding="utf-8")

    code = cli.main(
        ["--launch-dir", str(launch_dir)],
        tui_runner=lambda state: Outcome.QUIT,
        provider=StaticTreeProvider(sample_forest()),
        oracle=FakeOracle(),
    )

    assert code == int(ExitCode.INTERRUPTED)
    assert sorted(path.name for path in launch_dir.iterdir()) == ["personal.yaml"]


def test_dry_run_leaves_launch_dir_untouched(tmp_path: Path) -> None:
    launch_dir = tmp_path / "launch"
    launch_dir.mkdir()
    (launch_dir / "branchdeck-main-1.yaml").write_text("---\n", encoding="utf-8")

    cli.main(
        ["--dry-run", "--launch-dir", str(launch_dir)],
        tui_runner=lambda state: Outcome.QUIT,
        provider=StaticTreeProvider(sample_forest()),
        oracle=FakeOracle(),
    )
    assert (launch_dir / "branchdeck-main-1.yaml").exists()
