"""Tests for the Command Line Interface (CLI) module."""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from homelink import cli
from homelink.config import Config
from homelink.constants import EXCLUDED_ROOTS
from homelink.linker import ConflictPolicy, SyncReport


@pytest.fixture(autouse=True)
def isolated(mocker: MagicMock) -> None:
    """Keeps CLI tests away from the real log file and user config."""
    mocker.patch("homelink.cli.setup_logging")
    mocker.patch("homelink.cli.Config.load", return_value=Config())


def test_version_prints_banner(capsys: pytest.CaptureFixture) -> None:
    cli.main(["version"])

    out = capsys.readouterr().out
    assert "homelink 0.4.0 on python 3." in out


def test_help_hides_hook_entry_point(capsys: pytest.CaptureFixture) -> None:
    cli.main([])

    out = capsys.readouterr().out
    for command in ("init", "rehash", "clean", "version"):
        assert command in out
    assert "sync" not in out


def test_rehash_outside_repository(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    monkeypatch.chdir(tmp_path)

    cli.main(["rehash"])

    assert "Not a git repository" in capsys.readouterr().out


def test_rehash_runs_full_sync(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, mocker: MagicMock
) -> None:
    (tmp_path / ".git").mkdir()
    monkeypatch.chdir(tmp_path)
    mock_full = mocker.patch("homelink.cli.linker.full_sync", return_value=SyncReport())
    mock_incremental = mocker.patch("homelink.cli.linker.incremental_sync")

    cli.main(["rehash"])

    mock_incremental.assert_not_called()
    repo = mock_full.call_args.args[0]
    assert repo.path == tmp_path
    policy = mock_full.call_args.kwargs["policy"]
    assert isinstance(policy, ConflictPolicy)
    assert not policy.always_overwrite and not policy.never_overwrite


def test_sync_runs_incremental_sync_with_configured_policy(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, mocker: MagicMock
) -> None:
    """Verifies the hook entry point honours `on_conflict` and extra exclusions."""
    (tmp_path / ".git").mkdir()
    monkeypatch.chdir(tmp_path)
    conf = Config()
    conf.link.on_conflict = "never"
    conf.link.exclude = ["LICENSE"]
    mocker.patch("homelink.cli.Config.load", return_value=conf)
    mock_incremental = mocker.patch(
        "homelink.cli.linker.incremental_sync", return_value=SyncReport()
    )

    cli.main(["sync"])

    kwargs = mock_incremental.call_args.kwargs
    assert kwargs["policy"].never_overwrite is True
    assert kwargs["exclude"] == (*EXCLUDED_ROOTS, "LICENSE")


def test_init_runs_installer(mocker: MagicMock) -> None:
    mock_install = mocker.patch("homelink.cli.hooks.install")

    cli.main(["init"])

    mock_install.assert_called_once()
    assert isinstance(mock_install.call_args.kwargs["policy"], ConflictPolicy)
    assert mock_install.call_args.kwargs["exclude"] == EXCLUDED_ROOTS


def test_init_reports_git_failure(
    mocker: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    mocker.patch(
        "homelink.cli.hooks.install", side_effect=RuntimeError("Git error: denied")
    )

    cli.main(["init"])

    assert "Git error: denied" in capsys.readouterr().out


def test_init_reports_unwritable_hook_directory(
    mocker: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    mocker.patch(
        "homelink.cli.hooks.install",
        side_effect=NotADirectoryError(20, "Not a directory", ".git/hooks"),
    )

    cli.main(["init"])

    assert "Not a directory" in capsys.readouterr().out


def test_init_exits_on_unsupported_platform(mocker: MagicMock) -> None:
    mocker.patch("homelink.cli.hooks.install", side_effect=SystemExit(1))

    with pytest.raises(SystemExit) as exc:
        cli.main(["init"])

    assert exc.value.code == 1


def test_clean_lists_removed_links(
    mocker: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    mocker.patch(
        "homelink.cli.linker.clean_home", return_value=[Path("/home/me/.old_vimrc")]
    )

    cli.main(["clean"])

    out = capsys.readouterr().out
    assert "/home/me/.old_vimrc" in out
    assert "Removed 1 dead links" in out


def test_print_report_summarizes(capsys: pytest.CaptureFixture) -> None:
    report = SyncReport(
        linked=[Path("/h/.vimrc")],
        unchanged=[Path("/h/.bashrc")],
        declined=[Path("/h/.zshrc")],
        failed=[Path("/h/.config")],
    )

    cli.print_report(report)

    out = capsys.readouterr().out
    assert "/h/.vimrc" in out
    assert "/h/.config" in out
    assert "1 linked, 0 replaced, 1 unchanged, 1 kept, 1 failed" in out


def test_log_without_file(
    tmp_path: Path, mocker: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    mocker.patch("homelink.cli.LOG_FILE", tmp_path / "missing.log")

    cli.main(["log"])

    assert "No log file found" in capsys.readouterr().out


def test_log_tails_file(tmp_path: Path, mocker: MagicMock) -> None:
    log_file = tmp_path / "homelink.log"
    log_file.write_text("[2026-01-01 00:00:00] INFO: Linked\n")
    mocker.patch("homelink.cli.LOG_FILE", log_file)
    mock_run = mocker.patch("homelink.cli.subprocess.run")

    cli.main(["log", "-n", "50"])

    mock_run.assert_called_once_with(["tail", "-n", "50", str(log_file)])


def test_setup_logging_writes_to_file(tmp_path: Path, mocker: MagicMock) -> None:
    """Verifies that hook runs leave INFO records in the rotating log file."""
    mocker.stopall()
    mocker.patch("homelink.cli.Config.load", return_value=Config())
    logger = logging.getLogger("homelink")
    saved_handlers, saved_level = list(logger.handlers), logger.level
    log_file = tmp_path / "state" / "homelink.log"

    try:
        cli.setup_logging(verbose=False, log_file=log_file)
        logger.info("Linked /h/.vimrc -> /w/.vimrc")
        for handler in logger.handlers:
            handler.flush()
    finally:
        for handler in logger.handlers[len(saved_handlers) :]:
            handler.close()
        logger.handlers = saved_handlers
        logger.setLevel(saved_level)

    assert "INFO: Linked /h/.vimrc -> /w/.vimrc" in log_file.read_text()
