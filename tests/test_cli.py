"""Tests for the drive-exporter command line."""

from pathlib import Path
from typing import Iterator, List
from unittest.mock import MagicMock

import pytest
import structlog
from typer.testing import CliRunner

from drive_exporter import cli
from drive_exporter.errors import (
    AuthorizationCancelledError,
    ConfigurationError,
    DriveAccessError,
    OperationCancelledError,
)
from drive_exporter.gdrive.config import ExporterConfig
from drive_exporter.gdrive.walker import WalkSummary
from drive_exporter.log_config import configure_logging

runner = CliRunner()


@pytest.fixture
def patched(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replace the Drive client and walker; return the walker class mock."""
    monkeypatch.setattr(cli, "configure_logging", MagicMock())
    monkeypatch.setattr(cli, "get_drive_service", MagicMock(return_value=MagicMock(name="service")))
    walker_cls = MagicMock()
    walker_cls.return_value.walk.return_value = WalkSummary(
        folders=2, downloaded=3, skipped=1, bytes_written=1024
    )
    monkeypatch.setattr(cli, "TreeWalker", walker_cls)
    return walker_cls


def base_args(tmp_path: Path) -> List[str]:
    return [
        "--client-secret",
        str(tmp_path / "client_secret.json"),
        "--client-token-dir",
        str(tmp_path / "tokens"),
        "--folder-id",
        "1abc123xyz",
        "--destination",
        str(tmp_path / "mirror"),
    ]


class TestExportCommand:
    """Tests for the export command."""

    def test_success(self, patched: MagicMock, tmp_path: Path) -> None:
        result = runner.invoke(cli.app, base_args(tmp_path))

        assert result.exit_code == 0, result.output
        assert "Done: 3 documents exported, 2 folders, 1 skipped" in result.output
        patched.return_value.walk.assert_called_once_with("1abc123xyz", tmp_path / "mirror")

    def test_short_options(self, patched: MagicMock, tmp_path: Path) -> None:
        args = [
            "-s", str(tmp_path / "secret.json"),
            "-t", str(tmp_path / "tokens"),
            "-i", "folder42",
            "-o", str(tmp_path / "out"),
        ]

        result = runner.invoke(cli.app, args)

        assert result.exit_code == 0, result.output
        patched.return_value.walk.assert_called_once_with("folder42", tmp_path / "out")

    def test_read_capability_by_default(self, patched: MagicMock, tmp_path: Path) -> None:
        runner.invoke(cli.app, base_args(tmp_path))

        kwargs = cli.get_drive_service.call_args.kwargs
        assert kwargs["read"] is True
        assert kwargs["write"] is False
        assert kwargs["client_secrets_path"] == tmp_path / "client_secret.json"
        assert kwargs["token_dir"] == tmp_path / "tokens"

    def test_write_scope_flag(self, patched: MagicMock, tmp_path: Path) -> None:
        runner.invoke(cli.app, base_args(tmp_path) + ["--write-scope"])

        assert cli.get_drive_service.call_args.kwargs["write"] is True

    @pytest.mark.parametrize("missing", ["--client-secret", "--client-token-dir", "--folder-id", "--destination"])
    def test_required_options(self, patched: MagicMock, tmp_path: Path, missing: str) -> None:
        args = base_args(tmp_path)
        index = args.index(missing)
        del args[index : index + 2]

        result = runner.invoke(cli.app, args)

        assert result.exit_code == 2
        cli.get_drive_service.assert_not_called()

    def test_settings_file(self, patched: MagicMock, tmp_path: Path) -> None:
        settings = tmp_path / "settings.yaml"
        settings.write_text("processing:\n  max_folder_depth: 7\n")

        result = runner.invoke(cli.app, base_args(tmp_path) + ["--config", str(settings)])

        assert result.exit_code == 0, result.output
        config = patched.call_args.kwargs["config"]
        assert isinstance(config, ExporterConfig)
        assert config.processing.max_folder_depth == 7

    def test_invalid_settings_file(self, patched: MagicMock, tmp_path: Path) -> None:
        settings = tmp_path / "settings.yaml"
        settings.write_text("- not\n- a mapping\n")

        result = runner.invoke(cli.app, base_args(tmp_path) + ["-c", str(settings)])

        assert result.exit_code == 1
        assert "Error" in result.output
        cli.get_drive_service.assert_not_called()


class TestExitStatus:
    """Tests for error reporting and exit codes."""

    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("Unable to read client secret file"),
            DriveAccessError("Unable to retrieve files of folder x", resource_id="x"),
        ],
    )
    def test_exporter_error_exits_one(self, patched: MagicMock, tmp_path: Path, error: Exception) -> None:
        patched.return_value.walk.side_effect = error

        result = runner.invoke(cli.app, base_args(tmp_path))

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert str(error) in result.output

    def test_auth_failure_stops_before_walk(self, patched: MagicMock, tmp_path: Path) -> None:
        cli.get_drive_service.side_effect = ConfigurationError("bad secret")

        result = runner.invoke(cli.app, base_args(tmp_path))

        assert result.exit_code == 1
        patched.assert_not_called()

    @pytest.mark.parametrize("error", [OperationCancelledError(reason="SIGINT"), AuthorizationCancelledError()])
    def test_cancellation_exits_130(self, patched: MagicMock, tmp_path: Path, error: Exception) -> None:
        cli.get_drive_service.side_effect = error

        result = runner.invoke(cli.app, base_args(tmp_path))

        assert result.exit_code == cli.EXIT_CANCELLED
        assert "Cancelled" in result.output

    def test_unexpected_error_propagates(self, patched: MagicMock, tmp_path: Path) -> None:
        patched.return_value.walk.side_effect = RuntimeError("bug")

        result = runner.invoke(cli.app, base_args(tmp_path))

        assert result.exit_code != 0
        assert isinstance(result.exception, RuntimeError)


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def _reset_structlog(self) -> Iterator[None]:
        yield
        structlog.reset_defaults()

    @pytest.mark.parametrize("verbose, debug_shown", [(True, True), (False, False)])
    def test_level(self, verbose: bool, debug_shown: bool, capsys: pytest.CaptureFixture) -> None:
        configure_logging(verbose)

        logger = structlog.get_logger()
        logger.debug("sample_debug")
        logger.warning("sample_warning", folder_id="abc")

        captured = capsys.readouterr()
        assert ("sample_debug" in captured.err) is debug_shown
        assert "sample_warning" in captured.err
        assert "folder_id=abc" in captured.err
        assert "sample_warning" not in captured.out
