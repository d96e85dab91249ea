"""
ringtrace Test Suite - CLI Tests
================================
Tests for command-line interface.
"""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from conftest import write_events
from ringtrace import __version__
from ringtrace.cli import cli
from ringtrace.core.errors import SpawnError
from ringtrace.recorder.session import RecordingResult


@pytest.fixture
def cli_runner():
    """Create CLI test runner."""
    return CliRunner()


def _result(tracefile="trace.json", lost=0):
    return RecordingResult(
        tracefile=Path(tracefile), pid=321, returncode=0, events=14,
        lost_events=lost, rings=2, fibers=1, duration_s=0.5,
    )


class TestCLIHelp:
    """Tests for CLI help commands."""

    def test_main_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "ringtrace" in result.output

    @pytest.mark.parametrize("command,option", [
        ("record", "--freq"),
        ("convert", "--pid"),
        ("show", "--config"),
    ])
    def test_command_help(self, cli_runner, command, option):
        result = cli_runner.invoke(cli, [command, "--help"])

        assert result.exit_code == 0
        assert option in result.output

    def test_version_flag(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestCLIRecord:
    """Tests for record command."""

    @patch("ringtrace.cli.RecordingSession")
    def test_record_defaults(self, mock_session_class, cli_runner):
        mock_session = MagicMock()
        mock_session.run.return_value = _result()
        mock_session_class.return_value = mock_session

        result = cli_runner.invoke(cli, ["record", "--", "./server", "--port", "80"])

        assert result.exit_code == 0, result.output
        args, kwargs = mock_session_class.call_args
        assert args[0] == ["./server", "--port", "80"]
        assert kwargs["config"].tracefile == Path("trace.json")
        assert kwargs["viewer"] is None
        assert "Events:    14" in result.output
        assert "Trace saved" in result.output

    @patch("ringtrace.cli.RecordingSession")
    def test_record_options(self, mock_session_class, cli_runner):
        mock_session_class.return_value.run.return_value = _result("out.json", lost=3)

        result = cli_runner.invoke(cli, ["record", "-F", "25", "-o", "out.json", "--", "prog"])

        assert result.exit_code == 0, result.output
        config = mock_session_class.call_args.kwargs["config"]
        assert config.freq == 25
        assert config.tracefile == Path("out.json")
        assert "Lost:      3 events" in result.output

    @patch("ringtrace.cli.RecordingSession")
    def test_record_ui_without_output(self, mock_session_class, cli_runner):
        mock_session_class.return_value.run.return_value = _result("/tmp/x/trace.json")

        result = cli_runner.invoke(cli, ["record", "--ui", "--", "prog"])

        assert result.exit_code == 0, result.output
        kwargs = mock_session_class.call_args.kwargs
        assert kwargs["config"].tracefile is None
        assert callable(kwargs["viewer"])
        assert "Trace discarded" in result.output

    @patch("ringtrace.cli.RecordingSession")
    def test_record_failure(self, mock_session_class, cli_runner):
        mock_session_class.return_value.run.side_effect = SpawnError("Cannot start prog")

        result = cli_runner.invoke(cli, ["record", "--", "prog"])

        assert result.exit_code == 1
        assert "Cannot start prog" in result.output

    @patch("ringtrace.cli.RecordingSession")
    def test_record_interrupted(self, mock_session_class, cli_runner):
        mock_session_class.return_value.run.side_effect = KeyboardInterrupt

        result = cli_runner.invoke(cli, ["record", "--", "prog"])

        assert result.exit_code == 130

    def test_record_config_file(self, cli_runner):
        with cli_runner.isolated_filesystem():
            Path("rt.yaml").write_text("recorder:\n  freq: 0\n")

            result = cli_runner.invoke(cli, ["record", "--config", "rt.yaml", "--", "prog"])

        assert result.exit_code == 1
        assert "freq" in result.output

    def test_record_config_not_a_number(self, cli_runner):
        with cli_runner.isolated_filesystem():
            Path("rt.yaml").write_text("recorder:\n  freq: fast\n")

            result = cli_runner.invoke(cli, ["record", "--config", "rt.yaml", "--", "prog"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "freq must be a number" in result.output

    @patch("ringtrace.cli.RecordingSession")
    def test_record_passes_short_options_to_command(self, mock_session_class, cli_runner):
        mock_session_class.return_value.run.return_value = _result()

        result = cli_runner.invoke(cli, ["record", "python", "-c", "print(1)"])

        assert result.exit_code == 0, result.output
        assert mock_session_class.call_args.args[0] == ["python", "-c", "print(1)"]

    def test_record_missing_program(self, cli_runner):
        with cli_runner.isolated_filesystem():
            result = cli_runner.invoke(
                cli, ["record", "--", "./definitely-not-a-program-ringtrace"]
            )

        assert result.exit_code == 1
        assert "Cannot start" in result.output


class TestCLIConvert:
    """Tests for convert command."""

    def test_convert(self, cli_runner, sample_records):
        with cli_runner.isolated_filesystem():
            write_events(Path("321.events"), sample_records)

            result = cli_runner.invoke(cli, ["convert", "321.events", "-o", "out.json"])

            assert result.exit_code == 0, result.output
            with open("out.json") as f:
                events = json.load(f)

        assert "Events:    14" in result.output
        assert all(e["pid"] == 321 for e in events)
        names = {e["args"]["name"] for e in events if e["name"] == "thread_name"}
        assert names == {"ring0", "ring1", "fiber1"}

    def test_convert_counts_only_delivered_events(self, cli_runner):
        with cli_runner.isolated_filesystem():
            write_events(Path("9.events"), [
                {"ring": 0, "ts": 1, "kind": "lost", "count": 50},
                {"ring": 0, "ts": 2, "kind": "log", "message": "a"},
                {"ring": 0, "ts": 3, "kind": "future_kind"},
            ])

            result = cli_runner.invoke(cli, ["convert", "9.events", "-o", "out.json"])

        assert result.exit_code == 0, result.output
        assert "Events:    2" in result.output

    def test_convert_lone_surrogate(self, cli_runner):
        with cli_runner.isolated_filesystem():
            write_events(Path("123.events"), [
                {"ring": 0, "ts": 1, "kind": "log", "message": "\ud800"},
                {"ring": 0, "ts": 2, "kind": "enter_span", "name": "ok"},
            ])

            result = cli_runner.invoke(cli, ["convert", "123.events", "-o", "out.json"])

            assert result.exit_code == 0, result.output
            with open("out.json") as f:
                events = json.load(f)

        assert [e["name"] for e in events[-2:]] == ["log", "ok"]
        assert events[-2]["args"]["message"] == "\ud800"

    def test_convert_missing_file(self, cli_runner):
        with cli_runner.isolated_filesystem():
            result = cli_runner.invoke(cli, ["convert", "nope.events"])

        assert result.exit_code != 0


class TestCLIShow:
    """Tests for show command."""

    @patch("ringtrace.cli.make_viewer")
    def test_show(self, mock_make_viewer, cli_runner):
        with cli_runner.isolated_filesystem():
            Path("trace.json").write_text("[]\n")

            result = cli_runner.invoke(cli, ["show", "trace.json"])

        assert result.exit_code == 0, result.output
        mock_make_viewer.assert_called_once_with([])
        mock_make_viewer.return_value.assert_called_once_with(Path("trace.json"))
