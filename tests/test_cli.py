"""Tests for CLI entry point.

Tests the command-line interface and argument parsing.
"""

from unittest.mock import Mock, patch

import pytest

from s3conform.cli import (
    CompositeReporter,
    create_reporters,
    main,
    parse_args,
    settings_from_args,
)
from s3conform.config import ConfigError
from s3conform.errors import CatalogueError
from s3conform.models import ResultStatus, RunResult, ServerConfig, TeardownPolicy
from s3conform.reporters import ConsoleReporter, JsonReporter


class TestParseArgs:
    """Tests for argument parsing."""

    def test_default_args(self):
        """Should have sensible defaults."""
        args = parse_args([])

        assert args.config == "config.json"
        assert args.quiet is False
        assert args.json_output is None
        assert args.url is None
        assert args.objects == 50
        assert args.multipart == 2
        assert args.concurrency == 16
        assert args.no_cancel is False
        assert args.teardown == "always"
        assert args.log_level == "WARNING"

    def test_short_flags(self):
        args = parse_args(["-c", "custom.json", "-q", "-j", "out.json"])

        assert args.config == "custom.json"
        assert args.quiet is True
        assert args.json_output == "out.json"

    def test_server_flags(self):
        args = parse_args([
            "--url", "http://localhost:9000",
            "--access", "ak",
            "--secret", "sk",
            "--region", "eu-west-1",
            "--addressing-style", "virtual",
        ])

        assert args.url == "http://localhost:9000"
        assert args.access == "ak"
        assert args.secret == "sk"
        assert args.region == "eu-west-1"
        assert args.addressing_style == "virtual"

    def test_teardown_choices(self):
        assert parse_args(["--teardown", "on-success"]).teardown == "on-success"
        with pytest.raises(SystemExit):
            parse_args(["--teardown", "sometimes"])

    @pytest.mark.parametrize("flag", ["--objects", "--multipart", "--concurrency"])
    def test_counts_must_be_positive(self, flag):
        with pytest.raises(SystemExit):
            parse_args([flag, "0"])


class TestSettingsFromArgs:
    """Tests for settings_from_args."""

    def test_maps_every_flag(self):
        args = parse_args([
            "--objects", "5",
            "--multipart", "3",
            "--concurrency", "4",
            "--no-cancel",
            "--teardown", "never",
            "--timeout", "12.5",
        ])

        settings = settings_from_args(args)

        assert settings.object_count == 5
        assert settings.multipart_count == 3
        assert settings.max_in_flight == 4
        assert settings.cancel_on_failure is False
        assert settings.teardown == TeardownPolicy.NEVER
        assert settings.timeout == 12.5


class TestCreateReporters:
    """Tests for create_reporters."""

    def test_console_only_by_default(self):
        reporters = create_reporters(parse_args([]))
        assert len(reporters) == 1
        assert isinstance(reporters[0], ConsoleReporter)

    def test_json_reporter_added(self):
        reporters = create_reporters(parse_args(["-j", "out.json"]))
        assert isinstance(reporters[1], JsonReporter)
        assert reporters[1].output_path == "out.json"

    def test_github_actions_adds_json_reporter(self):
        reporters = create_reporters(parse_args(["--github-actions"]))
        assert reporters[1].github_output is True


class TestCompositeReporter:
    """Tests for CompositeReporter."""

    def test_delegates_every_callback(self):
        first, second = Mock(), Mock()
        composite = CompositeReporter([first, second])
        result = RunResult(endpoint_url="http://x", status=ResultStatus.PASS)

        composite.on_run_start("http://x", 11)
        composite.on_case_start(1, 11, "PutObject")
        composite.on_case_complete(1, 11, "case-result")
        composite.on_run_complete(result)

        for reporter in (first, second):
            reporter.on_run_start.assert_called_once_with("http://x", 11)
            reporter.on_case_start.assert_called_once_with(1, 11, "PutObject")
            reporter.on_case_complete.assert_called_once_with(1, 11, "case-result")
            reporter.on_run_complete.assert_called_once_with(result)


@patch("s3conform.cli.configure_logging")
class TestMain:
    """Tests for main()."""

    CONFIG = ServerConfig("http://localhost:9000", "ak", "sk")

    @patch("s3conform.cli.load_server_config")
    def test_config_error_exits_2(self, mock_load, mock_logging, capsys):
        mock_load.side_effect = ConfigError("Missing required setting 'endpoint_url'")

        assert main([]) == 2
        assert "Configuration error" in capsys.readouterr().err

    @patch("s3conform.cli.ConformanceRunner")
    @patch("s3conform.cli.load_server_config")
    def test_exit_0_when_all_pass(self, mock_load, mock_runner, mock_logging):
        mock_load.return_value = self.CONFIG
        mock_runner.return_value.run.return_value = RunResult("http://x", ResultStatus.PASS)

        assert main([]) == 0

    @patch("s3conform.cli.ConformanceRunner")
    @patch("s3conform.cli.load_server_config")
    def test_exit_1_on_failure(self, mock_load, mock_runner, mock_logging):
        mock_load.return_value = self.CONFIG
        mock_runner.return_value.run.return_value = RunResult("http://x", ResultStatus.FAIL)

        assert main([]) == 1

    @patch("s3conform.cli.ConformanceRunner")
    @patch("s3conform.cli.load_server_config")
    def test_catalogue_error_exits_2(self, mock_load, mock_runner, mock_logging):
        mock_load.return_value = self.CONFIG
        mock_runner.return_value.run.side_effect = CatalogueError("cycle")

        assert main([]) == 2

    @patch("s3conform.cli.ConformanceRunner")
    @patch("s3conform.cli.load_server_config")
    def test_flags_passed_as_overrides(self, mock_load, mock_runner, mock_logging):
        mock_load.return_value = self.CONFIG
        mock_runner.return_value.run.return_value = RunResult("http://x", ResultStatus.PASS)

        main(["-c", "other.json", "--url", "http://override", "--region", "auto", "--log-level", "DEBUG"])

        path, = mock_load.call_args.args
        overrides = mock_load.call_args.kwargs["overrides"]
        assert path == "other.json"
        assert overrides["endpoint_url"] == "http://override"
        assert overrides["region_name"] == "auto"
        assert overrides["aws_access_key_id"] is None
        mock_logging.assert_called_once_with("DEBUG")

    @patch("s3conform.cli.ConformanceRunner")
    @patch("s3conform.cli.load_server_config")
    def test_composite_reporter_with_json(self, mock_load, mock_runner, mock_logging):
        mock_load.return_value = self.CONFIG
        mock_runner.return_value.run.return_value = RunResult("http://x", ResultStatus.PASS)

        main(["-j", "out.json"])

        assert isinstance(mock_runner.call_args.kwargs["reporter"], CompositeReporter)
