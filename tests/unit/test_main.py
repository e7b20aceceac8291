"""Tests for the command line entry point."""

import json

from unittest.mock import MagicMock, patch

from cluster_state.data.models import ClusterSnapshot, VolumeRecord, QueueRecord
from cluster_state.exceptions import SetupError
from cluster_state.server.main import (
    EXIT_FORBIDDEN,
    EXIT_SETUP_ERROR,
    parse_args,
    run_snapshot,
)


class TestParseArgs:
    def test_default_command_is_serve(self):
        args = parse_args([])
        assert args.command == "serve"
        assert args.host is None
        assert args.url_prefix == ""

    def test_serve_options(self):
        args = parse_args(["--config", "nodes.yaml", "serve", "--port", "9000"])
        assert args.config == "nodes.yaml"
        assert args.port == 9000

    def test_snapshot_options(self):
        args = parse_args(["snapshot", "--volume", "home", "--pretty"])
        assert args.command == "snapshot"
        assert args.volume == "home"
        assert args.pretty is True

    def test_common_options_after_subcommand(self):
        for command in ("serve", "snapshot"):
            args = parse_args([command, "--config", "nodes.yaml", "--log-level", "DEBUG", "--log-file", "out.log"])
            assert args.command == command
            assert args.config == "nodes.yaml"
            assert args.log_level == "DEBUG"
            assert args.log_file == "out.log"

    def test_common_options_before_subcommand_are_kept(self):
        args = parse_args(["--config", "nodes.yaml", "--log-level", "ERROR", "snapshot"])
        assert args.config == "nodes.yaml"
        assert args.log_level == "ERROR"
        assert args.log_file is None

    def test_common_option_defaults(self):
        args = parse_args(["snapshot"])
        assert args.config is None
        assert args.log_level == "INFO"


class TestRunSnapshot:
    @patch("cluster_state.server.main.load_request_setup")
    def test_setup_error(self, mock_setup):
        mock_setup.side_effect = SetupError("No nodes configuration found")
        assert run_snapshot(parse_args(["snapshot"])) == EXIT_SETUP_ERROR

    @patch("cluster_state.server.main.ClusterStateAggregator")
    @patch("cluster_state.server.main.load_request_setup")
    def test_forbidden_scope(self, mock_setup, mock_aggregator, config, credential):
        mock_setup.return_value = (config, credential)

        assert run_snapshot(parse_args(["snapshot", "--volume", "windows"])) == EXIT_FORBIDDEN
        mock_aggregator.assert_not_called()

    @patch("cluster_state.server.main.ClusterStateAggregator")
    @patch("cluster_state.server.main.load_request_setup")
    def test_prints_snapshot(self, mock_setup, mock_aggregator, config, credential, capsys):
        mock_setup.return_value = (config, credential)
        snapshot = ClusterSnapshot(
            last_updated_timestamp="2026-10-19T12:00:00.000Z",
            storage=[VolumeRecord.fallback()],
            slurm_queue_info=[QueueRecord.fallback()],
        )
        mock_aggregator.return_value = MagicMock(snapshot=MagicMock(return_value=snapshot))

        assert run_snapshot(parse_args(["snapshot"])) == 0

        mock_aggregator.return_value.snapshot.assert_called_once_with(["/scratch"])
        output = json.loads(capsys.readouterr().out)
        assert output["last_updated_timestamp"] == "2026-10-19T12:00:00.000Z"
        assert output["user_storage"] == []
