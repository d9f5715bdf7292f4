"""
Tests for CLI argument handling.
"""

import pytest

from chain_sources.models import MetricType
from orchestrator.cli import create_parser, main, parse_metric_list, validate_args


class TestArguments:

    def test_defaults(self):
        args = create_parser().parse_args([])

        assert args.mode == "full"
        assert args.tick_interval == 3600
        assert not args.single_cycle
        assert validate_args(args) == []

    def test_parse_metric_list(self):
        assert parse_metric_list(None) is None
        assert parse_metric_list("txCount, avgTps") == [MetricType.TX_COUNT, MetricType.AVG_TPS]

        with pytest.raises(ValueError):
            parse_metric_list("txCount,blockSize")

    def test_validation_errors(self):
        args = create_parser().parse_args(
            ["--tick-interval", "0", "--metrics", "blockSize", "--port", "70000"]
        )

        errors = validate_args(args)

        assert len(errors) == 3
        assert errors[1].startswith("--metrics:")

    def test_icm_mode(self):
        args = create_parser().parse_args(["--mode", "icm", "--single-cycle"])

        assert args.mode == "icm"
        assert validate_args(args) == []

    def test_unknown_mode_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--mode", "trade"])

    def test_main_reports_invalid_args(self, capsys):
        assert main(["--tick-interval", "0"]) == 1
        assert "--tick-interval" in capsys.readouterr().err

    def test_main_reports_missing_config(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "absent.yaml")]) == 1
        assert "Error:" in capsys.readouterr().err
