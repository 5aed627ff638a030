from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import MagicMock

from metrics_deploy_gate.gate import runner
from metrics_deploy_gate.gate.config import GateConfig, Strategy
from metrics_deploy_gate.gate.schemas import (
    MatrixResult,
    QueryResponse,
    Sample,
    Series,
    VectorResult,
)
from metrics_deploy_gate.scripts import probe_query

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def build_config():
    return GateConfig(range_query="up", target_value=1, target_strategy=Strategy.MIN)


def test_probe_reports_condition_and_series_summary():
    client = MagicMock()
    client.query_range.return_value = QueryResponse(
        result=MatrixResult(
            series=[
                Series(
                    labels={"__name__": "up", "job": "api"},
                    samples=[Sample(1, 1.0), Sample(2, 3.0)],
                )
            ]
        ),
        warnings=["slow"],
    )

    report = probe_query.probe(build_config(), client, now=NOW)

    assert report["condition_met"] is True
    assert report["warnings"] == ["slow"]
    assert report["series"] == [
        {"series": 'up{job="api"}', "samples": 2, "min": 1.0, "max": 3.0}
    ]
    json.dumps(report)


def test_probe_reports_query_errors():
    client = MagicMock()
    client.query_range.return_value = QueryResponse(error="request failed: timeout")

    report = probe_query.probe(build_config(), client, now=NOW)

    assert report["condition_met"] is False
    assert report["error"] == "request failed: timeout"
    assert report["fatal"] is False


def test_probe_reports_fatal_shape_errors_instead_of_raising():
    client = MagicMock()
    client.query_range.return_value = QueryResponse(result=VectorResult(series=[]))

    report = probe_query.probe(build_config(), client, now=NOW)

    assert report["condition_met"] is False
    assert "vector" in report["error"]
    assert report["fatal"] is True


def test_main_dry_run_prints_request(monkeypatch, capsys):
    monkeypatch.setenv("RANGE_QUERY", "up")
    monkeypatch.setenv("TARGET_VALUE", "1")
    monkeypatch.setenv("PROMETHEUS_ENDPOINT", "prom:9090")

    exit_code = probe_query.main(["--dry-run"])

    output = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert output["url"] == "http://prom:9090/api/v1/query_range"
    assert output["params"]["query"] == "up"
    assert output["params"]["step"] == "60"


def test_main_returns_config_error_when_environment_is_incomplete(monkeypatch, capsys):
    monkeypatch.delenv("RANGE_QUERY", raising=False)
    monkeypatch.setenv("TARGET_VALUE", "1")

    exit_code = probe_query.main([])

    assert exit_code == runner.EXIT_CONFIG_ERROR
    assert capsys.readouterr().out == ""


def test_main_exit_codes_match_the_gate(monkeypatch, capsys):
    monkeypatch.setenv("RANGE_QUERY", "up")
    monkeypatch.setenv("TARGET_VALUE", "1")
    reports = iter(
        [
            {"condition_met": True, "fatal": False},
            {"condition_met": False, "fatal": False},
            {"condition_met": False, "fatal": True},
        ]
    )
    monkeypatch.setattr(
        "metrics_deploy_gate.scripts.probe_query.probe",
        lambda config, client, logger=None: next(reports),
    )

    codes = [probe_query.main([]) for _ in range(3)]
    capsys.readouterr()

    assert codes == [runner.EXIT_SUCCESS, runner.EXIT_TIMEOUT, runner.EXIT_CONFIG_ERROR]
