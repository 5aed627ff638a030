"""Run the gate's query and evaluation exactly once and print a JSON report.

Reads the same environment as the gate itself. Handy for checking a
``RANGE_QUERY`` and threshold before wiring them into a pipeline.
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import UTC, datetime
from typing import Any

from metrics_deploy_gate.gate.config import GateConfig
from metrics_deploy_gate.gate.errors import ConfigError, FatalEvaluationError
from metrics_deploy_gate.gate.evaluator import evaluate
from metrics_deploy_gate.gate.logger import setup_logging
from metrics_deploy_gate.gate.prometheus_api import PrometheusClient
from metrics_deploy_gate.gate.runner import EXIT_CONFIG_ERROR, EXIT_SUCCESS, EXIT_TIMEOUT
from metrics_deploy_gate.gate.schemas import MatrixResult, QueryResponse, QueryWindow


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Query Prometheus once and evaluate the gate condition."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the request that would be sent",
    )
    return parser.parse_args(argv)


def summarise_series(response: QueryResponse) -> list[dict[str, Any]]:
    if not isinstance(response.result, MatrixResult):
        return []
    return [
        {
            "series": series.identity(),
            "samples": len(series.samples),
            "min": min((s.value for s in series.samples), default=None),
            "max": max((s.value for s in series.samples), default=None),
        }
        for series in response.result.series
    ]


def probe(
    config: GateConfig,
    client: PrometheusClient,
    *,
    now: datetime | None = None,
    logger: logging.Logger | None = None,
) -> dict[str, Any]:
    window = QueryWindow.ending_at(now or datetime.now(UTC), config.range_time, config.step)
    response = client.query_range(config.range_query, window)

    report: dict[str, Any] = {
        "config": config.summary(),
        "window": window.as_params(),
        "warnings": response.warnings,
        "error": response.error,
        "series": summarise_series(response),
        "condition_met": False,
        "fatal": False,
    }
    if response.ok:
        try:
            report["condition_met"] = evaluate(response.result, config, logger=logger)
        except FatalEvaluationError as err:
            report["error"] = str(err)
            report["fatal"] = True
    return report


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logger = setup_logging()
    try:
        config = GateConfig.from_env()
    except ConfigError as err:
        logger.error("Invalid configuration: %s", err)
        return EXIT_CONFIG_ERROR
    client = PrometheusClient.from_config(config, logger=logger)

    try:
        if args.dry_run:
            window = QueryWindow.ending_at(datetime.now(UTC), config.range_time, config.step)
            params = client.build_params(config.range_query, window)
            print(json.dumps({"url": client.url, "params": params}, indent=2))
            return EXIT_SUCCESS
        report = probe(config, client, logger=logger)
    finally:
        client.close()
    print(json.dumps(report, indent=2))
    if report["fatal"]:
        return EXIT_CONFIG_ERROR
    return EXIT_SUCCESS if report["condition_met"] else EXIT_TIMEOUT


if __name__ == "__main__":
    raise SystemExit(main())
