"""Fake Prometheus service answering range queries with scripted values.

Used to exercise the gate locally and in integration tests without a real
Prometheus. Each range query consumes the next scripted response; the last one
repeats forever.
"""

from __future__ import annotations

import json
import os
import threading
from typing import Any

from flask import Flask, request

# One scripted response: a list of series, each a list of sample values.
ScriptedResponse = list[list[float]]

DEFAULT_RESPONSES: list[ScriptedResponse] = [[[1.0]]]


class ScriptedResponses:
    """Thread-safe cursor over the scripted responses."""

    def __init__(self, responses: list[ScriptedResponse]) -> None:
        if not responses:
            raise ValueError("at least one scripted response is required")
        self._responses = responses
        self._lock = threading.Lock()
        self.calls = 0

    def next(self) -> ScriptedResponse:
        with self._lock:
            index = min(self.calls, len(self._responses) - 1)
            self.calls += 1
            return self._responses[index]


def _parse_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _format_value(value: float) -> str:
    return f"{value:g}" if value == value else "NaN"


def build_result(
    series_values: ScriptedResponse, result_type: str, start: float, step: float
) -> Any:
    series = [
        {
            "metric": {"__name__": "fake_metric", "series": str(index)},
            "values": [
                [start + offset * step, _format_value(value)] for offset, value in enumerate(values)
            ],
        }
        for index, values in enumerate(series_values)
    ]
    if result_type == "matrix":
        return series
    if result_type == "vector":
        return [
            {"metric": item["metric"], "value": item["values"][-1]}
            for item in series
            if item["values"]
        ]
    if result_type == "scalar":
        first = series_values[0][0] if series_values and series_values[0] else 0.0
        return [start, _format_value(first)]
    return [start, "fake"]


def create_app(
    responses: list[ScriptedResponse] | None = None,
    *,
    result_type: str = "matrix",
    warnings: list[str] | None = None,
) -> Flask:
    """Create the fake Prometheus Flask app."""
    app = Flask(__name__)
    app.json.sort_keys = False

    scripted = ScriptedResponses(responses or DEFAULT_RESPONSES)
    app.extensions["scripted_responses"] = scripted

    @app.get("/-/healthy")
    def healthy() -> str:
        return "Prometheus is Healthy.\n"

    @app.route("/api/v1/query_range", methods=["GET", "POST"])
    def query_range() -> tuple[dict[str, Any], int] | dict[str, Any]:
        params = request.values
        if not params.get("query"):
            return {
                "status": "error",
                "errorType": "bad_data",
                "error": 'invalid parameter "query": empty query',
            }, 400

        start = _parse_float(params.get("start"), 0.0)
        step = _parse_float(params.get("step"), 60.0)
        payload: dict[str, Any] = {
            "status": "success",
            "data": {
                "resultType": result_type,
                "result": build_result(scripted.next(), result_type, start, step),
            },
        }
        if warnings:
            payload["warnings"] = list(warnings)
        return payload

    return app


def create_app_from_env() -> Flask:
    raw = os.getenv("FAKE_PROMETHEUS_RESPONSES")
    responses = json.loads(raw) if raw else None
    return create_app(
        responses,
        result_type=os.getenv("FAKE_PROMETHEUS_RESULT_TYPE", "matrix"),
    )


def main() -> None:
    app = create_app_from_env()
    port = int(os.getenv("FAKE_PROMETHEUS_PORT", "9090"))
    app.run(host="0.0.0.0", port=port)  # noqa: S104  # required for Docker networking


if __name__ == "__main__":
    main()
