from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import requests

from metrics_deploy_gate.gate.config import GateConfig
from metrics_deploy_gate.gate.prometheus_api import PrometheusClient
from metrics_deploy_gate.gate.schemas import MatrixResult, QueryWindow

WINDOW = QueryWindow.ending_at(
    datetime(2024, 5, 1, 12, 0, tzinfo=UTC), timedelta(minutes=-5), timedelta(minutes=1)
)


def build_client(endpoint="http://prometheus:9090", timeout=10.0):
    session = MagicMock()
    client = PrometheusClient(endpoint, timeout=timeout, session=session)
    return client, session


def fake_response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


MATRIX_PAYLOAD = {
    "status": "success",
    "data": {
        "resultType": "matrix",
        "result": [{"metric": {"__name__": "up"}, "values": [[1714564800, "1"]]}],
    },
}


def test_endpoint_without_scheme_defaults_to_http():
    client, _ = build_client(endpoint="localhost")

    assert client.url == "http://localhost/api/v1/query_range"


def test_trailing_slash_is_ignored():
    client, _ = build_client(endpoint="https://prom.example.com/")

    assert client.url == "https://prom.example.com/api/v1/query_range"


def test_query_range_posts_form_and_parses_matrix():
    client, session = build_client()
    session.post.return_value = fake_response(payload=MATRIX_PAYLOAD)

    response = client.query_range("up", WINDOW)

    assert response.ok
    assert isinstance(response.result, MatrixResult)
    assert response.warnings == []
    session.post.assert_called_once()
    args, kwargs = session.post.call_args
    assert args[0] == "http://prometheus:9090/api/v1/query_range"
    assert kwargs["data"]["query"] == "up"
    assert kwargs["data"]["step"] == "60"
    assert kwargs["timeout"] == 10.0


def test_caller_deadline_overrides_default_timeout():
    client, session = build_client()
    session.post.return_value = fake_response(payload=MATRIX_PAYLOAD)

    client.query_range("up", WINDOW, timeout=2.5)

    assert session.post.call_args.kwargs["timeout"] == 2.5


def test_method_not_allowed_falls_back_to_get():
    client, session = build_client()
    session.post.return_value = fake_response(status_code=405, payload={})
    session.get.return_value = fake_response(payload=MATRIX_PAYLOAD)

    response = client.query_range("up", WINDOW)

    assert response.ok
    assert session.get.call_args.kwargs["params"]["query"] == "up"


def test_transport_errors_are_returned_not_raised():
    client, session = build_client()
    session.post.side_effect = requests.ConnectionError("connection refused")

    response = client.query_range("up", WINDOW)

    assert not response.ok
    assert "connection refused" in response.error


def test_backend_error_payload_is_returned_with_warnings():
    client, session = build_client()
    session.post.return_value = fake_response(
        status_code=400,
        payload={
            "status": "error",
            "errorType": "bad_data",
            "error": "parse error",
            "warnings": ["partial data"],
        },
    )

    response = client.query_range("up{", WINDOW)

    assert response.error == "bad_data: parse error"
    assert response.warnings == ["partial data"]


def test_non_json_body_is_an_error():
    client, session = build_client()
    session.post.return_value = fake_response(status_code=502, text="Bad Gateway")

    response = client.query_range("up", WINDOW)

    assert "502" in response.error


def test_malformed_data_is_an_error():
    client, session = build_client()
    session.post.return_value = fake_response(
        payload={"status": "success", "data": {"resultType": "bogus", "result": []}}
    )

    response = client.query_range("up", WINDOW)

    assert response.error.startswith("malformed query result")


def test_millisecond_timestamps_are_an_error():
    client, session = build_client()
    session.post.return_value = fake_response(
        payload={
            "status": "success",
            "data": {
                "resultType": "matrix",
                "result": [{"metric": {}, "values": [[1714564800000, "5"]]}],
            },
        }
    )

    response = client.query_range("up", WINDOW)

    assert not response.ok
    assert "timestamp" in response.error


def test_warnings_are_kept_on_success():
    client, session = build_client()
    session.post.return_value = fake_response(payload={**MATRIX_PAYLOAD, "warnings": ["slow"]})

    response = client.query_range("up", WINDOW)

    assert response.ok
    assert response.warnings == ["slow"]


def test_from_config_uses_query_timeout():
    config = GateConfig(
        range_query="up",
        target_value=1,
        endpoint="prom:9090",
        query_timeout=timedelta(seconds=7),
    )

    client = PrometheusClient.from_config(config)

    assert client.url == "http://prom:9090/api/v1/query_range"
    assert client._timeout == 7.0  # noqa: SLF001
