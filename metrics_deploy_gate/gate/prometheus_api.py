"""HTTP client for the Prometheus range-query API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

import requests

from .config import GateConfig
from .schemas import QueryResponse, QueryWindow, parse_query_data

QUERY_RANGE_PATH = "/api/v1/query_range"


def _normalise_endpoint(endpoint: str) -> str:
    base = endpoint.strip().rstrip("/")
    if "://" not in base:
        base = f"http://{base}"
    return base


class PrometheusClient:
    """Thin wrapper around ``/api/v1/query_range``.

    Network and backend failures never raise; they come back as
    ``QueryResponse.error`` so the caller can simply try again on the next tick.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 60.0,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._base_url = _normalise_endpoint(endpoint)
        self._timeout = timeout
        self._session = session or requests.Session()
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls, config: GateConfig, *, logger: logging.Logger | None = None
    ) -> PrometheusClient:
        return cls(
            config.endpoint,
            timeout=config.query_timeout.total_seconds(),
            logger=logger,
        )

    @property
    def url(self) -> str:
        return f"{self._base_url}{QUERY_RANGE_PATH}"

    def close(self) -> None:
        self._session.close()

    def build_params(self, query: str, window: QueryWindow) -> dict[str, str]:
        return {"query": query, **window.as_params()}

    def query_range(
        self, query: str, window: QueryWindow, *, timeout: float | None = None
    ) -> QueryResponse:
        params = self.build_params(query, window)
        deadline = self._timeout if timeout is None else timeout
        try:
            response = self._session.post(self.url, data=params, timeout=deadline)
            if response.status_code == HTTPStatus.METHOD_NOT_ALLOWED:
                response = self._session.get(self.url, params=params, timeout=deadline)
        except requests.RequestException as err:
            self._logger.warning("Failed to query Prometheus at %s: %s", self.url, err)
            return QueryResponse(error=f"request failed: {err}")

        try:
            payload: Any = response.json()
        except ValueError:
            return QueryResponse(
                error=f"unexpected response ({response.status_code}): {response.text[:200]}"
            )
        if not isinstance(payload, dict):
            return QueryResponse(error=f"unexpected response body: {payload!r}")

        warnings = [str(item) for item in payload.get("warnings") or []]
        if payload.get("status") != "success":
            error_type = payload.get("errorType") or f"http {response.status_code}"
            message = payload.get("error") or "query failed"
            return QueryResponse(warnings=warnings, error=f"{error_type}: {message}")

        try:
            result = parse_query_data(payload.get("data"))
        except ValueError as err:
            return QueryResponse(warnings=warnings, error=f"malformed query result: {err}")
        return QueryResponse(result=result, warnings=warnings)
