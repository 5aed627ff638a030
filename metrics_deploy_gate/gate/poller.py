"""Tick/deadline loop that drives the evaluator until the gate opens or times out."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from .config import GateConfig, format_duration
from .errors import FatalEvaluationError
from .evaluator import evaluate
from .prometheus_api import PrometheusClient
from .schemas import QueryWindow

# Lower bound for a per-query deadline squeezed by the overall timeout.
_MIN_QUERY_TIMEOUT_S = 0.001


class GateState(str, Enum):
    POLLING = "polling"
    EVALUATING = "evaluating"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    CONFIG_ERROR = "config_error"


@dataclass
class GateOutcome:
    state: GateState
    attempts: int
    elapsed_seconds: float
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is GateState.SUCCEEDED


class GatePoller:
    """Polls Prometheus on a fixed tick until the condition holds.

    Two timers race: the tick and the overall deadline. Whichever is due first
    wins, so a tick scheduled at or after the deadline never runs. Each query is
    bounded by ``query_timeout`` and by whatever is left of the deadline. Ticks
    missed while a slow query was in flight are dropped.
    """

    def __init__(
        self,
        config: GateConfig,
        client: PrometheusClient,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._sleep = sleep
        self._now = now or (lambda: datetime.now(UTC))
        self.state = GateState.POLLING

    def run(self) -> GateOutcome:
        tick = self._config.tick_time.total_seconds()
        started = self._clock()
        deadline = started + self._config.timeout.total_seconds()
        next_tick = started + tick
        attempts = 0

        self.state = GateState.POLLING
        self._logger.info(
            "Gate started; polling every %s for up to %s",
            format_duration(self._config.tick_time),
            format_duration(self._config.timeout),
        )

        while True:
            if next_tick >= deadline:
                self._sleep_until(deadline)
                self.state = GateState.TIMED_OUT
                self._logger.error(
                    "Timeout of %s exceeded after %d attempts",
                    format_duration(self._config.timeout),
                    attempts,
                )
                return self._outcome(attempts, started)

            self._sleep_until(next_tick)
            attempts += 1
            self.state = GateState.EVALUATING
            self._logger.info("Polling Prometheus (attempt %d)", attempts)

            try:
                condition_met = self.poll_once(deadline=deadline)
            except FatalEvaluationError as err:
                self.state = GateState.CONFIG_ERROR
                self._logger.error("Aborting gate: %s", err)
                return self._outcome(attempts, started, error=str(err))

            if condition_met:
                self.state = GateState.SUCCEEDED
                self._logger.info("Condition met after %d attempts", attempts)
                return self._outcome(attempts, started)

            self.state = GateState.POLLING
            next_tick += tick
            now = self._clock()
            while next_tick < now:
                next_tick += tick

    def poll_once(self, *, deadline: float | None = None) -> bool:
        """Run one query and evaluation. Transport errors count as "not met"."""
        config = self._config
        window = QueryWindow.ending_at(self._now(), config.range_time, config.step)
        timeout = config.query_timeout.total_seconds()
        if deadline is not None:
            timeout = max(min(timeout, deadline - self._clock()), _MIN_QUERY_TIMEOUT_S)

        response = self._client.query_range(config.range_query, window, timeout=timeout)
        if response.warnings:
            self._logger.warning("Prometheus returned warnings: %s", "; ".join(response.warnings))
        if not response.ok:
            self._logger.warning("Query failed, retrying on next tick: %s", response.error)
            return False
        return evaluate(response.result, config, logger=self._logger)

    def _sleep_until(self, target: float) -> None:
        remaining = target - self._clock()
        if remaining > 0:
            self._sleep(remaining)

    def _outcome(self, attempts: int, started: float, error: str | None = None) -> GateOutcome:
        return GateOutcome(
            state=self.state,
            attempts=attempts,
            elapsed_seconds=self._clock() - started,
            error=error,
        )
