"""Process entry point: load configuration, run the gate, exit with its verdict."""

from __future__ import annotations

import logging

from .config import GateConfig
from .errors import ConfigError
from .logger import setup_logging
from .poller import GateOutcome, GatePoller, GateState
from .prometheus_api import PrometheusClient

EXIT_SUCCESS = 0
EXIT_TIMEOUT = 1
EXIT_CONFIG_ERROR = 2

_EXIT_CODES = {
    GateState.SUCCEEDED: EXIT_SUCCESS,
    GateState.TIMED_OUT: EXIT_TIMEOUT,
    GateState.CONFIG_ERROR: EXIT_CONFIG_ERROR,
}


def exit_code_for(outcome: GateOutcome) -> int:
    return _EXIT_CODES.get(outcome.state, EXIT_TIMEOUT)


def run_gate(
    config: GateConfig,
    *,
    client: PrometheusClient | None = None,
    logger: logging.Logger | None = None,
) -> GateOutcome:
    log = logger or logging.getLogger(__name__)
    prometheus = client or PrometheusClient.from_config(config, logger=log)
    try:
        return GatePoller(config, prometheus, logger=log).run()
    finally:
        prometheus.close()


def main() -> int:
    logger = setup_logging()
    logger.info("Deployment gate starting")

    try:
        config = GateConfig.from_env()
    except ConfigError as err:
        logger.error("Invalid configuration: %s", err)
        return EXIT_CONFIG_ERROR

    for key, value in config.summary().items():
        logger.info("%s=%s", key.upper(), value)

    outcome = run_gate(config, logger=logger)
    code = exit_code_for(outcome)
    if outcome.succeeded:
        logger.info(
            "Deployment gate passed after %d attempts (%.1fs)",
            outcome.attempts,
            outcome.elapsed_seconds,
        )
    else:
        logger.error(
            "Deployment gate failed: %s (exit code %d)", outcome.error or outcome.state.value, code
        )
    return code


if __name__ == "__main__":
    raise SystemExit(main())
