"""Logging helpers for the deployment gate."""

from __future__ import annotations

import logging
import os


def setup_logging() -> logging.Logger:
    """Configure the root handler once and return the gate's own logger.

    The returned logger is the one the runner and the probe script hand to the
    poller, evaluator and Prometheus client, so every gate message shares the
    ``metrics_deploy_gate`` name regardless of which module emits it.
    """
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(handler)
    root.setLevel(level)

    # requests logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logging.getLogger("metrics_deploy_gate")


__all__ = ["setup_logging"]
