"""Threshold evaluation of range-query results."""

from __future__ import annotations

import logging
import math

from .config import GateConfig, Strategy
from .errors import InvalidStrategyError, ResultShapeError
from .schemas import MatrixResult, QueryValue, ResultType

_logger = logging.getLogger(__name__)


def resolve_strategy(strategy: Strategy | str) -> Strategy:
    try:
        return Strategy(strategy)
    except ValueError:
        raise InvalidStrategyError(strategy) from None


def sample_satisfies(strategy: Strategy, target: int, value: int) -> bool:
    if strategy is Strategy.MIN:
        return target <= value
    if strategy is Strategy.MAX:
        return target >= value
    return target == value


def evaluate(
    result: QueryValue, config: GateConfig, *, logger: logging.Logger | None = None
) -> bool:
    """Return True when every sample of every series meets the target.

    An empty matrix, or a series without samples, is "not met yet". A result
    that is not a matrix raises ``ResultShapeError`` and an unknown strategy raises
    ``InvalidStrategyError``; neither is worth retrying.
    """
    log = logger or _logger
    if not isinstance(result, MatrixResult):
        kind = getattr(result, "result_type", None)
        name = kind.value if isinstance(kind, ResultType) else type(result).__name__
        raise ResultShapeError(name)
    strategy = resolve_strategy(config.target_strategy)
    target = config.target_value

    if not result.series:
        log.info("Query returned no series; condition not met")
        return False

    for series in result.series:
        identity = series.identity()
        if not series.samples:
            log.info("Series %s returned no samples in range; condition not met", identity)
            return False

        for sample in series.samples:
            log.info(
                "Evaluating %s timestamp=%s value=%s",
                identity,
                sample.time.isoformat(),
                sample.value,
            )
            if not math.isfinite(sample.value):
                log.info("Series %s has non-numeric sample %s", identity, sample.value)
                return False
            # Samples are compared as integers, truncated toward zero.
            value = int(sample.value)
            if not sample_satisfies(strategy, target, value):
                log.info(
                    "Series %s violates %s=%d with value=%d at %s",
                    identity,
                    strategy.value,
                    target,
                    value,
                    sample.time.isoformat(),
                )
                return False

    return True
