"""Error taxonomy for the deployment gate.

Only fatal conditions are modelled as exceptions. Transport and backend failures
are reported as values on :class:`~metrics_deploy_gate.gate.schemas.QueryResponse`
and retried on the next tick.
"""

from __future__ import annotations


class GateError(Exception):
    """Base class for all gate failures that stop the process."""


class ConfigError(GateError):
    """A required environment value is missing or cannot be parsed."""

    def __init__(self, variable: str, message: str) -> None:
        super().__init__(f"{variable}: {message}")
        self.variable = variable


class FatalEvaluationError(GateError):
    """The query or strategy is misconfigured; retrying cannot help."""


class InvalidStrategyError(FatalEvaluationError):
    def __init__(self, strategy: object) -> None:
        super().__init__(f"invalid target strategy {strategy!r}; expected one of min, max, equals")
        self.strategy = strategy


class ResultShapeError(FatalEvaluationError):
    def __init__(self, result_type: str) -> None:
        super().__init__(
            f"query returned a {result_type!r} result; the query must produce a matrix "
            "(use a range query)"
        )
        self.result_type = result_type
