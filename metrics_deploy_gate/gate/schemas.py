"""Query window and result models for the Prometheus range-query API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, ClassVar


class ResultType(str, Enum):
    MATRIX = "matrix"
    VECTOR = "vector"
    SCALAR = "scalar"
    STRING = "string"


@dataclass(frozen=True)
class QueryWindow:
    """Time range handed to ``query_range``."""

    start: datetime
    end: datetime
    step: timedelta

    @classmethod
    def ending_at(cls, now: datetime, lookback: timedelta, step: timedelta) -> QueryWindow:
        return cls(start=now + lookback, end=now, step=step)

    def as_params(self) -> dict[str, str]:
        return {
            "start": f"{self.start.timestamp():.3f}",
            "end": f"{self.end.timestamp():.3f}",
            "step": f"{self.step.total_seconds():g}",
        }


@dataclass(frozen=True)
class Sample:
    timestamp: float
    value: float

    @property
    def time(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)


@dataclass
class Series:
    """One metric identity and its samples, oldest first."""

    labels: dict[str, str]
    samples: list[Sample] = field(default_factory=list)

    def identity(self) -> str:
        labels = dict(self.labels)
        name = labels.pop("__name__", "")
        inner = ", ".join(f'{key}="{value}"' for key, value in sorted(labels.items()))
        return f"{name}{{{inner}}}"


@dataclass
class MatrixResult:
    series: list[Series]
    result_type: ClassVar[ResultType] = ResultType.MATRIX


@dataclass
class VectorResult:
    series: list[Series]
    result_type: ClassVar[ResultType] = ResultType.VECTOR


@dataclass
class ScalarResult:
    sample: Sample
    result_type: ClassVar[ResultType] = ResultType.SCALAR


@dataclass
class StringResult:
    timestamp: float
    value: str
    result_type: ClassVar[ResultType] = ResultType.STRING


QueryValue = MatrixResult | VectorResult | ScalarResult | StringResult


@dataclass
class QueryResponse:
    """Outcome of one range query. ``error`` is set instead of raising."""

    result: QueryValue | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None


def _parse_pair(raw: Any) -> tuple[float, str]:
    try:
        timestamp, value = raw
        return float(timestamp), str(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"malformed sample pair: {raw!r}") from exc


def _parse_sample(raw: Any) -> Sample:
    timestamp, value = _parse_pair(raw)
    try:
        datetime.fromtimestamp(timestamp, tz=UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"malformed sample timestamp: {timestamp!r}") from exc
    try:
        return Sample(timestamp=timestamp, value=float(value))
    except ValueError as exc:
        raise ValueError(f"malformed sample value: {value!r}") from exc


def _parse_labels(item: Any) -> dict[str, str]:
    if not isinstance(item, dict):
        raise ValueError(f"malformed series entry: {item!r}")
    labels = item.get("metric") or {}
    if not isinstance(labels, dict):
        raise ValueError(f"malformed metric labels: {labels!r}")
    return {str(key): str(value) for key, value in labels.items()}


def parse_query_data(data: Any) -> QueryValue:
    """Turn the ``data`` member of an API response into a typed result.

    Raises ``ValueError`` when the payload does not follow the API contract.
    """
    if not isinstance(data, dict):
        raise ValueError("response data must be an object")
    result_type = ResultType(data.get("resultType"))
    raw_result = data.get("result")

    if result_type is ResultType.SCALAR:
        return ScalarResult(sample=_parse_sample(raw_result))
    if result_type is ResultType.STRING:
        timestamp, value = _parse_pair(raw_result)
        return StringResult(timestamp=timestamp, value=value)

    if not isinstance(raw_result, list):
        raise ValueError(f"{result_type.value} result must be a list")
    if result_type is ResultType.VECTOR:
        return VectorResult(
            series=[
                Series(labels=_parse_labels(item), samples=[_parse_sample(item.get("value"))])
                for item in raw_result
            ]
        )
    return MatrixResult(
        series=[
            Series(
                labels=_parse_labels(item),
                samples=[_parse_sample(pair) for pair in item.get("values") or []],
            )
            for item in raw_result
        ]
    )
