"""Environment-driven configuration for the deployment gate."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from .errors import ConfigError

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class Strategy(str, Enum):
    """How samples are compared against the target value."""

    MIN = "min"
    MAX = "max"
    EQUALS = "equals"


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string such as ``-5m``, ``1h30m`` or ``250ms``.

    A sign may prefix the whole value and ``0`` is accepted without a unit.
    Raises ``ValueError`` for anything else.
    """
    text = value.strip()
    sign = 1
    if text[:1] in {"-", "+"}:
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART_RE.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    return timedelta(seconds=sign * total)


def format_duration(delta: timedelta) -> str:
    """Render a timedelta the way ``parse_duration`` reads it, e.g. ``-5m0s``."""
    total = delta.total_seconds()
    sign = "-" if total < 0 else ""
    hours, rem = divmod(abs(total), 3600)
    minutes, seconds = divmod(rem, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{int(hours)}h")
    if hours or minutes:
        parts.append(f"{int(minutes)}m")
    parts.append(f"{seconds:g}s")
    return sign + "".join(parts)


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigError(name, "is required")
    return value


def _parse_int(env: Mapping[str, str], name: str) -> int:
    raw = _require(env, name)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(name, f"expected an integer, got {raw!r}") from None


def _parse_duration(
    env: Mapping[str, str], name: str, default: str, *, positive: bool = True
) -> timedelta:
    raw = env.get(name, "").strip() or default
    try:
        value = parse_duration(raw)
    except ValueError:
        raise ConfigError(name, f"expected a duration like 30s or 5m, got {raw!r}") from None
    if positive and value <= timedelta(0):
        raise ConfigError(name, f"must be positive, got {raw!r}")
    return value


def _parse_strategy(env: Mapping[str, str], name: str, default: Strategy) -> Strategy:
    raw = env.get(name, "").strip() or default.value
    try:
        return Strategy(raw)
    except ValueError:
        raise ConfigError(name, f"must be one of min, max, equals, got {raw!r}") from None


@dataclass(frozen=True)
class GateConfig:
    """Settings for one gate invocation. Loaded once at startup."""

    range_query: str
    target_value: int
    endpoint: str = "localhost"
    range_time: timedelta = timedelta(minutes=-5)
    target_strategy: Strategy | str = Strategy.MIN
    timeout: timedelta = timedelta(minutes=10)
    tick_time: timedelta = timedelta(minutes=1)
    query_timeout: timedelta = timedelta(seconds=60)
    step: timedelta = timedelta(minutes=1)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GateConfig:
        env = os.environ if environ is None else environ

        range_time = _parse_duration(env, "RANGE_TIME", "-5m", positive=False)
        if range_time > timedelta(0):
            raise ConfigError("RANGE_TIME", "must not point into the future")

        return cls(
            endpoint=env.get("PROMETHEUS_ENDPOINT", "").strip() or "localhost",
            range_query=_require(env, "RANGE_QUERY"),
            range_time=range_time,
            target_value=_parse_int(env, "TARGET_VALUE"),
            target_strategy=_parse_strategy(env, "TARGET_STRATEGY", Strategy.MIN),
            timeout=_parse_duration(env, "TIMEOUT", "10m"),
            tick_time=_parse_duration(env, "TICK_TIME", "1m"),
            query_timeout=_parse_duration(env, "QUERY_TIMEOUT", "60s"),
            step=_parse_duration(env, "QUERY_STEP", "1m"),
        )

    def summary(self) -> dict[str, object]:
        strategy = self.target_strategy
        return {
            "endpoint": self.endpoint,
            "range_query": self.range_query,
            "range_time": format_duration(self.range_time),
            "target_value": self.target_value,
            "target_strategy": strategy.value if isinstance(strategy, Strategy) else strategy,
            "timeout": format_duration(self.timeout),
            "tick_time": format_duration(self.tick_time),
        }
