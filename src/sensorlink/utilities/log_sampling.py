"""Per-key throttling for log lines emitted on every inbound chunk."""

from __future__ import annotations

import logging
import os
import time
from functools import cache
from typing import Callable, Mapping

LOG_INTERVALS_ENV_VAR = "SENSORLINK_LOG_INTERVALS"
DEFAULT_INTERVAL_ENV_VAR = "SENSORLINK_LOG_DEFAULT_INTERVAL"
DEFAULT_INTERVAL_SECONDS = 5.0


def _parse_interval(raw: str) -> float | None:
    value = raw.strip().lower()
    if value == "none":
        return None
    try:
        interval = float(value)
    except ValueError as exc:
        raise ValueError(f"Invalid log interval {raw!r}") from exc
    if interval < 0:
        raise ValueError(f"Log interval must be non-negative, got {raw!r}")
    return interval


def parse_intervals(raw: str) -> dict[str, float | None]:
    """Parse ``key=seconds`` pairs separated by commas; ``none`` disables throttling."""

    intervals: dict[str, float | None] = {}
    for chunk in filter(None, (part.strip() for part in raw.split(","))):
        key, separator, value = chunk.partition("=")
        if not separator or not key.strip():
            raise ValueError(
                f"Invalid {LOG_INTERVALS_ENV_VAR} entry {chunk!r}. Expected 'key=seconds'."
            )
        intervals[key.strip()] = _parse_interval(value)
    return intervals


class LogSampler:
    """Emit at most one log line per key and interval, demoting the rest."""

    def __init__(
        self,
        *,
        default_interval: float | None,
        intervals: Mapping[str, float | None] | None = None,
        demoted_level: int | None = logging.DEBUG,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_interval = default_interval
        self._intervals = dict(intervals or {})
        self._demoted_level = demoted_level
        self._monotonic = monotonic
        self._next_emit: dict[str, float] = {}

    def interval_for(self, key: str) -> float | None:
        return self._intervals.get(key, self._default_interval)

    def log(
        self,
        key: str,
        logger: logging.Logger,
        level: int,
        msg: str,
        *args: object,
    ) -> bool:
        """Log ``msg`` at ``level`` if ``key`` is due; returns whether it was emitted."""

        interval = self.interval_for(key)
        now = self._monotonic()
        if interval is None or now >= self._next_emit.get(key, float("-inf")):
            if interval is not None:
                self._next_emit[key] = now + interval
            logger.log(level, msg, *args)
            return True

        if self._demoted_level is not None:
            logger.log(self._demoted_level, msg, *args)
        return False

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._next_emit.clear()
        else:
            self._next_emit.pop(key, None)


@cache
def get_log_sampler() -> LogSampler:
    """Return the process-wide sampler configured from the environment."""

    raw_default = os.getenv(DEFAULT_INTERVAL_ENV_VAR)
    default_interval = (
        DEFAULT_INTERVAL_SECONDS if raw_default is None else _parse_interval(raw_default)
    )
    return LogSampler(
        default_interval=default_interval,
        intervals=parse_intervals(os.getenv(LOG_INTERVALS_ENV_VAR, "")),
    )
