from __future__ import annotations

import time
from typing import Callable

import reactivex
from reactivex.subject.behaviorsubject import BehaviorSubject

from sensorlink.state.reading import PartialReading, SensorReading


class ReadingStore:
    """Holds the current :class:`SensorReading` and swaps it wholesale on merge.

    Snapshots are immutable, so a reader holding ``store.reading`` always sees
    either the previous or the merged snapshot, never a mix of both.
    """

    def __init__(
        self,
        initial: SensorReading | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reading = initial if initial is not None else SensorReading()
        self._clock = clock
        self._updated_at: float | None = None
        self._subject: BehaviorSubject[SensorReading] = BehaviorSubject(self._reading)

    @property
    def reading(self) -> SensorReading:
        return self._reading

    @property
    def observe(self) -> reactivex.Observable[SensorReading]:
        return self._subject

    @property
    def updated_at(self) -> float | None:
        return self._updated_at

    def seconds_since_update(self) -> float | None:
        if self._updated_at is None:
            return None
        return max(0.0, self._clock() - self._updated_at)

    def merge(self, partial: PartialReading) -> SensorReading:
        """Apply the fields ``partial`` specifies and return the resulting snapshot."""

        if partial.is_empty():
            return self._reading

        merged = partial.apply_to(self._reading)
        self._updated_at = self._clock()
        if merged != self._reading:
            self._reading = merged
            self._subject.on_next(merged)
        return self._reading
