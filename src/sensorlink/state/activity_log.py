from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Iterator

import reactivex
from reactivex.subject import Subject

CLEARED_TEXT = "Logs cleared"


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: datetime
    text: str

    def __str__(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.text}"


class ActivityLog:
    """Bounded, most-recent-first list of human readable events for display."""

    def __init__(
        self,
        capacity: int = 50,
        *,
        initial: Iterable[str] = (),
        now: Callable[[], datetime] = _local_now,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._now = now
        self._subject: Subject[LogEntry] = Subject()
        # Keep the first initial message on top.
        for text in reversed(tuple(initial)):
            self.append(text)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    @property
    def observe(self) -> reactivex.Observable[LogEntry]:
        return self._subject

    def append(self, text: str) -> LogEntry:
        entry = LogEntry(timestamp=self._now(), text=text)
        self._entries.appendleft(entry)
        self._subject.on_next(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()
        self.append(CLEARED_TEXT)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
