from __future__ import annotations

import codecs
from dataclasses import dataclass

from sensorlink.utilities.env import BufferStrategy


@dataclass(frozen=True, slots=True)
class OverlongLine:
    """The first ``max_line_bytes`` of a line that was dropped for being too long."""

    head: str


class LineBuffer:
    """Accumulate inbound chunks and hand back complete delimited lines.

    A trailing partial line stays buffered until a later chunk completes it.
    A line longer than ``max_line_bytes`` comes back as one
    :class:`OverlongLine` no matter how it was chunked. When the partial
    grows past the limit it is cut off and everything up to the next
    delimiter is dropped, so a delimiter-less stream cannot grow without
    bound.
    """

    __slots__ = (
        "_strategy",
        "_delimiter",
        "_text_delimiter",
        "_charset",
        "_max_line_bytes",
        "_bytes_buffer",
        "_text_buffer",
        "_text_decoder",
        "_discarding",
    )

    def __init__(
        self,
        *,
        strategy: BufferStrategy = BufferStrategy.BYTES,
        delimiter: bytes = b"\n",
        charset: str = "utf-8",
        max_line_bytes: int = 1024,
    ) -> None:
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._strategy = strategy
        self._delimiter = delimiter
        self._charset = charset
        self._text_delimiter = delimiter.decode(charset, errors="ignore")
        self._max_line_bytes = max_line_bytes
        self._bytes_buffer = bytearray()
        self._text_buffer = ""
        self._text_decoder = codecs.getincrementaldecoder(charset)(errors="ignore")
        self._discarding = False

    @property
    def strategy(self) -> BufferStrategy:
        return self._strategy

    @property
    def buffer_size(self) -> int:
        if self._strategy == BufferStrategy.TEXT:
            return len(self._text_buffer)
        return len(self._bytes_buffer)

    @property
    def discarding(self) -> bool:
        return self._discarding

    def append(self, data: bytes | bytearray) -> list[str | OverlongLine]:
        """Add ``data`` and return every line it completed, in stream order."""

        if self._strategy == BufferStrategy.TEXT:
            self._text_buffer += self._text_decoder.decode(bytes(data))
            return self._drain_text()
        self._bytes_buffer.extend(data)
        return self._drain_bytes()

    def clear(self) -> None:
        self._bytes_buffer.clear()
        self._text_buffer = ""
        self._text_decoder.reset()
        self._discarding = False

    def _drain_bytes(self) -> list[str | OverlongLine]:
        lines: list[str | OverlongLine] = []
        buffer = self._bytes_buffer
        delimiter_len = len(self._delimiter)
        while (index := buffer.find(self._delimiter)) != -1:
            line = bytes(buffer[:index])
            del buffer[: index + delimiter_len]
            if self._discarding:
                self._discarding = False
            elif len(line) > self._max_line_bytes:
                lines.append(self._overlong_bytes(line))
            else:
                lines.append(line.decode(self._charset, errors="ignore"))

        # Keep enough of the tail to recognise a delimiter split across chunks.
        keep = delimiter_len - 1
        if self._discarding:
            del buffer[: max(len(buffer) - keep, 0)]
        elif len(buffer) > self._max_line_bytes + keep:
            lines.append(self._overlong_bytes(bytes(buffer)))
            del buffer[: len(buffer) - keep]
            self._discarding = True
        return lines

    def _drain_text(self) -> list[str | OverlongLine]:
        lines: list[str | OverlongLine] = []
        *complete, self._text_buffer = self._text_buffer.split(self._text_delimiter)
        for line in complete:
            if self._discarding:
                self._discarding = False
            elif len(line) > self._max_line_bytes:
                lines.append(OverlongLine(line[: self._max_line_bytes]))
            else:
                lines.append(line)

        keep = len(self._text_delimiter) - 1
        if self._discarding:
            self._text_buffer = self._text_buffer[-keep:] if keep else ""
        elif len(self._text_buffer) > self._max_line_bytes + keep:
            lines.append(OverlongLine(self._text_buffer[: self._max_line_bytes]))
            self._text_buffer = self._text_buffer[-keep:] if keep else ""
            self._discarding = True
        return lines

    def _overlong_bytes(self, line: bytes) -> OverlongLine:
        return OverlongLine(line[: self._max_line_bytes].decode(self._charset, errors="ignore"))
