from __future__ import annotations

import logging

from sensorlink.errors import DecodeError
from sensorlink.ingestion.decoder import decode_line
from sensorlink.ingestion.line_buffer import LineBuffer, OverlongLine
from sensorlink.peripheral.transport import PeripheralLink
from sensorlink.state import ActivityLog, ReadingStore
from sensorlink.utilities.env import Configuration
from sensorlink.utilities.log_sampling import LogSampler, get_log_sampler
from sensorlink.utilities.logging import get_logger

logger = get_logger(__name__)

_ERROR_PREVIEW_CHARS = 48


class IngestionPipeline:
    """Turn raw chunks from the link into merges on the :class:`ReadingStore`.

    The pipeline never changes connection state. :meth:`poll` only reports
    whether the link still looks alive and the connection manager decides
    what to do about it.
    """

    def __init__(
        self,
        store: ReadingStore,
        activity_log: ActivityLog,
        *,
        buffer: LineBuffer | None = None,
        sampler: LogSampler | None = None,
    ) -> None:
        self._store = store
        self._activity_log = activity_log
        self._buffer = buffer or LineBuffer(
            strategy=Configuration.buffer_strategy(),
            charset=Configuration.charset(),
            max_line_bytes=Configuration.max_line_bytes(),
        )
        self._sampler = sampler or get_log_sampler()
        self._records_received = 0
        self._decode_errors = 0
        self._bytes_received = 0

    @property
    def store(self) -> ReadingStore:
        return self._store

    @property
    def records_received(self) -> int:
        return self._records_received

    @property
    def decode_errors(self) -> int:
        return self._decode_errors

    @property
    def bytes_received(self) -> int:
        return self._bytes_received

    @property
    def buffered(self) -> int:
        return self._buffer.buffer_size

    def seconds_since_update(self) -> float | None:
        return self._store.seconds_since_update()

    def reset(self) -> None:
        """Start counting afresh for a new connection."""

        self._buffer.clear()
        self._records_received = 0
        self._decode_errors = 0
        self._bytes_received = 0

    def discard_partial(self) -> None:
        self._buffer.clear()

    def feed(self, data: bytes | bytearray) -> int:
        """Feed a raw chunk; returns how many records it completed and decoded."""

        self._bytes_received += len(data)
        decoded = 0
        for line in self._buffer.append(data):
            if isinstance(line, OverlongLine):
                self._report(DecodeError(line.head, "line too long"))
            elif self._ingest_line(line):
                decoded += 1

        self._sampler.log(
            "ingest.stats",
            logger,
            logging.INFO,
            "Ingestion stats bytes=%s records=%s errors=%s buffered=%s",
            self._bytes_received,
            self._records_received,
            self._decode_errors,
            self._buffer.buffer_size,
        )
        return decoded

    async def poll(self, link: PeripheralLink, *, read: bool = True) -> bool:
        """Run one poll tick; returns ``False`` once the link reports it is gone."""

        try:
            if not await link.is_connected():
                return False
        except Exception:
            logger.warning("Liveness check failed", exc_info=True)
            return True

        if not read:
            return True

        try:
            available = await link.available()
            if available > 0:
                data = await link.read()
                if data:
                    self.feed(data)
        except Exception as exc:
            self._sampler.log(
                "ingest.read_error",
                logger,
                logging.WARNING,
                "Read from link failed: %s",
                exc,
            )
        return True

    def _ingest_line(self, line: str) -> bool:
        try:
            partial = decode_line(line)
        except DecodeError as exc:
            self._report(exc)
            return False
        if partial is None:
            return False
        self._records_received += 1
        self._store.merge(partial)
        return True

    def _report(self, error: DecodeError) -> None:
        self._decode_errors += 1
        logger.debug("Dropping line: %s", error)
        preview = error.line.strip()
        if len(preview) > _ERROR_PREVIEW_CHARS:
            preview = preview[:_ERROR_PREVIEW_CHARS] + "..."
        self._activity_log.append(f"Parse error ({error.reason}): {preview}")
