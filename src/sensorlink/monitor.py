"""Application-level facade: selection, connect button, and the UI read surface."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import reactivex

from sensorlink import ConnectionState
from sensorlink.errors import SensorLinkError
from sensorlink.ingestion import IngestionPipeline
from sensorlink.peripheral.connection import ConnectionManager
from sensorlink.peripheral.discovery import DiscoveryResolver, DiscoveryResult
from sensorlink.peripheral.transport import PeripheralHandle
from sensorlink.state import ActivityLog, LogEntry, SensorReading
from sensorlink.utilities.logging import get_logger

logger = get_logger(__name__)


def startup_messages(device_name: str, pairing_pin: str) -> tuple[str, ...]:
    return (
        f"App started. Ready to connect to {device_name}.",
        f"Ensure {device_name} is powered on and paired in system Bluetooth.",
        f"Default PIN: {pairing_pin}",
    )


@dataclass(frozen=True, slots=True)
class MonitorSnapshot:
    state: ConnectionState
    peripheral: PeripheralHandle | None
    reading: SensorReading
    log_entries: tuple[LogEntry, ...]
    records_received: int
    seconds_since_update: float | None
    last_error: SensorLinkError | None


class SensorMonitor:
    """Tie discovery, the connection manager and ingestion into one object.

    Everything under "read surface" is a plain read with no side effects, so
    a renderer can poll it at any rate.
    """

    def __init__(
        self,
        resolver: DiscoveryResolver,
        manager: ConnectionManager,
        pipeline: IngestionPipeline,
        activity_log: ActivityLog,
    ) -> None:
        self._resolver = resolver
        self._manager = manager
        self._pipeline = pipeline
        self._activity_log = activity_log
        self._selected: PeripheralHandle | None = None
        self._runner: asyncio.Task[None] | None = None

    # ---------- Read surface ----------

    @property
    def state(self) -> ConnectionState:
        return self._manager.state

    @property
    def peripheral(self) -> PeripheralHandle | None:
        return self._selected

    @property
    def reading(self) -> SensorReading:
        return self._pipeline.store.reading

    @property
    def log_entries(self) -> tuple[LogEntry, ...]:
        return self._activity_log.entries

    @property
    def records_received(self) -> int:
        return self._pipeline.records_received

    @property
    def seconds_since_update(self) -> float | None:
        return self._pipeline.seconds_since_update()

    @property
    def last_error(self) -> SensorLinkError | None:
        return self._manager.last_error

    @property
    def reading_updates(self) -> reactivex.Observable[SensorReading]:
        return self._pipeline.store.observe

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @property
    def activity_log(self) -> ActivityLog:
        return self._activity_log

    def snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            state=self.state,
            peripheral=self.peripheral,
            reading=self.reading,
            log_entries=self.log_entries,
            records_received=self.records_received,
            seconds_since_update=self.seconds_since_update,
            last_error=self.last_error,
        )

    # ---------- Lifecycle ----------

    async def start(self) -> None:
        """Run the connection manager in the background of the current loop."""

        if self._runner is not None and not self._runner.done():
            return
        self._runner = asyncio.get_running_loop().create_task(
            self._manager.run(), name="sensorlink-connection-manager"
        )
        # Let the actor mark itself running before commands are submitted.
        await asyncio.sleep(0)

    async def close(self) -> None:
        runner, self._runner = self._runner, None
        await self._manager.shutdown()
        if runner is not None:
            await runner

    async def __aenter__(self) -> SensorMonitor:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ---------- Commands ----------

    async def discover(self, prefer_bonded: bool = True) -> DiscoveryResult:
        result = await self._resolver.resolve(prefer_bonded=prefer_bonded)
        self._selected = result.peripheral
        return result

    async def connect(self, peripheral: PeripheralHandle | None = None) -> bool:
        """Connect to ``peripheral``, or to the selection, discovering one if needed.

        Discovery failures are recorded in the activity log and re-raised.
        """

        if peripheral is not None:
            self._selected = peripheral
        elif self._selected is None:
            result = await self.discover()
            if result.requires_pairing:
                return False
        assert self._selected is not None
        return await self._manager.connect(self._selected)

    async def disconnect(self) -> ConnectionState:
        return await self._manager.disconnect()

    async def toggle(self) -> bool:
        """Behave like a single connect/disconnect button."""

        if self._manager.state.is_terminal:
            return await self.connect()
        await self.disconnect()
        return False

    def clear_selection(self) -> None:
        self._selected = None

    def clear_log(self) -> None:
        self._activity_log.clear()

    async def wait_for_state(
        self, *states: ConnectionState, timeout: float | None = None
    ) -> ConnectionState:
        return await self._manager.wait_for_state(*states, timeout=timeout)
