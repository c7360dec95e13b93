"""RFCOMM/SPP transport over the serial device the OS binds for a paired module.

A paired HC-06 shows up as ``/dev/rfcommN`` on Linux (after ``rfcomm bind``)
or ``/dev/cu.HC-06-*`` on macOS, so "bonded" here means "has a serial node".
"""

from __future__ import annotations

import asyncio
import platform
import threading
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Sequence

import serial

from sensorlink.errors import ConnectFailed
from sensorlink.peripheral.transport import (ConnectOptions, DataCallback,
                                             PeripheralHandle, Unsubscribe)
from sensorlink.utilities.env import Configuration, iter_bluetooth_ports
from sensorlink.utilities.env.ports import SerialPortInfo
from sensorlink.utilities.logging import get_logger

logger = get_logger(__name__)

RFKILL_DIR = Path("/sys/class/rfkill")
BLUETOOTH_CLASS_DIR = Path("/sys/class/bluetooth")
READ_TIMEOUT_SECONDS = 0.1
SCAN_POLL_SECONDS = 0.5

PortLister = Callable[[Iterable[str]], Iterator[SerialPortInfo]]
SerialFactory = Callable[..., Any]


def _port_label(port: SerialPortInfo) -> str:
    description = port.description.strip()
    if description and description.lower() != "n/a":
        return description
    return port.name


def _rfkill_blocked(base: Path = RFKILL_DIR) -> bool:
    """Return True when every Bluetooth radio is soft or hard blocked."""

    radios = []
    try:
        for entry in base.iterdir():
            if (entry / "type").read_text().strip() != "bluetooth":
                continue
            soft = (entry / "soft").read_text().strip() == "1"
            hard = (entry / "hard").read_text().strip() == "1"
            radios.append(soft or hard)
    except OSError:
        return False
    return bool(radios) and all(radios)


class _OpenAttempt:
    """Hand-off between the thread opening a port and the task waiting for it."""

    def __init__(self, address: str) -> None:
        self.address = address
        self._lock = threading.Lock()
        self._abandoned = False
        self._port: Any | None = None

    def hand_over(self, port: Any) -> Any:
        with self._lock:
            if not self._abandoned:
                self._port = port
                return port
        logger.info("Closing %s opened after the connect attempt was abandoned", self.address)
        port.close()
        return port

    def abandon(self) -> Any | None:
        with self._lock:
            self._abandoned = True
            port, self._port = self._port, None
        return port


class SerialLink:
    def __init__(
        self,
        peripheral: PeripheralHandle,
        *,
        serial_factory: SerialFactory = serial.Serial,
        read_timeout: float = READ_TIMEOUT_SECONDS,
    ) -> None:
        self.peripheral = peripheral
        self._serial_factory = serial_factory
        self._read_timeout = read_timeout
        self._port: Any | None = None
        self._lost = False
        self._callbacks: list[DataCallback] = []
        self._reader: asyncio.Task[None] | None = None

    async def is_connected(self) -> bool:
        return self._port is not None and self._port.is_open and not self._lost

    async def connect(self, options: ConnectOptions) -> bool:
        attempt = _OpenAttempt(self.peripheral.address)

        def _open() -> Any:
            port = self._serial_factory(
                port=self.peripheral.address,
                baudrate=options.baudrate,
                timeout=self._read_timeout,
            )
            return attempt.hand_over(port)

        try:
            self._port = await asyncio.to_thread(_open)
        except serial.SerialException as exc:
            raise ConnectFailed(str(exc)) from exc
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; whoever finishes last closes the port.
            port = attempt.abandon()
            if port is not None:
                port.close()
            raise
        self._lost = False
        logger.info("Opened %s at %s baud", self.peripheral.address, options.baudrate)
        return bool(self._port.is_open)

    async def disconnect(self) -> None:
        self._stop_reader()
        port, self._port = self._port, None
        if port is not None:
            await asyncio.to_thread(port.close)

    def on_data(self, callback: DataCallback) -> Unsubscribe:
        self._callbacks.append(callback)
        if self._reader is None:
            self._reader = asyncio.get_running_loop().create_task(self._read_forever())

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
            if not self._callbacks:
                self._stop_reader()

        return unsubscribe

    async def available(self) -> int:
        port = self._require_port()
        try:
            return int(port.in_waiting)
        except (serial.SerialException, OSError):
            self._lost = True
            raise

    async def read(self) -> bytes:
        port = self._require_port()
        try:
            return await asyncio.to_thread(port.read, port.in_waiting or 1)
        except (serial.SerialException, OSError):
            self._lost = True
            raise

    async def _read_forever(self) -> None:
        while self._port is not None and not self._lost:
            try:
                data = await self.read()
            except (serial.SerialException, OSError):
                logger.warning("Reader for %s stopped", self.peripheral.address, exc_info=True)
                return
            if data:
                for callback in tuple(self._callbacks):
                    callback(data)

    def _require_port(self) -> Any:
        if self._port is None:
            raise serial.SerialException(f"{self.peripheral.address} is not open")
        return self._port

    def _stop_reader(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            self._reader = None


class SerialTransportAdapter:
    """Transport adapter for Bluetooth serial ports, built on pyserial."""

    def __init__(
        self,
        *,
        hints: Sequence[str] | None = None,
        port_lister: PortLister = iter_bluetooth_ports,
        serial_factory: SerialFactory = serial.Serial,
        scan_poll_seconds: float = SCAN_POLL_SECONDS,
    ) -> None:
        self._hints = tuple(hints) if hints is not None else Configuration.port_hints()
        self._port_lister = port_lister
        self._serial_factory = serial_factory
        self._scan_poll_seconds = scan_poll_seconds

    async def is_available(self) -> bool:
        if platform.system() == "Linux":
            return BLUETOOTH_CLASS_DIR.exists()
        return True

    async def is_enabled(self) -> bool:
        if platform.system() == "Linux":
            return not _rfkill_blocked()
        return True

    async def request_enable(self) -> bool:
        # Radios cannot be switched on from user space without privileges.
        if not await self.is_enabled():
            logger.warning("Bluetooth is blocked; run `rfkill unblock bluetooth` to enable it")
            return False
        return True

    async def list_bonded(self) -> Sequence[PeripheralHandle]:
        ports = await asyncio.to_thread(lambda: list(self._port_lister(self._hints)))
        return [
            PeripheralHandle(name=_port_label(port), address=port.device, is_bonded=True)
            for port in ports
        ]

    async def scan(self, timeout: float) -> Sequence[PeripheralHandle]:
        """Re-enumerate ports until one appears or ``timeout`` elapses."""

        deadline = time.monotonic() + timeout
        while True:
            found = await self.list_bonded()
            remaining = deadline - time.monotonic()
            if found or remaining <= 0:
                return found
            await asyncio.sleep(min(self._scan_poll_seconds, remaining))

    def link(self, peripheral: PeripheralHandle) -> SerialLink:
        return SerialLink(peripheral, serial_factory=self._serial_factory)
