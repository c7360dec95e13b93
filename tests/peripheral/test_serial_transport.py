"""Tests for the pyserial-backed transport, using a stand-in serial port."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

import pytest
import serial

from sensorlink import ConnectionState
from sensorlink.errors import ConnectFailed, ConnectTimeout
from sensorlink.ingestion import IngestionPipeline, LineBuffer
from sensorlink.peripheral import serial_transport
from sensorlink.peripheral.connection import ConnectionManager
from sensorlink.peripheral.serial_transport import (SerialLink,
                                                    SerialTransportAdapter)
from sensorlink.peripheral.transport import (ConnectOptions, PeripheralHandle,
                                             TransportAdapter)
from sensorlink.state import ActivityLog, ReadingStore
from sensorlink.utilities.env import DeliveryMode
from sensorlink.utilities.env.ports import SerialPortInfo
from sensorlink.utilities.log_sampling import LogSampler

pytestmark = pytest.mark.timeout(10)

RFCOMM0 = PeripheralHandle(name="rfcomm0", address="/dev/rfcomm0", is_bonded=True)


class StubSerial:
    """Minimal object with the parts of ``serial.Serial`` the link touches."""

    def __init__(self, *, port: str, baudrate: int, timeout: float) -> None:
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.is_open = True
        self.incoming = bytearray()
        self.fail_reads = False

    @property
    def in_waiting(self) -> int:
        if self.fail_reads:
            raise serial.SerialException("device reports readiness to read but returned no data")
        return len(self.incoming)

    def read(self, size: int = 1) -> bytes:
        data = bytes(self.incoming[:size])
        del self.incoming[:size]
        return data

    def close(self) -> None:
        self.is_open = False


class StubSerialFactory:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.opened: list[StubSerial] = []

    def __call__(self, **kwargs: Any) -> StubSerial:
        if self.error is not None:
            raise self.error
        port = StubSerial(**kwargs)
        self.opened.append(port)
        return port


class GatedSerialFactory(StubSerialFactory):
    """Factory whose open blocks, like a slow RFCOMM handshake, until released."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()

    def __call__(self, **kwargs: Any) -> StubSerial:
        self.release.wait(timeout=5)
        return super().__call__(**kwargs)

    def all_closed(self) -> bool:
        return bool(self.opened) and not any(port.is_open for port in self.opened)


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


def _lister(ports: list[SerialPortInfo]):
    def list_ports(hints: Iterable[str]) -> Iterator[SerialPortInfo]:
        return iter(ports)

    return list_ports


class TestSerialLink:
    """Verify the link opens, reads and closes the bound serial node."""

    def test_connect_opens_port_with_baudrate(self) -> None:
        factory = StubSerialFactory()
        link = SerialLink(RFCOMM0, serial_factory=factory)

        async def scenario() -> None:
            assert await link.connect(ConnectOptions(baudrate=38400)) is True
            assert await link.is_connected()
            await link.disconnect()
            assert not await link.is_connected()

        asyncio.run(scenario())

        assert factory.opened[0].port == "/dev/rfcomm0"
        assert factory.opened[0].baudrate == 38400
        assert factory.opened[0].is_open is False

    def test_open_failure_becomes_connect_failed(self) -> None:
        factory = StubSerialFactory(serial.SerialException("could not open port"))
        link = SerialLink(RFCOMM0, serial_factory=factory)

        with pytest.raises(ConnectFailed, match="could not open port"):
            asyncio.run(link.connect(ConnectOptions()))

    def test_port_opened_after_cancel_is_closed(self) -> None:
        """A connect cancelled mid-open must not leave the serial node held open."""

        factory = GatedSerialFactory()
        link = SerialLink(RFCOMM0, serial_factory=factory)

        async def scenario() -> None:
            task = asyncio.get_running_loop().create_task(link.connect(ConnectOptions()))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            factory.release.set()
            await _eventually(factory.all_closed)

            assert not await link.is_connected()
            await link.disconnect()

        asyncio.run(scenario())

        assert len(factory.opened) == 1

    def test_poll_reads(self) -> None:
        factory = StubSerialFactory()
        link = SerialLink(RFCOMM0, serial_factory=factory)

        async def scenario() -> bytes:
            await link.connect(ConnectOptions())
            factory.opened[0].incoming.extend(b"HR:70\n")
            assert await link.available() == 6
            return await link.read()

        assert asyncio.run(scenario()) == b"HR:70\n"

    def test_read_error_marks_link_lost(self) -> None:
        factory = StubSerialFactory()
        link = SerialLink(RFCOMM0, serial_factory=factory)

        async def scenario() -> bool:
            await link.connect(ConnectOptions())
            factory.opened[0].fail_reads = True
            with pytest.raises(serial.SerialException):
                await link.available()
            return await link.is_connected()

        assert asyncio.run(scenario()) is False

    def test_push_reader_delivers_chunks(self) -> None:
        factory = StubSerialFactory()
        link = SerialLink(RFCOMM0, serial_factory=factory, read_timeout=0.01)
        received: list[bytes] = []

        async def scenario() -> None:
            await link.connect(ConnectOptions())
            factory.opened[0].incoming.extend(b"TEMP:36.9\n")
            unsubscribe = link.on_data(received.append)
            for _ in range(50):
                if received:
                    break
                await asyncio.sleep(0.01)
            unsubscribe()
            await link.disconnect()

        asyncio.run(scenario())

        assert b"".join(received) == b"TEMP:36.9\n"


class TestSerialTransportAdapter:
    """Verify that bound Bluetooth serial ports are presented as bonded peripherals."""

    def test_satisfies_adapter_protocol(self) -> None:
        assert isinstance(SerialTransportAdapter(hints=()), TransportAdapter)

    def test_list_bonded_labels_ports(self) -> None:
        ports = [
            SerialPortInfo(device="/dev/cu.HC-06-DevB", name="cu.HC-06-DevB", description="n/a"),
            SerialPortInfo(device="/dev/rfcomm0", name="rfcomm0", description="HC-06 SPP"),
        ]
        adapter = SerialTransportAdapter(hints=("HC-0",), port_lister=_lister(ports))

        bonded = asyncio.run(adapter.list_bonded())

        assert [(device.name, device.address) for device in bonded] == [
            ("cu.HC-06-DevB", "/dev/cu.HC-06-DevB"),
            ("HC-06 SPP", "/dev/rfcomm0"),
        ]
        assert all(device.is_bonded for device in bonded)

    def test_scan_gives_up_after_timeout(self) -> None:
        adapter = SerialTransportAdapter(
            hints=(), port_lister=_lister([]), scan_poll_seconds=0.01
        )

        assert asyncio.run(adapter.scan(0.03)) == []

    def test_link_uses_factory(self) -> None:
        factory = StubSerialFactory()
        adapter = SerialTransportAdapter(hints=(), serial_factory=factory)

        link = adapter.link(RFCOMM0)

        assert isinstance(link, SerialLink)
        assert link.peripheral is RFCOMM0


class TestRfkill:
    def _radio(self, base: Path, name: str, kind: str, soft: str, hard: str) -> None:
        entry = base / name
        entry.mkdir(parents=True)
        (entry / "type").write_text(kind + "\n")
        (entry / "soft").write_text(soft + "\n")
        (entry / "hard").write_text(hard + "\n")

    def test_blocked_bluetooth_radio(self, tmp_path: Path) -> None:
        self._radio(tmp_path, "rfkill0", "bluetooth", "1", "0")
        self._radio(tmp_path, "rfkill1", "wlan", "0", "0")

        assert serial_transport._rfkill_blocked(tmp_path) is True

    def test_unblocked_bluetooth_radio(self, tmp_path: Path) -> None:
        self._radio(tmp_path, "rfkill0", "bluetooth", "0", "0")

        assert serial_transport._rfkill_blocked(tmp_path) is False

    def test_missing_rfkill_is_not_blocked(self, tmp_path: Path) -> None:
        assert serial_transport._rfkill_blocked(tmp_path / "absent") is False


class TestSerialConnectTimeout:
    """Verify that a timed-out connect through the manager releases the serial node."""

    def test_deadline_releases_slow_open(self) -> None:
        factory = GatedSerialFactory()
        adapter = SerialTransportAdapter(
            hints=(), port_lister=_lister([]), serial_factory=factory
        )
        activity_log = ActivityLog()
        pipeline = IngestionPipeline(
            ReadingStore(),
            activity_log,
            buffer=LineBuffer(),
            sampler=LogSampler(default_interval=None),
        )
        manager = ConnectionManager(
            adapter,
            pipeline,
            activity_log,
            connect_timeout=0.05,
            poll_interval=0.01,
            delivery_mode=DeliveryMode.POLL,
            options=ConnectOptions(),
            pairing_pin="1234",
        )

        async def scenario() -> None:
            runner = asyncio.get_running_loop().create_task(manager.run())
            await asyncio.sleep(0)
            try:
                assert await manager.connect(RFCOMM0) is True
                state = await manager.wait_for_state(ConnectionState.FAILED, timeout=2)

                assert state is ConnectionState.FAILED
                assert isinstance(manager.last_error, ConnectTimeout)

                factory.release.set()
                await _eventually(factory.all_closed)

                assert manager.state is ConnectionState.FAILED
            finally:
                factory.release.set()
                await manager.shutdown()
                await runner

        asyncio.run(scenario())

        assert len(factory.opened) == 1
