"""In-process stand-in for an HC-06 wired to an Arduino health sensor board."""

from __future__ import annotations

import asyncio
import json
import math
import random
from typing import Sequence

from sensorlink.peripheral.transport import (ConnectOptions, DataCallback,
                                             PeripheralHandle, Unsubscribe)
from sensorlink.utilities.env import Configuration
from sensorlink.utilities.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DEVICES = (
    PeripheralHandle(name="HC-06", address="98:D3:31:F5:2A:06", is_bonded=True),
)
STATUS_EVERY_N_LINES = 5


class SimulatedSensor:
    """Produce plausible readings line by line, mostly in flat form."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._heart_rate = 72.0
        self._steps = 0
        self._ticks = 0

    def next_line(self) -> str:
        self._ticks += 1
        if self._ticks % STATUS_EVERY_N_LINES == 0:
            return self._status_line()
        return self._flat_line()

    def _flat_line(self) -> str:
        rng = self._rng
        phase = self._ticks / 2
        self._heart_rate = max(60.0, min(100.0, self._heart_rate + rng.uniform(-2, 2)))
        fields = {
            "HR": f"{self._heart_rate:.0f}",
            "TEMP": f"{36.5 + rng.random() * 1.5:.1f}",
            "ECG": str(900 + rng.randrange(100)),
            "SPO2": str(95 + rng.randrange(5)),
            "AX": f"{math.sin(phase) * 2:.2f}",
            "AY": f"{math.cos(phase) * 2:.2f}",
            "AZ": f"{9.8 + rng.uniform(-0.25, 0.25):.2f}",
        }
        return ",".join(f"{key}:{value}" for key, value in fields.items())

    def _status_line(self) -> str:
        self._steps += self._rng.randrange(0, 12)
        status = "WARNING" if self._heart_rate > 95 else "OK"
        return json.dumps(
            {"bpm": round(self._heart_rate), "steps": self._steps, "status": status},
            separators=(",", ":"),
        )


class SimulatedLink:
    def __init__(
        self,
        peripheral: PeripheralHandle,
        *,
        interval: float,
        rng: random.Random,
        success_rate: float = 1.0,
        connect_delay: float = 0.0,
    ) -> None:
        self.peripheral = peripheral
        self._interval = interval
        self._rng = rng
        self._success_rate = success_rate
        self._connect_delay = connect_delay
        self._sensor = SimulatedSensor(rng)
        self._connected = False
        self._pending = bytearray()
        self._callbacks: list[DataCallback] = []
        self._producer: asyncio.Task[None] | None = None

    async def is_connected(self) -> bool:
        return self._connected

    async def connect(self, options: ConnectOptions) -> bool:
        if self._connect_delay:
            await asyncio.sleep(self._connect_delay)
        if self._rng.random() >= self._success_rate:
            raise ConnectionError(f"Could not connect to {self.peripheral.name}")
        self._connected = True
        self._producer = asyncio.get_running_loop().create_task(self._produce(options))
        logger.debug("Simulated link to %s up", self.peripheral)
        return True

    async def disconnect(self) -> None:
        self._stop()
        self._pending.clear()

    def drop(self) -> None:
        """Lose the link silently, the way a peripheral walking out of range does."""

        self._stop()

    def on_data(self, callback: DataCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def available(self) -> int:
        return len(self._pending)

    async def read(self) -> bytes:
        data = bytes(self._pending)
        self._pending.clear()
        return data

    async def _produce(self, options: ConnectOptions) -> None:
        delimiter = options.line_delimiter.encode(options.charset)
        while self._connected:
            await asyncio.sleep(self._interval)
            payload = self._sensor.next_line().encode(options.charset) + delimiter
            if self._callbacks:
                for callback in tuple(self._callbacks):
                    callback(payload)
            else:
                self._pending.extend(payload)

    def _stop(self) -> None:
        self._connected = False
        if self._producer is not None:
            self._producer.cancel()
            self._producer = None


class SimulatedTransportAdapter:
    """Transport adapter backed by :class:`SimulatedLink` instances."""

    def __init__(
        self,
        *,
        devices: Sequence[PeripheralHandle] = DEFAULT_DEVICES,
        interval: float | None = None,
        rng: random.Random | None = None,
        success_rate: float = 1.0,
        connect_delay: float = 0.0,
        available: bool = True,
        enabled: bool = True,
    ) -> None:
        self._devices = tuple(devices)
        self._interval = (
            Configuration.simulation_interval_ms() / 1000 if interval is None else interval
        )
        self._rng = rng or random.Random()
        self._success_rate = success_rate
        self._connect_delay = connect_delay
        self._available = available
        self._enabled = enabled
        self._links: dict[str, SimulatedLink] = {}

    async def is_available(self) -> bool:
        return self._available

    async def is_enabled(self) -> bool:
        return self._enabled

    async def request_enable(self) -> bool:
        self._enabled = self._available
        return self._enabled

    async def list_bonded(self) -> Sequence[PeripheralHandle]:
        return [device for device in self._devices if device.is_bonded]

    async def scan(self, timeout: float) -> Sequence[PeripheralHandle]:
        await asyncio.sleep(min(timeout, 0.05))
        return list(self._devices)

    def link(self, peripheral: PeripheralHandle) -> SimulatedLink:
        link = self._links.get(peripheral.address)
        if link is None:
            link = SimulatedLink(
                peripheral,
                interval=self._interval,
                rng=self._rng,
                success_rate=self._success_rate,
                connect_delay=self._connect_delay,
            )
            self._links[peripheral.address] = link
        return link
