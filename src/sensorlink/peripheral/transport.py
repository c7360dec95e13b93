"""Contract between the link layer and a platform Bluetooth stack."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable, Protocol, Sequence, runtime_checkable

DataCallback = Callable[[bytes], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True, slots=True)
class PeripheralHandle:
    """A candidate device. Two handles are the same device when their addresses match."""

    name: str = field(compare=False)
    address: str
    is_bonded: bool = field(default=False, compare=False)

    def __str__(self) -> str:
        return f"{self.name} ({self.address})"


class TransportKind(StrEnum):
    RFCOMM = "rfcomm"


@dataclass(frozen=True, slots=True)
class ConnectOptions:
    transport_kind: TransportKind = TransportKind.RFCOMM
    line_delimiter: str = "\n"
    charset: str = "utf-8"
    baudrate: int = 9600


@runtime_checkable
class PeripheralLink(Protocol):
    """A channel to one peripheral.

    Push-capable links call back through :meth:`on_data`; poll-only links
    expose :meth:`available` and :meth:`read`. Implementations may offer both.
    """

    peripheral: PeripheralHandle

    async def is_connected(self) -> bool: ...

    async def connect(self, options: ConnectOptions) -> bool: ...

    async def disconnect(self) -> None: ...

    def on_data(self, callback: DataCallback) -> Unsubscribe: ...

    async def available(self) -> int: ...

    async def read(self) -> bytes: ...


@runtime_checkable
class TransportAdapter(Protocol):
    async def is_available(self) -> bool: ...

    async def is_enabled(self) -> bool: ...

    async def request_enable(self) -> bool: ...

    async def list_bonded(self) -> Sequence[PeripheralHandle]: ...

    async def scan(self, timeout: float) -> Sequence[PeripheralHandle]: ...

    def link(self, peripheral: PeripheralHandle) -> PeripheralLink: ...
