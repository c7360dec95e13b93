from __future__ import annotations

from dataclasses import dataclass

from sensorlink import ConnectionState
from sensorlink.peripheral.transport import PeripheralHandle, PeripheralLink


@dataclass(slots=True)
class ConnectionSession:
    """The single live or attempted link. Only the connection manager mutates it."""

    peripheral: PeripheralHandle
    link: PeripheralLink
    generation: int
    started_at: float
    deadline: float
    state: ConnectionState = ConnectionState.CONNECTING
