"""Closed set of events processed by the connection manager's actor loop.

Events raised by timers and adapter callbacks carry the session generation
they were created for, so the manager can drop anything that belongs to a
session that has already moved on.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from sensorlink import ConnectionState
from sensorlink.peripheral.transport import PeripheralHandle, PeripheralLink


@dataclass(frozen=True, slots=True)
class ConnectRequested:
    peripheral: PeripheralHandle
    reply: asyncio.Future[bool] | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class DisconnectRequested:
    reply: asyncio.Future[ConnectionState] | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class ConnectSucceeded:
    generation: int
    link: PeripheralLink = field(compare=False)


@dataclass(frozen=True, slots=True)
class ConnectErrored:
    generation: int
    reason: str


@dataclass(frozen=True, slots=True)
class DeadlineExpired:
    generation: int


@dataclass(frozen=True, slots=True)
class ChunkReceived:
    generation: int
    data: bytes


@dataclass(frozen=True, slots=True)
class PollTick:
    generation: int


@dataclass(frozen=True, slots=True)
class LinkLost:
    generation: int


@dataclass(frozen=True, slots=True)
class Shutdown:
    reply: asyncio.Future[None] | None = field(default=None, compare=False)


ConnectionEvent = (
    ConnectRequested
    | DisconnectRequested
    | ConnectSucceeded
    | ConnectErrored
    | DeadlineExpired
    | ChunkReceived
    | PollTick
    | LinkLost
    | Shutdown
)
