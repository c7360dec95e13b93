from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

import reactivex
from reactivex.subject import Subject
from reactivex.subject.behaviorsubject import BehaviorSubject

from sensorlink import ConnectionState
from sensorlink.errors import ConnectFailed, ConnectTimeout
from sensorlink.errors import LinkLost as LinkLostError
from sensorlink.errors import SensorLinkError
from sensorlink.ingestion import IngestionPipeline
from sensorlink.peripheral.events import (ChunkReceived, ConnectErrored,
                                          ConnectionEvent, ConnectRequested,
                                          ConnectSucceeded, DeadlineExpired,
                                          DisconnectRequested, LinkLost,
                                          PollTick, Shutdown)
from sensorlink.peripheral.session import ConnectionSession
from sensorlink.peripheral.transport import (ConnectOptions, PeripheralHandle,
                                             PeripheralLink, TransportAdapter,
                                             Unsubscribe)
from sensorlink.state import ActivityLog
from sensorlink.utilities.env import Configuration, DeliveryMode
from sensorlink.utilities.logging import get_logger

logger = get_logger(__name__)


def _resolve(reply: asyncio.Future[Any] | None, value: Any) -> None:
    if reply is not None and not reply.done():
        reply.set_result(value)


def default_connect_options() -> ConnectOptions:
    return ConnectOptions(
        charset=Configuration.charset(),
        baudrate=Configuration.baudrate(),
    )


class ConnectionManager:
    """Own the single connection session and every timer attached to it.

    Events are processed one at a time by :meth:`run`. User commands, the
    connect deadline, poll ticks and data chunks all arrive as events, so no
    two transitions ever interleave. Anything scheduled for a session carries
    that session's generation and is dropped once a newer session exists or
    the current state no longer permits it.
    """

    def __init__(
        self,
        adapter: TransportAdapter,
        pipeline: IngestionPipeline,
        activity_log: ActivityLog,
        *,
        connect_timeout: float | None = None,
        poll_interval: float | None = None,
        delivery_mode: DeliveryMode | None = None,
        options: ConnectOptions | None = None,
        pairing_pin: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._adapter = adapter
        self._pipeline = pipeline
        self._activity_log = activity_log
        self._connect_timeout = (
            Configuration.connect_timeout_seconds()
            if connect_timeout is None
            else connect_timeout
        )
        self._poll_interval = (
            Configuration.poll_interval_ms() / 1000
            if poll_interval is None
            else poll_interval
        )
        self._delivery_mode = delivery_mode or Configuration.delivery_mode()
        self._options = options or default_connect_options()
        self._pairing_pin = pairing_pin or Configuration.pairing_pin()
        self._clock = clock

        self._queue: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
        self._state = ConnectionState.IDLE
        self._state_subject: BehaviorSubject[ConnectionState] = BehaviorSubject(
            ConnectionState.IDLE
        )
        self._errors: Subject[SensorLinkError] = Subject()
        self._last_error: SensorLinkError | None = None
        self._running = False
        self._closed = False

        self._session: ConnectionSession | None = None
        self._generation = 0
        self._deadline_handle: asyncio.TimerHandle | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._ticker_task: asyncio.Task[None] | None = None
        self._tick_pending = False
        self._read_on_tick = self._delivery_mode is DeliveryMode.POLL
        self._unsubscribe: Unsubscribe | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> ConnectionSession | None:
        return self._session

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def delivery_mode(self) -> DeliveryMode:
        return self._delivery_mode

    @property
    def last_error(self) -> SensorLinkError | None:
        return self._last_error

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def observe_state(self) -> reactivex.Observable[ConnectionState]:
        return self._state_subject

    @property
    def errors(self) -> reactivex.Observable[SensorLinkError]:
        return self._errors

    # ---------- Commands ----------

    def submit(self, event: ConnectionEvent) -> None:
        self._queue.put_nowait(event)

    async def connect(self, peripheral: PeripheralHandle) -> bool:
        """Request a connection; returns whether the request was accepted."""

        if not self._running:
            return await self._on_connect_requested(peripheral)
        reply: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self.submit(ConnectRequested(peripheral, reply=reply))
        return await reply

    async def disconnect(self) -> ConnectionState:
        """Tear down whatever is active. Safe to call repeatedly; never raises."""

        if not self._running:
            await self._on_disconnect_requested()
            return self._state
        reply: asyncio.Future[ConnectionState] = asyncio.get_running_loop().create_future()
        self.submit(DisconnectRequested(reply=reply))
        return await reply

    async def shutdown(self) -> None:
        if not self._running:
            await self._shutdown()
            return
        reply: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self.submit(Shutdown(reply=reply))
        await reply

    async def wait_for_state(
        self, *states: ConnectionState, timeout: float | None = None
    ) -> ConnectionState:
        if self._state in states:
            return self._state
        reached: asyncio.Future[ConnectionState] = asyncio.get_running_loop().create_future()

        def on_state(state: ConnectionState) -> None:
            if state in states and not reached.done():
                reached.set_result(state)

        subscription = self._state_subject.subscribe(on_next=on_state)
        try:
            return await asyncio.wait_for(reached, timeout)
        finally:
            subscription.dispose()

    # ---------- Event loop ----------

    async def run(self) -> None:
        """Process events until :class:`Shutdown` arrives."""

        if self._running:
            raise RuntimeError("ConnectionManager is already running")
        self._running = True
        try:
            while True:
                event = await self._queue.get()
                try:
                    await self.handle(event)
                except Exception as exc:
                    logger.exception("Failed to process %s", type(event).__name__)
                    reply = getattr(event, "reply", None)
                    if reply is not None and not reply.done():
                        reply.set_exception(exc)
                if isinstance(event, Shutdown):
                    return
        finally:
            self._running = False
            self._cancel_queued_replies()

    async def process_pending(self) -> int:
        """Handle every event already queued, without waiting for new ones."""

        handled = 0
        while not self._queue.empty():
            await self.handle(self._queue.get_nowait())
            handled += 1
        return handled

    async def handle(self, event: ConnectionEvent) -> None:
        match event:
            case ConnectRequested(peripheral=peripheral, reply=reply):
                _resolve(reply, await self._on_connect_requested(peripheral))
            case DisconnectRequested(reply=reply):
                await self._on_disconnect_requested()
                _resolve(reply, self._state)
            case ConnectSucceeded():
                await self._on_connect_succeeded(event)
            case ConnectErrored():
                await self._on_connect_errored(event)
            case DeadlineExpired():
                await self._on_deadline_expired(event)
            case ChunkReceived():
                self._on_chunk_received(event)
            case PollTick():
                await self._on_poll_tick(event)
            case LinkLost():
                await self._on_link_lost(event)
            case Shutdown(reply=reply):
                await self._shutdown()
                _resolve(reply, None)

    # ---------- Handlers ----------

    async def _on_connect_requested(self, peripheral: PeripheralHandle) -> bool:
        if self._closed:
            logger.warning("Ignoring connect to %s after shutdown", peripheral)
            return False
        if not self._state.is_terminal:
            logger.info("Ignoring connect to %s while %s", peripheral, self._state)
            return False

        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        self._last_error = None
        self._activity_log.append(f"Attempting to connect to {peripheral.name}")

        try:
            link = self._adapter.link(peripheral)
        except Exception as exc:
            self._set_state(ConnectionState.CONNECTING)
            self._fail(ConnectFailed(str(exc) or type(exc).__name__), peripheral)
            return True

        now = self._clock()
        self._session = ConnectionSession(
            peripheral=peripheral,
            link=link,
            generation=generation,
            started_at=now,
            deadline=now + self._connect_timeout,
        )
        self._set_state(ConnectionState.CONNECTING)
        self._deadline_handle = loop.call_later(
            self._connect_timeout, self.submit, DeadlineExpired(generation)
        )
        self._connect_task = loop.create_task(
            self._establish(link, generation),
            name=f"connect-{peripheral.address}-{generation}",
        )
        return True

    async def _establish(self, link: PeripheralLink, generation: int) -> None:
        name = link.peripheral.name
        try:
            if await link.is_connected():
                logger.info("%s already connected; skipping connect call", link.peripheral)
            elif not await link.connect(self._options):
                raise ConnectFailed(f"{name} refused the connection")
            if not await link.is_connected():
                raise ConnectFailed(f"{name} did not respond after connecting")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.submit(ConnectErrored(generation, str(exc) or type(exc).__name__))
            return
        self.submit(ConnectSucceeded(generation, link))

    async def _on_connect_succeeded(self, event: ConnectSucceeded) -> None:
        if not self._is_current(event.generation, ConnectionState.CONNECTING):
            logger.info("Discarding late connect success for attempt %s", event.generation)
            if self._session is None or self._session.link is not event.link:
                await self._safe_disconnect(event.link)
            return

        session = self._session
        assert session is not None
        self._cancel_deadline()
        self._connect_task = None
        self._set_state(ConnectionState.CONNECTED)
        self._pipeline.reset()
        self._activity_log.append(f"✓ Connected to {session.peripheral.name}")
        self._activity_log.append("Receiving sensor data...")
        self._start_ingestion(session)

    async def _on_connect_errored(self, event: ConnectErrored) -> None:
        if not self._is_current(event.generation, ConnectionState.CONNECTING):
            logger.info(
                "Ignoring late connect failure for attempt %s: %s",
                event.generation,
                event.reason,
            )
            return
        peripheral = self._current_peripheral()
        await self._teardown()
        self._fail(ConnectFailed(event.reason), peripheral)

    async def _on_deadline_expired(self, event: DeadlineExpired) -> None:
        if not self._is_current(event.generation, ConnectionState.CONNECTING):
            logger.debug("Deadline for attempt %s no longer applies", event.generation)
            return
        self._deadline_handle = None
        peripheral = self._current_peripheral()
        await self._teardown()
        self._fail(ConnectTimeout(self._connect_timeout), peripheral)

    def _on_chunk_received(self, event: ChunkReceived) -> None:
        if self._is_current(event.generation, ConnectionState.CONNECTED):
            self._pipeline.feed(event.data)

    async def _on_poll_tick(self, event: PollTick) -> None:
        self._tick_pending = False
        if not self._is_current(event.generation, ConnectionState.CONNECTED):
            return
        session = self._session
        assert session is not None
        alive = await self._pipeline.poll(session.link, read=self._read_on_tick)
        if not alive:
            await self._on_link_lost(LinkLost(event.generation))

    async def _on_link_lost(self, event: LinkLost) -> None:
        if not self._is_current(event.generation, ConnectionState.CONNECTED):
            return
        peripheral = self._current_peripheral()
        if peripheral is not None:
            logger.info("%s", LinkLostError(peripheral.address))
        await self._teardown()
        self._set_state(ConnectionState.IDLE)
        if peripheral is not None:
            self._activity_log.append(f"Connection to {peripheral.name} lost")

    async def _on_disconnect_requested(self) -> None:
        peripheral = self._current_peripheral()
        await self._teardown()
        self._set_state(ConnectionState.IDLE)
        if peripheral is not None:
            self._activity_log.append(f"Disconnected from {peripheral.name}")

    async def _shutdown(self) -> None:
        await self._on_disconnect_requested()
        self._closed = True

    # ---------- Helpers ----------

    def _start_ingestion(self, session: ConnectionSession) -> None:
        generation = session.generation
        if self._delivery_mode is DeliveryMode.PUSH:
            try:
                self._unsubscribe = session.link.on_data(
                    lambda data: self.submit(ChunkReceived(generation, bytes(data)))
                )
                self._read_on_tick = False
            except Exception:
                logger.warning(
                    "%s does not support push delivery; polling instead",
                    session.peripheral,
                    exc_info=True,
                )
                self._read_on_tick = True
        else:
            self._read_on_tick = True

        self._ticker_task = asyncio.get_running_loop().create_task(
            self._tick(generation), name=f"poll-{session.peripheral.address}-{generation}"
        )

    async def _tick(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            if not self._tick_pending:
                self._tick_pending = True
                self.submit(PollTick(generation))

    async def _teardown(self) -> None:
        """Release the session's timer, ticker, subscription, connect task and link."""

        self._cancel_deadline()
        if self._ticker_task is not None:
            self._ticker_task.cancel()
            self._ticker_task = None
        self._tick_pending = False

        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            try:
                unsubscribe()
            except Exception:
                logger.warning("Failed to remove data subscription", exc_info=True)

        if self._connect_task is not None:
            task, self._connect_task = self._connect_task, None
            if not task.done():
                task.cancel()

        self._pipeline.discard_partial()

        session, self._session = self._session, None
        if session is not None:
            await self._safe_disconnect(session.link)

    async def _safe_disconnect(self, link: PeripheralLink) -> None:
        try:
            await link.disconnect()
        except Exception:
            logger.warning("Ignoring error while disconnecting %s", link.peripheral, exc_info=True)

    def _cancel_deadline(self) -> None:
        if self._deadline_handle is not None:
            self._deadline_handle.cancel()
            self._deadline_handle = None

    def _fail(self, error: SensorLinkError, peripheral: PeripheralHandle | None) -> None:
        self._last_error = error
        self._set_state(ConnectionState.FAILED)
        name = peripheral.name if peripheral is not None else "peripheral"
        logger.warning("Connection to %s failed: %s", name, error)
        self._activity_log.append(f"✗ Connection failed: {error}")
        self._activity_log.append(
            f"Check: 1. {name} is powered 2. Device is paired 3. PIN: {self._pairing_pin}"
        )
        self._errors.on_next(error)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.info("Connection state %s -> %s", self._state, state)
        self._state = state
        if self._session is not None:
            self._session.state = state
        self._state_subject.on_next(state)

    def _is_current(self, generation: int, state: ConnectionState) -> bool:
        return (
            self._session is not None
            and generation == self._generation
            and self._state is state
        )

    def _current_peripheral(self) -> PeripheralHandle | None:
        return self._session.peripheral if self._session is not None else None

    def _cancel_queued_replies(self) -> None:
        while not self._queue.empty():
            reply = getattr(self._queue.get_nowait(), "reply", None)
            if reply is not None and not reply.done():
                reply.cancel()
