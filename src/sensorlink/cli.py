"""Command line interface for scanning, monitoring and decoding sensor lines."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from lagom import Singleton

from sensorlink import ConnectionState
from sensorlink.errors import DecodeError, SensorLinkError
from sensorlink.ingestion import IngestionPipeline, decode_line
from sensorlink.monitor import SensorMonitor
from sensorlink.peripheral.connection import ConnectionManager
from sensorlink.peripheral.discovery import DiscoveryResolver
from sensorlink.peripheral.transport import TransportAdapter
from sensorlink.runtime import RuntimeContainer, build_container
from sensorlink.state import ActivityLog, LogEntry, SensorReading
from sensorlink.utilities.env import DeliveryMode
from sensorlink.utilities.logging import get_logger

logger = get_logger(__name__)

app = typer.Typer(help="HC-06 serial health sensor tools.")


def format_reading(reading: SensorReading) -> str:
    accel = reading.acceleration
    parts = [
        f"HR {reading.heart_rate} bpm",
        f"TEMP {reading.temperature:.1f} C",
        f"ECG {reading.ecg}",
        f"SpO2 {reading.spo2}%",
        f"ACC ({accel.x:.2f}, {accel.y:.2f}, {accel.z:.2f})",
        f"STEPS {reading.steps}",
        f"STATUS {reading.status}",
    ]
    if reading.acceleration_magnitude is not None:
        parts.insert(5, f"|ACC| {reading.acceleration_magnitude:.2f}")
    return " | ".join(parts)


def _monitor_container(simulate: bool, mode: DeliveryMode | None) -> RuntimeContainer:
    overrides: dict[type, object] = {}
    if mode is not None:

        def _build_manager(resolver: RuntimeContainer) -> ConnectionManager:
            return ConnectionManager(
                resolver[TransportAdapter],
                resolver[IngestionPipeline],
                resolver[ActivityLog],
                delivery_mode=mode,
            )

        overrides[ConnectionManager] = Singleton(_build_manager)
    return build_container(overrides, simulate=simulate or None)


@app.command(name="scan")
def scan(
    simulate: bool = typer.Option(False, help="Use the simulated adapter."),
    scan_only: bool = typer.Option(
        False, "--scan-only", help="Skip paired devices and scan straight away."
    ),
) -> None:
    """Find the configured sensor, preferring paired devices."""

    resolver = build_container(simulate=simulate or None)[DiscoveryResolver]
    try:
        result = asyncio.run(resolver.resolve(prefer_bonded=not scan_only))
    except SensorLinkError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    typer.echo(f"{result.peripheral} (via {result.source})")
    if result.requires_pairing:
        typer.secho(
            "Device is not paired. Pair it in system Bluetooth settings first.",
            fg=typer.colors.YELLOW,
        )


@app.command(name="monitor")
def monitor(
    simulate: bool = typer.Option(False, help="Use the simulated adapter."),
    mode: Optional[DeliveryMode] = typer.Option(
        None, help="Data delivery model; defaults to SENSORLINK_DELIVERY_MODE."
    ),
    duration: Optional[float] = typer.Option(
        None, min=0.0, help="Stop after this many seconds instead of running forever."
    ),
) -> None:
    """Connect to the sensor and print readings as they arrive."""

    sensor = _monitor_container(simulate, mode)[SensorMonitor]
    try:
        final_state = asyncio.run(_run_monitor(sensor, duration))
    except KeyboardInterrupt:
        typer.echo("Interrupted.")
        return
    except SensorLinkError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Received {sensor.records_received} record(s).")
    if final_state is ConnectionState.FAILED:
        raise typer.Exit(code=1)


async def _run_monitor(
    sensor: SensorMonitor, duration: float | None
) -> ConnectionState:
    def on_entry(entry: LogEntry) -> None:
        typer.echo(str(entry))

    def on_reading(reading: SensorReading) -> None:
        typer.secho(format_reading(reading), fg=typer.colors.GREEN)

    for entry in reversed(sensor.log_entries):
        on_entry(entry)
    log_subscription = sensor.activity_log.observe.subscribe(on_next=on_entry)
    reading_subscription = None
    try:
        async with sensor:
            if not await sensor.connect():
                return sensor.state
            state = await sensor.wait_for_state(
                ConnectionState.CONNECTED, ConnectionState.FAILED
            )
            if state is ConnectionState.FAILED:
                return state
            reading_subscription = sensor.reading_updates.subscribe(on_next=on_reading)
            try:
                await sensor.wait_for_state(ConnectionState.IDLE, timeout=duration)
            except asyncio.TimeoutError:
                pass
            return sensor.state
    finally:
        if reading_subscription is not None:
            reading_subscription.dispose()
        log_subscription.dispose()


@app.command(name="decode")
def decode(line: str = typer.Argument(..., help="One line as sent by the sensor.")) -> None:
    """Decode a single line and print the fields it carries."""

    try:
        partial = decode_line(line)
    except DecodeError as exc:
        typer.secho(f"Decode error: {exc.reason}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    if partial is None or partial.is_empty():
        typer.echo("No known fields.")
        return
    for name, value in partial.specified().items():
        typer.echo(f"{name}: {value}")
