from __future__ import annotations

from typing import Any, Mapping

from lagom import Container, Singleton

from sensorlink.ingestion import IngestionPipeline
from sensorlink.monitor import SensorMonitor, startup_messages
from sensorlink.peripheral.connection import ConnectionManager
from sensorlink.peripheral.discovery import DiscoveryResolver
from sensorlink.peripheral.transport import TransportAdapter
from sensorlink.state import ActivityLog, ReadingStore
from sensorlink.utilities.env import Configuration
from sensorlink.utilities.logging import get_logger

logger = get_logger(__name__)

RuntimeContainer = Container


def _build_transport_adapter(simulate: bool) -> TransportAdapter:
    if simulate:
        from sensorlink.peripheral.simulated import SimulatedTransportAdapter

        logger.info("Using the simulated transport adapter.")
        return SimulatedTransportAdapter()

    from sensorlink.peripheral.serial_transport import SerialTransportAdapter

    return SerialTransportAdapter()


def _build_reading_store() -> ReadingStore:
    return ReadingStore()


def _build_activity_log(_: RuntimeContainer) -> ActivityLog:
    return ActivityLog(
        capacity=Configuration.activity_log_capacity(),
        initial=startup_messages(
            Configuration.device_name(), Configuration.pairing_pin()
        ),
    )


def _build_ingestion_pipeline(resolver: RuntimeContainer) -> IngestionPipeline:
    return IngestionPipeline(resolver[ReadingStore], resolver[ActivityLog])


def _build_discovery_resolver(resolver: RuntimeContainer) -> DiscoveryResolver:
    return DiscoveryResolver(resolver[TransportAdapter], resolver[ActivityLog])


def _build_connection_manager(resolver: RuntimeContainer) -> ConnectionManager:
    return ConnectionManager(
        resolver[TransportAdapter],
        resolver[IngestionPipeline],
        resolver[ActivityLog],
    )


def _build_sensor_monitor(resolver: RuntimeContainer) -> SensorMonitor:
    return SensorMonitor(
        resolver=resolver[DiscoveryResolver],
        manager=resolver[ConnectionManager],
        pipeline=resolver[IngestionPipeline],
        activity_log=resolver[ActivityLog],
    )


def build_container(
    overrides: Mapping[type[Any], object] | None = None,
    *,
    simulate: bool | None = None,
) -> RuntimeContainer:
    container = RuntimeContainer()
    configure_container(container=container, overrides=overrides, simulate=simulate)
    logger.debug("Created Lagom container for sensorlink.")
    return container


def configure_container(
    *,
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None = None,
    simulate: bool | None = None,
) -> None:
    logger.debug(
        "Configuring Lagom container with overrides=%s.",
        set(overrides.keys()) if overrides else set(),
    )
    use_simulation = Configuration.simulate() if simulate is None else simulate
    _bind(
        container,
        overrides,
        TransportAdapter,
        Singleton(lambda: _build_transport_adapter(use_simulation)),
    )
    _configure_state_bindings(container, overrides)
    _configure_link_bindings(container, overrides)


def _bind(
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None,
    key: type[Any],
    value: object,
) -> None:
    if overrides and key in overrides:
        container[key] = overrides[key]
        logger.debug("Applied Lagom override for %s.", key)
        return
    if key in container.defined_types:
        logger.debug("Lagom already defined %s; skipping registration.", key)
        return
    container[key] = value
    logger.debug("Registered Lagom provider for %s.", key)


def _configure_state_bindings(
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None,
) -> None:
    _bind(container, overrides, ReadingStore, Singleton(_build_reading_store))
    _bind(container, overrides, ActivityLog, Singleton(_build_activity_log))
    _bind(
        container,
        overrides,
        IngestionPipeline,
        Singleton(_build_ingestion_pipeline),
    )


def _configure_link_bindings(
    container: RuntimeContainer,
    overrides: Mapping[type[Any], object] | None,
) -> None:
    _bind(
        container,
        overrides,
        DiscoveryResolver,
        Singleton(_build_discovery_resolver),
    )
    _bind(
        container,
        overrides,
        ConnectionManager,
        Singleton(_build_connection_manager),
    )
    _bind(container, overrides, SensorMonitor, Singleton(_build_sensor_monitor))
