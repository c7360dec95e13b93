from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable

from sensorlink.errors import (AdapterDisabled, AdapterUnavailable,
                               NoPeripheralFound, PermissionDenied)
from sensorlink.peripheral.transport import PeripheralHandle, TransportAdapter
from sensorlink.state import ActivityLog
from sensorlink.utilities.env import Configuration
from sensorlink.utilities.logging import get_logger

logger = get_logger(__name__)


class DiscoverySource(StrEnum):
    BONDED = "bonded"
    SCAN = "scan"


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    peripheral: PeripheralHandle
    source: DiscoverySource

    @property
    def requires_pairing(self) -> bool:
        """The device must be paired out of band before a connect can succeed."""

        return not self.peripheral.is_bonded


def first_match(
    candidates: Iterable[PeripheralHandle], device_name: str
) -> PeripheralHandle | None:
    """Return the first candidate whose name contains ``device_name`` (case-sensitive)."""

    for candidate in candidates:
        if candidate.name and device_name in candidate.name:
            return candidate
    return None


class DiscoveryResolver:
    """Find the configured peripheral, preferring devices that are already bonded."""

    def __init__(
        self,
        adapter: TransportAdapter,
        activity_log: ActivityLog,
        *,
        device_name: str | None = None,
        scan_timeout: float | None = None,
        pairing_pin: str | None = None,
    ) -> None:
        self._adapter = adapter
        self._activity_log = activity_log
        self._device_name = device_name or Configuration.device_name()
        self._scan_timeout = (
            Configuration.scan_timeout_seconds() if scan_timeout is None else scan_timeout
        )
        self._pairing_pin = pairing_pin or Configuration.pairing_pin()

    @property
    def device_name(self) -> str:
        return self._device_name

    async def ensure_adapter_ready(self) -> None:
        """Raise unless Bluetooth is present and switched on, asking once to enable it."""

        try:
            if not await self._adapter.is_available():
                self._activity_log.append("Bluetooth is not available on this device")
                raise AdapterUnavailable()
            if await self._adapter.is_enabled():
                return
            self._activity_log.append("Bluetooth is not enabled")
            if not await self._adapter.request_enable():
                self._activity_log.append("Please enable Bluetooth to continue")
                raise AdapterDisabled()
        except PermissionError as exc:
            self._activity_log.append("Bluetooth permission denied")
            raise PermissionDenied(str(exc)) from exc
        self._activity_log.append("Bluetooth enabled successfully")

    async def resolve(self, prefer_bonded: bool = True) -> DiscoveryResult:
        await self.ensure_adapter_ready()

        try:
            result = None
            if prefer_bonded:
                result = await self._search_bonded()
            if result is None:
                result = await self._search_scan()
        except PermissionError as exc:
            self._activity_log.append("Bluetooth permission denied")
            raise PermissionDenied(str(exc)) from exc

        if result is None:
            logger.info("No peripheral matching %r found", self._device_name)
            self._activity_log.append(
                f"No {self._device_name} found. Is it powered on and in range?"
            )
            raise NoPeripheralFound(self._device_name)

        if result.requires_pairing:
            logger.info("Found unbonded peripheral %s", result.peripheral)
            self._activity_log.append(
                f"Found {result.peripheral.name} but it is not paired. "
                f"Pair it in system Bluetooth settings (PIN: {self._pairing_pin})."
            )
        else:
            self._activity_log.append(f"Selected {result.peripheral}")
        return result

    async def _search_bonded(self) -> DiscoveryResult | None:
        bonded = await self._adapter.list_bonded()
        self._activity_log.append(f"Found {len(bonded)} paired device(s)")
        match = first_match(bonded, self._device_name)
        if match is None:
            return None
        return DiscoveryResult(peripheral=match, source=DiscoverySource.BONDED)

    async def _search_scan(self) -> DiscoveryResult | None:
        logger.info("Scanning for %r for up to %.1fs", self._device_name, self._scan_timeout)
        self._activity_log.append(f"Scanning for {self._device_name}...")
        discovered = await self._adapter.scan(self._scan_timeout)
        match = first_match(discovered, self._device_name)
        if match is None:
            return None
        return DiscoveryResult(peripheral=match, source=DiscoverySource.SCAN)
