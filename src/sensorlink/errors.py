"""Error kinds raised or reported by the link and ingestion layers."""

from __future__ import annotations


class SensorLinkError(Exception):
    """Base class for every error surfaced by sensorlink."""


class AdapterUnavailable(SensorLinkError):
    def __init__(self) -> None:
        super().__init__("Bluetooth is not available on this device")


class AdapterDisabled(SensorLinkError):
    def __init__(self) -> None:
        super().__init__("Bluetooth is disabled; enable it to continue")


class PermissionDenied(SensorLinkError):
    def __init__(self, detail: str = "") -> None:
        message = "Bluetooth permission denied"
        super().__init__(f"{message}: {detail}" if detail else message)


class NoPeripheralFound(SensorLinkError):
    def __init__(self, device_name: str) -> None:
        self.device_name = device_name
        super().__init__(f"No peripheral matching {device_name!r} was found")


class ConnectTimeout(SensorLinkError):
    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Connection attempt timed out after {timeout:g}s")


class ConnectFailed(SensorLinkError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class LinkLost(SensorLinkError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Link to {address} lost")


class DecodeError(SensorLinkError):
    """Raised by the decoder for a line that cannot be parsed at all."""

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"{reason}: {line!r}")
