from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

import serial.tools.list_ports

RFCOMM_DEVICE_DIR = Path("/dev")
RFCOMM_GLOB = "rfcomm*"


@dataclass(frozen=True, slots=True)
class SerialPortInfo:
    device: str
    name: str
    description: str
    hwid: str = ""


def iter_bluetooth_ports(hints: Iterable[str]) -> Iterator[SerialPortInfo]:
    """Yield serial ports bound to Bluetooth SPP devices, matched by ``hints``."""

    lowered = tuple(hint.lower() for hint in hints if hint)
    seen: set[str] = set()
    for port in serial.tools.list_ports.comports():
        info = SerialPortInfo(
            device=port.device,
            name=Path(port.device).name,
            description=getattr(port, "description", "") or "",
            hwid=getattr(port, "hwid", "") or "",
        )
        if _matches(info, lowered):
            seen.add(info.device)
            yield info

    # Bound rfcomm nodes are not always reported by list_ports
    for entry in _iter_rfcomm_nodes(RFCOMM_DEVICE_DIR):
        if str(entry) not in seen:
            yield SerialPortInfo(device=str(entry), name=entry.name, description=entry.name)


def _matches(info: SerialPortInfo, lowered_hints: tuple[str, ...]) -> bool:
    haystack = f"{info.name} {info.description} {info.hwid}".lower()
    return any(hint in haystack for hint in lowered_hints)


def _iter_rfcomm_nodes(base: Path) -> Iterator[Path]:
    try:
        yield from sorted(base.glob(RFCOMM_GLOB))
    except (FileNotFoundError, PermissionError):
        return
