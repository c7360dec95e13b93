from sensorlink.peripheral.transport import (ConnectOptions, PeripheralHandle,
                                             PeripheralLink, TransportAdapter,
                                             TransportKind)

__all__ = [
    "ConnectOptions",
    "PeripheralHandle",
    "PeripheralLink",
    "TransportAdapter",
    "TransportKind",
]
