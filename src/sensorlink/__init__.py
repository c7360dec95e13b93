from enum import StrEnum


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ConnectionState.IDLE, ConnectionState.FAILED)
