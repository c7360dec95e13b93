from enum import StrEnum


class BufferStrategy(StrEnum):
    BYTES = "bytes"
    TEXT = "text"


class DeliveryMode(StrEnum):
    PUSH = "push"
    POLL = "poll"
