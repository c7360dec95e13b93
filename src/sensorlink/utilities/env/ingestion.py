import os

from sensorlink.utilities.env.enums import BufferStrategy, DeliveryMode
from sensorlink.utilities.env.parsing import _env_int, _env_str


class IngestionConfiguration:
    @classmethod
    def delivery_mode(cls) -> DeliveryMode:
        mode = os.environ.get("SENSORLINK_DELIVERY_MODE", "poll").strip().lower()
        try:
            return DeliveryMode(mode)
        except ValueError as exc:
            raise ValueError(
                "SENSORLINK_DELIVERY_MODE must be 'push' or 'poll'"
            ) from exc

    @classmethod
    def buffer_strategy(cls) -> BufferStrategy:
        strategy = os.environ.get("SENSORLINK_BUFFER_STRATEGY", "bytes").strip().lower()
        try:
            return BufferStrategy(strategy)
        except ValueError as exc:
            raise ValueError(
                "SENSORLINK_BUFFER_STRATEGY must be 'bytes' or 'text'"
            ) from exc

    @classmethod
    def poll_interval_ms(cls) -> int:
        return _env_int("SENSORLINK_POLL_INTERVAL_MS", default=500, minimum=10)

    @classmethod
    def max_line_bytes(cls) -> int:
        return _env_int("SENSORLINK_MAX_LINE_BYTES", default=1024, minimum=16)

    @classmethod
    def charset(cls) -> str:
        return _env_str("SENSORLINK_CHARSET", default="utf-8")

    @classmethod
    def activity_log_capacity(cls) -> int:
        return _env_int("SENSORLINK_ACTIVITY_LOG_CAPACITY", default=50, minimum=1)
