from sensorlink.utilities.env.parsing import _env_float, _env_str


class LinkConfiguration:
    @classmethod
    def device_name(cls) -> str:
        return _env_str("SENSORLINK_DEVICE_NAME", default="HC-06")

    @classmethod
    def connect_timeout_seconds(cls) -> float:
        return _env_float(
            "SENSORLINK_CONNECT_TIMEOUT_SECONDS", default=10.0, minimum=0.1
        )

    @classmethod
    def scan_timeout_seconds(cls) -> float:
        return _env_float("SENSORLINK_SCAN_TIMEOUT_SECONDS", default=8.0, minimum=0.0)

    @classmethod
    def pairing_pin(cls) -> str:
        return _env_str("SENSORLINK_PAIRING_PIN", default="1234")
