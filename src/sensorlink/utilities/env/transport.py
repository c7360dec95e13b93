from sensorlink.utilities.env.parsing import _env_csv, _env_flag, _env_int

DEFAULT_PORT_HINTS = ("rfcomm", "HC-0", "Bluetooth")


class SerialConfiguration:
    @classmethod
    def baudrate(cls) -> int:
        # HC-06 modules ship configured for 9600 baud.
        return _env_int("SENSORLINK_BAUDRATE", default=9600, minimum=300)

    @classmethod
    def port_hints(cls) -> tuple[str, ...]:
        return _env_csv("SENSORLINK_PORT_HINTS", default=DEFAULT_PORT_HINTS)

    @classmethod
    def simulate(cls) -> bool:
        return _env_flag("SENSORLINK_SIMULATE")

    @classmethod
    def simulation_interval_ms(cls) -> int:
        return _env_int("SENSORLINK_SIMULATION_INTERVAL_MS", default=1000, minimum=10)
