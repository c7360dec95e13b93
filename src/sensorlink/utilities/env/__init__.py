"""Environment configuration helpers."""

from sensorlink.utilities.env.config import Configuration as Configuration
from sensorlink.utilities.env.enums import BufferStrategy as BufferStrategy
from sensorlink.utilities.env.enums import DeliveryMode as DeliveryMode
from sensorlink.utilities.env.ports import \
    iter_bluetooth_ports as iter_bluetooth_ports
