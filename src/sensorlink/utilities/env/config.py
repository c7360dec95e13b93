from sensorlink.utilities.env.ingestion import IngestionConfiguration
from sensorlink.utilities.env.link import LinkConfiguration
from sensorlink.utilities.env.transport import SerialConfiguration


class Configuration(
    LinkConfiguration,
    IngestionConfiguration,
    SerialConfiguration,
):
    """Aggregate environment configuration helpers."""
