from sensorlink.state.activity_log import ActivityLog, LogEntry
from sensorlink.state.reading import Acceleration, PartialReading, SensorReading
from sensorlink.state.reading_store import ReadingStore

__all__ = [
    "Acceleration",
    "ActivityLog",
    "LogEntry",
    "PartialReading",
    "ReadingStore",
    "SensorReading",
]
