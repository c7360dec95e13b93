from sensorlink.ingestion.decoder import LineForm, decode_line
from sensorlink.ingestion.line_buffer import LineBuffer, OverlongLine
from sensorlink.ingestion.pipeline import IngestionPipeline

__all__ = ["IngestionPipeline", "LineBuffer", "LineForm", "OverlongLine", "decode_line"]
