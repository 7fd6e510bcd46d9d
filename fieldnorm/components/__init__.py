"""Pipeline components for field data normalization."""

from .base import (
    PipelineComponent,
    DecoderComponent,
    TimeLogDecoder,
    DecodedTimeLog
)

from .quantization import quantize, dequantize
from .gps import GpsListDecoder
from .delimited import HackeLogDecoder, Column, HACKE_SCHEMA, read_delimited
from .shape import ShapeArchive, ShapeDecoder, DecodedShape
from .reprojection import CrsReprojector, ReprojectionResult, ReprojectionState, feature_to_geojson
from .metadata import MetadataBuilder, Vocabulary, camel_case
from .envelope import ParserOutput, TimeLogWriter, GeoWriter, TimeLogSink

__all__ = [
    "PipelineComponent",
    "DecoderComponent",
    "TimeLogDecoder",
    "DecodedTimeLog",
    "quantize",
    "dequantize",
    "GpsListDecoder",
    "HackeLogDecoder",
    "Column",
    "HACKE_SCHEMA",
    "read_delimited",
    "ShapeArchive",
    "ShapeDecoder",
    "DecodedShape",
    "CrsReprojector",
    "ReprojectionResult",
    "ReprojectionState",
    "feature_to_geojson",
    "MetadataBuilder",
    "Vocabulary",
    "camel_case",
    "ParserOutput",
    "TimeLogWriter",
    "GeoWriter",
    "TimeLogSink"
]
