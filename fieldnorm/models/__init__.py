"""Data models for the field data normalizer."""

from .channels import TimeLog, ValueInfo, format_decimal, new_timelog, new_value_info
from .data import ElementType, GeoFeature, InputFormat, ParseResult, RunState, Sample
from .validation import Validation

__all__ = [
    "TimeLog",
    "ValueInfo",
    "format_decimal",
    "new_timelog",
    "new_value_info",
    "ElementType",
    "GeoFeature",
    "InputFormat",
    "ParseResult",
    "RunState",
    "Sample",
    "Validation",
]
