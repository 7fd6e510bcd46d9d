"""Utility modules for the field data normalizer."""

from .logging import setup_logging, get_logger
from .exceptions import (
    PipelineError,
    DecodeError,
    MalformedInputError,
    NoGeometryFoundError,
    TransformUnavailableError,
    OutputError,
    ConfigurationError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "PipelineError",
    "DecodeError",
    "MalformedInputError",
    "NoGeometryFoundError",
    "TransformUnavailableError",
    "OutputError",
    "ConfigurationError",
]
