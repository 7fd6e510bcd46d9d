"""Configuration models for the field data normalizer."""

from .models import (
    PipelineConfig,
    PipelineInfo,
    LoggingSettings,
    MetadataSettings,
    HackeSettings,
    ShapeSettings,
    ReprojectionSettings,
)

__all__ = [
    "PipelineConfig",
    "PipelineInfo",
    "LoggingSettings",
    "MetadataSettings",
    "HackeSettings",
    "ShapeSettings",
    "ReprojectionSettings",
]
