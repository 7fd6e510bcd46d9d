"""
Pydantic models for pipeline configuration.

These models provide type-safe parsing and validation of the YAML configuration file.
Every section carries defaults, so an empty YAML document (or no file at all)
yields a working configuration.
"""

from pathlib import Path
from typing import Literal, Optional, Union
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fieldnorm.utils.exceptions import ConfigurationError


WIKINORMIA_URI = "https://app.sdsd-projekt.de/wikinormia.html?page="


class PipelineInfo(BaseModel):
    """Basic pipeline metadata."""
    model_config = ConfigDict(extra='forbid')

    name: str = Field("field_data_normalizer", description="Pipeline name")
    version: str = Field("1.0.0", description="Pipeline version")


class LoggingSettings(BaseModel):
    """Logging output configuration."""
    model_config = ConfigDict(extra='forbid')

    level: str = Field("INFO", description="Root logging level")
    log_file: Optional[Path] = Field(None, description="Optional log file path")
    include_timestamp: bool = Field(True, description="Prefix log lines with a timestamp")

    @field_validator('level')
    @classmethod
    def check_level(cls, v: str) -> str:
        """Only accept the standard logging level names."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown logging level: {v}")
        return level


class MetadataSettings(BaseModel):
    """Identity and vocabulary settings for emitted metadata triples."""
    model_config = ConfigDict(extra='forbid')

    vocabulary_uri: str = Field(WIKINORMIA_URI, description="Namespace of metadata types and properties")
    uri_prefix: str = Field("sdsd:", description="Prefix for generated resource identities")


class HackeSettings(BaseModel):
    """Delimited sprayer log decoding parameters."""
    model_config = ConfigDict(extra='forbid')

    delimiter: str = Field(";", description="Field delimiter")
    scale: float = Field(0.0001, gt=0, description="Physical unit per tick of the coverage channels")
    number_of_decimals: int = Field(4, ge=0, description="Decimal precision of the coverage channels")
    unit: str = Field("%", description="Unit of the coverage channels")

    @field_validator('delimiter')
    @classmethod
    def check_delimiter(cls, v: str) -> str:
        """A delimiter is exactly one character."""
        if len(v) != 1:
            raise ValueError("delimiter must be a single character")
        return v


class ShapeSettings(BaseModel):
    """Zipped shapefile decoding parameters."""
    model_config = ConfigDict(extra='forbid')

    encoding: str = Field("utf-8", description="Attribute table encoding")
    source_crs: Optional[str] = Field(None, description="Schema-declared source CRS, overrides the .prj file")
    geojson_decimals: int = Field(7, ge=0, description="Coordinate precision of serialized geometry")


class ReprojectionSettings(BaseModel):
    """CRS reprojection behaviour."""
    model_config = ConfigDict(extra='forbid')

    failure_policy: Literal["fail_closed", "partial"] = Field(
        "fail_closed", description="Drop all features on any failure, or only the failing ones"
    )


class PipelineConfig(BaseModel):
    """Complete pipeline configuration model."""
    model_config = ConfigDict(extra='forbid')

    pipeline: PipelineInfo = Field(default_factory=PipelineInfo, description="Pipeline metadata")
    logging: LoggingSettings = Field(default_factory=LoggingSettings, description="Logging configuration")
    metadata: MetadataSettings = Field(default_factory=MetadataSettings, description="Metadata identity settings")
    hacke: HackeSettings = Field(default_factory=HackeSettings, description="Sprayer log settings")
    shape: ShapeSettings = Field(default_factory=ShapeSettings, description="Shapefile settings")
    reprojection: ReprojectionSettings = Field(
        default_factory=ReprojectionSettings, description="Reprojection settings"
    )

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "PipelineConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        try:
            return cls(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e
