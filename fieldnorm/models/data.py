"""
Data structures flowing between decoders, the reprojection engine and the writers.

Samples and features are transient: decoders produce them, writers consume
them immediately.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field
from shapely.geometry.base import BaseGeometry


class InputFormat(str, Enum):
    """Formats the pipeline can normalize; the caller picks one per run."""
    GPS = "gps"
    HACKE = "hacke"
    SHAPE = "shape"


class RunState(str, Enum):
    """Pipeline run states."""
    DECODING = "decoding"
    METADATA_EMITTED = "metadata_emitted"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


class ElementType(str, Enum):
    """Element tag attached to serialized geometry features."""
    OTHER = "Other"
    TIMELOG = "TimeLog"
    FIELD = "Field"
    TREATMENT_ZONE = "TreatmentZone"
    GUIDANCE_PATTERN = "GuidancePattern"
    FIELD_ACCESS = "FieldAccess"


@dataclass(frozen=True)
class Sample:
    """One time-log row; channel values are still physical (unquantized)."""
    time: datetime
    north: float
    east: float
    up: float
    values: Sequence[Optional[float]]


@dataclass
class GeoFeature:
    """A shapefile record: geometry plus typed attribute values."""
    feature_id: str
    geometry: BaseGeometry
    attributes: Dict[str, Any] = field(default_factory=dict)


class ParseResult(BaseModel):
    """Overall result of one parse run (the output envelope summary)."""
    input_format: InputFormat = Field(..., description="Format the run was dispatched to")
    state: RunState = Field(..., description="Final run state")
    records_decoded: int = Field(0, description="Records produced by the decoder")
    samples_written: int = Field(0, description="Samples handed to the time-log writer")
    samples_skipped: int = Field(0, description="Records lacking time or position")
    features_written: int = Field(0, description="Geometry features written")
    parse_time_ms: int = Field(0, description="Elapsed wall-clock parse time in milliseconds")
    errors: List[str] = Field(default_factory=list, description="Severity-prefixed messages")

    @property
    def success(self) -> bool:
        return self.state == RunState.DONE
