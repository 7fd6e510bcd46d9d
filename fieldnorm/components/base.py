"""
Abstract base classes for pipeline components.

These define the interfaces that all format decoders must implement, so the
pipeline driver can dispatch on the caller's format choice and tests can swap
components through dependency injection.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Dict, Iterator, List, Optional, Sequence, TextIO

from pydantic import ValidationError

from fieldnorm.config import PipelineConfig
from fieldnorm.models import InputFormat, Sample, TimeLog, ValueInfo, new_timelog
from fieldnorm.utils import MalformedInputError


class PipelineComponent(ABC):
    """Base class for all pipeline components."""

    def __init__(self, config: PipelineConfig):
        """Initialize component with pipeline configuration."""
        self.config = config

    def random_uri(self) -> str:
        """Fresh resource identity under the configured prefix."""
        return f"{self.config.metadata.uri_prefix}{uuid.uuid4()}"

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """Execute the component's main functionality."""
        pass


class DecoderComponent(PipelineComponent):
    """Abstract base for format decoders."""

    #: Format this decoder handles
    input_format: InputFormat

    #: Short identifier used for the metadata vocabulary
    format_name: str

    @abstractmethod
    def test(self, stream: BinaryIO, errors: Optional[TextIO] = None) -> bool:
        """
        Cheap feasibility check.

        Args:
            stream: Input stream to probe
            errors: Optional text stream receiving the reason for a negative answer

        Returns:
            True if this decoder is likely able to decode the stream
        """
        pass


@dataclass
class DecodedTimeLog:
    """Records of one decoded time-log input, in original stream order."""
    records: Sequence[Any]
    start: datetime
    end: datetime

    @property
    def count(self) -> int:
        return len(self.records)


class TimeLogDecoder(DecoderComponent):
    """
    Abstract base for decoders producing time-indexed samples.

    Subclasses implement the structural parse (``read_records``), timestamp
    access, channel layout and record-to-sample mapping; this base derives the
    batch time range and the channel descriptors from them.
    """

    #: Label of the TimeLog built for each decoded input
    timelog_name: str

    #: Whether metadata resources also carry an rdfs:label
    labelled_metadata: bool = False

    @abstractmethod
    def read_records(self, stream: BinaryIO) -> Sequence[Any]:
        """
        Structurally parse the stream into records.

        Raises:
            MalformedInputError: If the stream cannot be parsed
        """
        pass

    @abstractmethod
    def record_time(self, record: Any) -> Optional[datetime]:
        """Timestamp of a record, or None if it has none."""
        pass

    @abstractmethod
    def to_sample(self, record: Any) -> Optional[Sample]:
        """Sample for a record, or None if it lacks time or position."""
        pass

    @abstractmethod
    def describe_channels(self, timelog: TimeLog) -> List[ValueInfo]:
        """Channel descriptors attached to ``timelog``, in sample value order."""
        pass

    def channel_types(self, channels: Sequence[ValueInfo]) -> Dict[str, str]:
        """Metadata type name per channel URI; channels not listed are plain ``info``."""
        return {}

    def timelog_uri(self) -> str:
        """Identity of the TimeLog; random unless a format fixes it."""
        return self.random_uri()

    def execute(self, stream: BinaryIO) -> DecodedTimeLog:
        """
        Decode the stream and determine the batch time range.

        The range spans the first and last timestamped records in stream
        order; records are never sorted.

        Raises:
            MalformedInputError: If parsing fails or no record carries a timestamp
        """
        records = self.read_records(stream)
        if not records:
            raise MalformedInputError(f"{self.timelog_name} input contains no records")

        times = [t for t in map(self.record_time, records) if t is not None]
        if not times:
            raise MalformedInputError(f"{self.timelog_name} input contains no timestamped records")

        return DecodedTimeLog(records=records, start=times[0], end=times[-1])

    def build_timelog(self, decoded: DecodedTimeLog) -> TimeLog:
        """
        Batch descriptor for a decoded input.

        Raises:
            MalformedInputError: If the last timestamp precedes the first one
        """
        try:
            return new_timelog(self.timelog_uri(), self.timelog_name, decoded.start, decoded.end, decoded.count)
        except ValidationError as e:
            raise MalformedInputError(f"Invalid {self.timelog_name} time range: {e}") from e

    def samples(self, decoded: DecodedTimeLog) -> Iterator[Optional[Sample]]:
        """Lazily map records to samples; None marks a skipped record."""
        for record in decoded.records:
            yield self.to_sample(record)
