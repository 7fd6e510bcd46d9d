"""
Channel metadata model.

A TimeLog describes one decoded batch of samples (identity, label, time range,
record count). A ValueInfo describes one scaled value channel inside a batch.
Both mirror what the metadata store expects; neither holds sample data.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

# Characters that would break the envelope CSV layout
_FORBIDDEN = (";", "\r", "\n")


def _check_token(value: str, what: str) -> str:
    if not value:
        raise ValueError(f"No {what} specified")
    if any(c in value for c in _FORBIDDEN):
        raise ValueError(f"Invalid characters in {what}: {value!r}")
    return value


def format_decimal(value: float, max_decimals: int) -> str:
    """Fixed-point text with at most ``max_decimals`` fraction digits and no trailing zeros."""
    text = f"{value:.{max_decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


class TimeLog(BaseModel):
    """Batch descriptor created once per decoded input."""
    model_config = ConfigDict(frozen=True)

    uri: str = Field(..., description="Identity of the time log")
    name: str = Field(..., description="Human readable label")
    start: datetime = Field(..., description="Timestamp of the first record")
    end: datetime = Field(..., description="Timestamp of the last record")
    count: int = Field(..., ge=0, description="Number of decoded records")

    _channels: List["ValueInfo"] = PrivateAttr(default_factory=list)

    @field_validator('uri')
    @classmethod
    def check_uri(cls, v: str) -> str:
        return _check_token(v, "URI")

    @field_validator('name')
    @classmethod
    def check_name(cls, v: str) -> str:
        return _check_token(v, "name")

    @model_validator(mode='after')
    def check_range(self) -> "TimeLog":
        if self.start > self.end:
            raise ValueError(f"TimeLog start {self.start} is after its end {self.end}")
        return self

    @property
    def channels(self) -> List["ValueInfo"]:
        """Channels registered against this time log, in registration order."""
        return list(self._channels)

    def _register(self, info: "ValueInfo") -> None:
        if all(c.uri != info.uri for c in self._channels):
            self._channels.append(info)


class ValueInfo(BaseModel):
    """
    Scaled value channel.

    Encoded samples relate to physical values as
    ``physical = (encoded + offset) * scale``. Configuration is fluent::

        info = (ValueInfo(uri="sdsd:pdop")
                .set_designator("Position DOP")
                .set_scale(0.1)
                .set_number_of_decimals(1)
                .add_timelog(timelog))
    """
    model_config = ConfigDict(validate_assignment=True)

    uri: str = Field(..., description="Identity of the channel")
    designator: str = Field("", description="Human readable label")
    offset: int = Field(0, description="Offset added to encoded values before scaling")
    scale: float = Field(1.0, gt=0, description="Physical unit per tick")
    number_of_decimals: int = Field(0, ge=0, description="Decimal precision of physical values")
    unit: str = Field("", description="Physical unit")

    _timelogs: Dict[str, TimeLog] = PrivateAttr(default_factory=dict)

    @field_validator('uri')
    @classmethod
    def check_uri(cls, v: str) -> str:
        return _check_token(v, "valueUri")

    def set_designator(self, designator: str) -> "ValueInfo":
        self.designator = designator or ""
        return self

    def set_offset(self, offset: int) -> "ValueInfo":
        self.offset = offset
        return self

    def set_scale(self, scale: float) -> "ValueInfo":
        self.scale = scale
        return self

    def set_number_of_decimals(self, number_of_decimals: int) -> "ValueInfo":
        self.number_of_decimals = number_of_decimals
        return self

    def set_unit(self, unit: str) -> "ValueInfo":
        self.unit = unit or ""
        return self

    def add_timelog(self, timelog: TimeLog) -> "ValueInfo":
        """Attach this channel to a time log (bookkeeping on both sides)."""
        self._timelogs[timelog.uri] = timelog
        timelog._register(self)
        return self

    @property
    def timelogs(self) -> List[TimeLog]:
        return list(self._timelogs.values())

    def translate_value(self, encoded: int) -> float:
        """Physical value of an encoded sample."""
        return float((Decimal(encoded) + Decimal(self.offset)) * Decimal(repr(self.scale)))

    def format_value(self, value: float) -> str:
        """Format a physical value with at most ``number_of_decimals`` fraction digits."""
        return format_decimal(value, self.number_of_decimals)


def new_timelog(uri: str, name: str, start: datetime, end: datetime, count: int) -> TimeLog:
    """Create a batch descriptor."""
    return TimeLog(uri=uri, name=name, start=start, end=end, count=count)


def new_value_info(uri: str) -> ValueInfo:
    """Create a channel descriptor with default scale 1 and no decimals."""
    return ValueInfo(uri=uri)


TimeLog.model_rebuild()
