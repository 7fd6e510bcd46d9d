"""
Delimited-text record decoder.

Reads semicolon- (or comma-) separated logs against an explicit column schema.
Every value is nullable; only the framing columns must appear in the header.
The concrete schema shipped here is the weed-detection sprayer log, whose
monocot/dicot coverage readings become two scaled channels.
"""

import io
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Dict, List, Optional, Sequence, TextIO

import numpy as np
import pandas as pd

from fieldnorm.components.base import TimeLogDecoder
from fieldnorm.config import PipelineConfig
from fieldnorm.models import InputFormat, Sample, TimeLog, ValueInfo, new_value_info
from fieldnorm.utils import MalformedInputError, get_logger

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Column:
    """One schema column: header name, target type, must-appear-in-header flag."""
    name: str
    dtype: type
    required: bool = False

    @property
    def field(self) -> str:
        return self.name.lower()


HACKE_SCHEMA: List[Column] = [
    Column("TIME", int, required=True),
    Column("LON", float, required=True),
    Column("LAT", float, required=True),
    Column("ALT", float, required=True),
    Column("SECTION", int),
    Column("LON_HEAD", float),
    Column("LAT_HEAD", float),
    Column("STATUS", int),
    Column("RESULTID", int),
    Column("SYSTIME", int),
    Column("BEAVP", float),
    Column("BRSNN", float),
    Column("DICOT", float),
    Column("GALAP", float),
    Column("MATIN", float),
    Column("MOCOT", float),
    Column("TRZAW", float),
    Column("ZEAMX", float),
]

MOCOT = "Mocot"
DICOT = "Dicot"


def header_line(schema: Sequence[Column], delimiter: str) -> str:
    """Header line written by the exporting terminal (with trailing delimiter)."""
    return "".join(column.name + delimiter for column in schema)


def _convert(series: pd.Series, column: Column) -> pd.Series:
    cleaned = series.map(lambda v: (v.strip() or None) if isinstance(v, str) else v)
    numeric = pd.to_numeric(cleaned, errors="raise").astype("float64")
    if column.dtype is int:
        if not np.all(np.isnan(numeric) | (numeric == np.round(numeric))):
            raise ValueError("non-integer value")
        return numeric.astype("Int64")
    return numeric.astype("float64")


def read_delimited(stream: BinaryIO, schema: Sequence[Column], delimiter: str) -> pd.DataFrame:
    """
    Bind delimited text to a schema.

    Args:
        stream: Binary text stream (UTF-8, optional BOM)
        schema: Ordered column definitions
        delimiter: Field delimiter

    Returns:
        DataFrame with one lower-case column per schema column, typed and nullable,
        rows in stream order

    Raises:
        MalformedInputError: If the header lacks a required column or a value
            cannot be converted to its column type
    """
    try:
        text = stream.read().decode("utf-8-sig")
        # index_col=False keeps rows with a trailing delimiter aligned to the header
        raw = pd.read_csv(io.StringIO(text), sep=delimiter, dtype=object, index_col=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Cannot read delimited input: {e}") from e

    raw.columns = [str(c).strip() for c in raw.columns]
    missing = [c.name for c in schema if c.required and c.name not in raw.columns]
    if missing:
        raise MalformedInputError(
            f"Header does not match the expected schema, missing columns: {missing}"
        )

    data: Dict[str, pd.Series] = {}
    for column in schema:
        if column.name not in raw.columns:
            if column.dtype is int:
                data[column.field] = pd.Series(pd.NA, index=raw.index, dtype="Int64")
            else:
                data[column.field] = pd.Series(np.nan, index=raw.index, dtype="float64")
            continue
        try:
            data[column.field] = _convert(raw[column.name], column)
        except (ValueError, TypeError) as e:
            raise MalformedInputError(f"Column {column.name}: {e}") from e

    return pd.DataFrame(data, index=raw.index)


def _optional(value: Any) -> Optional[Any]:
    return None if pd.isna(value) else value


class HackeLogDecoder(TimeLogDecoder):
    """Decoder for delimited sprayer logs with weed coverage readings."""

    input_format = InputFormat.HACKE
    format_name = "hacke"
    timelog_name = "Hacke"
    labelled_metadata = True

    def __init__(self, config: PipelineConfig, schema: Sequence[Column] = HACKE_SCHEMA):
        """
        Initialize sprayer log decoder.

        Args:
            config: Pipeline configuration
            schema: Column schema, defaults to the sprayer log layout
        """
        super().__init__(config)
        self.logger = get_logger(__name__)
        self.schema = list(schema)
        self.settings = config.hacke

    def test(self, stream: BinaryIO, errors: Optional[TextIO] = None) -> bool:
        """Shallow check for the expected header line; no parsing."""
        try:
            content = stream.read().decode("utf-8", errors="replace")
        except OSError as e:
            if errors is not None:
                print(str(e), file=errors)
            return False
        if header_line(self.schema, self.settings.delimiter) in content:
            return True
        if errors is not None:
            print("String for specification of fields not found.", file=errors)
        return False

    def read_records(self, stream: BinaryIO) -> Sequence[Any]:
        frame = read_delimited(stream, self.schema, self.settings.delimiter)
        self.logger.info(f"Decoded {len(frame)} delimited rows")
        return list(frame.itertuples(index=False))

    def record_time(self, record: Any) -> Optional[datetime]:
        millis = _optional(record.time)
        if millis is None:
            return None
        return _EPOCH + timedelta(milliseconds=int(millis))

    def to_sample(self, record: Any) -> Optional[Sample]:
        time = self.record_time(record)
        lat, lon, alt = _optional(record.lat), _optional(record.lon), _optional(record.alt)
        if time is None or lat is None or lon is None or alt is None:
            return None
        return Sample(
            time=time,
            north=float(lat),
            east=float(lon),
            up=float(alt),
            values=[_optional(record.mocot), _optional(record.dicot)],
        )

    def describe_channels(self, timelog: TimeLog) -> List[ValueInfo]:
        return [self._coverage_channel(MOCOT, timelog), self._coverage_channel(DICOT, timelog)]

    def channel_types(self, channels: Sequence[ValueInfo]) -> Dict[str, str]:
        return {c.uri: c.designator.lower() for c in channels}

    def _coverage_channel(self, designator: str, timelog: TimeLog) -> ValueInfo:
        return (new_value_info(self.random_uri())
                .add_timelog(timelog)
                .set_designator(designator)
                .set_scale(self.settings.scale)
                .set_number_of_decimals(self.settings.number_of_decimals)
                .set_unit(self.settings.unit))
