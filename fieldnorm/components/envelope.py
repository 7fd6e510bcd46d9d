"""
Output envelope.

One run writes one zip archive to its output stream:

- ``triples.ttl``: the metadata graph (Turtle)
- ``<timelog name>.csv``: one per streamed time log
- ``geo.json``: a GeoJSON FeatureCollection
- ``meta.json``: parse time, messages and the names of the entries above

Entries are written strictly one after another; a writer must be closed
before the next entry can be opened. ``meta.json`` is written on close.
"""

import io
import json
import math
import zipfile
from datetime import datetime
from typing import Any, BinaryIO, Dict, List, Optional, Protocol, Sequence

from rdflib import Graph

from fieldnorm.models import ElementType, TimeLog, Validation, ValueInfo, format_decimal
from fieldnorm.utils import OutputError, get_logger

CSV_SEPARATOR = ";"
CSV_LINEEND = "\r\n"


class TimeLogSink(Protocol):
    """Destination of the samples streamed from one time log; TimeLogWriter is the envelope one."""

    def write(self, time: datetime, latitude: float, longitude: float, altitude: float,
              values: Sequence[Optional[int]]) -> Any: ...

    def close(self) -> None: ...


class EntryWriter:
    """Text writer for one archive entry."""

    def __init__(self, output: "ParserOutput", name: str):
        self.output = output
        self.name = name
        output._begin(self)
        self._text = io.TextIOWrapper(output._zip.open(name, "w"), encoding="utf-8", newline="")
        self.closed = False

    def _write(self, text: str) -> None:
        if self.closed:
            raise OutputError(f"Entry '{self.name}' is already closed")
        self._text.write(text)

    def close(self) -> None:
        if self.closed:
            return
        self._text.close()
        self.closed = True
        self.output._end(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class TimeLogWriter(EntryWriter):
    """
    CSV entry of one time log.

    Layout: the time log URI, a header naming the channel URIs, then one row
    per sample (epoch seconds, position, encoded channel values).
    """

    def __init__(self, output: "ParserOutput", timelog: TimeLog, channels: Sequence[ValueInfo]):
        super().__init__(output, f"{timelog.name}.csv")
        self.timelog = timelog
        self.channels = list(channels)
        self.rows = 0
        self._write(timelog.uri + CSV_LINEEND)
        header = ["time", "latitude", "longitude", "altitude"] + [c.uri for c in self.channels]
        self._write(CSV_SEPARATOR.join(header) + CSV_LINEEND)

    def write(self, time: datetime, latitude: float, longitude: float, altitude: float,
              values: Sequence[Optional[int]]) -> "TimeLogWriter":
        """
        Append one sample.

        Raises:
            OutputError: If the value count differs from the channel count
        """
        if len(values) != len(self.channels):
            raise OutputError(f"Values count must match the count of value infos: {len(self.channels)}")
        fields = [
            str(math.floor(time.timestamp())),
            format_decimal(latitude, 7),
            format_decimal(longitude, 7),
            format_decimal(altitude, 3) if math.isfinite(altitude) else "",
        ]
        fields.extend("" if v is None else str(int(v)) for v in values)
        self._write(CSV_SEPARATOR.join(fields) + CSV_LINEEND)
        self.rows += 1
        return self


class GeoWriter(EntryWriter):
    """GeoJSON FeatureCollection entry."""

    def __init__(self, output: "ParserOutput"):
        super().__init__(output, "geo.json")
        self.count = 0
        self._write('{"type":"FeatureCollection","features":[')

    @staticmethod
    def check_geometry(geometry: Any) -> bool:
        return (isinstance(geometry, dict)
                and bool(geometry.get("type"))
                and bool(geometry.get("coordinates")))

    def write_feature(self, geojson: Dict[str, Any], element_type: ElementType, uri: str,
                      label: str) -> "GeoWriter":
        """
        Append a GeoJSON feature under a metadata resource URI.

        Raises:
            OutputError: If uri or label are missing or the feature has no usable geometry
        """
        if not uri:
            raise OutputError("No URI specified")
        if label is None:
            raise OutputError("No label specified")
        if geojson.get("type") != "Feature" or not self.check_geometry(geojson.get("geometry")):
            raise OutputError("Given geojson is no valid GeoJSON feature")

        feature = dict(geojson, id=uri)
        if element_type != ElementType.OTHER:
            feature["elementType"] = element_type.value
        feature["label"] = label
        if self.count > 0:
            self._write(",")
        self._write(json.dumps(feature, separators=(",", ":"), ensure_ascii=False))
        self.count += 1
        return self

    def close(self) -> None:
        if not self.closed:
            self._write("]}")
        super().close()


class ParserOutput:
    """
    Zip envelope written to a binary stream.

    Usage::

        with ParserOutput(stream) as output:
            output.write_triples(graph)
            with output.add_timelog(timelog, channels) as writer:
                writer.write(...)
            output.set_parse_time(12)
    """

    def __init__(self, stream: BinaryIO):
        self.logger = get_logger(__name__)
        self._zip = zipfile.ZipFile(stream, "w", compression=zipfile.ZIP_DEFLATED)
        self.meta: Dict[str, Any] = {}
        self._current: Optional[EntryWriter] = None
        self.closed = False

    def _begin(self, writer: EntryWriter) -> None:
        if self.closed:
            raise OutputError("Output envelope is already closed")
        if self._current is not None:
            raise OutputError(f"Close '{self._current.name}' writer before starting a new entry")
        self._current = writer
        self.logger.debug(f"Opened envelope entry {writer.name}")

    def _end(self, writer: EntryWriter) -> None:
        if self._current is writer:
            self._current = None

    def set_parse_time(self, milliseconds: int) -> "ParserOutput":
        self.meta["parseTime"] = int(milliseconds)
        return self

    def set_errors(self, validation: Optional[Validation]) -> "ParserOutput":
        """Attach the run's messages; an empty collector removes them."""
        if validation is not None and len(validation) > 0:
            self.meta["errors"] = validation.to_json()
        else:
            self.meta.pop("errors", None)
        return self

    def write_triples(self, graph: Graph) -> "ParserOutput":
        """
        Write the metadata graph as Turtle.

        Raises:
            OutputError: If triples were already written in this run
        """
        if "triples" in self.meta:
            raise OutputError("You can only write one triple model")
        writer = EntryWriter(self, "triples.ttl")
        try:
            writer._write(graph.serialize(format="turtle"))
        finally:
            writer.close()
        self.meta["triples"] = writer.name
        return self

    def add_timelog(self, timelog: TimeLog, channels: Sequence[ValueInfo]) -> TimeLogWriter:
        writer = TimeLogWriter(self, timelog, channels)
        self.meta.setdefault("timelogs", []).append(writer.name)
        return writer

    def write_geo(self) -> GeoWriter:
        """
        Open the geometry collection entry.

        Raises:
            OutputError: If a geometry collection was already written in this run
        """
        if "geo" in self.meta:
            raise OutputError("You can only write one geo collection")
        writer = GeoWriter(self)
        self.meta["geo"] = writer.name
        return writer

    def entry_names(self) -> List[str]:
        return [info.filename for info in self._zip.infolist()]

    def close(self) -> None:
        """Close any open entry, write meta.json and finish the archive."""
        if self.closed:
            return
        try:
            if self._current is not None:
                self.logger.warning(f"Entry {self._current.name} was left open; closing it")
                self._current.close()
            self._zip.writestr("meta.json", json.dumps(self.meta))
        finally:
            self._zip.close()
            self.closed = True

    def __enter__(self) -> "ParserOutput":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
