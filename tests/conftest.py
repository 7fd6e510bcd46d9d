"""
Pytest configuration and shared fixtures for testing.

Provides configuration fixtures and builders for the three input formats:
binary GPS lists, delimited sprayer logs and zipped shapefiles.
"""

import io
import json
import tempfile
import zipfile
import pytest
from datetime import datetime, timezone
from pathlib import Path

import shapefile
from pyproj import CRS
from pyproj.enums import WktVersion

from fieldnorm.config import PipelineConfig
from fieldnorm.components.delimited import HACKE_SCHEMA, header_line
from fieldnorm.components.gps import GPSList

T0 = datetime(2023, 6, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def sample_config():
    """Create a test configuration."""
    config_data = {
        "pipeline": {
            "name": "test_field_data_normalizer",
            "version": "1.0.0"
        },
        "logging": {
            "level": "DEBUG",
            "include_timestamp": False
        },
        "metadata": {
            "uri_prefix": "sdsd:"
        },
        "hacke": {
            "delimiter": ";",
            "scale": 0.0001,
            "number_of_decimals": 4,
            "unit": "%"
        },
        "shape": {
            "encoding": "utf-8",
            "source_crs": None,
            "geojson_decimals": 7
        },
        "reprojection": {
            "failure_policy": "fail_closed"
        }
    }

    return PipelineConfig(**config_data)


def build_gps_payload(entries) -> bytes:
    """
    Serialize a GPSList.

    Args:
        entries: dicts with optional keys time (aware datetime), north, east, up,
            position_status, pdop, hdop, satellites, field_status
    """
    message = GPSList()
    for data in entries:
        entry = message.gps_entries.add()
        entry.position_north = data.get("north", 0.0)
        entry.position_east = data.get("east", 0.0)
        entry.position_up = data.get("up", 0.0)
        entry.position_status = data.get("position_status", 0)
        entry.pdop = data.get("pdop", 0.0)
        entry.hdop = data.get("hdop", 0.0)
        entry.number_of_satellites = data.get("satellites", 0)
        entry.field_status = data.get("field_status", 0)
        if data.get("time") is not None:
            entry.gps_utc_timestamp.seconds = int(data["time"].timestamp())
            entry.gps_utc_timestamp.nanos = data["time"].microsecond * 1000
    return message.SerializeToString()


@pytest.fixture
def gps_payload():
    """Factory fixture building serialized GPS lists."""
    return build_gps_payload


@pytest.fixture
def three_gps_entries():
    """Three GPS entries at T0, T0+1s, T0+2s."""
    return build_gps_payload([
        {"time": T0, "north": 52.1, "east": 8.2, "up": 70.5, "position_status": 4,
         "pdop": 1.2, "hdop": 0.8, "satellites": 11, "field_status": 1},
        {"time": T0.replace(second=1), "north": 52.1000001, "east": 8.2000002, "up": 70.6,
         "position_status": 4, "pdop": 1.3, "hdop": 0.9, "satellites": 12, "field_status": 1},
        {"time": T0.replace(second=2), "north": 52.1000002, "east": 8.2000004, "up": 70.7,
         "position_status": 5, "pdop": 1.25, "hdop": 1.0, "satellites": 12, "field_status": 2},
    ])


def build_hacke_csv(rows, delimiter: str = ";") -> bytes:
    """
    Delimited sprayer log with the full header.

    Args:
        rows: dicts keyed by column name; missing columns are left empty
    """
    lines = [header_line(HACKE_SCHEMA, delimiter)]
    for row in rows:
        lines.append("".join(f"{row.get(c.name, '')}{delimiter}" for c in HACKE_SCHEMA))
    return ("\r\n".join(lines) + "\r\n").encode("utf-8")


@pytest.fixture
def hacke_csv():
    """Factory fixture building sprayer logs."""
    return build_hacke_csv


@pytest.fixture
def three_hacke_rows():
    """Three sprayer log rows; the second one lacks its altitude."""
    millis = int(T0.timestamp() * 1000)
    return [
        {"TIME": millis, "LON": 8.2, "LAT": 52.1, "ALT": 70.5, "SECTION": 1,
         "MOCOT": 0.25, "DICOT": 1.5},
        {"TIME": millis + 1000, "LON": 8.21, "LAT": 52.11, "SECTION": 1,
         "MOCOT": 0.3, "DICOT": 1.25},
        {"TIME": millis + 2000, "LON": 8.22, "LAT": 52.12, "ALT": 70.7, "SECTION": 2,
         "MOCOT": 0.0},
    ]


# Clockwise rings in ETRS89 / UTM zone 32N, roughly 9 deg E / 51.4 deg N
UTM_SQUARE = [[(500000.0, 5700000.0), (500000.0, 5700100.0), (500100.0, 5700100.0),
               (500100.0, 5700000.0), (500000.0, 5700000.0)]]
UTM_STRIP = [[(500200.0, 5700000.0), (500200.0, 5700050.0), (500300.0, 5700050.0),
              (500300.0, 5700000.0), (500200.0, 5700000.0)]]

# Clockwise ring in WGS84 lon/lat
WGS84_SQUARE = [[(9.0, 51.4), (9.0, 51.4012345), (9.0012345, 51.4012345),
                 (9.0012345, 51.4), (9.0, 51.4)]]


def build_shape_zip(temp_dir: Path, polygons, prj=None, stem: str = "fields",
                    folder: str = "", include_null: bool = False) -> bytes:
    """
    Write polygons to a shapefile with pyshp and zip it.

    Args:
        temp_dir: Working directory
        polygons: list of (rings, name, area) tuples
        prj: Projection file contents, or None for no .prj member
        stem: Base name of the shapefile members
        folder: Folder prefix of the zip entries
        include_null: Append a null shape record
    """
    work = temp_dir / f"build-{stem}"
    work.mkdir(parents=True, exist_ok=True)
    with shapefile.Writer(str(work / stem), shapeType=shapefile.POLYGON) as writer:
        writer.field("NAME", "C", size=20)
        writer.field("AREA", "N", size=12, decimal=2)
        for rings, name, area in polygons:
            writer.poly(rings)
            writer.record(name, area)
        if include_null:
            writer.null()
            writer.record("empty", 0)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for suffix in (".shp", ".shx", ".dbf"):
            archive.write(work / f"{stem}{suffix}", f"{folder}{stem}{suffix}")
        if prj is not None:
            archive.writestr(f"{folder}{stem}.prj", prj)
    return buffer.getvalue()


@pytest.fixture
def utm_prj():
    """ESRI style projection file for ETRS89 / UTM zone 32N."""
    return CRS.from_epsg(25832).to_wkt(WktVersion.WKT1_ESRI)


@pytest.fixture
def wgs84_prj():
    """Projection file for geographic WGS84."""
    return CRS.from_epsg(4326).to_wkt()


@pytest.fixture
def utm_shape_zip(temp_dir, utm_prj):
    """Zipped shapefile with two UTM polygons and a .prj."""
    return build_shape_zip(temp_dir, [(UTM_SQUARE, "north", 1.0), (UTM_STRIP, "south", 0.5)], utm_prj)


@pytest.fixture
def wgs84_shape_zip(temp_dir, wgs84_prj):
    """Zipped shapefile already in WGS84."""
    return build_shape_zip(temp_dir, [(WGS84_SQUARE, "north", 1.25)], wgs84_prj)


@pytest.fixture
def shape_zip():
    """Factory fixture building zipped shapefiles."""
    return build_shape_zip


@pytest.fixture
def no_geometry_zip():
    """Zip archive without any .shp member."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("readme.txt", "no geometry here")
        archive.writestr("fields.dbf", b"\x03")
    return buffer.getvalue()


def read_envelope(data: bytes):
    """Open an output envelope: returns (meta dict, {entry name: text})."""
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        entries = {name: archive.read(name).decode("utf-8") for name in archive.namelist()}
    return json.loads(entries["meta.json"]), entries


@pytest.fixture
def envelope_reader():
    """Factory fixture decoding an output envelope."""
    return read_envelope
