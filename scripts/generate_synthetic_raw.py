#!/usr/bin/env python3
"""
Synthetic input generator for the field data normalizer.

- Writes one input per format into data/raw/: a binary GPS list, a delimited
  sprayer log and a zipped shapefile in ETRS89 / UTM zone 32N.
- Optionally injects edge cases: entries without timestamp, rows without
  altitude or coverage values, a null shape and a truncated GPS list.

Usage:
  python scripts/generate_synthetic_raw.py \
    --start 2023-06-02T08:00:00 \
    --rows 30 \
    --include-edge-cases

If no args are provided, defaults are used: start=2023-06-02T08:00:00Z, rows=30.
"""

from __future__ import annotations

import argparse
import io
import tempfile
import zipfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pandas as pd
import shapefile
from pyproj import CRS, Transformer
from pyproj.enums import WktVersion

from fieldnorm.components.delimited import HACKE_SCHEMA, header_line
from fieldnorm.components.gps import GPSList
from fieldnorm.config import PipelineConfig

UTM32 = CRS.from_epsg(25832)


@dataclass
class Track:
    """A synthetic machine track in WGS84."""
    times: list
    lat: np.ndarray
    lon: np.ndarray
    alt: np.ndarray


def synth_track(start: datetime, rows: int, seed: int = 42) -> Track:
    """Random walk at one fix per second, starting near 9 deg E / 51.4 deg N."""
    rng = np.random.default_rng(seed)
    times = [start + timedelta(seconds=i) for i in range(rows)]
    lat = 51.4 + np.cumsum(rng.normal(0, 2e-6, size=rows))
    lon = 9.0 + np.cumsum(rng.normal(2e-5, 3e-6, size=rows))
    alt = 180.0 + np.cumsum(rng.normal(0, 0.05, size=rows))
    return Track(times, lat, lon, alt)


def write_gps(track: Track, path: Path, edge_cases: bool, seed: int = 43) -> None:
    rng = np.random.default_rng(seed)
    message = GPSList()
    for i, time in enumerate(track.times):
        entry = message.gps_entries.add()
        entry.position_north = float(track.lat[i])
        entry.position_east = float(track.lon[i])
        entry.position_up = float(track.alt[i])
        entry.position_status = int(rng.choice([4, 4, 4, 5]))
        entry.pdop = float(np.round(rng.uniform(0.8, 2.5), 2))
        entry.hdop = float(np.round(rng.uniform(0.5, 1.5), 2))
        entry.number_of_satellites = int(rng.integers(8, 16))
        entry.field_status = 1
        # 10% of entries lose their timestamp
        if edge_cases and rng.random() < 0.10:
            continue
        entry.gps_utc_timestamp.seconds = int(time.timestamp())
        entry.gps_utc_timestamp.nanos = time.microsecond * 1000

    payload = message.SerializeToString()
    path.write_bytes(payload)
    print(f"✓ Wrote {len(message.gps_entries)} GPS entries to {path}")

    if edge_cases:
        truncated = path.with_name(f"{path.stem}_truncated{path.suffix}")
        truncated.write_bytes(payload[:-5])
        print(f"✓ Wrote truncated GPS list to {truncated}")


def write_hacke(track: Track, path: Path, delimiter: str, edge_cases: bool, seed: int = 44) -> None:
    rng = np.random.default_rng(seed)
    rows = len(track.times)
    df = pd.DataFrame({
        "TIME": [int(t.timestamp() * 1000) for t in track.times],
        "LON": np.round(track.lon, 7),
        "LAT": np.round(track.lat, 7),
        "ALT": np.round(track.alt, 2),
        "SECTION": rng.integers(1, 4, size=rows),
        "STATUS": 1,
        "MOCOT": np.round(rng.uniform(0, 0.5, size=rows), 4),
        "DICOT": np.round(rng.uniform(0, 2.0, size=rows), 4),
    })
    if edge_cases:
        # 10% missing altitude, 10% missing dicot coverage
        df["ALT"] = df["ALT"].mask(rng.random(rows) < 0.10)
        df["DICOT"] = df["DICOT"].mask(rng.random(rows) < 0.10)

    df = df.reindex(columns=[c.name for c in HACKE_SCHEMA])
    lines = [header_line(HACKE_SCHEMA, delimiter)]
    for record in df.itertuples(index=False):
        lines.append("".join(f"{'' if pd.isna(v) else v}{delimiter}" for v in record))
    path.write_text("\r\n".join(lines) + "\r\n", encoding="utf-8")
    print(f"✓ Wrote {rows} sprayer log rows to {path}")


def write_shape(track: Track, path: Path, edge_cases: bool) -> None:
    """Two rectangular plots south of the track, stored in UTM 32N."""
    to_utm = Transformer.from_crs(CRS.from_epsg(4326), UTM32, always_xy=True)
    x0, y0 = to_utm.transform(float(track.lon[0]), float(track.lat[0]))
    plots = [("north", x0, y0 - 120.0), ("south", x0, y0 - 260.0)]

    with tempfile.TemporaryDirectory() as tmp_dir:
        base = Path(tmp_dir) / path.stem
        with shapefile.Writer(str(base), shapeType=shapefile.POLYGON) as writer:
            writer.field("NAME", "C", size=20)
            writer.field("AREA", "N", size=12, decimal=2)
            for name, x, y in plots:
                ring = [(x, y), (x, y + 100), (x + 100, y + 100), (x + 100, y), (x, y)]
                writer.poly([ring])
                writer.record(name, 1.0)
            if edge_cases:
                writer.null()
                writer.record("empty", 0)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            for suffix in (".shp", ".shx", ".dbf"):
                archive.write(base.with_suffix(suffix), f"{path.stem}{suffix}")
            archive.writestr(f"{path.stem}.prj", UTM32.to_wkt(WktVersion.WKT1_ESRI))
    path.write_bytes(buffer.getvalue())
    print(f"✓ Wrote {len(plots)} plots to {path}")


def main():
    parser = argparse.ArgumentParser(description="Generate synthetic inputs for every supported format")
    parser.add_argument("--start", default="2023-06-02T08:00:00", help="UTC start of the synthetic track")
    parser.add_argument("--rows", type=int, default=30, help="Fixes in the synthetic track")
    parser.add_argument("--config", type=Path, default=None, help="Configuration file")
    parser.add_argument("--include-edge-cases", action="store_true", help="Inject missing and broken records")
    args = parser.parse_args()

    # Resolve project root as repo root (parent of scripts/)
    project_root = Path(__file__).resolve().parent.parent
    config_path = args.config or project_root / "config/default.yaml"
    config = PipelineConfig.from_yaml(config_path)
    data_raw_path = project_root / "data" / "raw"
    data_raw_path.mkdir(parents=True, exist_ok=True)

    start = datetime.fromisoformat(args.start).replace(tzinfo=timezone.utc)
    track = synth_track(start, args.rows)
    write_gps(track, data_raw_path / "gps.bin", args.include_edge_cases)
    write_hacke(track, data_raw_path / "hacke.csv", config.hacke.delimiter, args.include_edge_cases)
    write_shape(track, data_raw_path / "fields.zip", args.include_edge_cases)

    print("\nAll synthetic inputs generated in:", data_raw_path)


if __name__ == "__main__":
    main()
