#!/usr/bin/env python3
"""
Demo script to run every supported format through the pipeline.

Expects the inputs written by scripts/generate_synthetic_raw.py in data/raw/
and writes one output envelope per input to data/processed/.
"""

import json
import zipfile
from pathlib import Path

from fieldnorm.config import PipelineConfig
from fieldnorm.main import FieldDataPipeline
from fieldnorm.utils import setup_logging

INPUTS = [
    ("gps", "gps.bin"),
    ("gps", "gps_truncated.bin"),
    ("hacke", "hacke.csv"),
    ("shape", "fields.zip"),
]


def main():
    """Parse the synthetic inputs and summarize each envelope."""
    print("🌾 Field Data Normalizer Demo")
    print("=" * 50)

    config_path = Path("config/default.yaml")
    config = PipelineConfig.from_yaml(config_path)
    setup_logging(level="WARNING", include_timestamp=False)
    print(f"✓ Loaded configuration from {config_path}")

    pipeline = FieldDataPipeline(config)
    raw_dir, out_dir = Path("data/raw"), Path("data/processed")
    out_dir.mkdir(parents=True, exist_ok=True)

    for input_format, name in INPUTS:
        source = raw_dir / name
        if not source.exists():
            print(f"⚠️  {source} not found, run scripts/generate_synthetic_raw.py first")
            continue

        print(f"\n📥 {name} ({input_format})")
        print("-" * 30)
        with open(source, "rb") as stream:
            feasible = pipeline.test(stream, input_format)
        print(f"   Feasible: {feasible}")

        target = out_dir / f"{source.stem}.zip"
        with open(source, "rb") as stream, open(target, "wb") as out:
            result = pipeline.parse(stream, out, input_format)

        print(f"   State: {result.state.value}")
        print(f"   Records decoded: {result.records_decoded}")
        print(f"   Samples written: {result.samples_written} (skipped {result.samples_skipped})")
        print(f"   Features written: {result.features_written}")
        print(f"   Parse time: {result.parse_time_ms} ms")
        for message in result.errors[:3]:
            print(f"     • {message}")

        with zipfile.ZipFile(target) as archive:
            meta = json.loads(archive.read("meta.json"))
            print(f"   Envelope entries: {archive.namelist()}")
        print(f"   meta.json keys: {sorted(meta)}")

    print("\n✅ Demo completed")


if __name__ == "__main__":
    main()
