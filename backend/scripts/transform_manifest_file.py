"""
Script to transform a saved raw manifest JSON file and print the aggregated manifest.

Usage: python scripts/transform_manifest_file.py path/to/raw_manifest.json [--summary]
"""
import sys
import os
import json
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from manifest_viewer.services.manifest_transform import transform_manifest
from manifest_viewer.services.shipment_analysis import find_anomalies


def transform_file(path: Path, summary_only: bool = False):
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    manifest = transform_manifest(raw)
    if not summary_only:
        print(json.dumps(manifest.model_dump(), indent=2))
        return

    print(f"Manifest {manifest.manifest_number} ({manifest.flight_details.flight_number})")
    print(f"  {len(manifest.shipments)} MAWBs, {manifest.total_pieces} pcs, "
          f"{manifest.total_weight.value:,.2f} {manifest.total_weight.unit}")
    for anomaly in find_anomalies(manifest):
        print(f"  ! {anomaly.awb}: {anomaly.issue} {anomaly.details}".rstrip())


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if len(args) != 1:
        print(__doc__.strip().splitlines()[-1])
        sys.exit(1)
    source = Path(args[0])
    if not source.exists():
        print(f"File not found: {source}")
        sys.exit(1)
    transform_file(source, summary_only="--summary" in sys.argv[1:])
