# scripts/import_emergency_services.py
"""
Load police stations / hospitals from a CSV into the EmergencyServices table.

Rows carry either Web-Mercator `x`,`y` (EPSG:3857) or `latitude`,`longitude`,
plus `type` ('police' or 'NHS Hospital') and `name`. Each point is indexed
as an H3 cell at resolution 9.

Usage:
  python scripts/import_emergency_services.py --file services.csv [--dry-run]
"""
from __future__ import annotations

import argparse
import csv
import math
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import pyproj

# --- Make repo imports work ---
REPO_ROOT = Path(__file__).resolve().parents[1]
API_DIR = REPO_ROOT / "backend" / "api"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

from services.h3_utils import REFERENCE_RESOLUTION, point_to_hex  # noqa: E402

_MERCATOR_TO_WGS84 = pyproj.Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)


def _finite(value: Any) -> Optional[float]:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def row_coordinates(row: Dict[str, str]) -> Tuple[Optional[Tuple[float, float]], Optional[str]]:
    """((lat, lng), None) or (None, reason)."""
    if row.get("x") and row.get("y"):
        x, y = _finite(row["x"]), _finite(row["y"])
        if x is None or y is None:
            return None, "invalid Mercator coords"
        lng, lat = _MERCATOR_TO_WGS84.transform(x, y)
        return (lat, lng), None
    if row.get("latitude") and row.get("longitude"):
        lat, lng = _finite(row["latitude"]), _finite(row["longitude"])
        if lat is None or lng is None:
            return None, "invalid lat/lng"
        return (lat, lng), None
    return None, "missing coords"


def iter_services(rows: Iterable[Dict[str, str]], skipped: List[str]) -> Iterator[Dict[str, Any]]:
    for row in rows:
        # header names in the source exports carry stray whitespace
        row = {(k or "").strip(): (v or "").strip() for k, v in row.items()}
        coords, reason = row_coordinates(row)
        if coords is None:
            skipped.append(f"{reason}: {row}")
            continue
        if not row.get("type") or not row.get("name"):
            skipped.append(f"missing type/name: {row}")
            continue
        lat, lng = coords
        yield {"h3": point_to_hex(lat, lng, REFERENCE_RESOLUTION), "type": row["type"], "name": row["name"]}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import emergency services CSV into DynamoDB.")
    parser.add_argument("--file", "-f", required=True, help="CSV with x,y or latitude,longitude plus type,name")
    parser.add_argument("--dry-run", action="store_true", help="Parse and print, but do not write.")
    args = parser.parse_args(argv)

    path = Path(args.file).resolve()
    if not path.exists():
        print(f"Error: file not found: {path}")
        return 1

    skipped: List[str] = []
    with open(path, newline="", encoding="utf-8") as f:
        services = list(iter_services(csv.DictReader(f), skipped))

    for reason in skipped:
        print(f"SKIP {reason}")

    if args.dry_run:
        for s in services:
            print(f"DRY-RUN {s['type']:<14} {s['h3']} {s['name']}")
        inserted = len(services)
    else:
        from db.dynamo import EmergencyServiceStore

        inserted = EmergencyServiceStore().put_services(services)

    print(f"\nDone. Inserted: {inserted}  Skipped: {len(skipped)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
