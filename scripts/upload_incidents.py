# scripts/upload_incidents.py
"""
Bulk-upload incidents from a JSON file into the Incidents DynamoDB table.

Usage:
  python scripts/upload_incidents.py --file incidents.json [--dry-run]

Each record: {"zone_id": "<h3>", "incident_type": "burglary",
              "timestamp": "2024-03-01T10:00:00Z", "count": 1}

Env vars (same as db/dynamo.py):
  AWS_REGION=eu-west-2
  INCIDENTS_TABLE=Incidents
"""
from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# --- Make repo imports work ---
REPO_ROOT = Path(__file__).resolve().parents[1]
API_DIR = REPO_ROOT / "backend" / "api"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

from pydantic import ValidationError as PydanticValidationError  # noqa: E402

from models.crime import CRIME_TYPES, IncidentIn  # noqa: E402


def validate_record(rec: Dict[str, Any]) -> Tuple[Optional[IncidentIn], Optional[str]]:
    """(incident, None) when usable, otherwise (None, reason)."""
    try:
        incident = IncidentIn(**rec)
    except PydanticValidationError as e:
        return None, f"invalid fields: {e.errors()[0].get('msg')}"
    except TypeError:
        return None, "record is not an object"

    incident.incident_type = incident.incident_type.strip().lower()
    if incident.incident_type not in CRIME_TYPES:
        return None, f"unknown incident_type '{incident.incident_type}'"
    return incident, None


def load_records(path: Path) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError("JSON root must be a list of incident objects.")
    return data


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Upload incidents JSON to DynamoDB.")
    parser.add_argument("--file", "-f", required=True, help="Path to JSON file (list of incident objects).")
    parser.add_argument("--dry-run", action="store_true", help="Validate and print, but do not write to DynamoDB.")
    parser.add_argument("--sleep", type=float, default=0.0, help="Optional delay (seconds) between writes.")
    args = parser.parse_args(argv)

    path = Path(args.file).resolve()
    if not path.exists():
        print(f"Error: file not found: {path}")
        return 1
    try:
        data = load_records(path)
    except (json.JSONDecodeError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    store = None
    if not args.dry_run:
        from db.dynamo import IncidentStore

        store = IncidentStore()

    total = len(data)
    ok = skipped = 0
    for i, rec in enumerate(data, 1):
        incident, reason = validate_record(rec)
        if incident is None:
            print(f"[{i}/{total}] SKIP ({reason}): {rec}")
            skipped += 1
            continue

        if store is None:
            print(f"[{i}/{total}] DRY-RUN {incident.zone_id} {incident.incident_type} {incident.timestamp.isoformat()}")
            ok += 1
            continue

        try:
            if store.add_incident(incident.zone_id, incident.incident_type, incident.timestamp, incident.count):
                ok += 1
                if args.sleep > 0:
                    time.sleep(args.sleep)
            else:
                print(f"[{i}/{total}] FAILED to add: {rec}")
        except ValueError as e:
            print(f"[{i}/{total}] ERROR {e} for record: {rec}")
            skipped += 1

    print(f"\nDone. Success: {ok}  Skipped: {skipped}  Total read: {total}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
