import logging
import os
import uuid
from collections import OrderedDict
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from models.crime import CRIME_TYPES
from services import h3_utils
from services.errors import PersistenceError
from services.filters import (
    NO_FILTER,
    CategoryVector,
    SpatialFilter,
    WithinHops,
    add_vectors,
    empty_vector,
    parse_tags,
    to_count,
)

logger = logging.getLogger(__name__)

REGION = os.getenv("AWS_REGION", "eu-west-2")
INCIDENTS_TABLE = os.getenv("INCIDENTS_TABLE", "Incidents")
EMERGENCY_SERVICES_TABLE = os.getenv("EMERGENCY_SERVICES_TABLE", "EmergencyServices")
EDUCATIONAL_TABLE = os.getenv("EDUCATIONAL_TABLE", "EducationalSources")
# Above this many cells a spatial filter is evaluated on a scan instead of
# one key query per cell.
MAX_KEY_QUERIES = int(os.getenv("MAX_KEY_QUERIES", "200"))

dynamodb = boto3.resource("dynamodb", region_name=REGION)

_STORE_ERRORS = (ClientError, BotoCoreError)


# ---------- Time bounds / parsing ----------
def _as_utc(dt: datetime) -> datetime:
    """Aware -> converted to UTC; naive is taken to already be UTC."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=None)


def bound_iso(value: Any, *, end: bool = False) -> str:
    """
    ISO string used as a `timestamp` bound. Plain dates cover the whole day
    (start -> 00:00:00, end -> 23:59:59.999999). Strings are parsed first.
    """
    if isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        value = datetime.fromisoformat(s) if "T" in s or " " in s else date.fromisoformat(s)
    if isinstance(value, datetime):
        return _as_utc(value).isoformat()
    if isinstance(value, date):
        return datetime.combine(value, time.max if end else time.min).isoformat()
    raise ValueError(f"Unsupported date bound: {value!r}")


def parse_ts(value: Any) -> Optional[datetime]:
    """ISO8601 (with/without 'Z') or datetime -> naive UTC datetime, None if invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(s))
    except ValueError:
        return None


def period_of(ts: datetime, group_by: str) -> date:
    if group_by == "year":
        return date(ts.year, 1, 1)
    if group_by == "month":
        return date(ts.year, ts.month, 1)
    return ts.date()


def _record_vector(item: Dict[str, Any]) -> Optional[CategoryVector]:
    """One stored incident -> its contribution, or None for unknown types."""
    typ = str(item.get("incident_type", "")).lower().strip()
    if typ not in CRIME_TYPES:
        return None
    count = to_count(item["count"]) if "count" in item else 1
    return {typ: count}


def _in_disk(spatial: WithinHops, zone_id: Any) -> bool:
    """Scan-side match using the key-query rule: only cells at the center's resolution."""
    try:
        if h3_utils.resolution_of(h3_utils.to_cell(zone_id)) != spatial.resolution:
            return False
    except ValueError:
        return False
    return spatial.matches(zone_id)


# ---------- Incidents ----------
class IncidentStore:
    """
    Incidents table: PK zone_id (finest H3 cell), SK timestamp (ISO UTC),
    plus incident_type and an optional count.
    """

    _PROJECTION = "#z, #ts, #t, #c"
    _NAMES = {"#z": "zone_id", "#ts": "timestamp", "#t": "incident_type", "#c": "count"}

    def __init__(self, table=None):
        self.table = table if table is not None else dynamodb.Table(INCIDENTS_TABLE)

    # paging helpers
    def _scan_all(self, **kwargs) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        lek: Optional[Dict[str, Any]] = None
        while True:
            if lek:
                kwargs["ExclusiveStartKey"] = lek
            resp = self.table.scan(**kwargs)
            items.extend(resp.get("Items", []))
            lek = resp.get("LastEvaluatedKey")
            if not lek:
                break
        return items

    def _query_all(self, **kwargs) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        lek: Optional[Dict[str, Any]] = None
        while True:
            if lek:
                kwargs["ExclusiveStartKey"] = lek
            resp = self.table.query(**kwargs)
            items.extend(resp.get("Items", []))
            lek = resp.get("LastEvaluatedKey")
            if not lek:
                break
        return items

    def _scan_window(self, start: str, end: str) -> List[Dict[str, Any]]:
        return self._scan_all(
            FilterExpression=Attr("timestamp").between(start, end),
            ProjectionExpression=self._PROJECTION,
            ExpressionAttributeNames=self._NAMES,
        )

    def _query_cells(self, cells: Iterable[str], start: str, end: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for cell in cells:
            items.extend(self._query_all(
                KeyConditionExpression=Key("zone_id").eq(cell) & Key("timestamp").between(start, end),
                ProjectionExpression=self._PROJECTION,
                ExpressionAttributeNames=self._NAMES,
            ))
        return items

    def _fetch(self, start: Any, end: Any, spatial: SpatialFilter) -> List[Dict[str, Any]]:
        """Incidents in [start, end] that satisfy the spatial filter."""
        s, e = bound_iso(start), bound_iso(end, end=True)
        try:
            if isinstance(spatial, WithinHops):
                cells = spatial.cells()
                if len(cells) <= MAX_KEY_QUERIES:
                    return self._query_cells(cells, s, e)
                return [it for it in self._scan_window(s, e) if _in_disk(spatial, it.get("zone_id"))]
            return self._scan_window(s, e)
        except _STORE_ERRORS as err:
            raise PersistenceError(str(err)) from err

    # grouped sums
    def aggregate_totals(self, start: Any, end: Any, spatial: SpatialFilter = NO_FILTER) -> CategoryVector:
        total = empty_vector()
        for item in self._fetch(start, end, spatial):
            contrib = _record_vector(item)
            if contrib:
                total = add_vectors(total, contrib)
        return total

    def aggregate_by_cell(
        self,
        start: Any,
        end: Any,
        *,
        parent_resolution: int = h3_utils.REFERENCE_RESOLUTION,
        spatial: SpatialFilter = NO_FILTER,
    ) -> Dict[str, CategoryVector]:
        """Sum per ancestor cell at `parent_resolution`, in first-seen order."""
        buckets: Dict[str, CategoryVector] = OrderedDict()
        for item in self._fetch(start, end, spatial):
            contrib = _record_vector(item)
            if not contrib:
                continue
            try:
                parent = h3_utils.parent_at(item.get("zone_id"), parent_resolution)
            except ValueError:
                logger.warning("Skipping incident with bad zone_id: %r", item.get("zone_id"))
                continue
            buckets[parent] = add_vectors(buckets.get(parent) or empty_vector(), contrib)
        return buckets

    def aggregate_for_cell(self, h3_index: str, start: Any, end: Any) -> Optional[CategoryVector]:
        """
        Vector for everything inside `h3_index` (at its own resolution), or
        None when no incident falls in it.
        """
        cell = h3_utils.to_cell(h3_index)
        res = h3_utils.resolution_of(cell)
        s, e = bound_iso(start), bound_iso(end, end=True)
        try:
            stored_res = self.sample_resolution()
            if stored_res is None:
                return None
            children = h3_utils.children_at(cell, stored_res)
            if len(children) <= MAX_KEY_QUERIES:
                items = self._query_cells(children, s, e)
            else:
                items = self._scan_window(s, e)
        except _STORE_ERRORS as err:
            raise PersistenceError(str(err)) from err

        vector: Optional[CategoryVector] = None
        for item in items:
            try:
                if h3_utils.parent_at(item.get("zone_id"), res) != cell:
                    continue
            except ValueError:
                continue
            contrib = _record_vector(item)
            if contrib:
                vector = add_vectors(vector or empty_vector(), contrib)
        return vector

    def aggregate_by_period(
        self,
        start: Any,
        end: Any,
        *,
        group_by: str = "day",
        spatial: SpatialFilter = NO_FILTER,
    ) -> Dict[date, CategoryVector]:
        """Sum per day / month / year bucket, ordered by period."""
        buckets: Dict[date, CategoryVector] = {}
        for item in self._fetch(start, end, spatial):
            ts = parse_ts(item.get("timestamp"))
            contrib = _record_vector(item)
            if ts is None or not contrib:
                continue
            key = period_of(ts, group_by)
            buckets[key] = add_vectors(buckets.get(key) or empty_vector(), contrib)
        return OrderedDict(sorted(buckets.items()))

    # dataset metadata
    def sample_resolution(self) -> Optional[int]:
        """Resolution of one stored cell, None for an empty table."""
        try:
            resp = self.table.scan(Limit=1, ProjectionExpression="zone_id")
        except _STORE_ERRORS as err:
            raise PersistenceError(str(err)) from err
        items = resp.get("Items", [])
        if not items:
            return None
        return h3_utils.resolution_of(h3_utils.to_cell(items[0]["zone_id"]))

    def distinct_cells(self, resolution: int = h3_utils.REFERENCE_RESOLUTION, limit: int = 50) -> List[str]:
        seen: List[str] = []
        lek: Optional[Dict[str, Any]] = None
        try:
            while len(seen) < limit:
                kwargs: Dict[str, Any] = {"ProjectionExpression": "zone_id"}
                if lek:
                    kwargs["ExclusiveStartKey"] = lek
                resp = self.table.scan(**kwargs)
                for it in resp.get("Items", []):
                    try:
                        parent = h3_utils.parent_at(it.get("zone_id"), resolution)
                    except ValueError:
                        continue
                    if parent not in seen:
                        seen.append(parent)
                        if len(seen) >= limit:
                            break
                lek = resp.get("LastEvaluatedKey")
                if not lek:
                    break
        except _STORE_ERRORS as err:
            raise PersistenceError(str(err)) from err
        return seen

    def date_range(self) -> Dict[str, Optional[date]]:
        try:
            items = self._scan_all(ProjectionExpression="#ts", ExpressionAttributeNames={"#ts": "timestamp"})
        except _STORE_ERRORS as err:
            raise PersistenceError(str(err)) from err
        stamps = [ts for ts in (parse_ts(it.get("timestamp")) for it in items) if ts is not None]
        if not stamps:
            return {"min_date": None, "max_date": None}
        return {"min_date": min(stamps).date(), "max_date": max(stamps).date()}

    # writes (bulk upload script)
    def add_incident(self, zone_id: str, incident_type: str, timestamp: Any, count: int = 1) -> bool:
        """
        Writes an incident with PK: zone_id, SK: timestamp (ISO8601, UTC).
        `timestamp` can be a datetime or an ISO string.
        """
        ts = parse_ts(timestamp)
        if ts is None:
            raise ValueError(f"Invalid timestamp: {timestamp!r}")
        try:
            self.table.put_item(
                Item={
                    "zone_id": h3_utils.to_cell(zone_id),
                    "timestamp": ts.isoformat(),
                    "incident_type": incident_type,
                    "count": int(count),
                    "incident_id": str(uuid.uuid4()),
                }
            )
            return True
        except _STORE_ERRORS as e:
            logger.error("Error adding incident: %s", e)
            return False


# ---------- Emergency services ----------
class EmergencyServiceStore:
    def __init__(self, table=None):
        self.table = table if table is not None else dynamodb.Table(EMERGENCY_SERVICES_TABLE)

    def get_by_types(self, types: Iterable[str]) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        lek: Optional[Dict[str, Any]] = None
        try:
            while True:
                kwargs = {
                    "FilterExpression": Attr("type").is_in(list(types)),
                    "ProjectionExpression": "#n, #t, h3",
                    "ExpressionAttributeNames": {"#n": "name", "#t": "type"},
                }
                if lek:
                    kwargs["ExclusiveStartKey"] = lek
                resp = self.table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                lek = resp.get("LastEvaluatedKey")
                if not lek:
                    break
        except _STORE_ERRORS as err:
            raise PersistenceError(str(err)) from err
        return items

    def put_services(self, rows: Iterable[Dict[str, Any]]) -> int:
        n = 0
        with self.table.batch_writer(overwrite_by_pkeys=["service_id"]) as batch:
            for row in rows:
                batch.put_item(
                    Item={
                        "service_id": str(uuid.uuid4()),
                        "h3": row["h3"],
                        "type": row["type"],
                        "name": row["name"],
                    }
                )
                n += 1
        return n


# ---------- Educational resources ----------
class EducationalStore:
    def __init__(self, table=None):
        self.table = table if table is not None else dynamodb.Table(EDUCATIONAL_TABLE)

    def get_all(self) -> List[Dict[str, Any]]:
        """All resources, newest first."""
        items: List[Dict[str, Any]] = []
        lek: Optional[Dict[str, Any]] = None
        try:
            while True:
                kwargs: Dict[str, Any] = {}
                if lek:
                    kwargs["ExclusiveStartKey"] = lek
                resp = self.table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                lek = resp.get("LastEvaluatedKey")
                if not lek:
                    break
        except _STORE_ERRORS as err:
            raise PersistenceError(str(err)) from err
        return sorted(items, key=lambda it: str(it.get("added_at") or ""), reverse=True)

    def get_by_crime_types(self, crime_types: Optional[Iterable[str]]) -> List[Dict[str, Any]]:
        """Resources tagged with at least one of `crime_types`; all of them when none given."""
        wanted = set(crime_types or [])
        if not wanted:
            return self.get_all()
        return [it for it in self.get_all() if wanted.intersection(parse_tags(it.get("target_crime_type")))]
