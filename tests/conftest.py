"""
StreetSafe - Pytest Configuration and Fixtures

Shared fixtures for all tests:
- Real H3 cells around central London
- In-memory stand-ins for DynamoDB tables and the Nominatim geocoder
"""

import os
from typing import Any, Dict, List, Optional

import h3
import pytest
from botocore.exceptions import ClientError

# No test talks to AWS; keep boto3 from looking for a real profile
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

LONDON = (51.5074, -0.1278)
CAMDEN = (51.5390, -0.1426)


# =============================================================================
# Fake DynamoDB
# =============================================================================


def _evaluate(condition: Any, item: Dict[str, Any]) -> bool:
    """Evaluate the subset of boto3 conditions the stores use."""
    expr = condition.get_expression()
    op, values = expr["operator"], expr["values"]
    if op == "AND":
        return all(_evaluate(v, item) for v in values)
    if op == "OR":
        return any(_evaluate(v, item) for v in values)
    actual = item.get(values[0].name)
    if op == "=":
        return actual == values[1]
    if op == "BETWEEN":
        return actual is not None and values[1] <= actual <= values[2]
    if op == "IN":
        return actual in values[1]
    raise NotImplementedError(op)


class FakeTable:
    """Enough of a boto3 Table for scan/query/put_item/batch_writer, with paging."""

    def __init__(self, items: Optional[List[Dict[str, Any]]] = None, page_size: Optional[int] = None):
        self.items: List[Dict[str, Any]] = list(items or [])
        self.page_size = page_size
        self.calls: List[tuple] = []

    def _page(self, matched: List[Dict[str, Any]], kwargs: Dict[str, Any]) -> Dict[str, Any]:
        offset = (kwargs.get("ExclusiveStartKey") or {}).get("offset", 0)
        size = kwargs.get("Limit") or self.page_size or len(matched) or 1
        page = matched[offset:offset + size]
        resp: Dict[str, Any] = {"Items": [dict(it) for it in page]}
        if offset + size < len(matched) and "Limit" not in kwargs:
            resp["LastEvaluatedKey"] = {"offset": offset + size}
        return resp

    def scan(self, **kwargs):
        self.calls.append(("scan", kwargs))
        cond = kwargs.get("FilterExpression")
        matched = [it for it in self.items if cond is None or _evaluate(cond, it)]
        return self._page(matched, kwargs)

    def query(self, **kwargs):
        self.calls.append(("query", kwargs))
        cond = kwargs["KeyConditionExpression"]
        matched = [it for it in self.items if _evaluate(cond, it)]
        return self._page(matched, kwargs)

    def put_item(self, Item):
        self.items.append(dict(Item))

    def batch_writer(self, **kwargs):
        table = self

        class _Writer:
            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def put_item(self, Item):
                table.put_item(Item)

        return _Writer()


class BrokenTable(FakeTable):
    """Every read fails the way DynamoDB reports throttling."""

    def _boom(self, op: str):
        raise ClientError({"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}}, op)

    def scan(self, **kwargs):
        self._boom("Scan")

    def query(self, **kwargs):
        self._boom("Query")


class FakeGeocoder:
    def __init__(self, matches: Optional[List[Dict[str, Any]]] = None, name: str = "Camden, London"):
        self.matches = matches if matches is not None else [{"lat": str(CAMDEN[0]), "lon": str(CAMDEN[1])}]
        self.name = name
        self.searched: List[str] = []

    def search(self, text: str):
        self.searched.append(text)
        return self.matches

    def location_name(self, h3_index: str) -> str:
        return self.name

    def location_names(self, cells):
        return [self.name for _ in cells]


# =============================================================================
# Cell Fixtures
# =============================================================================


@pytest.fixture
def london_cell() -> str:
    """Resolution-9 cell over Charing Cross."""
    return h3.latlng_to_cell(LONDON[0], LONDON[1], 9)


@pytest.fixture
def camden_cell() -> str:
    return h3.latlng_to_cell(CAMDEN[0], CAMDEN[1], 9)


@pytest.fixture
def broken_table() -> BrokenTable:
    return BrokenTable()


def incident(zone_id: str, incident_type: str, timestamp: str, **extra: Any) -> Dict[str, Any]:
    return {"zone_id": zone_id, "timestamp": timestamp, "incident_type": incident_type, **extra}
