"""
Pytest configuration and shared fixtures.

Provides test configuration, sample incidents, both store implementations
and an in-memory stand-in for the hosted backend served through
httpx.MockTransport.
"""

import json
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

import httpx
import pytest

from allertrack.cache.coordinator import CacheCoordinator
from allertrack.core.config import BackendConfig, Config, DemoConfig
from allertrack.core.context import SessionContext
from allertrack.data.schema import Incident
from allertrack.store.local import DemoIncidentStore, LocalStorage
from allertrack.store.remote import RemoteIncidentStore

BACKEND_URL = "https://backend.test"
ANON_KEY = "test-anon-key"


@pytest.fixture
def test_config(tmp_path) -> Config:
    """
    Fixture providing test configuration.

    No artificial latency, no retry waits, storage and logs under tmp_path.
    Explicit values so tests run the same regardless of .env settings.
    """
    return Config(
        log_level="WARNING",
        logs_dir=tmp_path / "logs",
        backend=BackendConfig(
            url=BACKEND_URL,
            anon_key=ANON_KEY,
            timeout_seconds=2.0,
            retry_attempts=3,
            retry_min_wait=0.0,
            retry_max_wait=0.0,
        ),
        demo=DemoConfig(storage_dir=tmp_path / "profile", latency_seconds=0.0),
    )


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


def make_incident(
    occurred_at: datetime,
    severity: str = "Mild",
    symptoms: Optional[List[str]] = None,
    owner: str = "owner-a",
    **fields: Any,
) -> Incident:
    """Build a stored incident directly, bypassing validation bounds."""
    return Incident(
        id=fields.pop("id", f"incident-{uuid4()}"),
        owner=owner,
        occurred_at=occurred_at,
        severity=severity,
        symptoms=symptoms or ["Hives"],
        created_at=occurred_at,
        updated_at=occurred_at,
        **fields,
    )


@pytest.fixture
def incident_factory() -> Callable[..., Incident]:
    return make_incident


@pytest.fixture
def sample_incidents(now) -> List[Incident]:
    """
    Fixture providing a realistic incident history for one owner.

    Spread over roughly three months with varied severities, triggers
    and durations; no two incidents share a timestamp.
    """
    specs = [
        (1, "Severe", ["Hives", "Swelling"], ["Peanuts"], ["Dinner out"], 90),
        (4, "Moderate", ["Sneezing"], ["Milk"], ["Outdoor walk"], 30),
        (9, "Severe", ["Hives"], ["Peanuts", "Shellfish"], [], 120),
        (17, "Mild", ["Itchy eyes"], [], ["Gardening"], None),
        (33, "Moderate", ["Sneezing", "Itchy eyes"], ["Milk"], ["Outdoor walk"], 45),
        (48, "Mild", ["Runny nose"], ["Wheat"], [], 20),
        (75, "Severe", ["Swelling"], ["Peanuts"], ["Exercise"], 60),
    ]
    return [
        make_incident(
            now - timedelta(days=days, hours=3),
            severity=severity,
            symptoms=symptoms,
            foods=foods,
            activities=activities,
            duration_minutes=duration,
        )
        for days, severity, symptoms, foods, activities, duration in specs
    ]


def valid_create_payload(now: datetime, **overrides: Any) -> Dict[str, Any]:
    payload = {
        "occurred_at": now - timedelta(hours=2),
        "severity": "Moderate",
        "symptoms": ["Sneezing", "Itchy eyes"],
        "foods": ["Peanuts"],
        "activities": ["Outdoor walk"],
        "medications": ["Antihistamine"],
        "environmental_factors": {"weather": "Sunny", "stress_level": 4, "humidity": 40},
        "duration_minutes": 30,
        "notes": "Started after lunch",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_payload(now) -> Dict[str, Any]:
    return valid_create_payload(now)


# ---------------------------------------------------------------------------
# In-memory hosted backend
# ---------------------------------------------------------------------------


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _parse_array(literal: str) -> List[str]:
    inner = literal.strip()[1:-1]
    if not inner:
        return []
    return [item.strip().strip('"') for item in inner.split(",")]


def _half_up(value: float, digits: int) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


class FakeBackend:
    """
    Minimal stand-in for the hosted REST row interface.

    Supports the filters, ordering, pagination, exact counts, write
    representations, session lookup and aggregate procedures the remote
    store uses. Failures can be queued with fail_next().
    """

    def __init__(self, table: str = "incidents"):
        self.table = table
        self.rows: List[Dict[str, Any]] = []
        self.tokens: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []
        self.procedures_enabled = True
        self._failures: List[Any] = []

    # -- setup helpers ------------------------------------------------------

    def add_user(self, token: str, user_id: str) -> None:
        self.tokens[token] = user_id

    def add_incidents(self, incidents: List[Incident]) -> None:
        for incident in incidents:
            self.rows.append(incident.to_record())

    def fail_next(self, *failures: Any) -> None:
        """Queue status codes or exceptions for the next requests."""
        self._failures.extend(failures)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # -- dispatch -------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._failures:
            failure = self._failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return httpx.Response(failure, json={"message": "injected failure"})

        path = request.url.path
        if path == "/auth/v1/user":
            return self._user(request)
        if path.startswith("/rest/v1/rpc/"):
            return self._rpc(path.rsplit("/", 1)[1], json.loads(request.content or b"{}"))
        if path == f"/rest/v1/{self.table}":
            return self._table(request)
        return httpx.Response(404, json={"message": f"No route {path}"})

    def _user(self, request: httpx.Request) -> httpx.Response:
        token = request.headers.get("Authorization", "").replace("Bearer ", "")
        if token not in self.tokens:
            return httpx.Response(401, json={"msg": "invalid JWT"})
        return httpx.Response(200, json={"id": self.tokens[token]})

    # -- row interface --------------------------------------------------------

    def _matches(self, row: Dict[str, Any], column: str, expr: str) -> bool:
        if column == "or":
            term = re.search(r'notes\.ilike\."\*(.*?)\*"', expr).group(1)
            notes = (row.get("notes") or "").lower()
            labels = row["symptoms"] + (row.get("foods") or []) + (row.get("activities") or [])
            return term.lower() in notes or term in labels
        op, _, value = expr.partition(".")
        cell = row.get(column)
        if op == "eq":
            return str(cell) == value
        if op == "gte":
            return _parse_ts(cell) >= _parse_ts(value)
        if op == "lte":
            return _parse_ts(cell) <= _parse_ts(value)
        if op == "in":
            return cell in value.strip("()").split(",")
        if op == "ov":
            return bool(set(_parse_array(value)) & set(cell or []))
        if op == "cs":
            return set(_parse_array(value)) <= set(cell or [])
        raise AssertionError(f"Unsupported operator {op}")

    def _select(self, request: httpx.Request) -> List[Dict[str, Any]]:
        rows = list(self.rows)
        for column, expr in request.url.params.multi_items():
            if column in ("select", "order", "offset", "limit"):
                continue
            rows = [row for row in rows if self._matches(row, column, expr)]
        return rows

    def _table(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        if method == "POST":
            body = json.loads(request.content)
            stamp = datetime.now(timezone.utc).isoformat()
            row = {
                "id": str(uuid4()),
                "foods": [],
                "activities": [],
                "medications": [],
                "environmental_factors": {},
                "created_at": stamp,
                "updated_at": stamp,
                **body,
            }
            self.rows.append(row)
            return httpx.Response(201, json=[row])

        rows = self._select(request)
        if method == "PATCH":
            body = json.loads(request.content)
            for row in rows:
                row.update(body)
            return httpx.Response(200, json=rows)
        if method == "DELETE":
            ids = {row["id"] for row in rows}
            self.rows = [row for row in self.rows if row["id"] not in ids]
            return httpx.Response(200, json=rows)

        params = request.url.params
        if "order" in params:
            column, _, direction = params["order"].partition(".")
            if column == "severity":
                rank = {"Mild": 1, "Moderate": 2, "Severe": 3}
                key = lambda row: rank[row["severity"]]  # noqa: E731
            else:
                key = lambda row: _parse_ts(row[column])  # noqa: E731
            rows.sort(key=key, reverse=(direction == "desc"))
        total = len(rows)
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", total or 1))
        page = rows[offset:offset + limit]

        headers = {}
        if "count=exact" in request.headers.get("Prefer", ""):
            span = f"{offset}-{offset + len(page) - 1}" if page else "*"
            headers["Content-Range"] = f"{span}/{total}"
        return httpx.Response(200, json=page, headers=headers)

    # -- aggregate procedures -------------------------------------------------

    def _owned(self, user_id: str) -> List[Dict[str, Any]]:
        rows = [row for row in self.rows if row["user_id"] == user_id]
        return sorted(rows, key=lambda row: _parse_ts(row["incident_date"]), reverse=True)

    def _rpc(self, name: str, params: Dict[str, Any]) -> httpx.Response:
        handlers = {
            "get_user_incident_stats": self._rpc_stats,
            "get_monthly_trends": self._rpc_trends,
            "get_trigger_frequency": self._rpc_triggers,
            "get_symptom_frequency": self._rpc_symptoms,
        }
        if not self.procedures_enabled or name not in handlers:
            return httpx.Response(404, json={"message": f"function {name} does not exist"})
        return httpx.Response(200, json=handlers[name](params))

    def _rpc_stats(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = self._owned(params["user_uuid"])
        if not rows:
            return [{"total_incidents": 0, "average_per_month": 0, "most_common_severity": "Mild",
                     "longest_streak_days": 0, "current_streak_days": 0,
                     "this_month_count": 0, "last_month_count": 0}]
        now = datetime.now(timezone.utc)
        dates = sorted(_parse_ts(row["incident_date"]) for row in rows)
        counts = Counter(row["severity"] for row in rows)
        most_common = max(counts, key=counts.get)
        months = {d.strftime("%Y-%m") for d in dates}
        previous = now.replace(day=1) - timedelta(days=1)
        gaps = [(b - a).days for a, b in zip(dates, dates[1:])]
        return [{
            "total_incidents": len(rows),
            "average_per_month": _half_up(len(rows) / len(months), 1),
            "most_common_severity": most_common,
            "longest_streak_days": max(gaps, default=0),
            "current_streak_days": max(0, (now - dates[-1]).days),
            "this_month_count": sum(1 for d in dates if (d.year, d.month) == (now.year, now.month)),
            "last_month_count": sum(
                1 for d in dates if (d.year, d.month) == (previous.year, previous.month)
            ),
        }]

    def _rpc_trends(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        first = now.year * 12 + now.month - 1 - (params["months_back"] - 1)
        buckets: Dict[str, Dict[str, Any]] = {}
        for row in self._owned(params["user_uuid"]):
            when = _parse_ts(row["incident_date"])
            if when.year * 12 + when.month - 1 < first:
                continue
            bucket = buckets.setdefault(
                f"{when:%Y-%m}-01",
                {"count": 0, "severities": Counter(), "durations": []},
            )
            bucket["count"] += 1
            bucket["severities"][row["severity"]] += 1
            if row.get("duration_minutes"):
                bucket["durations"].append(row["duration_minutes"])
        return [
            {
                "month": month,
                "incident_count": bucket["count"],
                "severity_breakdown": {
                    level: bucket["severities"][level] for level in ("Mild", "Moderate", "Severe")
                },
                "avg_duration_minutes": (
                    _half_up(sum(bucket["durations"]) / len(bucket["durations"]), 0)
                    if bucket["durations"] else 0
                ),
            }
            for month, bucket in buckets.items()
        ]

    def _rpc_triggers(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = self._owned(params["user_uuid"])
        counts: Counter = Counter()
        categories: Dict[str, str] = {}
        for row in rows:
            for food in row.get("foods") or []:
                counts[food] += 1
                categories[food] = "food"
            for activity in row.get("activities") or []:
                counts[activity] += 1
                categories[activity] = "activity"
        ranked = sorted(counts, key=lambda label: counts[label], reverse=True)
        return [
            {
                "trigger": label,
                "count": counts[label],
                "percentage": counts[label] / len(rows) * 100,
                "category": categories[label],
            }
            for label in ranked[:params["limit_count"]]
        ]

    def _rpc_symptoms(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = self._owned(params["user_uuid"])
        counts: Counter = Counter()
        severities: Dict[str, Counter] = {}
        for row in rows:
            for symptom in row["symptoms"]:
                counts[symptom] += 1
                severities.setdefault(symptom, Counter())[row["severity"]] += 1
        ranked = sorted(counts, key=lambda label: counts[label], reverse=True)
        return [
            {
                "symptom": label,
                "count": counts[label],
                "percentage": counts[label] / len(rows) * 100,
                "severity_distribution": {
                    level: severities[label][level] for level in ("Mild", "Moderate", "Severe")
                },
            }
            for label in ranked
        ]


@pytest.fixture
def fake_backend() -> FakeBackend:
    backend = FakeBackend()
    backend.add_user("token-a", "owner-a")
    backend.add_user("token-b", "owner-b")
    return backend


@pytest.fixture
def local_storage(test_config) -> LocalStorage:
    return LocalStorage(test_config.demo.storage_dir)


@pytest.fixture
def demo_store(local_storage, test_config) -> DemoIncidentStore:
    return DemoIncidentStore(local_storage, test_config.demo)


@pytest.fixture
def remote_store(fake_backend, test_config) -> RemoteIncidentStore:
    return RemoteIncidentStore(
        test_config.backend, access_token="token-a", transport=fake_backend.transport
    )


@pytest.fixture(params=["demo", "remote"])
def any_store(request, demo_store, remote_store):
    """Both store implementations, for contract tests."""
    return demo_store if request.param == "demo" else remote_store


@pytest.fixture
def coordinator() -> CacheCoordinator:
    return CacheCoordinator()


@pytest.fixture
def owner_context() -> SessionContext:
    return SessionContext.for_user("owner-a", "token-a")


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
