"""HTTP store for the hosted backend.

Talks to the backend's REST row interface (PostgREST conventions),
its aggregate procedures under /rest/v1/rpc and its session endpoint
under /auth/v1. Every request carries the public API key and, when
signed in, the user's bearer token.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from allertrack.core.config import BackendConfig
from allertrack.core.exceptions import (
    AllerTrackError,
    DataValidationError,
    NetworkError,
    NotFoundError,
    StorageUnavailableError,
    UnauthenticatedError,
)
from allertrack.core.resilience import network_retry
from allertrack.data.schema import (
    Incident,
    IncidentCreate,
    IncidentFilters,
    IncidentUpdate,
    PaginatedIncidents,
    Pagination,
    SearchParams,
)

from .base import IncidentStore

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "occurred_at": "incident_date",
    "severity": "severity",
    "created_at": "created_at",
}

QueryParams = List[Tuple[str, str]]


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _array_literal(values: Iterable[str]) -> str:
    return "{" + ",".join(_quote(v) for v in values) + "}"


def _timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def filter_params(owner_id: str, filters: IncidentFilters) -> QueryParams:
    """
    Translate filters into row-interface query parameters.

    Args:
        owner_id: Every query is scoped to this owner
        filters: Validated filters

    Returns:
        List of (name, value) pairs; names may repeat
    """
    params: QueryParams = [("user_id", f"eq.{owner_id}")]
    if filters.date_from:
        params.append(("incident_date", f"gte.{_timestamp(filters.date_from)}"))
    if filters.date_to:
        params.append(("incident_date", f"lte.{_timestamp(filters.date_to)}"))
    if filters.severity:
        levels = ",".join(level.value for level in filters.severity)
        params.append(("severity", f"in.({levels})"))
    if filters.symptoms:
        params.append(("symptoms", f"ov.{_array_literal(filters.symptoms)}"))
    if filters.foods:
        params.append(("foods", f"ov.{_array_literal(filters.foods)}"))
    if filters.search:
        term = filters.search
        pattern = _quote(f"*{term}*")
        label = _array_literal([term])
        params.append((
            "or",
            f"(notes.ilike.{pattern},symptoms.cs.{label},"
            f"foods.cs.{label},activities.cs.{label})",
        ))
    return params


def _total_from_content_range(header: Optional[str], fallback: int) -> int:
    # Format: "0-9/42" or "*/0"
    if not header or "/" not in header:
        return fallback
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else fallback


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("msg") or body.get("error") or body)
    return str(body)


def raise_for_status(response: httpx.Response) -> None:
    """Map backend HTTP failures onto the error taxonomy."""
    if response.is_success:
        return
    status = response.status_code
    detail = _error_detail(response)
    if status in (401, 403):
        raise UnauthenticatedError(f"Authentication required: {detail}")
    if status == 404:
        raise NotFoundError(f"Not found: {detail}")
    if status in (400, 409, 422):
        raise DataValidationError(f"Rejected by backend: {detail}")
    if status >= 500:
        raise StorageUnavailableError(
            f"Backend error {status}: {detail}", status=status, retryable=True
        )
    raise AllerTrackError(f"Unexpected backend response {status}: {detail}", status=status)


class RemoteIncidentStore(IncidentStore):
    """Incident store backed by the hosted relational table.

    A fresh httpx.AsyncClient is opened per request with the configured
    timeout; network-classed failures are retried with backoff, except
    for inserts, which are sent once.

    Usage:
        store = RemoteIncidentStore(config.backend, access_token=token)
        page = await store.query(owner_id, SearchParams())
    """

    supports_procedures = True

    def __init__(
        self,
        settings: BackendConfig,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the store.

        Args:
            settings: Backend connection settings
            access_token: Bearer token of the signed-in user
            transport: Optional transport override (used by tests)

        Raises:
            StorageUnavailableError: If the backend is not configured
        """
        if not settings.is_configured:
            raise StorageUnavailableError("Database connection not available")
        self.settings = settings
        self.base_url = str(settings.url).rstrip("/")
        self.access_token = access_token
        self.transport = transport
        self.table_path = f"/rest/v1/{settings.incidents_table}"
        self._retrying_send = network_retry(settings)(self._send_once)

        logger.info(f"Initialized {self.__class__.__name__} with base_url={self.base_url}")

    def _headers(self, prefer: Optional[str] = None, token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": str(self.settings.anon_key),
            "Authorization": f"Bearer {token or self.access_token or self.settings.anon_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.settings.timeout_seconds,
            transport=self.transport,
        )

    async def _send_once(
        self,
        method: str,
        path: str,
        params: Optional[QueryParams] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            async with self._get_client() as client:
                response = await client.request(
                    method, path, params=params, json=json, headers=headers
                )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request to backend timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Could not reach backend: {exc}") from exc
        raise_for_status(response)
        return response

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[QueryParams] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        idempotent: bool = True,
    ) -> httpx.Response:
        # Non-idempotent writes are sent exactly once
        if not idempotent:
            return await self._send_once(method, path, params, json, headers)
        return await self._retrying_send(method, path, params, json, headers)

    async def current_user_id(self, access_token: Optional[str] = None) -> Optional[str]:
        """Resolve the session's owner id, or None when the token is missing or rejected."""
        token = access_token or self.access_token
        if not token:
            return None
        try:
            response = await self._send("GET", "/auth/v1/user", headers=self._headers(token=token))
        except UnauthenticatedError:
            return None
        return response.json().get("id")

    async def query(self, owner_id: str, params: SearchParams) -> PaginatedIncidents:
        query = [("select", "*")] + filter_params(owner_id, params.filters)
        column = SORT_COLUMNS[params.sort_by]
        query.append(("order", f"{column}.{params.sort_order}"))
        query.append(("offset", str(params.offset)))
        query.append(("limit", str(params.limit)))

        response = await self._send(
            "GET", self.table_path, params=query, headers=self._headers(prefer="count=exact")
        )
        items = [Incident.model_validate(row) for row in response.json()]
        total = _total_from_content_range(response.headers.get("Content-Range"), len(items))
        return PaginatedIncidents(
            items=items,
            pagination=Pagination.build(params.page, params.limit, total),
        )

    async def fetch(self, owner_id: str, incident_id: str) -> Incident:
        query = [("select", "*"), ("id", f"eq.{incident_id}"), ("user_id", f"eq.{owner_id}")]
        response = await self._send("GET", self.table_path, params=query, headers=self._headers())
        rows = response.json()
        if not rows:
            raise NotFoundError()
        return Incident.model_validate(rows[0])

    async def fetch_all(
        self, owner_id: str, since: Optional[datetime] = None
    ) -> List[Incident]:
        query = [("select", "*"), ("user_id", f"eq.{owner_id}")]
        if since is not None:
            query.append(("incident_date", f"gte.{_timestamp(since)}"))
        query.append(("order", "incident_date.desc"))
        response = await self._send("GET", self.table_path, params=query, headers=self._headers())
        return [Incident.model_validate(row) for row in response.json()]

    async def insert(self, owner_id: str, data: IncidentCreate) -> Incident:
        record = data.model_dump(mode="json", by_alias=True)
        record["user_id"] = owner_id
        response = await self._send(
            "POST",
            self.table_path,
            json=record,
            headers=self._headers(prefer="return=representation"),
            idempotent=False,
        )
        rows = response.json()
        if not rows:
            raise StorageUnavailableError("Failed to create incident: empty response")
        return Incident.model_validate(rows[0])

    async def patch(
        self, owner_id: str, incident_id: str, changes: IncidentUpdate
    ) -> Incident:
        body = changes.model_dump(mode="json", by_alias=True, include=changes.model_fields_set)
        body["updated_at"] = _timestamp(datetime.now(timezone.utc))
        query = [("id", f"eq.{incident_id}"), ("user_id", f"eq.{owner_id}")]
        response = await self._send(
            "PATCH",
            self.table_path,
            params=query,
            json=body,
            headers=self._headers(prefer="return=representation"),
        )
        rows = response.json()
        if not rows:
            raise NotFoundError()
        return Incident.model_validate(rows[0])

    async def remove(self, owner_id: str, incident_id: str) -> None:
        query = [("id", f"eq.{incident_id}"), ("user_id", f"eq.{owner_id}")]
        response = await self._send(
            "DELETE",
            self.table_path,
            params=query,
            headers=self._headers(prefer="return=representation"),
        )
        if not response.json():
            raise NotFoundError()

    async def call_procedure(self, name: str, params: Dict[str, Any]) -> Any:
        response = await self._send(
            "POST", f"/rest/v1/rpc/{name}", json=params, headers=self._headers()
        )
        return response.json()
