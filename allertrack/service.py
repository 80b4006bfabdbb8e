"""
Incident access layer.

One interface over the remote and demo stores. Every call is scoped to
the session's owner; reads are cached per parameter shape and every
mutation marks all derived views stale.

Flow of a mutation:

    Raw input
        ↓
    Validation → IncidentCreate / IncidentUpdate
        ↓
    Store (remote table or demo collection)
        ↓
    CacheCoordinator.invalidate_all / invalidate_one
"""

import logging
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Union

from allertrack.cache.coordinator import INCIDENT, INCIDENTS, RECENT_INCIDENTS, CacheCoordinator
from allertrack.core.config import Config, config as default_config
from allertrack.core.context import SessionContext
from allertrack.core.exceptions import DataValidationError, UnauthenticatedError
from allertrack.data.schema import (
    Incident,
    IncidentCreate,
    IncidentUpdate,
    PaginatedIncidents,
    SearchParams,
    Severity,
)
from allertrack.data.validation import validate_create, validate_search_params, validate_update
from allertrack.store.base import IncidentStore

logger = logging.getLogger(__name__)

SearchInput = Union[SearchParams, Mapping[str, Any], None]


class IncidentService:
    """
    CRUD and listing for the current owner's incidents.

    Usage:
        service = IncidentService(store, SessionContext.demo("demo-user"), coordinator)
        incident = await service.create({"occurred_at": now, "severity": "Mild", "symptoms": ["Hives"]})
        page = await service.list({"page": 1, "filters": {"severity": ["Mild"]}})
    """

    def __init__(
        self,
        store: Optional[IncidentStore],
        context: SessionContext,
        coordinator: CacheCoordinator,
        settings: Optional[Config] = None,
    ):
        self.store = store
        self.context = context
        self.coordinator = coordinator
        self.settings = settings or default_config

    def _owner(self) -> str:
        owner_id = self.context.require_owner()
        self.coordinator.ensure_current(self.context.owner_key)
        if self.store is None:
            raise UnauthenticatedError("No incident store for this session")
        return owner_id

    @property
    def cache(self):
        return self.coordinator.cache

    async def list(self, params: SearchInput = None) -> PaginatedIncidents:
        """
        Filtered, sorted, paginated listing.

        Raises:
            UnauthenticatedError: If no owner and not in demo mode
            DataValidationError: If params are out of bounds
        """
        owner_id = self._owner()
        search = validate_search_params(params, self.settings.validation)
        return await self.cache.get_or_load(
            (INCIDENTS, search.cache_key()),
            lambda: self.store.query(owner_id, search),
        )

    async def get(self, incident_id: str) -> Incident:
        """
        Single incident by id.

        Raises:
            NotFoundError: If absent or owned by someone else
        """
        owner_id = self._owner()
        return await self.cache.get_or_load(
            (INCIDENT, incident_id),
            lambda: self.store.fetch(owner_id, incident_id),
        )

    async def create(self, data: Union[IncidentCreate, Mapping[str, Any]]) -> Incident:
        owner_id = self._owner()
        payload = validate_create(data, self.settings.validation)
        incident = await self.store.insert(owner_id, payload)
        logger.info(f"Created incident {incident.id}")
        self.coordinator.invalidate_all()
        return incident

    async def update(
        self,
        incident_id: str,
        changes: Union[IncidentUpdate, Mapping[str, Any], None],
    ) -> Incident:
        """
        Merge provided fields only; unspecified fields are preserved.

        Raises:
            NotFoundError: If absent or owned by someone else
            DataValidationError: If a provided field is out of bounds
        """
        owner_id = self._owner()
        patch = validate_update(changes, self.settings.validation)
        incident = await self.store.patch(owner_id, incident_id, patch)
        logger.info(f"Updated incident {incident_id} ({len(patch.model_fields_set)} fields)")
        self.coordinator.invalidate_one(incident_id)
        return incident

    async def delete(self, incident_id: str) -> None:
        """
        Remove permanently. A second call fails with NotFoundError.
        """
        owner_id = self._owner()
        await self.store.remove(owner_id, incident_id)
        logger.info(f"Deleted incident {incident_id}")
        self.coordinator.invalidate_one(incident_id)

    async def recent(self, n: int = 10) -> List[Incident]:
        """Most recent incidents by occurred_at, newest first."""
        if n < 1:
            raise DataValidationError("n must be at least 1", field="n")
        owner_id = self._owner()
        params = validate_search_params(
            {"limit": n, "sort_by": "occurred_at", "sort_order": "desc"},
            self.settings.validation,
        )

        async def load() -> List[Incident]:
            page = await self.store.query(owner_id, params)
            return page.items

        return await self.cache.get_or_load((RECENT_INCIDENTS, n), load)

    async def search(self, term: str, limit: int = 20) -> List[Incident]:
        """Incidents whose notes contain the term or whose labels equal it."""
        page = await self.list({"limit": limit, "filters": {"search": term}})
        return page.items

    async def by_severity(
        self, levels: Iterable[Union[Severity, str]], limit: Optional[int] = None
    ) -> List[Incident]:
        params = {"filters": {"severity": list(levels)}}
        if limit is not None:
            params["limit"] = limit
        page = await self.list(params)
        return page.items

    async def in_date_range(
        self, start: datetime, end: datetime, limit: Optional[int] = None
    ) -> List[Incident]:
        """Incidents with start <= occurred_at <= end."""
        params = {"filters": {"date_from": start, "date_to": end}}
        if limit is not None:
            params["limit"] = limit
        page = await self.list(params)
        return page.items
