"""Storage strategy interface for incidents.

Both the hosted backend and the local demo collection implement this
interface, so the access layer and the analytics strategies never know
which one they are talking to.

Usage:
    class MyStore(IncidentStore):
        async def fetch(self, owner_id: str, incident_id: str) -> Incident:
            ...
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from allertrack.core.exceptions import StorageUnavailableError
from allertrack.data.schema import (
    Incident,
    IncidentCreate,
    IncidentUpdate,
    PaginatedIncidents,
    SearchParams,
)

logger = logging.getLogger(__name__)


def new_incident_id(prefix: str = "") -> str:
    return f"{prefix}{uuid4()}"


def build_incident(
    owner_id: str,
    data: IncidentCreate,
    incident_id: str,
    now: Optional[datetime] = None,
) -> Incident:
    """Assign id and bookkeeping timestamps to validated input."""
    now = now or datetime.now(timezone.utc)
    return Incident(
        id=incident_id,
        owner=owner_id,
        created_at=now,
        updated_at=now,
        **data.model_dump(),
    )


def apply_patch(
    incident: Incident,
    changes: IncidentUpdate,
    now: Optional[datetime] = None,
) -> Incident:
    """Merge provided fields only and refresh updated_at."""
    now = now or datetime.now(timezone.utc)
    update: Dict[str, Any] = dict(changes.changes())
    update["updated_at"] = now
    return incident.model_copy(update=update, deep=True)


class IncidentStore(ABC):
    """Async CRUD and query operations scoped by owner.

    Every method takes the owner id explicitly; records owned by anyone
    else behave as if they did not exist.
    """

    supports_procedures: bool = False

    @abstractmethod
    async def query(self, owner_id: str, params: SearchParams) -> PaginatedIncidents:
        """Filtered, sorted, paginated listing."""

    @abstractmethod
    async def fetch(self, owner_id: str, incident_id: str) -> Incident:
        """Single incident. Raises NotFoundError."""

    @abstractmethod
    async def fetch_all(
        self, owner_id: str, since: Optional[datetime] = None
    ) -> List[Incident]:
        """Every incident of the owner, optionally only those on or after `since`."""

    @abstractmethod
    async def insert(self, owner_id: str, data: IncidentCreate) -> Incident:
        """Persist a new incident and return it with id and timestamps."""

    @abstractmethod
    async def patch(
        self, owner_id: str, incident_id: str, changes: IncidentUpdate
    ) -> Incident:
        """Partial update. Raises NotFoundError."""

    @abstractmethod
    async def remove(self, owner_id: str, incident_id: str) -> None:
        """Hard delete. Raises NotFoundError."""

    async def call_procedure(self, name: str, params: Dict[str, Any]) -> Any:
        """Run a named aggregate procedure on the backing store."""
        raise StorageUnavailableError(
            f"{self.__class__.__name__} does not provide procedure {name}"
        )
