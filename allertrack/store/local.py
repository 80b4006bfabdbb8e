"""
Local persisted storage and the demo-mode incident store.

LocalStorage is a string key/value store persisted as a single JSON
document inside a profile directory, the same shape as browser local
storage. It survives restarts of the same profile and is erased on
sign-out or when demo mode is exited.

Limitations:
- Not safe against concurrent writers in separate processes; the last
  write wins and no conflict is detected.
"""

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from allertrack.core.config import DemoConfig
from allertrack.core.exceptions import NotFoundError, StorageUnavailableError
from allertrack.data.query import run_query
from allertrack.data.schema import (
    Incident,
    IncidentCreate,
    IncidentUpdate,
    PaginatedIncidents,
    SearchParams,
)
from allertrack.data.seed import initial_demo_incidents

from .base import IncidentStore, apply_patch, build_incident, new_incident_id

logger = logging.getLogger(__name__)

DEMO_MODE_KEY = "demo-mode"
DEMO_INCIDENTS_KEY = "demo-incidents"
STORAGE_FILENAME = "local_storage.json"

# Substrings marking owner-scoped keys that must not outlive a session
USER_SCOPED_MARKERS = ("demo-", "user-", "incident-")


class LocalStorage:
    """
    Persisted string key/value storage.

    Every call reads or writes the whole document; collections here are small.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.path = self.directory / STORAGE_FILENAME

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read local storage %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Local storage %s is not a key/value document", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: Dict[str, str]) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageUnavailableError(f"Local storage not writable: {exc}") from exc

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def keys(self) -> List[str]:
        return list(self._load().keys())

    def remove_matching(self, predicate: Callable[[str], bool]) -> List[str]:
        """Remove every key the predicate accepts. Returns removed keys."""
        data = self._load()
        removed = [k for k in data if predicate(k)]
        if removed:
            for key in removed:
                del data[key]
            self._save(data)
        return removed

    def clear(self) -> None:
        self._save({})


def is_demo_mode(storage: LocalStorage) -> bool:
    return storage.get_item(DEMO_MODE_KEY) == "true"


def enable_demo_mode(storage: LocalStorage) -> None:
    storage.set_item(DEMO_MODE_KEY, "true")


def disable_demo_mode(storage: LocalStorage) -> None:
    storage.remove_item(DEMO_MODE_KEY)


def clear_all_demo_data(storage: LocalStorage) -> None:
    """Remove the demo flag and the demo collection."""
    storage.remove_item(DEMO_MODE_KEY)
    storage.remove_item(DEMO_INCIDENTS_KEY)


def purge_user_data(storage: LocalStorage) -> List[str]:
    """Remove every owner-scoped key, including demo state."""
    removed = storage.remove_matching(
        lambda key: any(marker in key for marker in USER_SCOPED_MARKERS)
    )
    if removed:
        logger.info("Purged %d owner-scoped local storage keys", len(removed))
    return removed


class DemoIncidentStore(IncidentStore):
    """
    Incident store backed by the demo collection in LocalStorage.

    Notes:
    - The collection is seeded lazily on first access.
    - New incidents are prepended so the most recent entry sits at the head.
    - Every operation waits latency_seconds to mimic a network round trip.
    """

    def __init__(self, storage: LocalStorage, settings: Optional[DemoConfig] = None):
        self.storage = storage
        self.settings = settings or DemoConfig()

    async def _delay(self) -> None:
        if self.settings.latency_seconds > 0:
            await asyncio.sleep(self.settings.latency_seconds)

    def _seed(self) -> List[Incident]:
        seeded = initial_demo_incidents(owner_id=self.settings.owner_id)
        self._write(seeded)
        return seeded

    def _read(self) -> List[Incident]:
        raw = self.storage.get_item(DEMO_INCIDENTS_KEY)
        if raw is None:
            return self._seed()
        try:
            return [Incident.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValidationError) as exc:
            logger.warning("Failed to parse demo incidents, reseeding: %s", exc)
            return self._seed()

    def _write(self, incidents: List[Incident]) -> None:
        payload = [incident.to_record() for incident in incidents]
        self.storage.set_item(DEMO_INCIDENTS_KEY, json.dumps(payload))

    def _owned(self, owner_id: str) -> List[Incident]:
        return [i for i in self._read() if i.owner == owner_id]

    async def query(self, owner_id: str, params: SearchParams) -> PaginatedIncidents:
        await self._delay()
        return run_query(self._owned(owner_id), params)

    async def fetch(self, owner_id: str, incident_id: str) -> Incident:
        await self._delay()
        for incident in self._owned(owner_id):
            if incident.id == incident_id:
                return incident
        raise NotFoundError()

    async def fetch_all(
        self, owner_id: str, since: Optional[datetime] = None
    ) -> List[Incident]:
        await self._delay()
        incidents = self._owned(owner_id)
        if since is not None:
            incidents = [i for i in incidents if i.occurred_at >= since]
        return incidents

    async def insert(self, owner_id: str, data: IncidentCreate) -> Incident:
        await self._delay()
        incident = build_incident(owner_id, data, new_incident_id("demo-"))
        incidents = self._read()
        incidents.insert(0, incident)
        self._write(incidents)
        return incident

    async def patch(
        self, owner_id: str, incident_id: str, changes: IncidentUpdate
    ) -> Incident:
        await self._delay()
        incidents = self._read()
        for index, incident in enumerate(incidents):
            if incident.id == incident_id and incident.owner == owner_id:
                updated = apply_patch(incident, changes)
                incidents[index] = updated
                self._write(incidents)
                return updated
        raise NotFoundError()

    async def remove(self, owner_id: str, incident_id: str) -> None:
        await self._delay()
        incidents = self._read()
        remaining = [
            i for i in incidents
            if not (i.id == incident_id and i.owner == owner_id)
        ]
        if len(remaining) == len(incidents):
            raise NotFoundError()
        self._write(remaining)

    def reset(self) -> None:
        """Restore the seed collection."""
        self._seed()

    def clear(self) -> None:
        """Drop the collection; the next access reseeds it."""
        self.storage.remove_item(DEMO_INCIDENTS_KEY)
