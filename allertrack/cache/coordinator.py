"""
Transient caches of derived views and their invalidation.

Keys are either plain names ("incident-stats") or tuples whose first
element names a family (("incidents", <params key>)). Invalidation is
unconditional and over-inclusive: after any mutation nothing cached
before it may be served again.

Design:
- A generation counter is bumped on every invalidation; a load that was
  in flight across an invalidation returns its value to its caller but
  is never stored, so a superseded read cannot overwrite fresher state.
- Owner changes purge every cache and run registered purge hooks (for
  example wiping owner-scoped local storage) before new reads happen.
  Services bound to an earlier owner are refused by ensure_current().
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Tuple, TypeVar, Union

from allertrack.core.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = Union[str, Tuple[Hashable, ...]]

# Named keys
RECENT_INCIDENTS = "recent-incidents"
INCIDENT_STATS = "incident-stats"
DASHBOARD_DATA = "dashboard-data"
SYMPTOM_FREQUENCY = "symptom-frequency"

# Families keyed by parameters
INCIDENTS = "incidents"
INCIDENT = "incident"
MONTHLY_TRENDS = "monthly-trends"
TRIGGER_FREQUENCY = "trigger-frequency"

NAMED_KEYS = (RECENT_INCIDENTS, INCIDENT_STATS, DASHBOARD_DATA, SYMPTOM_FREQUENCY)
FAMILIES = (INCIDENTS, INCIDENT, MONTHLY_TRENDS, TRIGGER_FREQUENCY)


def family_of(key: CacheKey) -> Hashable:
    """First tuple element, or the key itself for named keys."""
    if isinstance(key, tuple):
        return key[0] if key else None
    return key


class QueryCache:
    """In-process key/value cache with generation-checked loads."""

    def __init__(self):
        self._entries: Dict[CacheKey, Any] = {}
        self.generation = 0

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> List[CacheKey]:
        return list(self._entries)

    def get(self, key: CacheKey, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def set(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = value

    async def get_or_load(self, key: CacheKey, loader: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value, or await the loader and cache its result.

        Args:
            key: Cache key
            loader: Zero-argument coroutine function producing the value

        Returns:
            The cached or freshly loaded value. Loader errors propagate and
            nothing is cached.
        """
        if key in self._entries:
            return self._entries[key]

        generation = self.generation
        value = await loader()
        if generation == self.generation:
            self._entries[key] = value
        else:
            logger.debug("Discarding superseded result for %s", key)
        return value

    def _bump(self) -> None:
        self.generation += 1

    def invalidate(self, key: CacheKey) -> bool:
        self._bump()
        return self._entries.pop(key, None) is not None

    def invalidate_matching(self, predicate: Callable[[CacheKey], bool]) -> int:
        self._bump()
        stale = [key for key in self._entries if predicate(key)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def invalidate_family(self, family: str) -> int:
        return self.invalidate_matching(lambda key: family_of(key) == family)

    def clear(self) -> int:
        self._bump()
        count = len(self._entries)
        self._entries.clear()
        return count


PurgeHook = Callable[[], Any]


class CacheCoordinator:
    """
    Marks every derived view stale after mutations and on owner changes.

    Usage:
        coordinator = CacheCoordinator()
        coordinator.add_purge_hook(lambda: purge_user_data(storage))
        coordinator.switch_owner("user:42")
        ...
        coordinator.invalidate_one(incident.id)
    """

    def __init__(self, cache: Optional[QueryCache] = None):
        self.cache = cache if cache is not None else QueryCache()
        self.owner_key: Optional[str] = None
        self._purge_hooks: List[PurgeHook] = []

    def add_purge_hook(self, hook: PurgeHook) -> None:
        self._purge_hooks.append(hook)

    def ensure_current(self, owner_key: str) -> None:
        """
        Fail if a caller bound to another owner tries to use the caches.

        Raises:
            UnauthenticatedError: If an owner is recorded and differs from owner_key
        """
        if self.owner_key is not None and owner_key != self.owner_key:
            raise UnauthenticatedError("Session changed; this view belongs to a previous owner")

    def invalidate_all(self) -> None:
        """Drop every named key, every family and anything else cached."""
        removed = 0
        for name in NAMED_KEYS:
            removed += int(self.cache.invalidate(name))
        for family in FAMILIES:
            removed += self.cache.invalidate_family(family)
        removed += self.cache.clear()
        logger.debug("Invalidated %d cached views", removed)

    def invalidate_one(self, incident_id: str) -> None:
        """Drop the entry addressed by this incident, then everything else."""
        self.cache.invalidate((INCIDENT, incident_id))
        self.invalidate_all()

    def switch_owner(self, owner_key: str) -> bool:
        """
        Record the current owner, purging on change.

        The first owner recorded by a coordinator only clears caches;
        persisted state is left alone so a restored session keeps its data.

        Args:
            owner_key: Cache scope of the new owner (SessionContext.owner_key)

        Returns:
            True if the owner changed
        """
        if owner_key == self.owner_key:
            return False

        previous = self.owner_key
        self.invalidate_all()
        if previous is not None:
            for hook in self._purge_hooks:
                hook()
            logger.info("Owner changed from %s to %s; purged cached and local state", previous, owner_key)
        self.owner_key = owner_key
        return True
