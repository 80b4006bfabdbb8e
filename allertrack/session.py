"""
Session lifecycle: who the current owner is and which store serves them.

A Session owns the SessionContext, the active store and the cache
coordinator. Every owner change (sign-in, sign-out, entering or leaving
demo mode) goes through CacheCoordinator.switch_owner, which drops all
cached views and wipes owner-scoped local storage before new reads.

Usage:
    session = Session.from_env()
    await session.restore()
    await session.enable_demo()
    incidents = session.incidents()
    page = await incidents.list()
"""

import logging
from pathlib import Path
from typing import Optional, Union

import httpx
from dotenv import load_dotenv

from allertrack.analytics.service import AnalyticsService
from allertrack.cache.coordinator import CacheCoordinator
from allertrack.core.config import Config, config as default_config
from allertrack.core.context import SessionContext
from allertrack.core.exceptions import UnauthenticatedError
from allertrack.core.logging_config import setup_logging
from allertrack.service import IncidentService
from allertrack.store.base import IncidentStore
from allertrack.store.local import (
    DemoIncidentStore,
    LocalStorage,
    clear_all_demo_data,
    enable_demo_mode,
    is_demo_mode,
    purge_user_data,
)
from allertrack.store.remote import RemoteIncidentStore

logger = logging.getLogger(__name__)


class Session:
    """
    Explicit replacement for ambient "current user" and "demo mode" state.

    Attributes:
        context: Current SessionContext (anonymous until restored or signed in)
        store: Store serving the current owner, None when anonymous
        coordinator: Cache coordinator shared by every service of this session
    """

    def __init__(
        self,
        settings: Optional[Config] = None,
        storage: Optional[LocalStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: Configuration (defaults to the global config)
            storage: Local storage profile (defaults to settings.demo.storage_dir)
            transport: Optional httpx transport for the remote store (used by tests)
        """
        self.settings = settings or default_config
        self.storage = storage or LocalStorage(self.settings.demo.storage_dir)
        self.transport = transport
        self.context = SessionContext.anonymous()
        self.store: Optional[IncidentStore] = None
        self.coordinator = CacheCoordinator()
        self.coordinator.add_purge_hook(lambda: purge_user_data(self.storage))

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "Session":
        """Load .env, configure logging and build a session from the environment."""
        load_dotenv(env_file)
        settings = Config()
        setup_logging(settings=settings)
        return cls(settings)

    @property
    def demo_mode(self) -> bool:
        return self.context.demo_mode

    def _activate(self, context: SessionContext, store: Optional[IncidentStore]) -> None:
        self.coordinator.switch_owner(context.owner_key)
        self.context = context
        self.store = store

    def _demo_store(self) -> DemoIncidentStore:
        return DemoIncidentStore(self.storage, self.settings.demo)

    def _remote_store(self, access_token: Optional[str]) -> RemoteIncidentStore:
        return RemoteIncidentStore(
            self.settings.backend, access_token=access_token, transport=self.transport
        )

    async def restore(self, access_token: Optional[str] = None) -> SessionContext:
        """
        Resume the previous session.

        Re-enters demo mode when the persisted flag is set, otherwise signs
        in with the given token, otherwise stays anonymous.
        """
        if is_demo_mode(self.storage):
            logger.info("Restoring demo session")
            self._activate(SessionContext.demo(self.settings.demo.owner_id), self._demo_store())
        elif access_token:
            await self.sign_in(access_token)
        else:
            self._activate(SessionContext.anonymous(), None)
        return self.context

    async def sign_in(self, access_token: str) -> SessionContext:
        """
        Resolve the token's owner on the hosted backend and switch to them.

        Raises:
            UnauthenticatedError: If the backend does not accept the token
            StorageUnavailableError: If the backend is not configured
        """
        store = self._remote_store(access_token)
        owner_id = await store.current_user_id()
        if owner_id is None:
            raise UnauthenticatedError("Sign-in failed: session not recognised")

        if self.context.demo_mode:
            clear_all_demo_data(self.storage)
        self._activate(SessionContext.for_user(owner_id, access_token), store)
        logger.info("Signed in")
        return self.context

    def sign_out(self) -> SessionContext:
        """Drop the owner, every cache and all owner-scoped local state."""
        self._activate(SessionContext.anonymous(), None)
        logger.info("Signed out")
        return self.context

    async def enable_demo(self) -> SessionContext:
        """
        Switch to demo mode.

        The previous owner's state is purged before the demo flag is
        persisted, so the purge cannot erase the new flag.
        """
        self._activate(SessionContext.demo(self.settings.demo.owner_id), self._demo_store())
        enable_demo_mode(self.storage)
        logger.info("Demo mode enabled")
        return self.context

    def exit_demo(self) -> SessionContext:
        """Leave demo mode and erase the demo flag and collection."""
        clear_all_demo_data(self.storage)
        self._activate(SessionContext.anonymous(), None)
        logger.info("Demo mode exited")
        return self.context

    def incidents(self) -> IncidentService:
        return IncidentService(self.store, self.context, self.coordinator, self.settings)

    def analytics(self) -> AnalyticsService:
        return AnalyticsService(self.store, self.context, self.coordinator, self.settings.analytics)
