"""
Session context passed explicitly into the access layer and analytics.

Replaces ambient "current user" and "demo mode" globals. A context is
created at session start and replaced on sign-in, sign-out and demo toggles.
"""

from dataclasses import dataclass
from typing import Optional

from .exceptions import UnauthenticatedError


@dataclass(frozen=True)
class SessionContext:
    """
    Who is asking, and against which store.

    Attributes:
        owner_id: Resolved owner identifier, None when signed out
        demo_mode: True when data lives in local demo storage
        access_token: Bearer token for the hosted backend (real mode only)
    """

    owner_id: Optional[str] = None
    demo_mode: bool = False
    access_token: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "SessionContext":
        return cls()

    @classmethod
    def for_user(cls, owner_id: str, access_token: Optional[str] = None) -> "SessionContext":
        return cls(owner_id=owner_id, demo_mode=False, access_token=access_token)

    @classmethod
    def demo(cls, owner_id: str) -> "SessionContext":
        return cls(owner_id=owner_id, demo_mode=True)

    @property
    def is_authenticated(self) -> bool:
        return self.owner_id is not None

    @property
    def owner_key(self) -> str:
        """Identity used to scope caches. Distinct for demo and real owners."""
        if self.owner_id is None:
            return "anonymous"
        prefix = "demo" if self.demo_mode else "user"
        return f"{prefix}:{self.owner_id}"

    def require_owner(self) -> str:
        """
        Return the owner id or fail.

        Raises:
            UnauthenticatedError: If no owner is resolvable
        """
        if self.owner_id is None:
            raise UnauthenticatedError()
        return self.owner_id
