"""
Store module: interchangeable incident storage strategies.

- RemoteIncidentStore: hosted backend over HTTP
- DemoIncidentStore: local persisted demo collection
"""

from .base import IncidentStore, apply_patch, build_incident
from .local import (
    DEMO_INCIDENTS_KEY,
    DEMO_MODE_KEY,
    DemoIncidentStore,
    LocalStorage,
    clear_all_demo_data,
    disable_demo_mode,
    enable_demo_mode,
    is_demo_mode,
    purge_user_data,
)
from .remote import RemoteIncidentStore, filter_params, raise_for_status

__all__ = [
    "IncidentStore",
    "apply_patch",
    "build_incident",
    "LocalStorage",
    "DemoIncidentStore",
    "DEMO_MODE_KEY",
    "DEMO_INCIDENTS_KEY",
    "is_demo_mode",
    "enable_demo_mode",
    "disable_demo_mode",
    "clear_all_demo_data",
    "purge_user_data",
    "RemoteIncidentStore",
    "filter_params",
    "raise_for_status",
]
