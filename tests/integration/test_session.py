"""
Integration tests for session lifecycle and owner switching.

After any owner change no incident of the previous owner may be visible,
whether it was cached in memory or persisted in local storage.
"""

import pytest

from allertrack.core.exceptions import UnauthenticatedError
from allertrack.session import Session
from allertrack.store.local import DEMO_INCIDENTS_KEY, DEMO_MODE_KEY, LocalStorage

from tests.conftest import make_incident

pytestmark = pytest.mark.integration


@pytest.fixture
def session(test_config, local_storage, fake_backend):
    return Session(test_config, storage=local_storage, transport=fake_backend.transport)


@pytest.mark.asyncio
async def test_fresh_session_is_anonymous(session):
    context = await session.restore()

    assert not context.is_authenticated
    with pytest.raises(UnauthenticatedError):
        await session.incidents().list()
    with pytest.raises(UnauthenticatedError):
        await session.analytics().stats()


@pytest.mark.asyncio
async def test_enable_demo_persists_flag_and_seeds(session, local_storage):
    await session.enable_demo()

    page = await session.incidents().list()

    assert page.pagination.total == 5
    assert local_storage.get_item(DEMO_MODE_KEY) == "true"
    assert local_storage.get_item(DEMO_INCIDENTS_KEY) is not None


@pytest.mark.asyncio
async def test_restore_reenters_demo_with_data(test_config, local_storage, session, create_payload):
    await session.enable_demo()
    created = await session.incidents().create(create_payload)

    restarted = Session(test_config, storage=LocalStorage(local_storage.directory))
    context = await restarted.restore()

    assert context.demo_mode
    assert (await restarted.incidents().get(created.id)).id == created.id


@pytest.mark.asyncio
async def test_exit_demo_erases_everything(session, local_storage):
    await session.enable_demo()
    await session.incidents().list()

    session.exit_demo()

    assert local_storage.get_item(DEMO_MODE_KEY) is None
    assert local_storage.get_item(DEMO_INCIDENTS_KEY) is None
    assert len(session.coordinator.cache) == 0
    with pytest.raises(UnauthenticatedError):
        await session.incidents().list()


@pytest.mark.asyncio
async def test_sign_in_rejected_token(session):
    with pytest.raises(UnauthenticatedError):
        await session.sign_in("bogus")
    assert not session.context.is_authenticated


@pytest.mark.asyncio
async def test_switching_users_leaves_no_residue(session, fake_backend, now):
    """Sign out then sign in as someone else: nothing of the first owner is visible."""
    fake_backend.add_incidents([make_incident(now, owner="owner-a", notes="a's incident")])
    fake_backend.add_incidents([make_incident(now, owner="owner-b", notes="b's incident")])

    await session.sign_in("token-a")
    first = await session.incidents().list()
    await session.analytics().stats()
    assert [i.notes for i in first.items] == ["a's incident"]

    session.sign_out()
    assert len(session.coordinator.cache) == 0

    await session.sign_in("token-b")
    second = await session.incidents().list()
    stats = await session.analytics().stats()

    assert [i.notes for i in second.items] == ["b's incident"]
    assert all(i.owner == "owner-b" for i in second.items)
    assert stats.total_incidents == 1


@pytest.mark.asyncio
async def test_user_to_demo_leaves_no_residue(session, fake_backend, local_storage, now):
    fake_backend.add_incidents([make_incident(now, owner="owner-a")])
    local_storage.set_item("user-preferences", "{}")

    await session.sign_in("token-a")
    await session.incidents().list()
    await session.enable_demo()

    page = await session.incidents().list()

    assert all(i.owner == "demo-user" for i in page.items)
    assert local_storage.get_item("user-preferences") is None
    assert local_storage.get_item(DEMO_MODE_KEY) == "true"


@pytest.mark.asyncio
async def test_demo_to_user_clears_demo_state(session, local_storage):
    await session.enable_demo()
    await session.incidents().list()

    await session.sign_in("token-a")

    assert local_storage.get_item(DEMO_MODE_KEY) is None
    assert local_storage.get_item(DEMO_INCIDENTS_KEY) is None
    assert (await session.incidents().list()).items == []


def test_from_env_loads_dotenv(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text(
        f"ALLERTRACK_LOGS_DIR={tmp_path / 'logs'}\n"
        f"ALLERTRACK_DEMO__STORAGE_DIR={tmp_path / 'profile'}\n"
        "ALLERTRACK_DEMO__LATENCY_SECONDS=0\n"
    )
    for name in ("ALLERTRACK_LOGS_DIR", "ALLERTRACK_DEMO__STORAGE_DIR", "ALLERTRACK_DEMO__LATENCY_SECONDS"):
        # Registered so variables loaded from the file are removed afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)

    session = Session.from_env(env_file)

    assert session.settings.demo.storage_dir == tmp_path / "profile"
    assert session.storage.directory == tmp_path / "profile"


@pytest.mark.asyncio
async def test_services_held_across_owner_change_are_refused(session, fake_backend, now):
    fake_backend.add_incidents([make_incident(now, owner="owner-a")])
    fake_backend.add_incidents([make_incident(now, owner="owner-b")])

    await session.sign_in("token-a")
    held_incidents = session.incidents()
    held_analytics = session.analytics()
    session.sign_out()
    await session.sign_in("token-b")

    with pytest.raises(UnauthenticatedError):
        await held_incidents.list()
    with pytest.raises(UnauthenticatedError):
        await held_analytics.stats()

    page = await session.incidents().list()
    stats = await session.analytics().stats()
    assert [i.owner for i in page.items] == ["owner-b"]
    assert stats.total_incidents == 1
