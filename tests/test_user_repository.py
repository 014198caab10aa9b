import asyncio

import pytest

from patinfly import config
from patinfly.auth import PasswordHasher
from patinfly.errors import AuthenticationError, InvalidPayloadError, StorageError, TransportError
from patinfly.logger import SecureLogger
from patinfly.schemas import UserApiModel
from patinfly.seed import UserSeedSource
from patinfly.session import SessionState
from patinfly.user_repository import UserRepository


@pytest.fixture
def online():
    return {"value": True}

@pytest.fixture
def activity_log(database):
    return SecureLogger(database)

@pytest.fixture
def repository(user_store, gateway, session, online, activity_log):
    return UserRepository(
        user_store, UserSeedSource(), gateway, session, lambda: online["value"],
        hasher=PasswordHasher(rounds=4), activity_log=activity_log
    )


def test_login_caches_user_and_token(repository, gateway, user_store, settings, login_result_factory):
    gateway.login_result = login_result_factory(access="login-access-token")
    gateway.profile = UserApiModel(id=7, email="rider@patinfly.dev", first_name="Ada", last_name="Rider",
                                   access_token="profile-token-must-not-win")

    user = asyncio.run(repository.login("rider@patinfly.dev", "s3cret", "tests"))

    assert user.name == "Ada Rider"
    assert user.access_token == "login-access-token"
    assert user.refresh_token == "refresh-token"
    assert user.group == config.DEFAULT_GROUP
    assert user.creation_date == user.last_connection
    assert user.creation_date.endswith("Z")
    assert PasswordHasher().verify_password("s3cret", user.hashed_password)
    assert repository.auth_token() == "login-access-token"
    assert asyncio.run(user_store.get_by_email("RIDER@patinfly.dev")).uuid == user.uuid
    # survives a restart through the settings store
    assert SessionState(settings).restore() == "login-access-token"


def test_login_without_profile_uses_login_data(repository, gateway, login_result_factory):
    gateway.login_result = login_result_factory()
    gateway.user_error = TransportError("down")

    user = asyncio.run(repository.login("rider@patinfly.dev", "pw", ""))
    assert user.email == "rider@patinfly.dev"
    assert user.name == "rider"


def test_failed_login_keeps_session_and_is_audited(repository, gateway, session, activity_log):
    with pytest.raises(AuthenticationError):
        asyncio.run(repository.login("rider@patinfly.dev", "wrong", ""))

    assert session.current_token() == "session-token-abcdefghij"
    assert activity_log.check_unread_alerts() == 1


def test_get_by_email_store_hit(repository, user_store, gateway, user_factory):
    asyncio.run(user_store.save(user_factory(email="rider@patinfly.dev")))

    assert asyncio.run(repository.get_by_email(" Rider@Patinfly.dev")) is not None
    assert gateway.calls == []


def test_get_by_email_offline_is_none(repository, gateway, online):
    online["value"] = False
    assert asyncio.run(repository.get_by_email("rider@patinfly.dev")) is None
    assert gateway.calls == []


def test_get_by_email_fetches_and_caches(repository, gateway, user_store, user_factory):
    gateway.current_user = user_factory(email="rider@patinfly.dev")

    user = asyncio.run(repository.get_by_email("rider@patinfly.dev"))
    assert user.uuid == gateway.current_user.uuid
    assert asyncio.run(user_store.get_by_key(user.uuid)) is not None


def test_get_by_email_rejects_empty_profile(repository, gateway, user_factory):
    gateway.current_user = user_factory(email="")
    with pytest.raises(InvalidPayloadError):
        asyncio.run(repository.get_by_email("rider@patinfly.dev"))


def test_get_by_email_propagates_transport_errors(repository, gateway):
    gateway.user_error = TransportError("HTTP 500", status_code=500)
    with pytest.raises(TransportError):
        asyncio.run(repository.get_by_email("rider@patinfly.dev"))


def test_get_all_users_bulk_sync(repository, gateway, user_store, user_factory):
    gateway.users = [user_factory(email="a@patinfly.dev"), user_factory(email="b@patinfly.dev"), user_factory(email="")]

    users = asyncio.run(repository.get_all_users())
    assert sorted(user.email for user in users) == ["a@patinfly.dev", "b@patinfly.dev"]

    asyncio.run(repository.get_all_users())
    assert gateway.calls == ["fetch_all_users"]


def test_set_update_delete(repository, user_factory):
    user = user_factory()
    assert asyncio.run(repository.set_user(user)) is True
    assert asyncio.run(repository.get_user()).uuid == user.uuid

    user.name = "Renamed"
    assert asyncio.run(repository.update_user(user)).name == "Renamed"
    assert asyncio.run(repository.delete(user.uuid)).name == "Renamed"
    assert asyncio.run(repository.delete(user.uuid)) is None


def test_populate_from_seed(repository):
    assert asyncio.run(repository.populate_from_seed()) == 1
    assert asyncio.run(repository.get_by_email("rider@patinfly.dev")).device_id == "ABC123DEF456"


def test_login_that_cannot_cache_leaves_session_alone(repository, gateway, session, login_result_factory, monkeypatch):
    gateway.login_result = login_result_factory(access="never-stored-token")

    async def failing_save(user):
        raise StorageError("disk full")
    monkeypatch.setattr(repository.store, "save", failing_save)

    with pytest.raises(StorageError):
        asyncio.run(repository.login("rider@patinfly.dev", "pw", ""))

    assert session.current_token() == "session-token-abcdefghij"
    assert SessionState(session.settings).restore() == "session-token-abcdefghij"
