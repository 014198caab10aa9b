import asyncio
from uuid import uuid4

import pytest
from cryptography.fernet import Fernet

from patinfly import config
from patinfly.database import Database, BikeDatasource, UserDatasource, SystemPricingPlanDatasource
from patinfly.encryption import EncryptionManager
from patinfly.errors import AuthenticationError
from patinfly.models import Bike, BikeType, LoginResult, LoginToken, ServerStatus, User
from patinfly.schemas import UserApiModel
from patinfly.session import SessionState
from patinfly.settings import SettingsStore


class DummyGateway:
    """Stands in for RemoteGateway; records every call by name."""

    def __init__(self):
        self.calls = []
        self.bikes = []
        self.bikes_by_id = {}
        self.users = []
        self.current_user = None
        self.profile = None
        self.login_result = None
        self.login_error = None
        self.user_error = None
        self.delay = 0

    async def _record(self, name):
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)

    async def fetch_bikes(self, token=None):
        await self._record("fetch_bikes")
        return list(self.bikes)

    async def fetch_bike_by_id(self, token, bike_id):
        await self._record("fetch_bike_by_id")
        return self.bikes_by_id.get(bike_id)

    async def fetch_all_users(self):
        await self._record("fetch_all_users")
        return list(self.users)

    async def fetch_current_user(self, token=None):
        await self._record("fetch_current_user")
        if self.user_error:
            raise self.user_error
        return self.current_user

    async def fetch_current_user_payload(self, token=None):
        await self._record("fetch_current_user_payload")
        if self.user_error:
            raise self.user_error
        return self.profile or UserApiModel()

    async def login(self, email, password, origin):
        await self._record("login")
        if self.login_error:
            raise self.login_error
        if self.login_result is None:
            raise AuthenticationError("Login rejected with HTTP 401")
        return self.login_result

    async def fetch_server_status(self):
        await self._record("fetch_server_status")
        return ServerStatus.unavailable()


def make_bike(uuid="bike-1", name="Patinfly E-01", type_name="Electric", **overrides) -> Bike:
    fields = dict(
        uuid=uuid,
        name=name,
        bike_type=BikeType(uuid="EB-01", name=type_name, type="EB-01"),
        bike_type_name=type_name,
        creation_date="2024-03-01T09:00:00",
        is_active=True,
        battery_level=80,
    )
    fields.update(overrides)
    return Bike(**fields)


def make_login_result(access="access-token-1234567890", user_id=7) -> LoginResult:
    return LoginResult(
        success=True,
        token=LoginToken(
            id=user_id,
            email="rider@patinfly.dev",
            access=access,
            expires="2030-01-01T00:00:00Z",
            refresh="refresh-token",
            expires_refresh="2030-02-01T00:00:00Z"
        ),
        version="1.0"
    )


@pytest.fixture
def encryption_manager():
    return EncryptionManager(key=Fernet.generate_key())

@pytest.fixture
def database(tmp_path, encryption_manager):
    db = Database(str(tmp_path / "patinfly-test.db"), encryption_manager)
    db.initialize()
    return db

@pytest.fixture
def broken_database(tmp_path, encryption_manager):
    # The parent directory does not exist, so every connect fails
    return Database(str(tmp_path / "missing" / "nested" / "patinfly.db"), encryption_manager)

@pytest.fixture
def bike_store(database):
    return BikeDatasource(database)

@pytest.fixture
def user_store(database):
    return UserDatasource(database)

@pytest.fixture
def pricing_store(database):
    return SystemPricingPlanDatasource(database)

@pytest.fixture
def settings(database):
    return SettingsStore(database, config.SETTINGS_NAMESPACE)

@pytest.fixture
def session(settings):
    state = SessionState(settings)
    state.set_token("session-token-abcdefghij")
    return state

@pytest.fixture
def gateway():
    return DummyGateway()

@pytest.fixture
def bike_factory():
    return make_bike

@pytest.fixture
def login_result_factory():
    return make_login_result

@pytest.fixture
def user_factory():
    def make_user(email="rider@patinfly.dev", **overrides) -> User:
        fields = dict(uuid=uuid4(), name="Demo Rider", email=email)
        fields.update(overrides)
        return User(**fields)
    return make_user
