# src/patinfly/user_repository.py

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

from patinfly import config
from patinfly.auth import PasswordHasher
from patinfly.database import UserDatasource
from patinfly.errors import InvalidPayloadError, PatinflyError, StorageError
from patinfly.logger import SecureLogger
from patinfly.models import User
from patinfly.remote import RemoteGateway
from patinfly.repository import RemoteBackedRepository
from patinfly.schemas import UserApiModel
from patinfly.seed import UserSeedSource
from patinfly.session import SessionState, token_preview
from patinfly.validation import is_valid_email, normalize_email

logger = logging.getLogger(__name__)

def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


class UserRepository(RemoteBackedRepository):
    """
    Users are looked up by email in the entity store first. On a miss, the profile
    of the authenticated user is fetched and cached. Logging in is the only way a
    session token is obtained.
    """

    def __init__(self, store: UserDatasource, seed: UserSeedSource, remote: RemoteGateway,
                 session: SessionState, is_network_available: Callable[[], bool],
                 hasher: PasswordHasher | None = None, activity_log: SecureLogger | None = None):
        super().__init__(session, is_network_available)
        self.store = store
        self.seed = seed
        self.remote = remote
        self.hasher = hasher or PasswordHasher()
        self.activity_log = activity_log

    async def _audit(self, username: str, activity: str, info: str = "", suspicious: bool = False):
        if self.activity_log is None:
            return
        try:
            await asyncio.to_thread(self.activity_log.log, username, activity, info, suspicious)
        except StorageError as e:
            logger.warning("Activity log write failed: %s", e)

    async def _write_back(self, user: User):
        try:
            await self.store.save(user)
        except StorageError as e:
            logger.error("Could not cache user %s: %s", user.email, e)

    # --- lookups ---

    async def get_by_email(self, email: str) -> User | None:
        """
        Store first. On a miss the backend's current-user profile is fetched, cached and returned.
        Raises InvalidPayloadError when that profile has no usable email, and TransportError
        when the backend cannot be reached. Offline or without a token the answer is None.
        """
        user = await self.store.get_by_email(email)
        if user is not None:
            return user
        return await self._flights.do(f"user:{normalize_email(email)}", lambda: self._fetch_user(email))

    async def _fetch_user(self, email: str) -> User | None:
        if not await self._online():
            logger.debug("No network or token to fetch user %s", email)
            return None
        user = await self.remote.fetch_current_user(self.session.current_token())
        if not user.email or not is_valid_email(user.email):
            raise InvalidPayloadError("API returned empty or invalid data for the user.")
        if normalize_email(user.email) != normalize_email(email):
            logger.warning("Requested %s but the session belongs to %s", email, user.email)
        await self._write_back(user)
        return user

    async def get_all_users(self) -> list[User]:
        users = await self.store.get_all()
        if users:
            return users
        return await self._flights.do("users:all", self._fetch_all)

    async def _fetch_all(self) -> list[User]:
        if not await self._online():
            return []
        remote = await self.remote.fetch_all_users()
        if not remote:
            return []
        for user in remote:
            # Users without a valid email cannot be addressed later
            if is_valid_email(user.email):
                await self._write_back(user)
        return await self.store.get_all()

    async def get_user(self) -> User | None:
        return await self.store.get_first()

    async def get_by_key(self, uuid: UUID) -> User | None:
        return await self.store.get_by_key(uuid)

    def auth_token(self) -> str | None:
        return self.session.current_token()

    # --- writes ---

    async def set_user(self, user: User) -> bool:
        try:
            await self.store.save(user)
        except StorageError as e:
            logger.error("Error saving user %s: %s", user.email, e)
            return False
        return True

    async def update_user(self, user: User) -> User | None:
        return user if await self.set_user(user) else None

    async def delete(self, uuid: UUID) -> User | None:
        user = await self.store.get_by_key(uuid)
        if user is None:
            return None
        await self.store.delete(user)
        logger.debug("Deleted user %s", uuid)
        return user

    async def populate_from_seed(self) -> int:
        if await self.store.get_all():
            return 0
        users = await self.seed.get_all()
        for user in users:
            await self.store.save(user)
        logger.info("Populated entity store with %d seed users", len(users))
        return len(users)

    # --- login ---

    async def login(self, email: str, password: str, origin: str = config.REQUEST_ORIGIN) -> User:
        """
        Authenticates against the backend and caches the resulting user.

        The access token becomes the session token only once the user is cached.
        Profile data from api/user is merged in when available; token fields always
        come from the login response. Raises AuthenticationError, TransportError or
        InvalidPayloadError when the backend refuses or cannot be reached.
        """
        try:
            result = await self.remote.login(email, password, origin)
        except PatinflyError as e:
            await self._audit(email, "Unsuccessful login", str(e), suspicious=True)
            raise

        token = result.token.access
        payload = UserApiModel(
            id=result.token.id,
            email=email,
            access_token=token,
            expiration_token=result.token.expires,
            refresh_token=result.token.refresh,
            expires_refresh=result.token.expires_refresh
        )
        try:
            profile = await self.remote.fetch_current_user_payload(token)
            if profile.email:
                payload = payload.merge_with(profile)
        except PatinflyError as e:
            logger.warning("Could not load profile after login, using login data only: %s", e)

        hashed_password = await asyncio.to_thread(self.hasher.hash_password, password)
        now = _utc_now()
        user = replace(
            payload.to_domain(hashed_password),
            creation_date=now,
            last_connection=now,
            group=config.DEFAULT_GROUP
        )
        await self.store.save(user)
        await asyncio.to_thread(self.session.set_token, token)
        logger.info("Session token set for %s: %s", user.email, token_preview(token))
        await self._audit(user.email, "Logged in", f"origin={origin}")
        logger.info("User %s logged in and cached", user.email)
        return user
