# src/patinfly/auth.py

import asyncio
import logging
import time
from dataclasses import dataclass

import bcrypt

from patinfly import config
from patinfly.errors import AuthenticationError, PatinflyError, StorageError
from patinfly.logger import SecureLogger
from patinfly.models import Credentials, User
from patinfly.validation import is_valid_email, normalize_email

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    def __init__(self, rounds: int = config.BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hashes a password using bcrypt."""
        password_bytes = password.encode('utf-8')[:BCRYPT_MAX_PASSWORD_BYTES]
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed_bytes = bcrypt.hashpw(password_bytes, salt)
        return hashed_bytes.decode('utf-8')

    def verify_password(self, plain_password: str, password_hash: str) -> bool:
        """Verifies a plain password against a stored bcrypt hash. A missing or corrupt hash never matches."""
        if not password_hash:
            return False
        plain_password_bytes = plain_password.encode('utf-8')[:BCRYPT_MAX_PASSWORD_BYTES]
        try:
            return bcrypt.checkpw(plain_password_bytes, password_hash.encode('utf-8'))
        except ValueError:
            logger.warning("Stored password hash is not a valid bcrypt hash")
            return False


@dataclass
class LoginOutcome:
    success: bool
    message: str
    user: User | None = None


class LoginService:
    """
    Login use case on top of the user repository.

    Failed attempts are counted per normalized email. After MAX_LOGIN_ATTEMPTS
    failures the email is locked out for LOCKOUT_TIME_SECONDS, both for remote
    logins and for local password checks. Lockouts and failures are written to
    the activity log as suspicious events.
    """

    def __init__(self, user_repository, hasher: PasswordHasher | None = None,
                 activity_log: SecureLogger | None = None,
                 max_attempts: int = config.MAX_LOGIN_ATTEMPTS,
                 lockout_seconds: float = config.LOCKOUT_TIME_SECONDS,
                 clock=time.time):
        self.user_repository = user_repository
        self.hasher = hasher or PasswordHasher()
        self.activity_log = activity_log
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self.clock = clock
        self.login_attempts: dict[str, tuple[int, float]] = {}

    # --- Brute-Force Protection ---

    def remaining_lockout(self, email: str) -> float:
        """Seconds until this email may try again; 0 when it is not locked out."""
        key = normalize_email(email)
        if key not in self.login_attempts:
            return 0
        attempts, last_attempt_time = self.login_attempts[key]
        if attempts < self.max_attempts:
            return 0
        time_since_last_attempt = self.clock() - last_attempt_time
        if time_since_last_attempt < self.lockout_seconds:
            return self.lockout_seconds - time_since_last_attempt
        del self.login_attempts[key]
        return 0

    def _register_failure(self, email: str):
        key = normalize_email(email)
        attempts, _ = self.login_attempts.get(key, (0, 0))
        self.login_attempts[key] = (attempts + 1, self.clock())

    def _reset_attempts(self, email: str):
        self.login_attempts.pop(normalize_email(email), None)

    async def _audit(self, username: str, activity: str, info: str = "", suspicious: bool = False):
        if self.activity_log is None:
            return
        try:
            await asyncio.to_thread(self.activity_log.log, username, activity, info, suspicious)
        except StorageError as e:
            logger.warning("Activity log write failed: %s", e)

    async def _locked_out(self, email: str) -> bool:
        remaining = self.remaining_lockout(email)
        if remaining <= 0:
            return False
        logger.warning("Login for %s refused, locked out for %.0f more seconds", email, remaining)
        await self._audit(email, "Login attempt during lockout", f"{remaining:.0f} seconds remaining", suspicious=True)
        return True

    # --- use cases ---

    async def execute_login(self, email: str, password: str, origin: str = config.REQUEST_ORIGIN) -> LoginOutcome:
        """Remote login. Never raises for a refused or failed login; the outcome says what happened."""
        if not is_valid_email(email) or not password:
            return LoginOutcome(False, "Please enter a valid email and password.")
        if await self._locked_out(email):
            return LoginOutcome(False, f"Too many failed login attempts. Please try again in {self.remaining_lockout(email):.0f} seconds.")
        try:
            user = await self.user_repository.login(email, password, origin)
        except AuthenticationError as e:
            self._register_failure(email)
            logger.info("Login refused for %s: %s", email, e)
            return LoginOutcome(False, "Invalid email or password.")
        except PatinflyError as e:
            logger.error("Login for %s failed: %s", email, e)
            return LoginOutcome(False, f"Login failed: {e}")
        self._reset_attempts(email)
        return LoginOutcome(True, f"Welcome, {user.name or user.email}!", user)

    async def check_local_user_exists(self, email: str) -> bool:
        try:
            return await self.user_repository.get_by_email(email) is not None
        except PatinflyError as e:
            logger.warning("Could not look up user %s: %s", email, e)
            return False

    async def check_local_password(self, credentials: Credentials) -> bool:
        """Verifies credentials against the cached bcrypt hash, with lockout."""
        email = credentials.email
        if await self._locked_out(email):
            return False
        try:
            user = await self.user_repository.get_by_email(email)
        except PatinflyError as e:
            logger.warning("Could not look up user %s: %s", email, e)
            return False
        if user is not None:
            matches = await asyncio.to_thread(self.hasher.verify_password, credentials.password, user.hashed_password)
        else:
            matches = False
        if matches:
            self._reset_attempts(email)
            return True

        self._register_failure(email)
        attempts, _ = self.login_attempts[normalize_email(email)]
        await self._audit(email, "Unsuccessful local login", f"attempt {attempts}", suspicious=attempts >= self.max_attempts)
        return False
