# src/patinfly/remote.py

import logging
from typing import Callable
from urllib.parse import quote, urljoin

import requests
from pydantic import ValidationError

from patinfly import config
from patinfly.errors import AuthenticationError, InvalidPayloadError, TransportError
from patinfly.models import Bike, LoginResult, ServerStatus, User
from patinfly.schemas import BikeApiModel, LoginResponse, ServerStatusApiModel, UserApiModel
from patinfly.session import token_preview
from patinfly.workers import offload

logger = logging.getLogger(__name__)


class RemoteGateway:
    """
    HTTP client for the Patinfly backend.

    Every request carries a bearer token: the explicit one passed by the caller,
    else the one returned by token_provider, else the static API key (possibly empty).
    Login and profile calls raise on failure; bike, user-list and status calls
    degrade to empty results so the app keeps working offline.
    """

    def __init__(self,
                 base_url: str = config.API_BASE_URL,
                 token_provider: Callable[[], str | None] | None = None,
                 static_token: str = config.STATIC_API_KEY,
                 timeout: tuple[float, float] = (config.CONNECT_TIMEOUT_SECONDS, config.READ_TIMEOUT_SECONDS),
                 demo_mode: bool = config.DEMO_MODE,
                 origin: str = config.REQUEST_ORIGIN,
                 session: requests.Session | None = None):
        self.base_url = base_url.rstrip('/') + '/'
        self.token_provider = token_provider or (lambda: None)
        self.static_token = static_token
        self.timeout = timeout
        self.demo_mode = demo_mode
        self.origin = origin
        self.session = session or requests.Session()

    # --- plumbing ---

    def _authorization(self, token: str | None = None) -> str:
        dynamic_token = token or self.token_provider()
        if dynamic_token:
            logger.debug("Using dynamic authorization: Bearer %s", token_preview(dynamic_token))
            return f"Bearer {dynamic_token}"
        logger.debug("Using static authorization")
        return f"Bearer {self.static_token}"

    def _request(self, method: str, path: str, token: str | None = None, headers: dict | None = None) -> requests.Response:
        """Sends a request and returns the 2xx response; anything else raises TransportError."""
        url = urljoin(self.base_url, path)
        request_headers = {"Authorization": self._authorization(token), "Origin": self.origin}
        if headers:
            request_headers.update(headers)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, headers=request_headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        if not response.ok:
            raise TransportError(f"{method} {path} returned HTTP {response.status_code}", status_code=response.status_code)
        return response

    @staticmethod
    def _json(response: requests.Response, path: str):
        try:
            return response.json()
        except ValueError as e:
            raise InvalidPayloadError(f"{path} returned a body that is not JSON") from e

    def _get_user_payload(self, token: str | None) -> UserApiModel:
        response = self._request("GET", "api/user", token=token)
        body = self._json(response, "api/user")
        if not isinstance(body, dict):
            raise InvalidPayloadError("api/user did not return a user object")
        try:
            return UserApiModel.model_validate(body)
        except ValidationError as e:
            raise InvalidPayloadError(f"api/user returned an invalid user: {e}") from e

    # --- authentication ---

    @offload
    def login(self, email: str, password: str, origin: str) -> LoginResult:
        logger.info("Attempting login for %s", email)
        try:
            response = self._request("POST", "api/login", headers={"Email": email, "Password": password, "Origin": origin})
        except TransportError as e:
            if e.status_code is not None:
                raise AuthenticationError(f"Login rejected with HTTP {e.status_code}") from e
            raise
        body = self._json(response, "api/login")
        try:
            result = LoginResponse.model_validate(body).to_domain()
        except ValidationError as e:
            raise InvalidPayloadError(f"api/login returned an invalid body: {e}") from e
        if not result.token.access:
            raise AuthenticationError("No access token found in the login response.")
        logger.info("Login accepted for %s, token %s", email, token_preview(result.token.access))
        return result

    # --- users ---

    @offload
    def fetch_current_user_payload(self, token: str | None = None) -> UserApiModel:
        """Raw profile of the authenticated user; used to enrich the login response."""
        return self._get_user_payload(token)

    @offload
    def fetch_current_user(self, token: str | None = None) -> User:
        """Profile of the authenticated user. Raises TransportError or InvalidPayloadError."""
        return self._get_user_payload(token).to_domain()

    @offload
    def fetch_all_users(self) -> list[User]:
        try:
            body = self._json(self._request("GET", "api/user"), "api/user")
        except (TransportError, InvalidPayloadError) as e:
            logger.error("Error fetching users: %s", e)
            return []
        if not isinstance(body, list):
            logger.warning("api/user did not return a list of users")
            return []
        users = []
        for item in body:
            try:
                users.append(UserApiModel.model_validate(item).to_domain())
            except ValidationError as e:
                logger.warning("Skipping invalid user payload: %s", e)
        return users

    # --- bikes ---

    def _to_bike(self, item) -> Bike | None:
        try:
            return BikeApiModel.model_validate(item).to_domain(demo_mode=self.demo_mode)
        except ValidationError as e:
            logger.warning("Skipping invalid vehicle payload: %s", e)
            return None

    @offload
    def fetch_bikes(self, token: str | None = None) -> list[Bike]:
        try:
            body = self._json(self._request("GET", "api/vehicle", token=token), "api/vehicle")
        except (TransportError, InvalidPayloadError) as e:
            logger.error("Error fetching bikes: %s", e)
            return []
        vehicles = body.get("vehicles") if isinstance(body, dict) else None
        if not isinstance(vehicles, list) or not vehicles:
            logger.debug("api/vehicle returned no vehicles")
            return []
        bikes = [bike for bike in (self._to_bike(item) for item in vehicles) if bike is not None]
        logger.debug("api/vehicle returned %d bikes", len(bikes))
        return bikes

    @offload
    def fetch_bike_by_id(self, token: str | None, bike_id: str) -> Bike | None:
        path = f"api/vehicle/{quote(bike_id, safe='')}"
        try:
            body = self._json(self._request("GET", path, token=token), path)
        except (TransportError, InvalidPayloadError) as e:
            logger.error("Error fetching bike %s: %s", bike_id, e)
            return None
        if not body:
            return None
        return self._to_bike(body)

    # --- server ---

    @offload
    def fetch_server_status(self) -> ServerStatus:
        """Never raises: an unreachable or broken backend reports ServerStatus.unavailable()."""
        try:
            body = self._json(self._request("GET", "api/status"), "api/status")
            return ServerStatusApiModel.model_validate(body).to_domain()
        except (TransportError, InvalidPayloadError, ValidationError) as e:
            logger.error("Error fetching server status: %s", e)
            return ServerStatus.unavailable()
