# src/patinfly/errors.py


class PatinflyError(Exception):
    """Base class for every error raised by the data layer."""


class StorageError(PatinflyError):
    """The local entity store could not complete an operation."""


class TransportError(PatinflyError):
    """An HTTP call failed: connection problem, timeout or error status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(PatinflyError):
    """The backend refused the credentials or returned no access token."""


class InvalidPayloadError(PatinflyError):
    """A remote payload was empty or did not match the expected shape."""
