# src/patinfly/session.py

import logging

from patinfly import config
from patinfly.settings import SettingsStore

logger = logging.getLogger(__name__)

def token_preview(token: str | None) -> str:
    """First characters of a token, safe to put in a log line."""
    return f"{token[:10]}..." if token else "<none>"


class SessionState:
    """
    Holds the bearer token shared by every repository and the remote gateway.
    The token is replaced wholesale, never merged, and mirrored to the settings store.
    """
    def __init__(self, settings: SettingsStore, key: str = config.AUTH_TOKEN_KEY):
        self.settings = settings
        self.key = key
        self._token: str | None = None

    def current_token(self) -> str | None:
        return self._token

    def has_token(self) -> bool:
        return bool(self._token)

    def set_token(self, token: str | None):
        self._token = token
        self.settings.put(self.key, token)
        logger.debug("Auth token stored: %s", token_preview(token))

    def restore(self) -> str | None:
        """Reloads a token persisted by an earlier run."""
        self._token = self.settings.get(self.key)
        logger.debug("Auth token restored: %s", token_preview(self._token))
        return self._token

    def clear(self):
        self.set_token(None)
