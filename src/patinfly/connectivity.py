# src/patinfly/connectivity.py

import logging

import requests

from patinfly import config

logger = logging.getLogger(__name__)


class NetworkProbe:
    """
    Answers "can we reach the backend right now?".
    Any HTTP answer counts as reachable; only a transport failure means offline.
    """
    def __init__(self, base_url: str = config.API_BASE_URL, timeout: float = config.NETWORK_PROBE_TIMEOUT_SECONDS):
        self.base_url = base_url
        self.timeout = timeout

    def __call__(self) -> bool:
        try:
            requests.head(self.base_url, timeout=self.timeout, allow_redirects=False)
            return True
        except requests.exceptions.RequestException as e:
            logger.debug("Network unavailable: %s", e)
            return False
