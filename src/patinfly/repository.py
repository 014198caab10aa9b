# src/patinfly/repository.py

import asyncio
import logging
from typing import Callable

from patinfly.session import SessionState
from patinfly.workers import SingleFlight

logger = logging.getLogger(__name__)


class RemoteBackedRepository:
    """
    Shared plumbing for repositories that fall back to the backend on a cache miss.
    Remote calls are only made when the network is reachable and a session token exists.
    """
    def __init__(self, session: SessionState, is_network_available: Callable[[], bool]):
        self.session = session
        self.is_network_available = is_network_available
        self._flights = SingleFlight()

    async def _online(self) -> bool:
        if not self.session.has_token():
            return False
        return await asyncio.to_thread(self.is_network_available)
