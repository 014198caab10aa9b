# src/patinfly/bike_repository.py

import logging
from typing import Callable

from patinfly.database import BikeDatasource
from patinfly.errors import StorageError
from patinfly.models import Bike, ServerStatus
from patinfly.remote import RemoteGateway
from patinfly.repository import RemoteBackedRepository
from patinfly.seed import BikeSeedSource
from patinfly.session import SessionState

logger = logging.getLogger(__name__)

def _without_maintenance(bikes: list[Bike]) -> list[Bike]:
    """Bikes under maintenance are never shown to renters."""
    return [bike for bike in bikes if not bike.in_maintenance]


class BikeRepository(RemoteBackedRepository):
    """
    Read-through cache for bikes: the entity store answers first; on a miss, and
    only when online with a token, the backend is asked and the answer is written back.
    Once the store holds bikes, get_all() never re-syncs.
    """

    def __init__(self, store: BikeDatasource, seed: BikeSeedSource, remote: RemoteGateway,
                 session: SessionState, is_network_available: Callable[[], bool]):
        super().__init__(session, is_network_available)
        self.store = store
        self.seed = seed
        self.remote = remote

    async def _write_back(self, bike: Bike):
        try:
            await self.store.save(bike)
        except StorageError as e:
            logger.error("Could not cache bike %s: %s", bike.uuid, e)

    # --- writes ---

    async def set_bike(self, bike: Bike) -> bool:
        try:
            await self.store.save(bike)
        except StorageError as e:
            logger.error("Error saving bike %s: %s", bike.uuid, e)
            return False
        logger.debug("Saved bike %s ('%s')", bike.uuid, bike.name)
        return True

    async def update_bike(self, bike: Bike) -> Bike | None:
        return bike if await self.set_bike(bike) else None

    async def update_bike_rent_status(self, bike: Bike) -> bool:
        saved = await self.set_bike(bike)
        if saved:
            logger.debug("Bike %s rent status is now %s", bike.uuid, bike.is_rented)
        return saved

    async def _update_field(self, bike_id: str, field: str, value: bool) -> bool:
        try:
            updated = await self.store.update_field(bike_id, field, value)
        except StorageError as e:
            logger.error("Could not set %s=%s on bike %s: %s", field, value, bike_id, e)
            return False
        logger.debug("Bike %s: %s=%s (matched=%s)", bike_id, field, value, updated)
        return updated

    async def update_status(self, bike_id: str, is_active: bool) -> bool:
        return await self._update_field(bike_id, "is_active", is_active)

    async def update_rent_status(self, bike_id: str, is_rented: bool) -> bool:
        return await self._update_field(bike_id, "is_rented", is_rented)

    async def delete(self, uuid: str) -> Bike | None:
        """Deletes the bike with this uuid and returns it, or None if it was not stored."""
        bike = await self.store.get_by_key(uuid)
        if bike is None:
            logger.debug("No bike %s to delete", uuid)
            return None
        await self.store.delete(bike)
        logger.debug("Deleted bike %s", uuid)
        return bike

    async def populate_from_seed(self) -> int:
        """First-run population: copies the bundled bikes into an empty store."""
        if await self.store.get_all():
            return 0
        bikes = await self.seed.get_all()
        for bike in bikes:
            await self.store.save(bike)
        logger.info("Populated entity store with %d seed bikes", len(bikes))
        return len(bikes)

    # --- reads ---

    async def get_bike(self) -> Bike | None:
        """Any one stored bike."""
        return await self.store.get_first()

    async def get(self, uuid: str) -> Bike | None:
        bike = await self.store.get_by_key(uuid)
        if bike is not None:
            logger.debug("Bike %s found in entity store", uuid)
            return bike
        return await self._flights.do(f"bike:{uuid}", lambda: self._fetch_bike(uuid))

    async def _fetch_bike(self, uuid: str) -> Bike | None:
        if not await self._online():
            logger.debug("No network or token to fetch bike %s", uuid)
            return None
        bike = await self.remote.fetch_bike_by_id(self.session.current_token(), uuid)
        if bike is None:
            logger.debug("Bike %s not found remotely", uuid)
            return None
        await self._write_back(bike)
        return bike

    async def get_all(self) -> list[Bike]:
        local = await self.store.get_all()
        if local:
            logger.debug("Loaded %d bikes from entity store", len(local))
            return _without_maintenance(local)
        return await self._flights.do("bikes:all", self._fetch_all)

    async def _fetch_all(self) -> list[Bike]:
        if not await self._online():
            logger.debug("No network or token to fetch bikes")
            return []
        remote = await self.remote.fetch_bikes(self.session.current_token())
        if not remote:
            return []
        for bike in remote:
            await self._write_back(bike)
        logger.info("Cached %d bikes from the backend", len(remote))
        return _without_maintenance(remote)

    async def get_by_category(self, category: str) -> list[Bike]:
        wanted = category.lower()
        bikes = [bike for bike in await self.store.get_all() if bike.bike_type_name.lower() == wanted]
        return _without_maintenance(bikes)

    async def get_active_bikes(self) -> list[Bike]:
        return [bike for bike in await self.store.get_all() if bike.is_active]

    async def get_first_active_bike(self) -> Bike | None:
        return next((bike for bike in await self.get_all() if bike.is_active), None)

    async def status(self) -> ServerStatus:
        status = await self.remote.fetch_server_status()
        logger.debug("Server status: version=%s name=%s", status.version, status.name)
        return status
