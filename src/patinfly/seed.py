# src/patinfly/seed.py

import json
import logging
import threading
from importlib import resources
from pathlib import Path

from patinfly import config
from patinfly.models import Bike, User, SystemPricingPlan, Plan
from patinfly.schemas import BikeModel, UserModel, SystemPricingPlanModel
from patinfly.validation import normalize_email
from patinfly.workers import offload

logger = logging.getLogger(__name__)


class SeedSource:
    """
    In-memory index over one bundled JSON fixture.

    The fixture is parsed lazily on first access, exactly once, even when several
    workers hit it at the same time. Inserts and updates only touch the index,
    never the file. A missing or malformed fixture is an empty index.
    """
    file_name = ""

    def __init__(self, path: str | Path | None = None, package: str = config.SEED_DATA_PACKAGE):
        self.path = Path(path) if path else None
        self.package = package
        self.load_count = 0
        self._index: dict = {}
        self._loaded = False
        self._init_lock = threading.Lock()
        self._lock = threading.Lock()

    # --- hooks for concrete sources ---

    def _parse(self, document) -> list:
        raise NotImplementedError

    def _key(self, record):
        raise NotImplementedError

    # --- loading ---

    def _read_text(self) -> str | None:
        try:
            if self.path is not None:
                return self.path.read_text(encoding="utf-8")
            return resources.files(self.package).joinpath(self.file_name).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError, ModuleNotFoundError) as e:
            logger.warning("Seed file %s could not be read: %s", self.path or self.file_name, e)
            return None

    def _ensure_loaded(self):
        if self._loaded:
            return
        with self._init_lock:
            if self._loaded:
                return
            records = []
            text = self._read_text()
            if text:
                try:
                    records = self._parse(json.loads(text))
                except (ValueError, TypeError, AttributeError) as e:
                    # json and pydantic errors are both ValueErrors
                    logger.warning("Seed file %s is malformed, ignoring it: %s", self.path or self.file_name, e)
                    records = []
            with self._lock:
                for record in records:
                    self._index[self._key(record)] = record
            self.load_count += 1
            self._loaded = True
            logger.debug("Loaded %d seed records from %s", len(self._index), self.path or self.file_name)

    # --- read contract ---

    @offload
    def get_by_key(self, key):
        self._ensure_loaded()
        with self._lock:
            return self._index.get(key)

    @offload
    def get_all(self) -> list:
        self._ensure_loaded()
        with self._lock:
            return list(self._index.values())

    @offload
    def get_first(self):
        self._ensure_loaded()
        with self._lock:
            return next(iter(self._index.values()), None)

    # --- in-memory mutation ---

    @offload
    def insert(self, record) -> bool:
        """Adds a record unless its key is already indexed."""
        self._ensure_loaded()
        with self._lock:
            key = self._key(record)
            if key in self._index:
                return False
            self._index[key] = record
            return True

    @offload
    def insert_or_update(self, record) -> bool:
        self._ensure_loaded()
        with self._lock:
            self._index[self._key(record)] = record
            return True

    @offload
    def update(self, record):
        """Replaces an indexed record. Returns None if the key is unknown."""
        self._ensure_loaded()
        with self._lock:
            key = self._key(record)
            if key not in self._index:
                return None
            self._index[key] = record
            return record

    @offload
    def delete(self, key):
        self._ensure_loaded()
        with self._lock:
            return self._index.pop(key, None)


class BikeSeedSource(SeedSource):
    """bikes.json: {"bike": [...]}, keyed by uuid."""
    file_name = config.BIKE_SEED_FILE

    def _parse(self, document) -> list[Bike]:
        return [BikeModel.model_validate(item).to_domain() for item in document.get("bike", [])]

    def _key(self, record: Bike):
        return record.uuid

    @offload
    def get_all_by_type(self, bike_type: str | None = None) -> list[Bike]:
        self._ensure_loaded()
        with self._lock:
            bikes = list(self._index.values())
        if not bike_type:
            return bikes
        return [bike for bike in bikes if bike.bike_type.name.lower() == bike_type.lower()]


class UserSeedSource(SeedSource):
    """user.json: one user object, keyed by uuid and searchable by email."""
    file_name = config.USER_SEED_FILE

    def _parse(self, document) -> list[User]:
        items = document if isinstance(document, list) else [document]
        return [UserModel.model_validate(item).to_domain() for item in items]

    def _key(self, record: User):
        return record.uuid

    @offload
    def get_by_email(self, email: str) -> User | None:
        self._ensure_loaded()
        wanted = normalize_email(email)
        with self._lock:
            for user in self._index.values():
                if normalize_email(user.email) == wanted:
                    return user
        return None


class PricingPlanSeedSource(SeedSource):
    """system_pricing_plans.json: one snapshot (or a list of them), keyed by version."""
    file_name = config.PRICING_PLAN_SEED_FILE

    def _parse(self, document) -> list[SystemPricingPlan]:
        items = document if isinstance(document, list) else [document]
        return [SystemPricingPlanModel.model_validate(item).to_domain() for item in items]

    def _key(self, record: SystemPricingPlan):
        return record.version

    @offload
    def get_plan_by_id(self, plan_id: str) -> Plan | None:
        self._ensure_loaded()
        with self._lock:
            snapshots = list(self._index.values())
        for snapshot in snapshots:
            plan = snapshot.plan_by_id(plan_id)
            if plan is not None:
                return plan
        return None
