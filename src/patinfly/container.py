# src/patinfly/container.py

import logging
from dataclasses import dataclass
from typing import Callable

from patinfly import config
from patinfly.auth import LoginService, PasswordHasher
from patinfly.bike_repository import BikeRepository
from patinfly.connectivity import NetworkProbe
from patinfly.database import Database, BikeDatasource, UserDatasource, SystemPricingPlanDatasource
from patinfly.encryption import EncryptionManager
from patinfly.logger import SecureLogger, configure_logging
from patinfly.pricing_repository import SystemPricingPlanRepository
from patinfly.remote import RemoteGateway
from patinfly.seed import BikeSeedSource, UserSeedSource, PricingPlanSeedSource
from patinfly.session import SessionState
from patinfly.settings import SettingsStore
from patinfly.user_repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass
class Container:
    database: Database
    settings: SettingsStore
    session: SessionState
    activity_log: SecureLogger
    gateway: RemoteGateway
    bikes: BikeRepository
    users: UserRepository
    pricing_plans: SystemPricingPlanRepository
    login_service: LoginService

    async def populate_from_seed(self) -> int:
        """Copies the bundled bikes and users into an empty entity store."""
        return await self.bikes.populate_from_seed() + await self.users.populate_from_seed()


def create_container(db_file: str = config.DATABASE_FILE,
                     key_file: str = config.ENCRYPTION_KEY_FILE,
                     base_url: str = config.API_BASE_URL,
                     encryption_manager: EncryptionManager | None = None,
                     gateway: RemoteGateway | None = None,
                     is_network_available: Callable[[], bool] | None = None,
                     hasher: PasswordHasher | None = None,
                     seed_dir: str | None = None) -> Container:
    """
    Wires every data source and repository together. One container per process
    plays the role of the app-wide singletons; tests build their own.
    """
    encryption_manager = encryption_manager or EncryptionManager(key_file)
    database = Database(db_file, encryption_manager)
    database.initialize()

    settings = SettingsStore(database, config.SETTINGS_NAMESPACE)
    session = SessionState(settings)
    session.restore()

    gateway = gateway or RemoteGateway(base_url=base_url, token_provider=session.current_token)
    is_network_available = is_network_available or NetworkProbe(base_url)
    hasher = hasher or PasswordHasher()
    activity_log = SecureLogger(database)

    def seed_path(file_name: str) -> str | None:
        return f"{seed_dir}/{file_name}" if seed_dir else None

    bikes = BikeRepository(
        BikeDatasource(database), BikeSeedSource(seed_path(config.BIKE_SEED_FILE)),
        gateway, session, is_network_available
    )
    users = UserRepository(
        UserDatasource(database), UserSeedSource(seed_path(config.USER_SEED_FILE)),
        gateway, session, is_network_available, hasher=hasher, activity_log=activity_log
    )
    pricing_plans = SystemPricingPlanRepository(
        SystemPricingPlanDatasource(database), PricingPlanSeedSource(seed_path(config.PRICING_PLAN_SEED_FILE))
    )
    login_service = LoginService(users, hasher=hasher, activity_log=activity_log)

    logger.debug("Container ready: db=%s api=%s token=%s", db_file, base_url, session.has_token())
    return Container(
        database=database,
        settings=settings,
        session=session,
        activity_log=activity_log,
        gateway=gateway,
        bikes=bikes,
        users=users,
        pricing_plans=pricing_plans,
        login_service=login_service
    )


async def bootstrap(seed_on_first_run: bool = config.SEED_ON_FIRST_RUN, log_level: str | int = config.LOG_LEVEL,
                    **kwargs) -> Container:
    """Application entry point: sets up logging, builds a container and, on request, seeds an empty store."""
    configure_logging(log_level)
    container = create_container(**kwargs)
    if seed_on_first_run:
        count = await container.populate_from_seed()
        logger.info("First run seeding copied %d records", count)
    return container
