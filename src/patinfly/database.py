# src/patinfly/database.py
# BLOB = stored encrypted as bytes

import json
import logging
import sqlite3
from contextlib import contextmanager
from uuid import UUID

from patinfly.encryption import EncryptionManager
from patinfly.errors import StorageError
from patinfly.models import Bike, BikeType, User, SystemPricingPlan, plans_to_json, plans_from_json
from patinfly.validation import normalize_email
from patinfly.workers import offload

logger = logging.getLogger(__name__)


class Database:
    """The on-device SQLite file backing the entity store, the settings and the activity log."""

    def __init__(self, db_file: str, encryption_manager: EncryptionManager):
        self.db_file = db_file
        self.encryption_manager = encryption_manager

    def get_connection(self) -> sqlite3.Connection:
        """Establishes and returns a connection to the SQLite database."""
        conn = sqlite3.connect(self.db_file, timeout=30)
        conn.row_factory = sqlite3.Row # Allows accessing columns by name
        return conn

    @contextmanager
    def connect(self):
        """
        Yields a connection that commits on success and is always closed.
        Any sqlite3 failure surfaces as StorageError so callers can tell "broken" from "missing".
        """
        conn = None
        try:
            conn = self.get_connection()
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            if conn is not None:
                conn.rollback()
            raise StorageError(f"Entity store operation failed: {e}") from e
        finally:
            if conn is not None:
                conn.close()

    def initialize(self):
        """
        Creates all necessary tables if they don't already exist.
        This function is safe to run multiple times.
        """
        with self.connect() as conn:
            cursor = conn.cursor()

            # --- Create bikes table ---
            cursor.execute("""
            CREATE TABLE IF NOT EXISTS bikes (
                uuid TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                bike_type TEXT NOT NULL,
                bike_type_name TEXT NOT NULL,
                creation_date TEXT NOT NULL,
                last_maintenance_date TEXT,
                in_maintenance INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 0,
                is_deleted INTEGER NOT NULL DEFAULT 0,
                battery_level INTEGER NOT NULL DEFAULT 0,
                meters INTEGER NOT NULL DEFAULT 0,
                is_rented INTEGER NOT NULL DEFAULT 0,
                lat REAL,
                lon REAL,
                is_reserved INTEGER NOT NULL DEFAULT 0,
                rental_uris TEXT,
                group_course TEXT
            )
            """)

            # --- Create users table ---
            cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                uuid TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL,
                email_normalized TEXT UNIQUE NOT NULL,
                hashed_password TEXT NOT NULL,
                creation_date TEXT,
                last_connection TEXT,
                device_id TEXT,
                access_token BLOB,
                refresh_token BLOB,
                expiration_token TEXT,
                expires_refresh TEXT,
                user_group TEXT
            )
            """)

            # --- Create system_pricing_plans table ---
            cursor.execute("""
            CREATE TABLE IF NOT EXISTS system_pricing_plans (
                version TEXT PRIMARY KEY,
                last_updated TEXT NOT NULL,
                ttl INTEGER NOT NULL,
                data_json TEXT NOT NULL
            )
            """)

            # --- Create settings table ---
            cursor.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                value BLOB,
                PRIMARY KEY (namespace, key)
            )
            """)

            # --- Create logs table ---
            cursor.execute("""
            CREATE TABLE IF NOT EXISTS logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                date TEXT NOT NULL,
                time TEXT NOT NULL,
                username BLOB NOT NULL,
                description_of_activity BLOB NOT NULL,
                additional_information BLOB,
                suspicious INTEGER NOT NULL,
                is_read INTEGER DEFAULT 0 NOT NULL
            )
            """)
        logger.debug("Entity store initialized at %s", self.db_file)


# --- Bikes ---

class BikeDatasource:
    """Bike table. Upserts replace the whole row; status toggles touch a single column."""

    # Columns that may be toggled without rewriting the record
    UPDATABLE_FIELDS = ("is_active", "is_rented")

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _to_row(bike: Bike) -> tuple:
        bike_type = json.dumps({"uuid": bike.bike_type.uuid, "name": bike.bike_type.name, "type": bike.bike_type.type})
        return (
            bike.uuid, bike.name, bike_type, bike.bike_type_name, bike.creation_date,
            bike.last_maintenance_date, int(bike.in_maintenance), int(bike.is_active),
            int(bike.is_deleted), bike.battery_level, bike.meters, int(bike.is_rented),
            bike.lat, bike.lon, int(bike.is_reserved), bike.rental_uris, bike.group_course
        )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Bike:
        return Bike(
            uuid=row['uuid'],
            name=row['name'],
            bike_type=BikeType(**json.loads(row['bike_type'])),
            bike_type_name=row['bike_type_name'],
            creation_date=row['creation_date'],
            last_maintenance_date=row['last_maintenance_date'],
            in_maintenance=bool(row['in_maintenance']),
            is_active=bool(row['is_active']),
            is_deleted=bool(row['is_deleted']),
            battery_level=row['battery_level'],
            meters=row['meters'],
            is_rented=bool(row['is_rented']),
            lat=row['lat'],
            lon=row['lon'],
            is_reserved=bool(row['is_reserved']),
            rental_uris=row['rental_uris'] or "",
            group_course=row['group_course']
        )

    @offload
    def save(self, bike: Bike):
        with self.database.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO bikes (uuid, name, bike_type, bike_type_name, creation_date, last_maintenance_date, in_maintenance, is_active, is_deleted, battery_level, meters, is_rented, lat, lon, is_reserved, rental_uris, group_course) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._to_row(bike)
            )

    @offload
    def get_by_key(self, uuid: str) -> Bike | None:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM bikes WHERE uuid = ?", (uuid,)).fetchone()
        return self._from_row(row) if row else None

    @offload
    def get_all(self) -> list[Bike]:
        with self.database.connect() as conn:
            rows = conn.execute("SELECT * FROM bikes ORDER BY rowid").fetchall()
        return [self._from_row(row) for row in rows]

    @offload
    def get_first(self) -> Bike | None:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM bikes ORDER BY rowid LIMIT 1").fetchone()
        return self._from_row(row) if row else None

    @offload
    def update(self, bike: Bike) -> bool:
        """Rewrites an existing bike. Returns False if no row has that uuid."""
        row = self._to_row(bike)
        with self.database.connect() as conn:
            cursor = conn.execute(
                "UPDATE bikes SET name = ?, bike_type = ?, bike_type_name = ?, creation_date = ?, last_maintenance_date = ?, in_maintenance = ?, is_active = ?, is_deleted = ?, battery_level = ?, meters = ?, is_rented = ?, lat = ?, lon = ?, is_reserved = ?, rental_uris = ?, group_course = ? WHERE uuid = ?",
                row[1:] + (bike.uuid,)
            )
            return cursor.rowcount > 0

    @offload
    def delete(self, bike: Bike) -> bool:
        with self.database.connect() as conn:
            cursor = conn.execute("DELETE FROM bikes WHERE uuid = ?", (bike.uuid,))
            return cursor.rowcount > 0

    @offload
    def update_field(self, uuid: str, field: str, value: bool) -> bool:
        if field not in self.UPDATABLE_FIELDS:
            raise ValueError(f"Field '{field}' cannot be updated on its own.")
        with self.database.connect() as conn:
            cursor = conn.execute(f"UPDATE bikes SET {field} = ? WHERE uuid = ?", (int(value), uuid))
            return cursor.rowcount > 0


# --- Users ---

class UserDatasource:
    """User table. Access and refresh tokens are encrypted at rest."""

    def __init__(self, database: Database):
        self.database = database
        self.encryption_manager = database.encryption_manager

    def _to_row(self, user: User) -> tuple:
        return (
            str(user.uuid), user.name, user.email, normalize_email(user.email),
            user.hashed_password, user.creation_date, user.last_connection, user.device_id,
            self.encryption_manager.encrypt_optional(user.access_token),
            self.encryption_manager.encrypt_optional(user.refresh_token),
            user.expiration_token, user.expires_refresh, user.group
        )

    def _from_row(self, row: sqlite3.Row) -> User:
        return User(
            uuid=UUID(row['uuid']),
            name=row['name'],
            email=row['email'],
            hashed_password=row['hashed_password'],
            creation_date=row['creation_date'] or "",
            last_connection=row['last_connection'] or "",
            device_id=row['device_id'] or "",
            access_token=self.encryption_manager.decrypt_optional(row['access_token']),
            refresh_token=self.encryption_manager.decrypt_optional(row['refresh_token']),
            expiration_token=row['expiration_token'] or "",
            expires_refresh=row['expires_refresh'] or "",
            group=row['user_group'] or ""
        )

    @offload
    def save(self, user: User):
        with self.database.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO users (uuid, name, email, email_normalized, hashed_password, creation_date, last_connection, device_id, access_token, refresh_token, expiration_token, expires_refresh, user_group) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._to_row(user)
            )

    @offload
    def get_by_key(self, uuid: UUID) -> User | None:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE uuid = ?", (str(uuid),)).fetchone()
        return self._from_row(row) if row else None

    @offload
    def get_by_email(self, email: str) -> User | None:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email_normalized = ?", (normalize_email(email),)).fetchone()
        return self._from_row(row) if row else None

    @offload
    def get_all(self) -> list[User]:
        with self.database.connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY rowid").fetchall()
        return [self._from_row(row) for row in rows]

    @offload
    def get_first(self) -> User | None:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM users ORDER BY rowid LIMIT 1").fetchone()
        return self._from_row(row) if row else None

    @offload
    def update(self, user: User) -> bool:
        row = self._to_row(user)
        with self.database.connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET name = ?, email = ?, email_normalized = ?, hashed_password = ?, creation_date = ?, last_connection = ?, device_id = ?, access_token = ?, refresh_token = ?, expiration_token = ?, expires_refresh = ?, user_group = ? WHERE uuid = ?",
                row[1:] + (str(user.uuid),)
            )
            return cursor.rowcount > 0

    @offload
    def delete(self, user: User) -> bool:
        with self.database.connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE uuid = ?", (str(user.uuid),))
            return cursor.rowcount > 0


# --- Pricing plans ---

class SystemPricingPlanDatasource:
    """Pricing plan snapshots keyed by version. Snapshots are replaced, never patched."""

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _from_row(row: sqlite3.Row) -> SystemPricingPlan:
        return SystemPricingPlan(
            version=row['version'],
            last_updated=row['last_updated'],
            ttl=row['ttl'],
            plans=plans_from_json(row['data_json'])
        )

    @offload
    def save(self, plan: SystemPricingPlan):
        with self.database.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO system_pricing_plans (version, last_updated, ttl, data_json) VALUES (?, ?, ?, ?)",
                (plan.version, plan.last_updated, plan.ttl, plans_to_json(plan.plans))
            )

    @offload
    def get_by_key(self, version: str) -> SystemPricingPlan | None:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM system_pricing_plans WHERE version = ?", (version,)).fetchone()
        return self._from_row(row) if row else None

    get_by_version = get_by_key

    @offload
    def get_all(self) -> list[SystemPricingPlan]:
        with self.database.connect() as conn:
            rows = conn.execute("SELECT * FROM system_pricing_plans ORDER BY rowid").fetchall()
        return [self._from_row(row) for row in rows]

    @offload
    def get_first(self) -> SystemPricingPlan | None:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM system_pricing_plans ORDER BY rowid LIMIT 1").fetchone()
        return self._from_row(row) if row else None

    @offload
    def update(self, plan: SystemPricingPlan) -> bool:
        with self.database.connect() as conn:
            cursor = conn.execute(
                "UPDATE system_pricing_plans SET last_updated = ?, ttl = ?, data_json = ? WHERE version = ?",
                (plan.last_updated, plan.ttl, plans_to_json(plan.plans), plan.version)
            )
            return cursor.rowcount > 0

    @offload
    def delete(self, plan: SystemPricingPlan) -> bool:
        with self.database.connect() as conn:
            cursor = conn.execute("DELETE FROM system_pricing_plans WHERE version = ?", (plan.version,))
            return cursor.rowcount > 0
