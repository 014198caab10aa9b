"""
Wire and fixture schemas.

The remote API and the bundled JSON fixtures use their own field names; the
models below validate those documents and map them onto the domain dataclasses
in patinfly.models. Field names follow the domain, aliases follow the wire.
"""

import hashlib
import random
import string
from datetime import date, datetime, timedelta
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from patinfly import config
from patinfly.models import (
    Bike, BikeType, User, LocalizedText, PricingRate, Plan, SystemPricingPlan,
    ServerStatus, LoginToken, LoginResult,
)
from patinfly.validation import clamp_battery_level, is_valid_iso_date, is_valid_latitude, is_valid_longitude

WIRE_CONFIG = ConfigDict(populate_by_name=True, extra="ignore")


def name_uuid_from_bytes(data: bytes) -> UUID:
    """Name based (MD5, version 3) UUID without namespace, as produced by the mobile client."""
    return UUID(bytes=hashlib.md5(data).digest(), version=3)

def generate_device_id(rng: random.Random | None = None) -> str:
    """Device identifiers look like ABC123DEF456."""
    rng = rng or random
    letters, digits = string.ascii_uppercase, string.digits
    parts = [
        rng.choices(letters, k=3), rng.choices(digits, k=3),
        rng.choices(letters, k=3), rng.choices(digits, k=3),
    ]
    return "".join("".join(part) for part in parts)

def bike_type_name_for(type_id: str) -> str:
    for prefix, type_name in config.BIKE_TYPE_PREFIXES:
        if type_id.startswith(prefix):
            return type_name
    return config.UNKNOWN_BIKE_TYPE

def _now_iso() -> str:
    return datetime.now().strftime("%Y-%m-%dT%H:%M:%S")

def _random_maintenance_date(rng) -> str:
    start, end = date(2023, 1, 1), date(2025, 12, 31)
    return (start + timedelta(days=rng.randint(0, (end - start).days))).isoformat()


# ==========================
# Remote API models
# ==========================

class RentalUrisApiModel(BaseModel):
    model_config = WIRE_CONFIG

    android: str = ""
    ios: str = ""


class BikeApiModel(BaseModel):
    model_config = WIRE_CONFIG

    id: str = Field(alias="vehicle_id")
    name: str
    bike_type_id: str = Field(alias="vehicle_type_id")
    group_course: str | None = None
    lat: float | None = None
    lon: float | None = None
    meters: int | None = None
    last_maintenance_date: str | None = Field(default=None, alias="lastMaintenanceDate")
    battery_level: int | None = Field(default=None, alias="batteryLevel")
    is_deleted: bool = Field(default=False, alias="isDeleted")
    is_active: bool | None = Field(default=None, alias="is_activated")
    is_disabled: bool = False
    is_reserved: bool = False
    is_rented: bool = False
    rental_uris: RentalUrisApiModel = Field(default_factory=RentalUrisApiModel)
    last_reported: str | int | None = None

    def to_domain(self, demo_mode: bool = False, rng: random.Random | None = None) -> Bike:
        """
        Maps a vehicle payload onto a Bike.

        The backend does not always report battery, distance, maintenance date or
        activation. In demo mode those gaps are filled with random sample values;
        otherwise they get neutral defaults.
        """
        rng = rng or random
        meters, battery_level = self.meters, self.battery_level
        last_maintenance_date, is_active = self.last_maintenance_date, self.is_active
        if last_maintenance_date is not None and not is_valid_iso_date(last_maintenance_date):
            last_maintenance_date = None
        if demo_mode:
            meters = rng.randint(300, 3000) if meters is None else meters
            battery_level = rng.randint(20, 100) if battery_level is None else battery_level
            if last_maintenance_date is None:
                last_maintenance_date = _random_maintenance_date(rng)
            is_active = rng.random() < 0.5 if is_active is None else is_active

        type_name = bike_type_name_for(self.bike_type_id)
        return Bike(
            uuid=self.id,
            name=self.name,
            bike_type=BikeType(uuid=self.bike_type_id, name=type_name, type=self.bike_type_id),
            bike_type_name=type_name,
            creation_date=_now_iso(),
            last_maintenance_date=last_maintenance_date,
            in_maintenance=self.is_disabled,
            is_active=bool(is_active),
            is_deleted=self.is_deleted,
            battery_level=clamp_battery_level(battery_level or 0),
            meters=meters or 0,
            is_rented=self.is_rented,
            lat=self.lat if is_valid_latitude(self.lat) else None,
            lon=self.lon if is_valid_longitude(self.lon) else None,
            is_reserved=self.is_reserved,
            rental_uris=f"Android: {self.rental_uris.android}, iOS: {self.rental_uris.ios}",
            group_course=self.group_course or ""
        )


class UserApiModel(BaseModel):
    model_config = WIRE_CONFIG

    id: int = -1
    name: str | None = None
    registered_at: str | None = Field(default=None, alias="registeredAt")
    first_name: str | None = None
    last_name: str | None = None
    access_token: str | None = None
    expiration_token: str | None = None
    refresh_token: str | None = None
    expires_refresh: str | None = None
    server_utc_time: str | None = None
    group: str | None = None
    email: str | None = None

    def merge_with(self, other: "UserApiModel") -> "UserApiModel":
        """
        Overlays a profile payload on top of this one.
        Token fields always stay with self (the login response).
        """
        return UserApiModel(
            id=other.id if other.id != -1 else self.id,
            name=other.name or self.name,
            registered_at=other.registered_at or self.registered_at,
            first_name=other.first_name or self.first_name,
            last_name=other.last_name or self.last_name,
            access_token=self.access_token,
            expiration_token=self.expiration_token,
            refresh_token=self.refresh_token,
            expires_refresh=self.expires_refresh,
            server_utc_time=other.server_utc_time or self.server_utc_time,
            group=other.group or self.group,
            email=other.email or self.email
        )

    def derived_uuid(self) -> UUID:
        if self.id != -1:
            return name_uuid_from_bytes(str(self.id).encode('utf-8'))
        if self.email:
            return name_uuid_from_bytes(self.email.encode('utf-8'))
        return name_uuid_from_bytes(str(uuid4()).encode('utf-8'))

    def display_name(self) -> str:
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        if full_name:
            return full_name
        if self.name:
            return self.name
        if self.email:
            return self.email.split("@")[0].split(".")[0]
        return ""

    def to_domain(self, hashed_password: str = "") -> User:
        return User(
            uuid=self.derived_uuid(),
            name=self.display_name(),
            email=self.email or "",
            hashed_password=hashed_password,
            creation_date=self.registered_at or "",
            last_connection=self.server_utc_time or "",
            device_id=generate_device_id(),
            access_token=self.access_token or "",
            refresh_token=self.refresh_token or "",
            expiration_token=self.expiration_token or "",
            expires_refresh=self.expires_refresh or "",
            group=self.group or config.FALLBACK_USER_GROUP
        )


class TokenApiModel(BaseModel):
    model_config = WIRE_CONFIG

    id: int = -1
    email: str = ""
    access: str | None = None
    expires: str = ""
    refresh: str = ""
    expires_refresh: str = ""


class LoginResponse(BaseModel):
    model_config = WIRE_CONFIG

    success: bool = False
    token: TokenApiModel | None = None
    version: str = ""

    def to_domain(self) -> LoginResult:
        token = self.token or TokenApiModel()
        return LoginResult(
            success=self.success,
            token=LoginToken(
                id=token.id,
                email=token.email,
                access=token.access or "",
                expires=token.expires,
                refresh=token.refresh,
                expires_refresh=token.expires_refresh
            ),
            version=self.version
        )


class ServerStatusApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    version: str
    build: str
    update: str
    name: str

    def to_domain(self) -> ServerStatus:
        return ServerStatus(version=self.version, build=self.build, update=self.update, name=self.name)


# ==========================
# Bundled fixture models
# ==========================

class BikeTypeModel(BaseModel):
    uuid: str
    name: str
    type: str


class BikeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str
    name: str
    bike_type: BikeTypeModel
    creation_date: str
    last_maintenance_date: str | None = None
    in_maintenance: bool = False
    is_active: bool = False
    is_deleted: bool = False
    battery_level: int = 0
    meters: int = 0
    is_rented: bool = False
    bike_type_name: str = ""

    def to_domain(self) -> Bike:
        # Fixtures carry no position, reservation or rental links
        return Bike(
            uuid=self.uuid,
            name=self.name,
            bike_type=BikeType(uuid=self.bike_type.uuid, name=self.bike_type.name, type=self.bike_type.type),
            bike_type_name=self.bike_type_name or self.bike_type.name,
            creation_date=self.creation_date,
            last_maintenance_date=self.last_maintenance_date,
            in_maintenance=self.in_maintenance,
            is_active=self.is_active,
            is_deleted=self.is_deleted,
            battery_level=clamp_battery_level(self.battery_level),
            meters=self.meters,
            is_rented=self.is_rented
        )


class UserModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: UUID
    name: str
    email: str
    hashed_password: str = ""
    creation_date: str = ""
    last_connection: str = ""
    device_id: str = ""
    rental_history: list[BikeModel] = Field(default_factory=list)

    def to_domain(self) -> User:
        # Session and group fields only exist once the user has logged in
        return User(
            uuid=self.uuid,
            name=self.name,
            email=self.email,
            hashed_password=self.hashed_password,
            creation_date=self.creation_date,
            last_connection=self.last_connection,
            device_id=self.device_id
        )


class LocalizedTextModel(BaseModel):
    text: str
    language: str


class PricingRateModel(BaseModel):
    start: float
    rate: float
    interval: int


class PlanModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    plan_id: str
    name: list[LocalizedTextModel]
    currency: str
    price: float
    is_taxable: bool
    description: list[LocalizedTextModel] = Field(default_factory=list)
    per_km_pricing: list[PricingRateModel] = Field(default_factory=list)
    per_min_pricing: list[PricingRateModel] = Field(default_factory=list)

    def to_domain(self) -> Plan:
        return Plan(
            plan_id=self.plan_id,
            name=[LocalizedText(text=n.text, language=n.language) for n in self.name],
            currency=self.currency,
            price=self.price,
            is_taxable=self.is_taxable,
            description=[LocalizedText(text=d.text, language=d.language) for d in self.description],
            per_km_pricing=[PricingRate(start=r.start, rate=r.rate, interval=r.interval) for r in self.per_km_pricing],
            per_min_pricing=[PricingRate(start=r.start, rate=r.rate, interval=r.interval) for r in self.per_min_pricing]
        )


class DataPlanModel(BaseModel):
    plans: list[PlanModel] = Field(default_factory=list)


class SystemPricingPlanModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    last_updated: str
    ttl: int
    version: str
    data: DataPlanModel = Field(default_factory=DataPlanModel)

    def to_domain(self) -> SystemPricingPlan:
        return SystemPricingPlan(
            version=self.version,
            last_updated=self.last_updated,
            ttl=self.ttl,
            plans=[plan.to_domain() for plan in self.data.plans]
        )
