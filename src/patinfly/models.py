# src/patinfly/models.py

import json
from dataclasses import dataclass, field, asdict
from uuid import UUID

@dataclass
class BikeType:
    uuid: str
    name: str
    type: str

@dataclass
class Bike:
    uuid: str
    name: str
    bike_type: BikeType
    bike_type_name: str
    creation_date: str
    last_maintenance_date: str | None = None
    in_maintenance: bool = False
    is_active: bool = False
    is_deleted: bool = False
    battery_level: int = 0
    meters: int = 0
    is_rented: bool = False
    lat: float | None = None
    lon: float | None = None
    is_reserved: bool = False
    rental_uris: str = ""
    group_course: str | None = None

@dataclass
class User:
    uuid: UUID
    name: str
    email: str
    hashed_password: str = ""
    creation_date: str = ""
    last_connection: str = ""
    device_id: str = ""
    access_token: str = ""
    refresh_token: str = ""
    expiration_token: str = ""
    expires_refresh: str = ""
    group: str = ""

@dataclass
class LocalizedText:
    text: str
    language: str

@dataclass
class PricingRate:
    start: float
    rate: float
    interval: int

@dataclass
class Plan:
    plan_id: str
    name: list[LocalizedText]
    currency: str
    price: float
    is_taxable: bool
    description: list[LocalizedText] = field(default_factory=list)
    per_km_pricing: list[PricingRate] = field(default_factory=list)
    per_min_pricing: list[PricingRate] = field(default_factory=list)

    def localized_name(self, language: str) -> str:
        """Returns the plan name in the given language, or the first one available."""
        for entry in self.name:
            if entry.language == language:
                return entry.text
        return self.name[0].text if self.name else self.plan_id

@dataclass
class SystemPricingPlan:
    version: str
    last_updated: str
    ttl: int
    plans: list[Plan] = field(default_factory=list)

    def plan_by_id(self, plan_id: str) -> Plan | None:
        for plan in self.plans:
            if plan.plan_id == plan_id:
                return plan
        return None

@dataclass
class ServerStatus:
    version: str
    build: str
    update: str
    name: str

    @classmethod
    def unavailable(cls) -> "ServerStatus":
        """Status reported when the backend cannot be reached."""
        return cls(version="0.0", build="0", update="", name="error")

    @property
    def is_available(self) -> bool:
        return self.name != "error"

@dataclass
class LoginToken:
    id: int
    email: str
    access: str
    expires: str
    refresh: str
    expires_refresh: str

@dataclass
class LoginResult:
    success: bool
    token: LoginToken
    version: str

@dataclass
class Credentials:
    email: str = ""
    password: str = ""


# --- Pricing plan data column helpers ---

def plans_to_json(plans: list[Plan]) -> str:
    """Serializes the plan list stored alongside a pricing plan snapshot."""
    return json.dumps({"plans": [asdict(plan) for plan in plans]}, ensure_ascii=False)

def plans_from_json(data_json: str) -> list[Plan]:
    """Inverse of plans_to_json."""
    raw = json.loads(data_json) if data_json else {}
    plans = []
    for item in raw.get("plans", []):
        plans.append(Plan(
            plan_id=item["plan_id"],
            name=[LocalizedText(**n) for n in item.get("name", [])],
            currency=item.get("currency", ""),
            price=item.get("price", 0.0),
            is_taxable=item.get("is_taxable", False),
            description=[LocalizedText(**d) for d in item.get("description", [])],
            per_km_pricing=[PricingRate(**r) for r in item.get("per_km_pricing", [])],
            per_min_pricing=[PricingRate(**r) for r in item.get("per_min_pricing", [])],
        ))
    return plans
