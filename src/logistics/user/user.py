"""User aggregate: brands, drivers and back-office staff.

Every actor in the system is a User tagged with a role. Role-specific data
lives on the same record: brands carry pickup locations and a rate card,
drivers carry delivery zones, duty state and per-job commissions, salaried
staff carry base salary and commission terms.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    String,
    Text,
    ValueObject,
)

from logistics.domain import logistics
from logistics.user.events import (
    CommissionTermsUpdated,
    DutyStatusChanged,
    PickupLocationsUpdated,
    RateCardUpdated,
    UserRegistered,
    UserStatusChanged,
)


class UserRole(Enum):
    ADMIN = "Admin"
    BRAND = "Brand"
    DRIVER = "Driver"
    WAREHOUSE_MANAGER = "Warehouse_Manager"
    SALES_MANAGER = "Sales_Manager"
    DIRECT_SALES = "Direct_Sales"
    CUSTOMER = "Customer"


class UserStatus(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class DutyStatus(Enum):
    ON_DUTY = "On_Duty"
    OFF_DUTY = "Off_Duty"


# Roles that draw a salary (and possibly commission) from the company.
SALARIED_ROLES = {
    UserRole.ADMIN,
    UserRole.DRIVER,
    UserRole.WAREHOUSE_MANAGER,
    UserRole.SALES_MANAGER,
    UserRole.DIRECT_SALES,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@logistics.value_object(part_of="User")
class GeoPoint:
    """Last reported position of a driver."""

    lat = Float(min_value=-90.0, max_value=90.0)
    lng = Float(min_value=-180.0, max_value=180.0)


@logistics.value_object(part_of="User")
class BankDetails:
    """Account a brand's payouts are transferred to."""

    bank_name = String(max_length=100)
    account_title = String(max_length=150)
    account_number = String(max_length=50)
    iban = String(max_length=50)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@logistics.entity(part_of="User")
class PickupLocation:
    """A brand address parcels are collected from."""

    location_code = String(required=True, max_length=50)
    address = String(required=True, max_length=500)
    assigned_driver_id = Identifier()


@logistics.entity(part_of="User")
class WeightTier:
    """One row of a brand rate card: parcels up to ``max_weight`` kg cost ``charge``."""

    max_weight = Float(required=True, min_value=0.01)
    charge = Float(required=True, min_value=0.0)


@logistics.entity(part_of="User")
class DutyLogEntry:
    status = String(required=True, choices=DutyStatus)
    recorded_at = DateTime(required=True)


@logistics.entity(part_of="User")
class BrandCommission:
    """Commission percentage a sales manager earns on one brand."""

    brand_id = Identifier(required=True)
    rate = Float(required=True, min_value=0.0, max_value=100.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@logistics.aggregate
class User:
    name = String(required=True, max_length=150)
    email = String(required=True, max_length=254)
    username = String(max_length=100)
    role = String(required=True, choices=UserRole)
    status = String(choices=UserStatus, default=UserStatus.ACTIVE.value)
    phone = String(max_length=30)

    # Brand profile
    office_address = String(max_length=500)
    company_phone = String(max_length=30)
    bank_details = ValueObject(BankDetails)
    pickup_locations = HasMany(PickupLocation)
    weight_tiers = HasMany(WeightTier)
    fuel_surcharge = Float(default=0.0, min_value=0.0)

    # Driver profile
    delivery_zones = Text()  # JSON list of zone names
    on_duty = Boolean(default=False)
    duty_log = HasMany(DutyLogEntry)
    current_location = ValueObject(GeoPoint)
    location_updated_at = DateTime()
    per_pickup_commission = Float(default=0.0, min_value=0.0)
    per_delivery_commission = Float(default=0.0, min_value=0.0)

    # Salaried staff
    base_salary = Float(default=0.0, min_value=0.0)
    commission_rate = Float(default=0.0, min_value=0.0, max_value=100.0)
    brand_commissions = HasMany(BrandCommission)

    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def weight_tiers_are_distinct(self):
        weights = [tier.max_weight for tier in self.weight_tiers or []]
        if len(weights) != len(set(weights)):
            raise ValidationError({"weight_tiers": ["Each weight tier can appear only once"]})

    @invariant.post
    def pickup_location_codes_are_distinct(self):
        codes = [loc.location_code for loc in self.pickup_locations or []]
        if len(codes) != len(set(codes)):
            raise ValidationError({"pickup_locations": ["Pickup location codes must be unique"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def register(
        cls,
        name: str,
        email: str,
        role: str,
        username: str | None = None,
        phone: str | None = None,
        office_address: str | None = None,
        company_phone: str | None = None,
        bank_details: dict | None = None,
        pickup_locations: list[dict] | None = None,
        weight_tiers: dict | None = None,
        fuel_surcharge: float = 0.0,
        delivery_zones: list[str] | None = None,
        base_salary: float = 0.0,
        commission_rate: float = 0.0,
        per_pickup_commission: float = 0.0,
        per_delivery_commission: float = 0.0,
        brand_commissions: dict | None = None,
    ):
        now = datetime.now(UTC)
        user = cls(
            name=name,
            email=email.strip().lower(),
            username=username,
            role=role,
            status=UserStatus.ACTIVE.value,
            phone=phone,
            office_address=office_address,
            company_phone=company_phone,
            bank_details=BankDetails(**bank_details) if bank_details else None,
            fuel_surcharge=fuel_surcharge or 0.0,
            delivery_zones=json.dumps(list(delivery_zones or [])),
            base_salary=base_salary or 0.0,
            commission_rate=commission_rate or 0.0,
            per_pickup_commission=per_pickup_commission or 0.0,
            per_delivery_commission=per_delivery_commission or 0.0,
            created_at=now,
            updated_at=now,
        )
        with atomic_change(user):
            for location in pickup_locations or []:
                user.add_pickup_locations(PickupLocation(**location))
            for max_weight, charge in (weight_tiers or {}).items():
                user.add_weight_tiers(WeightTier(max_weight=float(max_weight), charge=float(charge)))
            for brand_id, rate in (brand_commissions or {}).items():
                user.add_brand_commissions(BrandCommission(brand_id=brand_id, rate=float(rate)))

        user.raise_(
            UserRegistered(
                user_id=str(user.id),
                name=name,
                email=user.email,
                role=role,
                registered_at=now,
            )
        )
        return user

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in {role.value for role in roles}

    @property
    def zones(self) -> list[str]:
        return json.loads(self.delivery_zones) if self.delivery_zones else []

    def covers_zone(self, zone: str | None) -> bool:
        return bool(zone) and zone in self.zones

    def rate_card(self) -> dict[float, float]:
        return {tier.max_weight: tier.charge for tier in self.weight_tiers or []}

    def find_pickup_location(self, location_ref: str):
        """Look up a pickup location by its code or entity id."""
        return next(
            (
                loc
                for loc in self.pickup_locations or []
                if loc.location_code == location_ref or str(loc.id) == str(location_ref)
            ),
            None,
        )

    def default_pickup_location(self):
        locations = self.pickup_locations or []
        return locations[0] if locations else None

    def brand_commission_rates(self) -> dict[str, float]:
        return {str(bc.brand_id): bc.rate for bc in self.brand_commissions or []}

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def toggle_status(self) -> None:
        """Flip between ACTIVE and INACTIVE."""
        now = datetime.now(UTC)
        self.status = UserStatus.INACTIVE.value if self.is_active else UserStatus.ACTIVE.value
        self.updated_at = now
        self.raise_(UserStatusChanged(user_id=str(self.id), status=self.status, changed_at=now))

    def toggle_duty(self) -> None:
        """Flip a driver on or off duty and log the change."""
        if not self.has_role(UserRole.DRIVER):
            raise ValidationError({"role": ["Only drivers have a duty status"]})

        now = datetime.now(UTC)
        self.on_duty = not self.on_duty
        self.add_duty_log(
            DutyLogEntry(
                status=DutyStatus.ON_DUTY.value if self.on_duty else DutyStatus.OFF_DUTY.value,
                recorded_at=now,
            )
        )
        self.updated_at = now
        self.raise_(DutyStatusChanged(user_id=str(self.id), on_duty=self.on_duty, changed_at=now))

    def update_location(self, lat: float, lng: float) -> None:
        """Store a driver's position. Position pings raise no event."""
        if not self.has_role(UserRole.DRIVER):
            raise ValidationError({"role": ["Only drivers report a location"]})
        self.current_location = GeoPoint(lat=lat, lng=lng)
        self.location_updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Brand profile
    # -------------------------------------------------------------------
    def update_rate_card(self, weight_tiers: dict, fuel_surcharge: float | None = None) -> None:
        if not self.has_role(UserRole.BRAND):
            raise ValidationError({"role": ["Only brands have a rate card"]})
        if not weight_tiers:
            raise ValidationError({"weight_tiers": ["Rate card needs at least one weight tier"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            for tier in list(self.weight_tiers or []):
                self.remove_weight_tiers(tier)
            for max_weight, charge in weight_tiers.items():
                self.add_weight_tiers(WeightTier(max_weight=float(max_weight), charge=float(charge)))
            if fuel_surcharge is not None:
                self.fuel_surcharge = fuel_surcharge
        self.updated_at = now
        self.raise_(
            RateCardUpdated(
                user_id=str(self.id),
                weight_tiers=json.dumps({str(k): v for k, v in self.rate_card().items()}),
                fuel_surcharge=self.fuel_surcharge,
                updated_at=now,
            )
        )

    def replace_pickup_locations(self, locations: list[dict]) -> None:
        if not self.has_role(UserRole.BRAND):
            raise ValidationError({"role": ["Only brands have pickup locations"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            for location in list(self.pickup_locations or []):
                self.remove_pickup_locations(location)
            for location in locations:
                self.add_pickup_locations(PickupLocation(**location))
        self.updated_at = now
        self.raise_(
            PickupLocationsUpdated(
                user_id=str(self.id),
                locations=json.dumps(locations),
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Compensation
    # -------------------------------------------------------------------
    def update_commission_terms(
        self,
        base_salary: float | None = None,
        commission_rate: float | None = None,
        per_pickup_commission: float | None = None,
        per_delivery_commission: float | None = None,
        brand_commissions: dict | None = None,
    ) -> None:
        if not self.has_role(*SALARIED_ROLES):
            raise ValidationError({"role": [f"{self.role} users are not paid a salary"]})

        now = datetime.now(UTC)
        terms = {}
        with atomic_change(self):
            if base_salary is not None:
                self.base_salary = base_salary
                terms["base_salary"] = base_salary
            if commission_rate is not None:
                self.commission_rate = commission_rate
                terms["commission_rate"] = commission_rate
            if per_pickup_commission is not None:
                self.per_pickup_commission = per_pickup_commission
                terms["per_pickup_commission"] = per_pickup_commission
            if per_delivery_commission is not None:
                self.per_delivery_commission = per_delivery_commission
                terms["per_delivery_commission"] = per_delivery_commission
            if brand_commissions is not None:
                for bc in list(self.brand_commissions or []):
                    self.remove_brand_commissions(bc)
                for brand_id, rate in brand_commissions.items():
                    self.add_brand_commissions(BrandCommission(brand_id=brand_id, rate=float(rate)))
                terms["brand_commissions"] = brand_commissions
        self.updated_at = now
        self.raise_(
            CommissionTermsUpdated(
                user_id=str(self.id),
                terms=json.dumps(terms),
                updated_at=now,
            )
        )
