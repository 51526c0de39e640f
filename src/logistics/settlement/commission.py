"""Commission and salary calculation over a date window.

Commission is derived from parcels created within ``[start, end]`` (whole
days, inclusive), read once at the start of the computation:

- sales manager: for each managed brand,
  (Σ delivery_charge + tax of the brand's parcels) × brand rate / 100
- driver: pickups × per-pickup rate + deliveries × per-delivery rate, where
  pickups are parcels they picked up that sit in PICKED_UP or RETURNED and
  deliveries are parcels they delivered that sit in DELIVERED
- direct sales: (Σ delivery_charge + tax of all parcels) × own rate / 100

Other salaried roles earn no commission. Total salary is base + commission.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from logistics.parcel.parcel import Parcel, ParcelStatus
from logistics.user.user import SALARIED_ROLES, User, UserRole

_CENTS = Decimal("0.01")
_PICKUP_COUNTED_STATUSES = {ParcelStatus.PICKED_UP.value, ParcelStatus.RETURNED.value}
_DELIVERY_COUNTED_STATUSES = {ParcelStatus.DELIVERED.value}


@dataclass(frozen=True)
class SalaryStatement:
    user_id: str
    user_name: str
    role: str
    period_start: date
    period_end: date
    base_salary: float
    commission: float
    breakdown: dict = field(default_factory=dict)
    already_paid: bool = False

    @property
    def total_salary(self) -> float:
        return _money(Decimal(str(self.base_salary)) + Decimal(str(self.commission)))


def _money(value: Decimal) -> float:
    return float(value.quantize(_CENTS, rounding=ROUND_HALF_UP))


def _as_date(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date()
    return value


def in_window(parcel, start: date, end: date) -> bool:
    created = _as_date(parcel.created_at)
    return created is not None and start <= created <= end


def revenue(parcels) -> Decimal:
    """Company revenue on parcels: their charges plus tax."""
    return sum(
        (Decimal(str(p.delivery_charge or 0)) + Decimal(str(p.tax or 0)) for p in parcels),
        Decimal("0"),
    )


def sales_manager_commission(user: User, parcels: list) -> tuple[Decimal, dict]:
    brands = []
    total = Decimal("0")
    for brand_id, rate in user.brand_commission_rates().items():
        brand_revenue = revenue(p for p in parcels if str(p.brand_id) == brand_id)
        earned = brand_revenue * Decimal(str(rate)) / Decimal(100)
        total += earned
        brands.append(
            {
                "brand_id": brand_id,
                "revenue": _money(brand_revenue),
                "rate": rate,
                "commission": _money(earned),
            }
        )
    return total, {"brands": brands}


def driver_commission(user: User, parcels: list) -> tuple[Decimal, dict]:
    driver_id = str(user.id)
    pickups = [
        p for p in parcels if str(p.pickup_driver_id) == driver_id and p.status in _PICKUP_COUNTED_STATUSES
    ]
    deliveries = [
        p for p in parcels if str(p.delivery_driver_id) == driver_id and p.status in _DELIVERY_COUNTED_STATUSES
    ]
    per_pickup = Decimal(str(user.per_pickup_commission or 0))
    per_delivery = Decimal(str(user.per_delivery_commission or 0))
    total = len(pickups) * per_pickup + len(deliveries) * per_delivery
    return total, {
        "pickup_count": len(pickups),
        "per_pickup": user.per_pickup_commission or 0.0,
        "delivery_count": len(deliveries),
        "per_delivery": user.per_delivery_commission or 0.0,
    }


def direct_sales_commission(user: User, parcels: list) -> tuple[Decimal, dict]:
    total_revenue = revenue(parcels)
    rate = Decimal(str(user.commission_rate or 0))
    return total_revenue * rate / Decimal(100), {
        "revenue": _money(total_revenue),
        "rate": user.commission_rate or 0.0,
    }


_COMMISSION_RULES = {
    UserRole.SALES_MANAGER.value: sales_manager_commission,
    UserRole.DRIVER.value: driver_commission,
    UserRole.DIRECT_SALES.value: direct_sales_commission,
}


def calculate_salary(user: User, parcels: list, start: date, end: date, already_paid: bool = False) -> SalaryStatement:
    """Compute base salary plus commission for ``user`` over ``[start, end]``."""
    if start > end:
        raise ValidationError({"period": ["Period start must not be after period end"]})
    if not user.has_role(*SALARIED_ROLES):
        raise ValidationError({"user_id": [f"{user.role} users are not paid a salary"]})

    window = [p for p in parcels if in_window(p, start, end)]
    rule = _COMMISSION_RULES.get(user.role)
    commission, breakdown = rule(user, window) if rule else (Decimal("0"), {})

    return SalaryStatement(
        user_id=str(user.id),
        user_name=user.name,
        role=user.role,
        period_start=start,
        period_end=end,
        base_salary=user.base_salary or 0.0,
        commission=_money(commission),
        breakdown=breakdown,
        already_paid=already_paid,
    )


def salary_statement(user_id: str, start: date, end: date) -> SalaryStatement:
    """Load a user and a parcel snapshot and compute their statement for the period."""
    from logistics.settlement.salary import SalaryPayment

    user = current_domain.repository_for(User).get(user_id)
    parcels = current_domain.repository_for(Parcel).snapshot()
    paid = current_domain.repository_for(SalaryPayment).for_period(user_id, start, end) is not None
    return calculate_salary(user, parcels, start, end, already_paid=paid)
