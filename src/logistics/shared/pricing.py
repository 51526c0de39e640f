"""Weight-tier pricing.

A brand's rate card maps weight tiers (kg) to a flat delivery charge. A
parcel is billed at the smallest tier that holds its weight; parcels heavier
than every tier are billed at the largest one. A fuel surcharge percentage is
added on top and tax is levied on the surcharged charge.

    charge          = rate(tier)
    surcharge       = charge × fuel_surcharge_pct / 100
    delivery_charge = charge + surcharge
    tax             = delivery_charge × TAX_RATE
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError

TAX_RATE = Decimal("0.16")

# Weight tiers offered on brand rate cards (kg).
STANDARD_WEIGHT_TIERS = (0.5, 1.0, 2.0, 3.0, 4.0, 5.0)

DELIVERY_ZONES = ("Zone 1", "Zone 2", "Zone 3", "Zone 4")

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class Quote:
    """Price of a single parcel."""

    tier: float
    base_charge: float
    fuel_surcharge: float
    delivery_charge: float
    tax: float

    @property
    def total(self) -> float:
        return round(self.delivery_charge + self.tax, 2)


def _money(value: Decimal) -> float:
    return float(value.quantize(_CENTS, rounding=ROUND_HALF_UP))


def select_tier(tiers: dict[float, float], weight: float) -> float:
    """Return the tier a weight is billed at."""
    if not tiers:
        raise ValidationError({"rate_card": ["Rate card has no weight tiers"]})
    if weight is None or weight <= 0:
        raise ValidationError({"weight": ["Weight must be greater than zero"]})

    fitting = [tier for tier in tiers if tier >= weight]
    return min(fitting) if fitting else max(tiers)


def quote(tiers: dict[float, float], fuel_surcharge_pct: float, weight: float) -> Quote:
    """Price a parcel of ``weight`` kg against a rate card."""
    tier = select_tier(tiers, weight)

    charge = Decimal(str(tiers[tier]))
    surcharge = charge * Decimal(str(fuel_surcharge_pct or 0)) / Decimal(100)
    delivery_charge = charge + surcharge
    tax = delivery_charge * TAX_RATE

    return Quote(
        tier=tier,
        base_charge=_money(charge),
        fuel_surcharge=_money(surcharge),
        delivery_charge=_money(delivery_charge),
        tax=_money(tax),
    )


def net_of_charges(cod_amount: float, delivery_charge: float, tax: float) -> float:
    """What the brand is owed for one parcel once charges are deducted."""
    return _money(Decimal(str(cod_amount)) - Decimal(str(delivery_charge)) - Decimal(str(tax)))
