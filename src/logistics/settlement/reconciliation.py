"""COD reconciliation: settling the cash a driver collected.

A driver hands over cash and/or shows bank transfers for a set of delivered
parcels. The settlement is accepted only when the entered amounts match the
parcels' COD total to within one paisa; then every parcel is flagged
reconciled in the same unit of work. A mismatch changes nothing.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.errors import ReconciliationMismatch
from logistics.parcel.parcel import Parcel, ParcelStatus
from logistics.shared.actors import load_actor, load_driver
from logistics.user.user import UserRole

logger = structlog.get_logger(__name__)

RECONCILIATION_TOLERANCE = Decimal("0.01")
CURRENCY = "PKR"


@dataclass(frozen=True)
class Transfer:
    amount: Decimal
    reference: str | None = None


@dataclass(frozen=True)
class SettlementMatch:
    """Result of comparing entered money against selected parcels."""

    selected_total: Decimal
    entered_total: Decimal
    cash: Decimal
    transfers: tuple[Transfer, ...] = field(default_factory=tuple)

    @property
    def difference(self) -> Decimal:
        """Positive when the driver handed over more than was collected."""
        return self.entered_total - self.selected_total

    @property
    def matched(self) -> bool:
        return abs(self.difference) < RECONCILIATION_TOLERANCE

    @property
    def method(self) -> str:
        has_cash = self.cash > 0
        has_transfers = any(t.amount > 0 for t in self.transfers)
        if has_cash and has_transfers:
            return "Mixed"
        if has_transfers:
            return "Online"
        return "Cash"

    def describe_mismatch(self) -> str:
        direction = "short" if self.difference < 0 else "over"
        return f"Reconciliation {direction} by {CURRENCY} {abs(self.difference):.2f}"

    def describe_breakdown(self) -> str:
        parts = [f"COD Reconciled. Method: {self.method}."]
        if self.cash > 0:
            parts.append(f"Cash: {CURRENCY} {self.cash:.2f}.")
        for transfer in self.transfers:
            ref = f" (ref {transfer.reference})" if transfer.reference else ""
            parts.append(f"Online: {CURRENCY} {transfer.amount:.2f}{ref}.")
        return " ".join(parts)


def _to_decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def match_settlement(cod_amounts: list[float], cash: float, transfers: list[dict] | None = None) -> SettlementMatch:
    """Compare the COD owed on the selected parcels with what was handed over."""
    cash_amount = _to_decimal(cash)
    if cash_amount < 0:
        raise ValidationError({"cash_amount": ["Cash amount cannot be negative"]})

    parsed = []
    for transfer in transfers or []:
        amount = _to_decimal(transfer.get("amount"))
        if amount <= 0:
            raise ValidationError({"transfers": ["Transfer amounts must be greater than zero"]})
        parsed.append(Transfer(amount=amount, reference=transfer.get("reference")))

    selected_total = sum((_to_decimal(amount) for amount in cod_amounts), Decimal("0"))
    entered_total = cash_amount + sum((t.amount for t in parsed), Decimal("0"))
    return SettlementMatch(
        selected_total=selected_total,
        entered_total=entered_total,
        cash=cash_amount,
        transfers=tuple(parsed),
    )


@logistics.command(part_of="Parcel")
class ReconcileDriverCod:
    """Settle a driver's collected COD for a selection of delivered parcels."""

    driver_id = Identifier(required=True)
    parcel_ids = Text(required=True)  # JSON list of parcel ids
    actor_id = Identifier(required=True)
    cash_amount = Float(default=0.0, min_value=0.0)
    transfers = Text()  # JSON list of {amount, reference}


@logistics.command_handler(part_of=Parcel)
class ReconcileDriverCodHandler:
    @handle(ReconcileDriverCod)
    def reconcile_driver_cod(self, command):
        actor = load_actor(command.actor_id)
        if not actor.has_role(UserRole.ADMIN):
            raise ValidationError({"actor": ["Only admins can reconcile COD"]})
        driver = load_driver(command.driver_id)

        parcel_ids = json.loads(command.parcel_ids) if isinstance(command.parcel_ids, str) else command.parcel_ids
        parcel_ids = list(dict.fromkeys(parcel_ids or []))
        if not parcel_ids:
            raise ValidationError({"parcel_ids": ["Select at least one parcel to reconcile"]})
        transfers = json.loads(command.transfers) if command.transfers else []

        repo = current_domain.repository_for(Parcel)
        parcels = [repo.get(parcel_id) for parcel_id in parcel_ids]
        for parcel in parcels:
            if ParcelStatus(parcel.status) != ParcelStatus.DELIVERED:
                raise ValidationError({"parcel_ids": [f"Parcel {parcel.tracking_number} has not been delivered"]})
            if str(parcel.delivery_driver_id) != str(driver.id):
                raise ValidationError(
                    {"parcel_ids": [f"Parcel {parcel.tracking_number} was not delivered by {driver.name}"]}
                )
            if parcel.is_cod_reconciled:
                raise ValidationError({"parcel_ids": [f"Parcel {parcel.tracking_number} is already reconciled"]})

        match = match_settlement([p.cod_amount for p in parcels], command.cash_amount, transfers)
        if not match.matched:
            logger.warning(
                "COD reconciliation rejected: amounts do not match",
                driver_id=str(driver.id),
                selected_total=str(match.selected_total),
                entered_total=str(match.entered_total),
            )
            raise ReconciliationMismatch(
                match.describe_mismatch(),
                driver_id=str(driver.id),
                parcel_ids=parcel_ids,
                selected_total=float(match.selected_total),
                entered_total=float(match.entered_total),
                difference=float(match.difference),
            )

        notes = match.describe_breakdown()
        for parcel in parcels:
            parcel.mark_cod_reconciled(actor.name, match.method, notes)
            repo.add(parcel)

        logger.info(
            "COD reconciled for driver",
            driver_id=str(driver.id),
            parcel_count=len(parcels),
            total=str(match.selected_total),
            method=match.method,
        )
        return {
            "reconciled": [str(p.id) for p in parcels],
            "total": float(match.selected_total),
            "method": match.method,
        }
