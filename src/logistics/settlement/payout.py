"""Brand payouts: grouping delivered parcels, issuing and paying invoices."""

import json
from collections import defaultdict
from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.errors import ConflictError
from logistics.parcel.parcel import Parcel, ParcelStatus
from logistics.settlement.invoice import PayoutInvoice
from logistics.shared.actors import load_actor, load_brand
from logistics.shared.pricing import net_of_charges
from logistics.user.user import UserRole

logger = structlog.get_logger(__name__)


@dataclass
class PayoutGroup:
    """Delivered, un-invoiced parcels of one brand with preview totals."""

    brand_id: str
    brand_name: str
    parcel_ids: list[str] = field(default_factory=list)
    total_cod: float = 0.0
    total_charges: float = 0.0
    total_tax: float = 0.0

    @property
    def net_payout(self) -> float:
        return net_of_charges(self.total_cod, self.total_charges, self.total_tax)


def payout_groups() -> list[PayoutGroup]:
    """Group every delivered parcel not yet invoiced by brand."""
    groups: dict[str, PayoutGroup] = {}
    totals = defaultdict(lambda: [0.0, 0.0, 0.0])
    for parcel in current_domain.repository_for(Parcel).awaiting_invoice():
        brand_id = str(parcel.brand_id)
        group = groups.setdefault(brand_id, PayoutGroup(brand_id=brand_id, brand_name=parcel.brand_name or ""))
        group.parcel_ids.append(str(parcel.id))
        totals[brand_id][0] += parcel.cod_amount or 0.0
        totals[brand_id][1] += parcel.delivery_charge or 0.0
        totals[brand_id][2] += parcel.tax or 0.0

    for brand_id, group in groups.items():
        group.total_cod, group.total_charges, group.total_tax = (round(v, 2) for v in totals[brand_id])
    return sorted(groups.values(), key=lambda g: g.brand_name)


def _assert_admin(actor) -> None:
    if not actor.has_role(UserRole.ADMIN):
        raise ValidationError({"actor": ["Only admins can manage payouts"]})


@logistics.command(part_of="PayoutInvoice")
class GeneratePayoutInvoice:
    """Invoice a brand for a selection of its delivered parcels."""

    brand_id = Identifier(required=True)
    parcel_ids = Text(required=True)  # JSON list of parcel ids
    actor_id = Identifier(required=True)


@logistics.command(part_of="PayoutInvoice")
class MarkPayoutInvoicePaid:
    invoice_id = Identifier(required=True)
    transaction_id = String(required=True, max_length=100)
    actor_id = Identifier(required=True)


@logistics.command_handler(part_of=PayoutInvoice)
class PayoutInvoiceHandler:
    @handle(GeneratePayoutInvoice)
    def generate_payout_invoice(self, command):
        actor = load_actor(command.actor_id)
        _assert_admin(actor)
        brand = load_brand(command.brand_id)

        parcel_ids = json.loads(command.parcel_ids) if isinstance(command.parcel_ids, str) else command.parcel_ids
        parcel_ids = list(dict.fromkeys(parcel_ids or []))
        if not parcel_ids:
            raise ValidationError({"parcel_ids": ["Select at least one parcel to invoice"]})

        parcel_repo = current_domain.repository_for(Parcel)
        parcels = [parcel_repo.get(parcel_id) for parcel_id in parcel_ids]

        foreign = [p.tracking_number for p in parcels if str(p.brand_id) != str(brand.id)]
        if foreign:
            raise ValidationError({"parcel_ids": [f"Parcels {', '.join(foreign)} belong to another brand"]})
        undelivered = [p.tracking_number for p in parcels if p.status != ParcelStatus.DELIVERED.value]
        if undelivered:
            raise ValidationError({"parcel_ids": [f"Parcels {', '.join(undelivered)} have not been delivered"]})
        invoiced = [p for p in parcels if p.invoice_id is not None]
        if invoiced:
            raise ConflictError(
                f"Parcels {', '.join(p.tracking_number for p in invoiced)} are already invoiced",
                parcel_ids=[str(p.id) for p in invoiced],
                invoice_ids=sorted({str(p.invoice_id) for p in invoiced}),
            )

        invoice = PayoutInvoice.generate(str(brand.id), brand.name, parcels, created_by=actor.name)
        for parcel in parcels:
            parcel.stamp_invoice(str(invoice.id))
            parcel_repo.add(parcel)
        current_domain.repository_for(PayoutInvoice).add(invoice)

        logger.info(
            "Payout invoice generated",
            invoice_id=str(invoice.id),
            brand_id=str(brand.id),
            parcel_count=len(parcels),
            net_payout=invoice.net_payout,
        )
        return str(invoice.id)

    @handle(MarkPayoutInvoicePaid)
    def mark_payout_invoice_paid(self, command):
        _assert_admin(load_actor(command.actor_id))
        repo = current_domain.repository_for(PayoutInvoice)
        invoice = repo.get(command.invoice_id)
        invoice.mark_paid(command.transaction_id)
        repo.add(invoice)
        logger.info(
            "Payout invoice marked paid",
            invoice_id=str(invoice.id),
            transaction_id=invoice.transaction_id,
        )
