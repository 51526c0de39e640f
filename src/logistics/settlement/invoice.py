"""PayoutInvoice aggregate: what a brand is owed for delivered parcels.

An invoice snapshots each parcel's COD, charge and tax at generation time,
so later edits to a parcel never change an issued invoice.

    net_payout = total_cod − total_charges − total_tax

State Machine:
    PENDING → PAID
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import atomic_change
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String

from logistics.domain import logistics
from logistics.settlement.events import PayoutInvoiceGenerated, PayoutInvoicePaid


class PayoutInvoiceStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"


_VALID_TRANSITIONS = {
    PayoutInvoiceStatus.PENDING: {PayoutInvoiceStatus.PAID},
    PayoutInvoiceStatus.PAID: set(),  # terminal
}


@logistics.entity(part_of="PayoutInvoice")
class InvoiceLine:
    """One parcel on the invoice, as it stood when the invoice was drawn up."""

    parcel_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=50)
    recipient_name = String(max_length=150)
    cod_amount = Float(required=True)
    delivery_charge = Float(required=True)
    tax = Float(required=True)


def _total(values) -> float:
    return float(sum((Decimal(str(v or 0)) for v in values), Decimal("0")))


@logistics.aggregate
class PayoutInvoice:
    brand_id = Identifier(required=True)
    brand_name = String(max_length=150)
    lines = HasMany(InvoiceLine)
    total_cod = Float(default=0.0)
    total_charges = Float(default=0.0)
    total_tax = Float(default=0.0)
    net_payout = Float(default=0.0)
    status = String(choices=PayoutInvoiceStatus, default=PayoutInvoiceStatus.PENDING.value)
    transaction_id = String(max_length=100)
    created_by = String(max_length=150)
    created_at = DateTime()
    paid_at = DateTime()

    @classmethod
    def generate(cls, brand_id: str, brand_name: str, parcels: list, created_by: str | None = None):
        """Draw up an invoice from delivered parcels of one brand."""
        if not parcels:
            raise ValidationError({"parcel_ids": ["An invoice needs at least one parcel"]})

        now = datetime.now(UTC)
        total_cod = _total(p.cod_amount for p in parcels)
        total_charges = _total(p.delivery_charge for p in parcels)
        total_tax = _total(p.tax for p in parcels)
        net = Decimal(str(total_cod)) - Decimal(str(total_charges)) - Decimal(str(total_tax))

        invoice = cls(
            brand_id=brand_id,
            brand_name=brand_name,
            total_cod=round(total_cod, 2),
            total_charges=round(total_charges, 2),
            total_tax=round(total_tax, 2),
            net_payout=round(float(net), 2),
            status=PayoutInvoiceStatus.PENDING.value,
            created_by=created_by,
            created_at=now,
        )
        with atomic_change(invoice):
            for parcel in parcels:
                invoice.add_lines(
                    InvoiceLine(
                        parcel_id=str(parcel.id),
                        tracking_number=parcel.tracking_number,
                        recipient_name=parcel.recipient_name,
                        cod_amount=parcel.cod_amount,
                        delivery_charge=parcel.delivery_charge,
                        tax=parcel.tax,
                    )
                )

        invoice.raise_(
            PayoutInvoiceGenerated(
                invoice_id=str(invoice.id),
                brand_id=brand_id,
                parcel_count=len(parcels),
                total_cod=invoice.total_cod,
                total_charges=invoice.total_charges,
                total_tax=invoice.total_tax,
                net_payout=invoice.net_payout,
                generated_at=now,
            )
        )
        return invoice

    def _assert_can_transition(self, target_status: PayoutInvoiceStatus) -> None:
        current = PayoutInvoiceStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_paid(self, transaction_id: str) -> None:
        """Record the bank transfer that settled this invoice. Irreversible."""
        if not transaction_id or not transaction_id.strip():
            raise ValidationError({"transaction_id": ["A transaction reference is required"]})
        self._assert_can_transition(PayoutInvoiceStatus.PAID)

        now = datetime.now(UTC)
        self.status = PayoutInvoiceStatus.PAID.value
        self.transaction_id = transaction_id.strip()
        self.paid_at = now
        self.raise_(
            PayoutInvoicePaid(
                invoice_id=str(self.id),
                brand_id=str(self.brand_id),
                net_payout=self.net_payout,
                transaction_id=self.transaction_id,
                paid_at=now,
            )
        )
