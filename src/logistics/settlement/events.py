"""Settlement domain events: payouts to brands and salaries to staff."""

from protean.fields import Date, DateTime, Float, Identifier, Integer, String

from logistics.domain import logistics


@logistics.event(part_of="PayoutInvoice")
class PayoutInvoiceGenerated:
    """A payout invoice was drawn up for a brand's delivered parcels."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    brand_id = Identifier(required=True)
    parcel_count = Integer(required=True)
    total_cod = Float(required=True)
    total_charges = Float(required=True)
    total_tax = Float(required=True)
    net_payout = Float(required=True)
    generated_at = DateTime(required=True)


@logistics.event(part_of="PayoutInvoice")
class PayoutInvoicePaid:
    """The payout was transferred to the brand."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    brand_id = Identifier(required=True)
    net_payout = Float(required=True)
    transaction_id = String(required=True)
    paid_at = DateTime(required=True)


@logistics.event(part_of="SalaryPayment")
class SalaryPaid:
    """A staff member was paid for a period."""

    __version__ = 1

    payment_id = Identifier(required=True)
    user_id = Identifier(required=True)
    period_start = Date(required=True)
    period_end = Date(required=True)
    total_salary = Float(required=True)
    transaction_id = String()
    paid_at = DateTime(required=True)
