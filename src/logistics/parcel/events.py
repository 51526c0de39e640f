"""Parcel domain events: immutable facts about parcel state changes.

All events are past tense, versioned, and carry the figures projectors need
(COD amount, drivers, zone) so read models never reload the aggregate.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from logistics.domain import logistics


@logistics.event(part_of="Parcel")
class ParcelBooked:
    """A parcel (or an exchange leg) entered the system."""

    __version__ = 1

    parcel_id = Identifier(required=True)
    tracking_number = String(required=True)
    order_id = String()
    brand_id = Identifier(required=True)
    brand_name = String()
    status = String(required=True)
    cod_amount = Float(required=True)
    delivery_charge = Float(required=True)
    tax = Float(required=True)
    weight = Float()
    pickup_driver_id = Identifier()
    is_exchange = Boolean(default=False)
    is_return_leg = Boolean(default=False)
    booked_by = String()
    booked_at = DateTime(required=True)


@logistics.event(part_of="Parcel")
class ParcelStatusChanged:
    """A parcel moved from one lifecycle status to another."""

    __version__ = 1

    parcel_id = Identifier(required=True)
    tracking_number = String(required=True)
    brand_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    pickup_driver_id = Identifier()
    delivery_driver_id = Identifier()
    delivery_zone = String()
    cod_amount = Float(required=True)
    is_cod_reconciled = Boolean(default=False)
    changed_by = String()
    notes = Text()
    changed_at = DateTime(required=True)


@logistics.event(part_of="Parcel")
class ParcelRepriced:
    """Charges were re-derived after the hub verified the weight."""

    __version__ = 1

    parcel_id = Identifier(required=True)
    previous_weight = Float()
    weight = Float(required=True)
    delivery_charge = Float(required=True)
    tax = Float(required=True)
    repriced_at = DateTime(required=True)


@logistics.event(part_of="Parcel")
class DriverAssigned:
    """A pickup or delivery driver was set or cleared by hand."""

    __version__ = 1

    parcel_id = Identifier(required=True)
    kind = String(required=True)  # "pickup" | "delivery"
    driver_id = Identifier()
    previous_driver_id = Identifier()
    assigned_at = DateTime(required=True)


@logistics.event(part_of="Parcel")
class RemarkAdded:
    """A brand remark or shipper advice was attached to a parcel."""

    __version__ = 1

    parcel_id = Identifier(required=True)
    kind = String(required=True)  # "brand_remark" | "shipper_advice"
    text = Text(required=True)
    added_at = DateTime(required=True)


@logistics.event(part_of="Parcel")
class CodReconciled:
    """Cash collected for a delivered parcel was settled by its driver."""

    __version__ = 1

    parcel_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    cod_amount = Float(required=True)
    method = String(required=True)
    reconciled_at = DateTime(required=True)


@logistics.event(part_of="Parcel")
class ParcelInvoiced:
    """A delivered parcel was included on a brand payout invoice."""

    __version__ = 1

    parcel_id = Identifier(required=True)
    invoice_id = Identifier(required=True)
    brand_id = Identifier(required=True)
    invoiced_at = DateTime(required=True)


@logistics.event(part_of="Parcel")
class ExchangeInitiated:
    """An outbound replacement and a return pickup were created as a pair."""

    __version__ = 1

    original_parcel_id = Identifier(required=True)
    outbound_parcel_id = Identifier(required=True)
    return_parcel_id = Identifier(required=True)
    return_items = Text(required=True)  # JSON list of {name, quantity}
    initiated_at = DateTime(required=True)


@logistics.event(part_of="Parcel")
class ExchangeCompleted:
    """The replacement was delivered and the return items collected in one visit."""

    __version__ = 1

    outbound_parcel_id = Identifier(required=True)
    return_parcel_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    completed_at = DateTime(required=True)
