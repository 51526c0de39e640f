"""Exchange parcels: a replacement going out and the original items coming back.

An exchange is two linked parcels created together from a delivered parcel:

- the outbound leg carries the replacement and runs the ordinary booking
  pipeline from BOOKED, priced like any other parcel;
- the return leg waits in PENDING_EXCHANGE_PICKUP, carries no COD and no
  charges, and is addressed back to the brand.

The driver who delivers the replacement collects the return items on the
same visit, so both legs move together or not at all.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.parcel.booking import price_for_brand
from logistics.parcel.events import ExchangeInitiated
from logistics.parcel.parcel import Parcel, ParcelStatus
from logistics.shared.actors import assert_brand_or_admin, load_actor, load_brand
from logistics.shared.tracking import allocate_tracking_number, return_tracking_number
from logistics.user.user import UserRole

logger = structlog.get_logger(__name__)


@logistics.command(part_of="Parcel")
class InitiateExchange:
    """Create the outbound and return legs for an exchange of a delivered parcel."""

    original_parcel_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    return_items = Text(required=True)  # JSON list of {name, quantity}
    order_id = String(max_length=100)
    item_details = Text()
    cod_amount = Float(default=0.0, min_value=0.0)
    weight = Float(min_value=0.01)
    delivery_instructions = Text()


@logistics.command(part_of="Parcel")
class CompleteExchangeDelivery:
    """Deliver an exchange replacement and collect its return items in one step."""

    parcel_id = Identifier(required=True)  # the outbound leg
    actor_id = Identifier(required=True)
    notes = Text()


def _parse_return_items(raw) -> list[dict]:
    items = json.loads(raw) if isinstance(raw, str) else raw
    if not items:
        raise ValidationError({"return_items": ["An exchange needs at least one item to return"]})
    parsed = []
    for item in items:
        name = (item.get("name") or "").strip()
        quantity = item.get("quantity")
        if not name:
            raise ValidationError({"return_items": ["Every return item needs a name"]})
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"return_items": [f"Quantity for {name} must be a positive whole number"]})
        parsed.append({"name": name, "quantity": quantity})
    return parsed


@logistics.command_handler(part_of=Parcel)
class ExchangeHandler:
    @handle(InitiateExchange)
    def initiate_exchange(self, command):
        repo = current_domain.repository_for(Parcel)
        original = repo.get(command.original_parcel_id)
        if ParcelStatus(original.status) != ParcelStatus.DELIVERED:
            raise ValidationError({"status": ["Only delivered parcels can be exchanged"]})

        actor = load_actor(command.actor_id)
        assert_brand_or_admin(actor, original.brand_id)
        return_items = _parse_return_items(command.return_items)

        brand = load_brand(original.brand_id)
        location = brand.default_pickup_location()
        if location is None:
            raise ValidationError({"pickup_locations": [f"Brand {brand.name} has no pickup location"]})

        weight = command.weight or original.weight
        price = price_for_brand(brand, weight)
        outbound_tracking = allocate_tracking_number(repo.tracking_number_taken)

        outbound = Parcel.book(
            tracking_number=outbound_tracking,
            brand_id=str(brand.id),
            brand_name=brand.name,
            recipient_name=original.recipient_name,
            recipient_address=original.recipient_address,
            recipient_phone=original.recipient_phone,
            pickup_address=location.address,
            cod_amount=command.cod_amount or 0.0,
            weight=weight,
            delivery_charge=price.delivery_charge,
            tax=price.tax,
            booked_by=actor.name,
            order_id=command.order_id or original.order_id,
            pickup_driver_id=location.assigned_driver_id,
            item_details=command.item_details or original.item_details,
            delivery_instructions=command.delivery_instructions,
            is_exchange=True,
        )

        return_leg = Parcel.book(
            tracking_number=return_tracking_number(outbound_tracking),
            brand_id=str(brand.id),
            brand_name=brand.name,
            recipient_name=brand.name,
            recipient_address=brand.office_address or location.address,
            recipient_phone=brand.company_phone or brand.phone or original.recipient_phone,
            pickup_address=original.recipient_address,
            cod_amount=0.0,
            weight=original.weight,
            delivery_charge=0.0,
            tax=0.0,
            booked_by=actor.name,
            order_id=f"{original.order_id or original.tracking_number}-EX-RTN",
            item_details=f"Return items for order {original.order_id or original.tracking_number}",
            is_exchange=True,
            is_return_leg=True,
            return_items=return_items,
            status=ParcelStatus.PENDING_EXCHANGE_PICKUP,
            delivery_zone=original.delivery_zone,
            notes=f"Exchange return for {original.tracking_number}, collect from: {original.recipient_address}",
        )

        outbound.link_to(str(return_leg.id))
        return_leg.link_to(str(outbound.id))
        outbound.raise_(
            ExchangeInitiated(
                original_parcel_id=str(original.id),
                outbound_parcel_id=str(outbound.id),
                return_parcel_id=str(return_leg.id),
                return_items=json.dumps(return_items),
                initiated_at=outbound.created_at,
            )
        )

        repo.add(outbound)
        repo.add(return_leg)
        logger.info(
            "Exchange legs created",
            original_parcel_id=str(original.id),
            outbound_parcel_id=str(outbound.id),
            return_parcel_id=str(return_leg.id),
        )
        return {"outbound_parcel_id": str(outbound.id), "return_parcel_id": str(return_leg.id)}

    @handle(CompleteExchangeDelivery)
    def complete_exchange_delivery(self, command):
        repo = current_domain.repository_for(Parcel)
        outbound = repo.get(command.parcel_id)
        if not outbound.is_exchange_outbound:
            raise ValidationError({"parcel_id": ["Parcel is not the outbound leg of an exchange"]})
        return_leg = repo.get(outbound.linked_parcel_id)

        actor = load_actor(command.actor_id)
        if not actor.has_role(UserRole.ADMIN):
            if not actor.has_role(UserRole.DRIVER) or str(outbound.delivery_driver_id) != str(actor.id):
                raise ValidationError({"actor": ["Only the delivering driver can complete an exchange"]})

        if ParcelStatus(return_leg.status) != ParcelStatus.PENDING_EXCHANGE_PICKUP:
            raise ValidationError({"status": [f"Return leg {return_leg.tracking_number} is {return_leg.status}"]})

        outbound.complete_exchange_delivery(actor.name, str(return_leg.id), notes=command.notes)
        return_leg.collect_for_exchange(actor.name, str(outbound.delivery_driver_id))

        repo.add(outbound)
        repo.add(return_leg)
        logger.info(
            "Exchange delivered and return collected",
            outbound_parcel_id=str(outbound.id),
            return_parcel_id=str(return_leg.id),
            driver_id=str(outbound.delivery_driver_id),
        )
        return outbound.status
