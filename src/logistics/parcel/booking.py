"""Parcel booking: command and handler."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.parcel.parcel import Parcel
from logistics.shared.actors import assert_brand_or_admin, load_actor, load_brand
from logistics.shared.pricing import quote
from logistics.shared.tracking import allocate_tracking_number

logger = structlog.get_logger(__name__)


@logistics.command(part_of="Parcel")
class BookParcel:
    """Book a shipment from one of the brand's pickup locations."""

    brand_id = Identifier(required=True)
    pickup_location_id = String(required=True, max_length=50)
    recipient_name = String(required=True, max_length=150)
    recipient_address = String(required=True, max_length=500)
    recipient_phone = String(required=True, max_length=30)
    cod_amount = Float(default=0.0, min_value=0.0)
    weight = Float(required=True, min_value=0.01)
    order_id = String(max_length=100)
    item_details = Text()
    delivery_instructions = Text()
    is_open_parcel = Boolean(default=False)
    actor_id = Identifier()  # defaults to the brand itself


def price_for_brand(brand, weight: float):
    """Quote a parcel against a brand's rate card."""
    rate_card = brand.rate_card()
    if not rate_card:
        raise ValidationError({"rate_card": [f"Brand {brand.name} has no rate card configured"]})
    return quote(rate_card, brand.fuel_surcharge, weight)


@logistics.command_handler(part_of=Parcel)
class BookParcelHandler:
    @handle(BookParcel)
    def book_parcel(self, command):
        brand = load_brand(command.brand_id)
        actor = load_actor(command.actor_id or command.brand_id)
        assert_brand_or_admin(actor, brand.id)
        if not brand.is_active:
            raise ValidationError({"brand_id": [f"Brand {brand.name} is inactive"]})

        location = brand.find_pickup_location(command.pickup_location_id)
        if location is None:
            raise ObjectNotFoundError(f"Pickup location {command.pickup_location_id} does not exist")

        price = price_for_brand(brand, command.weight)
        repo = current_domain.repository_for(Parcel)
        tracking_number = allocate_tracking_number(repo.tracking_number_taken)

        parcel = Parcel.book(
            tracking_number=tracking_number,
            brand_id=str(brand.id),
            brand_name=brand.name,
            recipient_name=command.recipient_name,
            recipient_address=command.recipient_address,
            recipient_phone=command.recipient_phone,
            pickup_address=location.address,
            cod_amount=command.cod_amount or 0.0,
            weight=command.weight,
            delivery_charge=price.delivery_charge,
            tax=price.tax,
            booked_by=actor.name,
            order_id=command.order_id,
            pickup_driver_id=location.assigned_driver_id,
            item_details=command.item_details,
            delivery_instructions=command.delivery_instructions,
            is_open_parcel=command.is_open_parcel,
        )
        repo.add(parcel)
        logger.info(
            "Parcel booked",
            parcel_id=str(parcel.id),
            tracking_number=tracking_number,
            brand_id=str(brand.id),
            cod_amount=parcel.cod_amount,
            delivery_charge=parcel.delivery_charge,
        )
        return str(parcel.id)
