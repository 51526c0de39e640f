"""Parcel lifecycle transitions: command and handler.

One command moves a parcel to a target status. The handler checks, in order:
the caller's expected status (if given), that the move is legal from the
current status, that the caller's role may perform it, and that the details
the move needs were supplied. The parcel is then changed and saved within
the handler's unit of work, so a rejected move leaves no trace.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.errors import ConflictError
from logistics.parcel.booking import price_for_brand
from logistics.parcel.parcel import (
    EXCEPTION_STATUSES,
    FAILED_ATTEMPT_STATUSES,
    Parcel,
    ParcelStatus,
    can_transition,
)
from logistics.shared.actors import load_actor, load_assignable_driver, load_brand
from logistics.user.user import User, UserRole

logger = structlog.get_logger(__name__)

# Who may move a parcel into each status. Admins may perform every move.
TRANSITION_ROLES = {
    ParcelStatus.PICKED_UP: {UserRole.DRIVER},
    ParcelStatus.AT_HUB: {UserRole.WAREHOUSE_MANAGER},
    ParcelStatus.OUT_FOR_DELIVERY: {UserRole.WAREHOUSE_MANAGER},
    ParcelStatus.PENDING_DELIVERY: {UserRole.WAREHOUSE_MANAGER},
    ParcelStatus.DELIVERED: {UserRole.DRIVER},
    ParcelStatus.DELIVERY_FAILED: {UserRole.DRIVER},
    ParcelStatus.CUSTOMER_REFUSED: {UserRole.DRIVER},
    ParcelStatus.PENDING_RETURN: {UserRole.BRAND, UserRole.WAREHOUSE_MANAGER},
    ParcelStatus.OUT_FOR_RETURN: {UserRole.DRIVER, UserRole.WAREHOUSE_MANAGER},
    ParcelStatus.RETURNED: {UserRole.DRIVER},
    ParcelStatus.CANCELED: {UserRole.BRAND},
    **{status: {UserRole.WAREHOUSE_MANAGER} for status in EXCEPTION_STATUSES},
}


@logistics.command(part_of="Parcel")
class TransitionParcel:
    """Move a parcel to ``target_status`` on behalf of ``actor_id``."""

    parcel_id = Identifier(required=True)
    target_status = String(required=True, max_length=50)
    actor_id = Identifier(required=True)
    expected_status = String(max_length=50)
    delivery_zone = String(max_length=50)
    weight = Float(min_value=0.01)
    driver_id = Identifier()
    reason = String(max_length=255)
    proof = Text()
    notes = Text()


def _parse_status(value: str) -> ParcelStatus:
    try:
        return ParcelStatus(value)
    except ValueError:
        try:
            return ParcelStatus[value.upper()]
        except KeyError:
            raise ValidationError({"target_status": [f"Unknown parcel status {value}"]}) from None


def assert_actor_may_transition(actor: User, parcel: Parcel, target: ParcelStatus) -> None:
    """Role and ownership gate for a single move."""
    if actor.has_role(UserRole.ADMIN):
        return

    allowed = TRANSITION_ROLES.get(target, set())
    if not actor.has_role(*allowed):
        raise ValidationError({"actor": [f"{actor.role} users cannot move parcels to {target.value}"]})

    actor_id = str(actor.id)
    if actor.has_role(UserRole.BRAND) and str(parcel.brand_id) != actor_id:
        raise ValidationError({"actor": ["Brands can only act on their own parcels"]})

    if actor.has_role(UserRole.DRIVER):
        if target in {ParcelStatus.DELIVERED} | FAILED_ATTEMPT_STATUSES:
            assigned = parcel.delivery_driver_id
        else:
            assigned = parcel.pickup_driver_id
        if assigned is not None and str(assigned) != actor_id:
            raise ValidationError({"actor": [f"Parcel {parcel.tracking_number} is assigned to another driver"]})
        if assigned is None and target in {ParcelStatus.DELIVERED} | FAILED_ATTEMPT_STATUSES:
            raise ValidationError({"actor": [f"Parcel {parcel.tracking_number} has no delivery driver"]})


def apply_transition(parcel: Parcel, target: ParcelStatus, actor: User, command) -> None:
    """Call the aggregate behavior for ``target`` with the command's details."""
    by = actor.name

    if target == ParcelStatus.PICKED_UP:
        driver_id = str(actor.id) if actor.has_role(UserRole.DRIVER) else command.driver_id
        parcel.pick_up(by, driver_id=driver_id, notes=command.notes)

    elif target == ParcelStatus.AT_HUB:
        charge = tax = None
        if command.weight is not None and not parcel.is_return_leg and parcel.invoice_id is None:
            price = price_for_brand(load_brand(parcel.brand_id), command.weight)
            charge, tax = price.delivery_charge, price.tax
        parcel.check_in_at_hub(
            by,
            command.delivery_zone,
            weight=command.weight,
            delivery_charge=charge,
            tax=tax,
            notes=command.notes,
        )

    elif target == ParcelStatus.OUT_FOR_DELIVERY:
        driver = None
        if command.driver_id:
            driver = load_assignable_driver(command.driver_id, zone=parcel.delivery_zone)
        parcel.dispatch(
            by,
            str(driver.id) if driver else None,
            driver_name=driver.name if driver else None,
            notes=command.notes,
        )

    elif target == ParcelStatus.DELIVERED:
        parcel.deliver(by, notes=command.notes, proof=command.proof)

    elif target in FAILED_ATTEMPT_STATUSES:
        parcel.record_failed_attempt(target, by, command.reason, command.proof, notes=command.notes)

    elif target == ParcelStatus.PENDING_DELIVERY:
        parcel.requeue_for_delivery(by, notes=command.notes)

    elif target == ParcelStatus.PENDING_RETURN:
        location = load_brand(parcel.brand_id).default_pickup_location()
        return_driver_id = location.assigned_driver_id if location else None
        parcel.recall(by, return_driver_id=return_driver_id, notes=command.notes)

    elif target == ParcelStatus.OUT_FOR_RETURN:
        driver_id = None
        if command.driver_id:
            driver_id = str(load_assignable_driver(command.driver_id).id)
        elif actor.has_role(UserRole.DRIVER):
            driver_id = str(actor.id)
        parcel.dispatch_return(by, driver_id=driver_id, notes=command.notes)

    elif target == ParcelStatus.RETURNED:
        parcel.mark_returned(by, notes=command.notes)

    elif target == ParcelStatus.CANCELED:
        parcel.cancel(by, notes=command.notes)

    elif target in EXCEPTION_STATUSES:
        parcel.flag_exception(target, by, notes=command.notes)

    else:
        raise ValidationError({"target_status": [f"Parcels cannot be moved to {target.value} directly"]})


@logistics.command_handler(part_of=Parcel)
class TransitionParcelHandler:
    @handle(TransitionParcel)
    def transition_parcel(self, command):
        repo = current_domain.repository_for(Parcel)
        parcel = repo.get(command.parcel_id)
        target = _parse_status(command.target_status)

        if command.expected_status and _parse_status(command.expected_status).value != parcel.status:
            raise ConflictError(
                f"Parcel {parcel.tracking_number} is {parcel.status}, expected {command.expected_status}",
                parcel_id=str(parcel.id),
                status=parcel.status,
            )

        current = ParcelStatus(parcel.status)
        if not can_transition(current, target):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

        actor = load_actor(command.actor_id)
        assert_actor_may_transition(actor, parcel, target)

        apply_transition(parcel, target, actor, command)
        repo.add(parcel)

        logger.info(
            "Parcel status changed",
            parcel_id=str(parcel.id),
            tracking_number=parcel.tracking_number,
            from_status=current.value,
            to_status=parcel.status,
            actor_id=str(actor.id),
        )
        return parcel.status
