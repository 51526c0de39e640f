"""Manual driver assignment and bulk reassignment of a driver's jobs."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.parcel.bulk import run_per_parcel
from logistics.parcel.parcel import DriverKind, Parcel, ParcelStatus
from logistics.shared.actors import load_actor, load_assignable_driver, load_driver
from logistics.user.user import UserRole

logger = structlog.get_logger(__name__)

# Statuses in which a driver still holds a job of each kind.
ACTIVE_JOB_STATUSES = {
    DriverKind.PICKUP: {ParcelStatus.BOOKED, ParcelStatus.OUT_FOR_RETURN},
    DriverKind.DELIVERY: {
        ParcelStatus.OUT_FOR_DELIVERY,
        ParcelStatus.DELIVERY_FAILED,
        ParcelStatus.CUSTOMER_REFUSED,
        ParcelStatus.PENDING_DELIVERY,
    },
}


@logistics.command(part_of="Parcel")
class AssignDriver:
    """Set (or clear, with no driver_id) a parcel's pickup or delivery driver."""

    parcel_id = Identifier(required=True)
    kind = String(required=True, choices=DriverKind)
    actor_id = Identifier(required=True)
    driver_id = Identifier()
    notes = String(max_length=500)


def _assert_operations_staff(actor) -> None:
    if not actor.has_role(UserRole.ADMIN, UserRole.WAREHOUSE_MANAGER):
        raise ValidationError({"actor": ["Only operations staff can assign drivers"]})


@logistics.command_handler(part_of=Parcel)
class DriverAssignmentHandler:
    @handle(AssignDriver)
    def assign_driver(self, command):
        actor = load_actor(command.actor_id)
        _assert_operations_staff(actor)
        if command.driver_id:
            load_assignable_driver(command.driver_id)

        repo = current_domain.repository_for(Parcel)
        parcel = repo.get(command.parcel_id)
        parcel.assign_driver(DriverKind(command.kind), command.driver_id, by=actor.name, notes=command.notes)
        repo.add(parcel)


def reassign_driver_jobs(from_driver_id: str, to_driver_id: str, kind: str, actor_id: str) -> dict:
    """Move every active job of one kind from one driver to another.

    Each parcel is reassigned by its own AssignDriver command, so the result
    lists the parcels that moved and the ones that were rejected.
    """
    if str(from_driver_id) == str(to_driver_id):
        raise ValidationError({"to_driver_id": ["Choose a different driver to reassign to"]})
    if kind not in {member.value for member in DriverKind}:
        raise ValidationError({"kind": [f"Unknown job kind {kind}"]})

    actor = load_actor(actor_id)
    _assert_operations_staff(actor)
    from_driver = load_driver(from_driver_id)
    to_driver = load_assignable_driver(to_driver_id)

    kind = DriverKind(kind)
    repo = current_domain.repository_for(Parcel)
    if kind == DriverKind.PICKUP:
        jobs = repo.for_pickup_driver(from_driver.id, ACTIVE_JOB_STATUSES[kind])
    else:
        jobs = repo.for_delivery_driver(from_driver.id, ACTIVE_JOB_STATUSES[kind])

    note = f"{kind.value.capitalize()} job reassigned from {from_driver.name} to {to_driver.name} by {actor.name}."
    outcomes = run_per_parcel(
        [str(parcel.id) for parcel in jobs],
        lambda parcel_id: AssignDriver(
            parcel_id=parcel_id,
            kind=kind.value,
            actor_id=actor_id,
            driver_id=str(to_driver.id),
            notes=note,
        ),
    )
    logger.info(
        "Driver jobs reassigned",
        from_driver_id=str(from_driver.id),
        to_driver_id=str(to_driver.id),
        kind=kind.value,
        moved=len(outcomes["succeeded"]),
        failed=len(outcomes["failed"]),
    )
    return outcomes
