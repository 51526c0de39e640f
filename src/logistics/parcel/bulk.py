"""Bulk parcel operations: one shared action applied parcel by parcel.

Each parcel is moved by its own TransitionParcel command in its own unit of
work, so one parcel's rejection does not undo the others. The result reports
what happened to every parcel instead of failing the batch.

These are service functions called by the API and the CLI, never from inside
a command handler: a nested ``process`` joins the caller's unit of work and
its writes stand or fall with it.
"""

import structlog
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from logistics.errors import describe
from logistics.parcel.lifecycle import TransitionParcel

logger = structlog.get_logger(__name__)


def run_per_parcel(parcel_ids: list[str], build_command) -> dict:
    """Process one command per parcel and collect per-parcel outcomes."""
    outcomes = {"succeeded": [], "failed": {}}
    for parcel_id in dict.fromkeys(parcel_ids):
        try:
            current_domain.process(build_command(parcel_id), asynchronous=False)
            outcomes["succeeded"].append(parcel_id)
        except (ValidationError, InvalidOperationError, ObjectNotFoundError) as exc:
            outcomes["failed"][parcel_id] = describe(exc)
            logger.warning("Bulk parcel action rejected", parcel_id=parcel_id, error=describe(exc))
    return outcomes


def bulk_transition_parcels(
    parcel_ids: list[str],
    target_status: str,
    actor_id: str,
    remark: str | None = None,
    delivery_zone: str | None = None,
    driver_id: str | None = None,
) -> dict:
    """Move several parcels to the same status with a shared remark."""
    if not parcel_ids:
        raise ValidationError({"parcel_ids": ["Select at least one parcel"]})

    outcomes = run_per_parcel(
        parcel_ids,
        lambda parcel_id: TransitionParcel(
            parcel_id=parcel_id,
            target_status=target_status,
            actor_id=actor_id,
            delivery_zone=delivery_zone,
            driver_id=driver_id,
            notes=remark,
        ),
    )
    logger.info(
        "Bulk transition complete",
        target_status=target_status,
        succeeded=len(outcomes["succeeded"]),
        failed=len(outcomes["failed"]),
    )
    return outcomes
