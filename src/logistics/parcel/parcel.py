"""Parcel aggregate (CQRS): the core of the logistics domain.

A Parcel is one shipment booked by a brand. It carries the money it will
collect (COD) and the charges the brand owes, and an append-only history
whose newest entry always names the current status.

State Machine:
    BOOKED → PICKED_UP → AT_HUB → OUT_FOR_DELIVERY → DELIVERED
    OUT_FOR_DELIVERY → {DELIVERY_FAILED, CUSTOMER_REFUSED} → PENDING_DELIVERY → OUT_FOR_DELIVERY
    {PICKED_UP, AT_HUB, DELIVERY_FAILED, CUSTOMER_REFUSED, PENDING_DELIVERY} → PENDING_RETURN
    PENDING_RETURN → OUT_FOR_RETURN → RETURNED
    BOOKED → CANCELED
    PENDING_EXCHANGE_PICKUP → PICKED_UP (only alongside its outbound leg's delivery)
    any non-terminal → {LOST, DAMAGED, FRAUDULENT, SOLVED}
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
)

from logistics.domain import logistics
from logistics.errors import ConflictError
from logistics.parcel.events import (
    CodReconciled,
    DriverAssigned,
    ExchangeCompleted,
    ParcelBooked,
    ParcelInvoiced,
    ParcelRepriced,
    ParcelStatusChanged,
    RemarkAdded,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ParcelStatus(Enum):
    BOOKED = "Booked"
    PENDING_EXCHANGE_PICKUP = "Pending_Exchange_Pickup"
    PICKED_UP = "Picked_Up"
    AT_HUB = "At_Hub"
    OUT_FOR_DELIVERY = "Out_For_Delivery"
    DELIVERED = "Delivered"
    DELIVERY_FAILED = "Delivery_Failed"
    CUSTOMER_REFUSED = "Customer_Refused"
    PENDING_DELIVERY = "Pending_Delivery"
    PENDING_RETURN = "Pending_Return"
    OUT_FOR_RETURN = "Out_For_Return"
    RETURNED = "Returned"
    CANCELED = "Canceled"
    LOST = "Lost"
    DAMAGED = "Damaged"
    FRAUDULENT = "Fraudulent"
    SOLVED = "Solved"


class DriverKind(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


TERMINAL_STATUSES = {
    ParcelStatus.DELIVERED,
    ParcelStatus.RETURNED,
    ParcelStatus.CANCELED,
    ParcelStatus.LOST,
    ParcelStatus.DAMAGED,
    ParcelStatus.FRAUDULENT,
    ParcelStatus.SOLVED,
}

EXCEPTION_STATUSES = {
    ParcelStatus.LOST,
    ParcelStatus.DAMAGED,
    ParcelStatus.FRAUDULENT,
    ParcelStatus.SOLVED,
}

FAILED_ATTEMPT_STATUSES = {
    ParcelStatus.DELIVERY_FAILED,
    ParcelStatus.CUSTOMER_REFUSED,
}

FAILED_ATTEMPT_REASONS = (
    "Customer not home",
    "Incorrect address",
    "Customer refused to accept",
    "Customer requested rescheduled delivery",
    "COD amount not ready",
    "Cannot contact customer",
    "Other",
)

_FORWARD_TRANSITIONS = {
    ParcelStatus.BOOKED: {ParcelStatus.PICKED_UP, ParcelStatus.CANCELED},
    ParcelStatus.PENDING_EXCHANGE_PICKUP: {ParcelStatus.PICKED_UP},
    ParcelStatus.PICKED_UP: {ParcelStatus.AT_HUB, ParcelStatus.PENDING_RETURN},
    ParcelStatus.AT_HUB: {ParcelStatus.OUT_FOR_DELIVERY, ParcelStatus.PENDING_RETURN},
    ParcelStatus.OUT_FOR_DELIVERY: {
        ParcelStatus.DELIVERED,
        ParcelStatus.DELIVERY_FAILED,
        ParcelStatus.CUSTOMER_REFUSED,
    },
    ParcelStatus.DELIVERY_FAILED: {ParcelStatus.PENDING_DELIVERY, ParcelStatus.PENDING_RETURN},
    ParcelStatus.CUSTOMER_REFUSED: {ParcelStatus.PENDING_DELIVERY, ParcelStatus.PENDING_RETURN},
    ParcelStatus.PENDING_DELIVERY: {ParcelStatus.OUT_FOR_DELIVERY, ParcelStatus.PENDING_RETURN},
    ParcelStatus.PENDING_RETURN: {ParcelStatus.OUT_FOR_RETURN},
    ParcelStatus.OUT_FOR_RETURN: {ParcelStatus.RETURNED},
}
# Every open parcel can be closed out as an exception.
_VALID_TRANSITIONS = {
    status: set() if status in TERMINAL_STATUSES else _FORWARD_TRANSITIONS[status] | EXCEPTION_STATUSES
    for status in ParcelStatus
}


def can_transition(current: ParcelStatus, target: ParcelStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


def next_statuses(current: ParcelStatus) -> set[ParcelStatus]:
    return set(_VALID_TRANSITIONS.get(current, set()))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@logistics.entity(part_of="Parcel")
class ParcelHistoryEvent:
    """One entry in a parcel's timeline."""

    sequence = Integer(required=True, min_value=1)
    status = String(required=True, choices=ParcelStatus)
    created_at = DateTime(required=True)
    updated_by = String(max_length=150)
    notes = Text()
    proof = Text()  # opaque proof-of-attempt payload (e.g. an encoded photo)


@logistics.entity(part_of="Parcel")
class ReturnItem:
    """A line item the customer hands back on an exchange."""

    name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@logistics.aggregate
class Parcel:
    tracking_number = String(required=True, max_length=50)
    order_id = String(max_length=100)
    brand_id = Identifier(required=True)
    brand_name = String(max_length=150)

    recipient_name = String(required=True, max_length=150)
    recipient_address = String(required=True, max_length=500)
    recipient_phone = String(required=True, max_length=30)
    pickup_address = String(max_length=500)

    status = String(choices=ParcelStatus, default=ParcelStatus.BOOKED.value)

    cod_amount = Float(default=0.0, min_value=0.0)
    delivery_charge = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    weight = Float(default=0.5, min_value=0.01)
    delivery_zone = String(max_length=50)

    pickup_driver_id = Identifier()
    delivery_driver_id = Identifier()

    is_cod_reconciled = Boolean(default=False)
    invoice_id = Identifier()

    is_exchange = Boolean(default=False)
    is_return_leg = Boolean(default=False)
    linked_parcel_id = Identifier()
    return_items = HasMany(ReturnItem)

    item_details = Text()
    delivery_instructions = Text()
    brand_remark = Text()
    shipper_advice = Text()
    failed_attempt_reason = String(max_length=255)
    is_open_parcel = Boolean(default=False)

    history = HasMany(ParcelHistoryEvent)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def latest_history_entry_matches_status(self):
        if not self.history:
            return
        latest = max(self.history, key=lambda entry: entry.sequence)
        if latest.status != self.status:
            raise ValidationError(
                {"history": [f"Latest history entry is {latest.status} but parcel is {self.status}"]}
            )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def book(
        cls,
        tracking_number: str,
        brand_id: str,
        brand_name: str,
        recipient_name: str,
        recipient_address: str,
        recipient_phone: str,
        pickup_address: str,
        cod_amount: float,
        weight: float,
        delivery_charge: float,
        tax: float,
        booked_by: str,
        order_id: str | None = None,
        pickup_driver_id: str | None = None,
        item_details: str | None = None,
        delivery_instructions: str | None = None,
        is_open_parcel: bool = False,
        is_exchange: bool = False,
        is_return_leg: bool = False,
        return_items: list[dict] | None = None,
        status: ParcelStatus = ParcelStatus.BOOKED,
        delivery_zone: str | None = None,
        notes: str | None = None,
    ):
        """Create a parcel in its initial status with its first history entry."""
        if status not in (ParcelStatus.BOOKED, ParcelStatus.PENDING_EXCHANGE_PICKUP):
            raise ValidationError({"status": [f"Parcels cannot be created as {status.value}"]})

        now = datetime.now(UTC)
        parcel = cls(
            tracking_number=tracking_number,
            order_id=order_id,
            brand_id=brand_id,
            brand_name=brand_name,
            recipient_name=recipient_name,
            recipient_address=recipient_address,
            recipient_phone=recipient_phone,
            pickup_address=pickup_address,
            status=status.value,
            cod_amount=cod_amount,
            delivery_charge=delivery_charge,
            tax=tax,
            weight=weight,
            delivery_zone=delivery_zone,
            pickup_driver_id=pickup_driver_id,
            is_cod_reconciled=cod_amount <= 0,
            is_exchange=is_exchange,
            is_return_leg=is_return_leg,
            item_details=item_details,
            delivery_instructions=delivery_instructions,
            is_open_parcel=is_open_parcel,
            created_at=now,
            updated_at=now,
        )
        with atomic_change(parcel):
            for item in return_items or []:
                parcel.add_return_items(ReturnItem(**item))
            parcel._record(status, booked_by, notes or f"Parcel booked from: {pickup_address}", at=now)

        parcel.raise_(
            ParcelBooked(
                parcel_id=str(parcel.id),
                tracking_number=tracking_number,
                order_id=order_id,
                brand_id=brand_id,
                brand_name=brand_name,
                status=status.value,
                cod_amount=cod_amount,
                delivery_charge=delivery_charge,
                tax=tax,
                weight=weight,
                pickup_driver_id=pickup_driver_id,
                is_exchange=is_exchange,
                is_return_leg=is_return_leg,
                booked_by=booked_by,
                booked_at=now,
            )
        )
        return parcel

    # -------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------
    @property
    def timeline(self) -> list:
        """History entries, oldest first."""
        return sorted(self.history or [], key=lambda entry: entry.sequence)

    @property
    def latest_history_entry(self):
        timeline = self.timeline
        return timeline[-1] if timeline else None

    def _record(
        self,
        status: ParcelStatus,
        by: str | None,
        notes: str | None = None,
        proof: str | None = None,
        at: datetime | None = None,
    ) -> None:
        sequence = max((entry.sequence for entry in self.history or []), default=0) + 1
        self.add_history(
            ParcelHistoryEvent(
                sequence=sequence,
                status=status.value,
                created_at=at or datetime.now(UTC),
                updated_by=by,
                notes=notes,
                proof=proof,
            )
        )

    def _annotate(self, by: str | None, notes: str) -> None:
        """Add a note to the timeline without changing status."""
        now = datetime.now(UTC)
        with atomic_change(self):
            self._record(ParcelStatus(self.status), by, notes, at=now)
            self.updated_at = now

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: ParcelStatus) -> None:
        current = ParcelStatus(self.status)
        if not can_transition(current, target_status):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _move(
        self,
        target: ParcelStatus,
        by: str | None,
        notes: str | None = None,
        proof: str | None = None,
        **changes,
    ) -> None:
        """Apply a legal transition, its field changes and its history entry together."""
        self._assert_can_transition(target)
        previous = self.status
        now = datetime.now(UTC)
        with atomic_change(self):
            for field_name, value in changes.items():
                setattr(self, field_name, value)
            self.status = target.value
            self._record(target, by, notes, proof, at=now)
            self.updated_at = now

        self.raise_(
            ParcelStatusChanged(
                parcel_id=str(self.id),
                tracking_number=self.tracking_number,
                brand_id=str(self.brand_id),
                from_status=previous,
                to_status=target.value,
                pickup_driver_id=self.pickup_driver_id,
                delivery_driver_id=self.delivery_driver_id,
                delivery_zone=self.delivery_zone,
                cod_amount=self.cod_amount,
                is_cod_reconciled=self.is_cod_reconciled,
                changed_by=by,
                notes=notes,
                changed_at=now,
            )
        )

    @staticmethod
    def _join_notes(*parts: str | None) -> str | None:
        present = [part for part in parts if part]
        return " ".join(present) if present else None

    @property
    def is_exchange_outbound(self) -> bool:
        return bool(self.is_exchange and not self.is_return_leg and self.linked_parcel_id)

    # -------------------------------------------------------------------
    # Pickup and hub
    # -------------------------------------------------------------------
    def pick_up(self, by: str, driver_id: str | None = None, notes: str | None = None) -> None:
        """Driver collected the parcel from the brand."""
        if ParcelStatus(self.status) == ParcelStatus.PENDING_EXCHANGE_PICKUP:
            raise ValidationError(
                {"status": ["Exchange return items are collected when the replacement is delivered"]}
            )
        changes = {"pickup_driver_id": driver_id} if driver_id else {}
        self._move(ParcelStatus.PICKED_UP, by, notes, **changes)

    def check_in_at_hub(
        self,
        by: str,
        delivery_zone: str | None,
        weight: float | None = None,
        delivery_charge: float | None = None,
        tax: float | None = None,
        notes: str | None = None,
    ) -> None:
        """Parcel arrived at the hub and was sorted into a delivery zone.

        A verified weight re-derives the charges from the current rate card,
        unless the parcel has already been invoiced.
        """
        self._assert_can_transition(ParcelStatus.AT_HUB)
        if not delivery_zone:
            raise ValidationError({"delivery_zone": ["A delivery zone is required to check a parcel in at the hub"]})

        changes = {"delivery_zone": delivery_zone}
        remarks = [f"Assigned to Delivery Zone: {delivery_zone}."]
        previous_weight = self.weight
        if weight is not None and weight != previous_weight:
            changes["weight"] = weight
            remarks.append(f"Weight updated from {previous_weight}kg to {weight}kg.")
        reprice = weight is not None and delivery_charge is not None and tax is not None and self.invoice_id is None
        if reprice:
            changes["delivery_charge"] = delivery_charge
            changes["tax"] = tax

        self._move(ParcelStatus.AT_HUB, by, self._join_notes(*remarks, notes), **changes)

        if reprice:
            self.raise_(
                ParcelRepriced(
                    parcel_id=str(self.id),
                    previous_weight=previous_weight,
                    weight=weight,
                    delivery_charge=self.delivery_charge,
                    tax=self.tax,
                    repriced_at=self.updated_at,
                )
            )

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    def dispatch(
        self,
        by: str,
        driver_id: str | None,
        driver_name: str | None = None,
        notes: str | None = None,
    ) -> None:
        """Hand the parcel to a delivery driver."""
        self._assert_can_transition(ParcelStatus.OUT_FOR_DELIVERY)
        if not driver_id:
            raise ValidationError({"driver_id": ["A driver is required to send a parcel out for delivery"]})
        remark = f"Dispatched and assigned to driver: {driver_name or driver_id}."
        self._move(
            ParcelStatus.OUT_FOR_DELIVERY,
            by,
            self._join_notes(remark, notes),
            delivery_driver_id=driver_id,
        )

    def deliver(self, by: str, notes: str | None = None, proof: str | None = None) -> None:
        """Recipient accepted the parcel (and paid any COD)."""
        self._assert_can_transition(ParcelStatus.DELIVERED)
        if self.is_exchange_outbound:
            raise ValidationError(
                {"status": ["Exchange parcels must be delivered together with their return pickup"]}
            )
        self._move(
            ParcelStatus.DELIVERED,
            by,
            notes,
            proof,
            is_cod_reconciled=self.cod_amount <= 0,
        )

    def record_failed_attempt(
        self,
        target: ParcelStatus,
        by: str,
        reason: str | None,
        proof: str | None,
        notes: str | None = None,
    ) -> None:
        """Driver could not complete the delivery."""
        if target not in FAILED_ATTEMPT_STATUSES:
            raise ValidationError({"status": [f"{target.value} is not a failed delivery attempt"]})
        self._assert_can_transition(target)
        errors = {}
        if not reason:
            errors["reason"] = ["A reason is required for a failed delivery attempt"]
        if not proof:
            errors["proof"] = ["Proof is required for a failed delivery attempt"]
        if errors:
            raise ValidationError(errors)

        self._move(
            target,
            by,
            self._join_notes(f"Reason: {reason}.", notes),
            proof,
            failed_attempt_reason=reason,
        )

    def requeue_for_delivery(self, by: str, notes: str | None = None) -> None:
        """Send a failed parcel back into the delivery queue."""
        self._move(ParcelStatus.PENDING_DELIVERY, by, notes, delivery_driver_id=None)

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def recall(self, by: str, return_driver_id: str | None = None, notes: str | None = None) -> None:
        """Route the parcel back to the brand."""
        self._move(
            ParcelStatus.PENDING_RETURN,
            by,
            notes,
            pickup_driver_id=return_driver_id or self.pickup_driver_id,
            delivery_driver_id=None,
        )

    def dispatch_return(self, by: str, driver_id: str | None = None, notes: str | None = None) -> None:
        changes = {"pickup_driver_id": driver_id} if driver_id else {}
        self._move(ParcelStatus.OUT_FOR_RETURN, by, notes, **changes)

    def mark_returned(self, by: str, notes: str | None = None) -> None:
        self._move(ParcelStatus.RETURNED, by, notes, delivery_driver_id=None)

    # -------------------------------------------------------------------
    # Cancellation and exceptions
    # -------------------------------------------------------------------
    def cancel(self, by: str, notes: str | None = None) -> None:
        """Withdraw the booking before pickup."""
        self._move(ParcelStatus.CANCELED, by, notes)

    def flag_exception(self, target: ParcelStatus, by: str, notes: str | None = None) -> None:
        """Close the parcel as lost, damaged, fraudulent or otherwise solved."""
        if target not in EXCEPTION_STATUSES:
            raise ValidationError({"status": [f"{target.value} is not an exception status"]})
        self._move(target, by, notes)

    # -------------------------------------------------------------------
    # Exchange legs
    # -------------------------------------------------------------------
    def link_to(self, other_parcel_id: str) -> None:
        self.linked_parcel_id = other_parcel_id

    def complete_exchange_delivery(self, by: str, return_parcel_id: str, notes: str | None = None) -> None:
        """Deliver an exchange replacement. Only called together with the return leg's collection."""
        if not self.is_exchange_outbound:
            raise ValidationError({"is_exchange": ["Parcel is not the outbound leg of an exchange"]})
        if str(self.linked_parcel_id) != str(return_parcel_id):
            raise ValidationError({"linked_parcel_id": ["Return parcel is not linked to this exchange"]})
        self._move(
            ParcelStatus.DELIVERED,
            by,
            self._join_notes("Exchange outbound delivered.", notes),
            is_cod_reconciled=self.cod_amount <= 0,
        )
        self.raise_(
            ExchangeCompleted(
                outbound_parcel_id=str(self.id),
                return_parcel_id=str(return_parcel_id),
                driver_id=self.delivery_driver_id,
                completed_at=self.updated_at,
            )
        )

    def collect_for_exchange(self, by: str, driver_id: str) -> None:
        """Return items were collected by the driver who delivered the replacement."""
        if ParcelStatus(self.status) != ParcelStatus.PENDING_EXCHANGE_PICKUP:
            raise ValidationError({"status": [f"Cannot collect exchange items from a {self.status} parcel"]})
        self._move(
            ParcelStatus.PICKED_UP,
            by,
            "Exchange return collected.",
            pickup_driver_id=driver_id,
        )

    # -------------------------------------------------------------------
    # Money
    # -------------------------------------------------------------------
    def mark_cod_reconciled(self, by: str, method: str, notes: str) -> None:
        """Driver handed over the cash collected for this parcel."""
        if ParcelStatus(self.status) != ParcelStatus.DELIVERED:
            raise ValidationError({"status": ["Only delivered parcels can be reconciled"]})
        if self.is_cod_reconciled:
            raise ValidationError({"is_cod_reconciled": [f"Parcel {self.tracking_number} is already reconciled"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_cod_reconciled = True
            self._record(ParcelStatus.DELIVERED, by, notes, at=now)
            self.updated_at = now
        self.raise_(
            CodReconciled(
                parcel_id=str(self.id),
                driver_id=self.delivery_driver_id,
                cod_amount=self.cod_amount,
                method=method,
                reconciled_at=now,
            )
        )

    def stamp_invoice(self, invoice_id: str) -> None:
        """Attach the payout invoice. Happens once; charges are frozen afterwards."""
        if self.invoice_id is not None:
            raise ConflictError(
                f"Parcel {self.tracking_number} is already on invoice {self.invoice_id}",
                parcel_id=str(self.id),
                invoice_id=str(self.invoice_id),
            )
        if ParcelStatus(self.status) != ParcelStatus.DELIVERED:
            raise ValidationError({"status": [f"Parcel {self.tracking_number} has not been delivered"]})

        now = datetime.now(UTC)
        self.invoice_id = invoice_id
        self.updated_at = now
        self.raise_(
            ParcelInvoiced(
                parcel_id=str(self.id),
                invoice_id=str(invoice_id),
                brand_id=str(self.brand_id),
                invoiced_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Drivers and remarks
    # -------------------------------------------------------------------
    def assign_driver(
        self,
        kind: DriverKind,
        driver_id: str | None,
        by: str | None = None,
        notes: str | None = None,
    ) -> None:
        """Set or clear the pickup or delivery driver outside a transition."""
        if ParcelStatus(self.status) in TERMINAL_STATUSES:
            raise ValidationError({"status": [f"Cannot assign drivers to a {self.status} parcel"]})

        field_name = "pickup_driver_id" if kind == DriverKind.PICKUP else "delivery_driver_id"
        previous = getattr(self, field_name)
        now = datetime.now(UTC)
        setattr(self, field_name, driver_id)
        self.updated_at = now
        if notes:
            self._annotate(by, notes)
        self.raise_(
            DriverAssigned(
                parcel_id=str(self.id),
                kind=kind.value,
                driver_id=driver_id,
                previous_driver_id=previous,
                assigned_at=now,
            )
        )

    def add_brand_remark(self, text: str) -> None:
        self._add_remark("brand_remark", text)

    def add_shipper_advice(self, text: str) -> None:
        self._add_remark("shipper_advice", text)

    def _add_remark(self, kind: str, text: str) -> None:
        if not text or not text.strip():
            raise ValidationError({kind: ["Remark cannot be empty"]})
        now = datetime.now(UTC)
        setattr(self, kind, text.strip())
        self.updated_at = now
        self.raise_(RemarkAdded(parcel_id=str(self.id), kind=kind, text=text.strip(), added_at=now))

    def return_items_payload(self) -> str:
        return json.dumps([{"name": item.name, "quantity": item.quantity} for item in self.return_items or []])
