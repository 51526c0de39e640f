"""SalaryPayment aggregate: the record that a user was paid for a period.

One record exists per (user, period start, period end); its presence is what
marks the period as paid. The amounts are recomputed from parcel records at
payment time rather than taken from the caller.
"""

import json
import uuid
from datetime import UTC, date, datetime
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.errors import ConflictError
from logistics.settlement.commission import SalaryStatement, salary_statement
from logistics.settlement.events import SalaryPaid
from logistics.shared.actors import load_actor
from logistics.user.user import UserRole

logger = structlog.get_logger(__name__)


class SalaryPaymentStatus(Enum):
    PAID = "Paid"


def period_key(start: date, end: date) -> str:
    return f"{start.isoformat()}..{end.isoformat()}"


def salary_payment_id(user_id: str, start: date, end: date) -> str:
    """Stable id per (user, period): a second insert for a paid period hits the primary key."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"parcelhub:salary:{user_id}:{period_key(start, end)}"))


@logistics.aggregate
class SalaryPayment:
    user_id = Identifier(required=True)
    user_name = String(max_length=150)
    role = String(max_length=50)
    period_start = Date(required=True)
    period_end = Date(required=True)
    period_key = String(required=True, max_length=30)
    base_salary = Float(default=0.0)
    total_commission = Float(default=0.0)
    total_salary = Float(default=0.0)
    breakdown = Text()  # JSON dict
    status = String(choices=SalaryPaymentStatus, default=SalaryPaymentStatus.PAID.value)
    transaction_id = String(max_length=100)
    paid_by = String(max_length=150)
    paid_at = DateTime()

    @classmethod
    def record(cls, statement: SalaryStatement, transaction_id: str | None = None, paid_by: str | None = None):
        now = datetime.now(UTC)
        payment = cls(
            id=salary_payment_id(statement.user_id, statement.period_start, statement.period_end),
            user_id=statement.user_id,
            user_name=statement.user_name,
            role=statement.role,
            period_start=statement.period_start,
            period_end=statement.period_end,
            period_key=period_key(statement.period_start, statement.period_end),
            base_salary=statement.base_salary,
            total_commission=statement.commission,
            total_salary=statement.total_salary,
            breakdown=json.dumps(statement.breakdown),
            status=SalaryPaymentStatus.PAID.value,
            transaction_id=transaction_id,
            paid_by=paid_by,
            paid_at=now,
        )
        payment.raise_(
            SalaryPaid(
                payment_id=str(payment.id),
                user_id=statement.user_id,
                period_start=statement.period_start,
                period_end=statement.period_end,
                total_salary=payment.total_salary,
                transaction_id=transaction_id,
                paid_at=now,
            )
        )
        return payment


@logistics.command(part_of="SalaryPayment")
class RecordSalaryPayment:
    """Pay a user's salary and commission for a period."""

    user_id = Identifier(required=True)
    period_start = Date(required=True)
    period_end = Date(required=True)
    actor_id = Identifier(required=True)
    transaction_id = String(max_length=100)


@logistics.command_handler(part_of=SalaryPayment)
class RecordSalaryPaymentHandler:
    @handle(RecordSalaryPayment)
    def record_salary_payment(self, command):
        actor = load_actor(command.actor_id)
        if not actor.has_role(UserRole.ADMIN):
            raise ValidationError({"actor": ["Only admins can pay salaries"]})

        statement = salary_statement(command.user_id, command.period_start, command.period_end)
        if statement.already_paid:
            raise ConflictError(
                f"{statement.user_name} has already been paid for {period_key(command.period_start, command.period_end)}",
                user_id=str(command.user_id),
                period_start=command.period_start.isoformat(),
                period_end=command.period_end.isoformat(),
            )

        payment = SalaryPayment.record(statement, transaction_id=command.transaction_id, paid_by=actor.name)
        current_domain.repository_for(SalaryPayment).add(payment)
        logger.info(
            "Salary payment recorded",
            user_id=statement.user_id,
            period=payment.period_key,
            total_salary=payment.total_salary,
        )
        return str(payment.id)
