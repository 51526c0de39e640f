"""Repository for the SalaryPayment aggregate."""

from datetime import date

from logistics.domain import logistics
from logistics.settlement.salary import SalaryPayment, period_key


@logistics.repository(part_of=SalaryPayment)
class SalaryPaymentRepository:
    def for_period(self, user_id: str, start: date, end: date) -> SalaryPayment | None:
        """The payment recorded for this user and period, if any."""
        results = self._dao.query.filter(user_id=str(user_id), period_key=period_key(start, end)).all().items
        return results[0] if results else None
