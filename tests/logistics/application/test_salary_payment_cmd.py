"""Application tests for salary statements and RecordSalaryPayment."""

from datetime import UTC, datetime, timedelta

import pytest
from logistics.errors import ConflictError
from logistics.settlement.commission import salary_statement
from logistics.settlement.salary import RecordSalaryPayment, SalaryPayment, salary_payment_id
from logistics.user.registration import RegisterUser
from protean import current_domain
from protean.exceptions import ValidationError

_TODAY = datetime.now(UTC).date()


def _pay(user_id, actor_id, transaction_id="SAL-1"):
    return current_domain.process(
        RecordSalaryPayment(
            user_id=user_id,
            period_start=_TODAY,
            period_end=_TODAY,
            actor_id=actor_id,
            transaction_id=transaction_id,
        ),
        asynchronous=False,
    )


class TestSalaryStatement:
    def test_driver_statement(self, delivered, book, move, driver):
        delivered()
        delivered()
        move(book(), "Picked_Up", driver)

        statement = salary_statement(driver, _TODAY, _TODAY)
        assert statement.breakdown["pickup_count"] == 1
        assert statement.breakdown["delivery_count"] == 2
        # 1 × 20 + 2 × 30
        assert statement.commission == 80.0
        assert statement.total_salary == 30080.0
        assert statement.already_paid is False


class TestRecordSalaryPayment:
    def test_payment_recorded_from_statement(self, delivered, driver, admin):
        delivered()
        payment_id = _pay(driver, admin)

        payment = current_domain.repository_for(SalaryPayment).get(payment_id)
        assert payment.total_salary == 30030.0
        assert payment.total_commission == 30.0
        assert payment.transaction_id == "SAL-1"
        assert payment.paid_by == "Ayesha Admin"
        assert current_domain.repository_for(SalaryPayment).for_period(driver, _TODAY, _TODAY).id == payment_id
        assert salary_statement(driver, _TODAY, _TODAY).already_paid is True

    def test_double_payment_conflicts(self, driver, admin):
        _pay(driver, admin)
        with pytest.raises(ConflictError) as exc:
            _pay(driver, admin, transaction_id="SAL-2")
        assert exc.value.context["user_id"] == driver

    def test_payment_id_is_fixed_by_user_and_period(self, driver, admin):
        payment_id = _pay(driver, admin)
        assert payment_id == salary_payment_id(driver, _TODAY, _TODAY)
        assert salary_payment_id(admin, _TODAY, _TODAY) != payment_id

    def test_other_periods_are_not_marked_paid(self, driver, admin):
        _pay(driver, admin)
        earlier = _TODAY - timedelta(days=30)
        assert current_domain.repository_for(SalaryPayment).for_period(driver, earlier, _TODAY) is None
        assert salary_statement(driver, earlier, _TODAY).already_paid is False

    def test_admin_only(self, driver, warehouse):
        with pytest.raises(ValidationError) as exc:
            _pay(driver, warehouse)
        assert "actor" in exc.value.messages

    def test_customers_are_not_paid(self, admin):
        customer = current_domain.process(
            RegisterUser(name="Casual Customer", email="customer@parcelhub.test", role="Customer"),
            asynchronous=False,
        )
        with pytest.raises(ValidationError):
            _pay(customer, admin)
