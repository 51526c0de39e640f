"""Shared BDD fixtures and step definitions for the Logistics domain."""

import pytest
from logistics.errors import ConflictError
from logistics.parcel.parcel import Parcel
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for an exception captured by a When step."""
    return {"exc": None}


def load_parcel(parcel_id):
    return current_domain.repository_for(Parcel).get(parcel_id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a brand with a rate card of 0.5kg, 1kg and 2kg tiers and a 10% fuel surcharge")
def _(brand):
    return brand


@given("a booked parcel", target_fixture="parcel_id")
def _(book):
    return book()


@given(parsers.cfparse("a booked parcel weighing {weight:g} kg"), target_fixture="parcel_id")
def _(book, weight):
    return book(weight=weight)


@given("a parcel out for delivery", target_fixture="parcel_id")
def _(out_for_delivery):
    return out_for_delivery()


@given("a delivered parcel", target_fixture="parcel_id")
def _(delivered):
    return delivered()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the parcel status is "{status}"'))
def _(parcel_id, status):
    assert load_parcel(parcel_id).status == status


@then(parsers.cfparse("the delivery charge is {charge:g} and the tax is {tax:g}"))
def _(parcel_id, charge, tax):
    parcel = load_parcel(parcel_id)
    assert parcel.delivery_charge == charge
    assert parcel.tax == tax


@then("the action fails with a validation error")
def _(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then("the action fails with a conflict")
def _(error):
    assert error["exc"] is not None, "Expected a conflict but none was raised"
    assert isinstance(error["exc"], ConflictError)
