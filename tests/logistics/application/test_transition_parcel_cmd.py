"""Application tests for TransitionParcel: legality, role gates and details."""

import json

import pytest
from logistics.errors import ConflictError
from logistics.parcel.parcel import Parcel, ParcelStatus
from logistics.user.management import ToggleUserStatus, UpdateRateCard
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _get(parcel_id):
    return current_domain.repository_for(Parcel).get(parcel_id)


class TestLegality:
    def test_illegal_transition_leaves_record_unchanged(self, book, move, driver):
        parcel_id = book()
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "Delivered", driver)
        assert "status" in exc.value.messages
        parcel = _get(parcel_id)
        assert parcel.status == ParcelStatus.BOOKED.value
        assert len(parcel.history) == 1

    def test_legality_checked_before_role(self, book, move, brand):
        parcel_id = book()
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "At_Hub", brand)
        assert "status" in exc.value.messages

    def test_unknown_status(self, book, move, admin):
        with pytest.raises(ValidationError) as exc:
            move(book(), "Teleported", admin)
        assert "target_status" in exc.value.messages

    def test_enum_names_are_accepted(self, book, move, driver):
        parcel_id = book()
        assert move(parcel_id, "PICKED_UP", driver) == ParcelStatus.PICKED_UP.value

    def test_unknown_parcel(self, move, admin):
        with pytest.raises(ObjectNotFoundError):
            move("missing-parcel", "Picked_Up", admin)


class TestExpectedStatus:
    def test_stale_expectation_conflicts(self, book, move, driver):
        parcel_id = book()
        with pytest.raises(ConflictError) as exc:
            move(parcel_id, "Picked_Up", driver, expected_status="At_Hub")
        assert exc.value.context["status"] == ParcelStatus.BOOKED.value
        assert _get(parcel_id).status == ParcelStatus.BOOKED.value

    def test_matching_expectation_proceeds(self, book, move, driver):
        parcel_id = book()
        move(parcel_id, "Picked_Up", driver, expected_status="Booked")
        assert _get(parcel_id).status == ParcelStatus.PICKED_UP.value


class TestRoleGates:
    def test_warehouse_cannot_pick_up(self, book, move, warehouse):
        with pytest.raises(ValidationError) as exc:
            move(book(), "Picked_Up", warehouse)
        assert "actor" in exc.value.messages

    def test_driver_cannot_check_in_at_hub(self, book, move, driver):
        parcel_id = book()
        move(parcel_id, "Picked_Up", driver)
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "At_Hub", driver, delivery_zone="Zone 1")
        assert "actor" in exc.value.messages

    def test_other_driver_cannot_pick_up_assigned_parcel(self, book, move, second_driver):
        with pytest.raises(ValidationError) as exc:
            move(book(), "Picked_Up", second_driver)
        assert "assigned to another driver" in str(exc.value)

    def test_brand_cancels_own_parcel(self, book, move, brand):
        parcel_id = book()
        move(parcel_id, "Canceled", brand, notes="Order withdrawn")
        parcel = _get(parcel_id)
        assert parcel.status == ParcelStatus.CANCELED.value
        assert parcel.latest_history_entry.notes == "Order withdrawn"

    def test_brand_cannot_cancel_another_brands_parcel(self, book, move, other_brand):
        with pytest.raises(ValidationError) as exc:
            move(book(), "Canceled", other_brand)
        assert "own parcels" in str(exc.value)

    def test_admin_may_perform_any_legal_move(self, book, move, admin, driver):
        parcel_id = book()
        move(parcel_id, "Picked_Up", admin, driver_id=driver)
        move(parcel_id, "At_Hub", admin, delivery_zone="Zone 1")
        assert _get(parcel_id).status == ParcelStatus.AT_HUB.value

    def test_inactive_actor_cannot_act(self, book, move, driver, admin):
        parcel_id = book()
        current_domain.process(ToggleUserStatus(user_id=driver, actor_id=admin), asynchronous=False)
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "Picked_Up", driver)
        assert "inactive" in str(exc.value)


class TestHubCheckIn:
    def test_zone_required(self, book, move, driver, warehouse):
        parcel_id = book()
        move(parcel_id, "Picked_Up", driver)
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "At_Hub", warehouse)
        assert "delivery_zone" in exc.value.messages

    def test_verified_weight_reprices(self, book, move, driver, warehouse):
        parcel_id = book()
        move(parcel_id, "Picked_Up", driver)
        move(parcel_id, "At_Hub", warehouse, delivery_zone="Zone 2", weight=1.5)
        parcel = _get(parcel_id)
        assert parcel.weight == 1.5
        # 2kg tier: 200 + 10% fuel = 220, tax 35.2
        assert parcel.delivery_charge == 220.0
        assert parcel.tax == 35.2
        assert "Weight updated from 0.7kg to 1.5kg." in parcel.latest_history_entry.notes

    def test_same_weight_picks_up_new_rate_card(self, book, move, driver, warehouse, brand, admin):
        parcel_id = book()
        current_domain.process(
            UpdateRateCard(user_id=brand, actor_id=admin, weight_tiers=json.dumps({"1.0": 300}), fuel_surcharge=0),
            asynchronous=False,
        )
        move(parcel_id, "Picked_Up", driver)
        move(parcel_id, "At_Hub", warehouse, delivery_zone="Zone 1", weight=0.7)
        parcel = _get(parcel_id)
        assert parcel.delivery_charge == 300.0
        assert parcel.tax == 48.0
        assert "Weight updated" not in parcel.latest_history_entry.notes

    def test_no_weight_keeps_booked_price(self, book, move, driver, warehouse, brand, admin):
        parcel_id = book()
        current_domain.process(
            UpdateRateCard(user_id=brand, actor_id=admin, weight_tiers=json.dumps({"1.0": 300}), fuel_surcharge=0),
            asynchronous=False,
        )
        move(parcel_id, "Picked_Up", driver)
        move(parcel_id, "At_Hub", warehouse, delivery_zone="Zone 1")
        assert _get(parcel_id).delivery_charge == 165.0


class TestDelivery:
    def test_dispatch_requires_driver_covering_zone(self, book, move, driver, warehouse, second_driver):
        parcel_id = book()
        move(parcel_id, "Picked_Up", driver)
        move(parcel_id, "At_Hub", warehouse, delivery_zone="Zone 2")
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "Out_For_Delivery", warehouse, driver_id=second_driver)
        assert "driver_id" in exc.value.messages

    def test_dispatch_without_driver(self, book, move, driver, warehouse):
        parcel_id = book()
        move(parcel_id, "Picked_Up", driver)
        move(parcel_id, "At_Hub", warehouse, delivery_zone="Zone 1")
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "Out_For_Delivery", warehouse)
        assert "driver_id" in exc.value.messages

    def test_only_delivery_driver_delivers(self, out_for_delivery, move, second_driver):
        parcel_id = out_for_delivery()
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "Delivered", second_driver)
        assert "actor" in exc.value.messages

    def test_delivered(self, delivered, driver):
        parcel = _get(delivered())
        assert parcel.status == ParcelStatus.DELIVERED.value
        assert parcel.delivery_driver_id == driver
        assert parcel.is_cod_reconciled is False
        assert [entry.status for entry in parcel.timeline] == [
            "Booked",
            "Picked_Up",
            "At_Hub",
            "Out_For_Delivery",
            "Delivered",
        ]

    def test_prepaid_parcel_delivered_reconciled(self, delivered):
        parcel = _get(delivered(cod_amount=0.0))
        assert parcel.is_cod_reconciled is True


class TestFailedAttemptsAndReturns:
    def test_failed_attempt_needs_reason_and_proof(self, out_for_delivery, move, driver):
        parcel_id = out_for_delivery()
        with pytest.raises(ValidationError) as exc:
            move(parcel_id, "Delivery_Failed", driver, reason="Customer not home")
        assert "proof" in exc.value.messages
        assert _get(parcel_id).status == ParcelStatus.OUT_FOR_DELIVERY.value

    def test_retry_after_failed_attempt(self, out_for_delivery, move, driver, warehouse):
        parcel_id = out_for_delivery()
        move(parcel_id, "Delivery_Failed", driver, reason="Customer not home", proof="photo-1")
        move(parcel_id, "Pending_Delivery", warehouse)
        parcel = _get(parcel_id)
        assert parcel.status == ParcelStatus.PENDING_DELIVERY.value
        assert parcel.delivery_driver_id is None
        move(parcel_id, "Out_For_Delivery", warehouse, driver_id=driver)
        move(parcel_id, "Delivered", driver)
        assert _get(parcel_id).status == ParcelStatus.DELIVERED.value

    def test_refused_parcel_returns_to_brand(self, out_for_delivery, move, driver, brand):
        parcel_id = out_for_delivery()
        move(parcel_id, "Customer_Refused", driver, reason="Customer refused to accept", proof="photo-2")
        move(parcel_id, "Pending_Return", brand)
        parcel = _get(parcel_id)
        assert parcel.pickup_driver_id == driver
        assert parcel.delivery_driver_id is None

        move(parcel_id, "Out_For_Return", driver)
        move(parcel_id, "Returned", driver)
        assert _get(parcel_id).status == ParcelStatus.RETURNED.value


class TestExceptions:
    def test_warehouse_flags_lost_parcel(self, book, move, driver, warehouse):
        parcel_id = book()
        move(parcel_id, "Picked_Up", driver)
        move(parcel_id, "Lost", warehouse, notes="Missing after sort")
        assert _get(parcel_id).status == ParcelStatus.LOST.value

    def test_driver_cannot_flag_exceptions(self, book, move, driver):
        with pytest.raises(ValidationError) as exc:
            move(book(), "Damaged", driver)
        assert "actor" in exc.value.messages

    def test_terminal_parcel_cannot_be_flagged(self, delivered, move, warehouse):
        with pytest.raises(ValidationError) as exc:
            move(delivered(), "Lost", warehouse)
        assert "status" in exc.value.messages
