"""Application tests for bulk parcel transitions: per-parcel outcomes."""

import pytest
from logistics.parcel.bulk import bulk_transition_parcels
from logistics.parcel.parcel import Parcel, ParcelStatus
from protean import current_domain
from protean.exceptions import ValidationError


def _bulk(parcel_ids, target, actor_id, **details):
    return bulk_transition_parcels(parcel_ids, target, actor_id, **details)


class TestBulkTransition:
    def test_all_succeed(self, book, driver):
        ids = [book(), book()]
        outcomes = _bulk(ids, "Picked_Up", driver, remark="Collected in one run")
        assert outcomes == {"succeeded": ids, "failed": {}}
        repo = current_domain.repository_for(Parcel)
        for parcel_id in ids:
            parcel = repo.get(parcel_id)
            assert parcel.status == ParcelStatus.PICKED_UP.value
            assert parcel.latest_history_entry.notes == "Collected in one run"

    def test_one_rejection_does_not_undo_the_others(self, book, delivered, brand):
        booked = [book(), book()]
        done = delivered()
        outcomes = _bulk([*booked, done], "Canceled", brand)

        assert outcomes["succeeded"] == booked
        assert outcomes["failed"] == {done: "status: Cannot transition from Delivered to Canceled"}
        repo = current_domain.repository_for(Parcel)
        assert [repo.get(parcel_id).status for parcel_id in booked] == [ParcelStatus.CANCELED.value] * 2
        assert repo.get(done).status == ParcelStatus.DELIVERED.value

    def test_rejection_first_still_persists_later_parcels(self, book, delivered, brand):
        done = delivered()
        booked = book()
        outcomes = _bulk([done, booked], "Canceled", brand, remark="Customer cancelled")

        assert outcomes["succeeded"] == [booked]
        parcel = current_domain.repository_for(Parcel).get(booked)
        assert parcel.status == ParcelStatus.CANCELED.value
        assert parcel.latest_history_entry.notes == "Customer cancelled"

    def test_missing_parcel_is_reported(self, book, driver):
        parcel_id = book()
        outcomes = _bulk(["missing-parcel", parcel_id], "Picked_Up", driver)
        assert outcomes["succeeded"] == [parcel_id]
        assert "missing-parcel" in outcomes["failed"]
        assert current_domain.repository_for(Parcel).get(parcel_id).status == ParcelStatus.PICKED_UP.value

    def test_shared_zone_for_hub_check_in(self, book, move, driver, warehouse):
        ids = [book(), book()]
        for parcel_id in ids:
            move(parcel_id, "Picked_Up", driver)
        outcomes = _bulk(ids, "At_Hub", warehouse, delivery_zone="Zone 3")
        assert outcomes["failed"] == {}
        repo = current_domain.repository_for(Parcel)
        assert {repo.get(parcel_id).delivery_zone for parcel_id in ids} == {"Zone 3"}

    def test_duplicates_processed_once(self, book, driver):
        parcel_id = book()
        outcomes = _bulk([parcel_id, parcel_id], "Picked_Up", driver)
        assert outcomes == {"succeeded": [parcel_id], "failed": {}}

    def test_empty_selection(self, driver):
        with pytest.raises(ValidationError) as exc:
            _bulk([], "Picked_Up", driver)
        assert "parcel_ids" in exc.value.messages
