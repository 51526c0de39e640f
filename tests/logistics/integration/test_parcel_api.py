"""Integration tests for parcel endpoints via TestClient."""

from logistics.identity import get_identity_provider
from logistics.parcel.parcel import Parcel, ParcelStatus
from protean import current_domain


def as_actor(user_id):
    return {"X-Actor-Id": user_id}


def _booking(brand_id, **overrides):
    body = {
        "brand_id": brand_id,
        "pickup_location_id": "LHR-1",
        "recipient_name": "Bilal Khan",
        "recipient_address": "9 Canal View, Lahore",
        "recipient_phone": "0300-1234567",
        "cod_amount": 2000.0,
        "weight": 0.7,
    }
    body.update(overrides)
    return body


class TestBookParcelEndpoint:
    def test_book_parcel(self, client, brand):
        response = client.post("/parcels", json=_booking(brand), headers=as_actor(brand))
        assert response.status_code == 201
        parcel_id = response.json()["parcel_id"]

        parcel = current_domain.repository_for(Parcel).get(parcel_id)
        assert parcel.status == ParcelStatus.BOOKED.value
        assert parcel.delivery_charge == 165.0

    def test_missing_actor_header(self, client, brand):
        response = client.post("/parcels", json=_booking(brand))
        assert response.status_code == 401

    def test_invalid_weight(self, client, brand):
        response = client.post("/parcels", json=_booking(brand, weight=0), headers=as_actor(brand))
        assert response.status_code == 400

    def test_unknown_pickup_location(self, client, brand):
        response = client.post(
            "/parcels", json=_booking(brand, pickup_location_id="NOPE"), headers=as_actor(brand)
        )
        assert response.status_code == 404

    def test_identity_provider_down(self, client, brand):
        get_identity_provider().configure(should_succeed=False)
        response = client.post("/parcels", json=_booking(brand), headers=as_actor(brand))
        assert response.status_code == 502
        assert response.json()["source"] == "identity"


class TestParcelReadEndpoints:
    def test_get_parcel_with_history(self, client, book, brand):
        parcel_id = book()
        response = client.get(f"/parcels/{parcel_id}", headers=as_actor(brand))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "Booked"
        assert data["brand_name"] == "Kapray Co"
        assert [entry["status"] for entry in data["history"]] == ["Booked"]

    def test_unknown_parcel(self, client, brand):
        response = client.get("/parcels/does-not-exist", headers=as_actor(brand))
        assert response.status_code == 404

    def test_track_by_tracking_number(self, client, book):
        parcel = current_domain.repository_for(Parcel).get(book())
        response = client.get(f"/parcels/tracking/{parcel.tracking_number}")
        assert response.status_code == 200
        assert response.json()["status"] == "Booked"

    def test_unknown_tracking_number(self, client):
        response = client.get("/parcels/tracking/SD0000")
        assert response.status_code == 404


class TestTransitionEndpoints:
    def test_transition(self, client, book, driver):
        parcel_id = book()
        response = client.put(
            f"/parcels/{parcel_id}/status",
            json={"target_status": "Picked_Up"},
            headers=as_actor(driver),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Picked_Up"

    def test_illegal_transition(self, client, book, admin):
        parcel_id = book()
        response = client.put(
            f"/parcels/{parcel_id}/status",
            json={"target_status": "Delivered"},
            headers=as_actor(admin),
        )
        assert response.status_code == 400

    def test_stale_expected_status(self, client, book, driver):
        parcel_id = book()
        response = client.put(
            f"/parcels/{parcel_id}/status",
            json={"target_status": "Picked_Up", "expected_status": "At_Hub"},
            headers=as_actor(driver),
        )
        assert response.status_code == 409
        assert response.json()["context"]["status"] == "Booked"

    def test_bulk_transition(self, client, book, delivered, admin):
        fresh = book()
        done = delivered()
        response = client.post(
            "/parcels/bulk/status",
            json={"parcel_ids": [fresh, done], "target_status": "Canceled"},
            headers=as_actor(admin),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["succeeded"] == [fresh]
        assert set(data["failed"]) == {done}


class TestExchangeEndpoints:
    def test_initiate_and_complete(self, client, delivered, admin, driver, warehouse):
        original = delivered()
        response = client.post(
            f"/parcels/{original}/exchange",
            json={"return_items": [{"name": "Kurta (M)", "quantity": 1}], "cod_amount": 500.0},
            headers=as_actor(admin),
        )
        assert response.status_code == 201
        outbound = response.json()["outbound_parcel_id"]

        for target, actor, extra in (
            ("Picked_Up", driver, {}),
            ("At_Hub", warehouse, {"delivery_zone": "Zone 1"}),
            ("Out_For_Delivery", warehouse, {"driver_id": driver}),
        ):
            moved = client.put(
                f"/parcels/{outbound}/status",
                json={"target_status": target, **extra},
                headers=as_actor(actor),
            )
            assert moved.status_code == 200

        response = client.put(f"/parcels/{outbound}/exchange/complete", json={}, headers=as_actor(driver))
        assert response.status_code == 200
        assert response.json()["status"] == "exchange_completed"


class TestRemarksAndAssignment:
    def test_brand_remark(self, client, book, brand):
        parcel_id = book()
        response = client.put(
            f"/parcels/{parcel_id}/brand-remark", json={"text": "Call before delivery"}, headers=as_actor(brand)
        )
        assert response.status_code == 200
        assert current_domain.repository_for(Parcel).get(parcel_id).brand_remark == "Call before delivery"

    def test_assign_pickup_driver(self, client, book, admin, second_driver):
        parcel_id = book()
        response = client.put(
            f"/parcels/{parcel_id}/driver",
            json={"kind": "pickup", "driver_id": second_driver},
            headers=as_actor(admin),
        )
        assert response.status_code == 200
        assert current_domain.repository_for(Parcel).get(parcel_id).pickup_driver_id == second_driver
