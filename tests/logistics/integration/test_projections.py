"""Integration tests for logistics projections: verify projectors update read models."""

import json

from logistics.parcel.parcel import Parcel
from logistics.projections.driver_cash_ledger import DriverCashLedger
from logistics.projections.parcel_tracking import ParcelTrackingView, find_by_tracking_number
from logistics.settlement.payout import GeneratePayoutInvoice
from logistics.settlement.reconciliation import ReconcileDriverCod
from protean import current_domain


def _tracking_number(parcel_id):
    return current_domain.repository_for(Parcel).get(parcel_id).tracking_number


class TestParcelTrackingView:
    def test_created_on_booking(self, book, brand):
        parcel_id = book()
        view = current_domain.repository_for(ParcelTrackingView).get(parcel_id)
        assert view.status == "Booked"
        assert view.brand_id == brand
        assert view.brand_name == "Kapray Co"
        assert view.cod_amount == 2000.0

    def test_follows_status_changes(self, out_for_delivery, driver):
        parcel_id = out_for_delivery()
        view = find_by_tracking_number(_tracking_number(parcel_id))
        assert view.status == "Out_For_Delivery"
        assert view.delivery_zone == "Zone 1"
        assert view.delivery_driver_id == driver

    def test_marks_invoiced(self, delivered, brand, admin):
        parcel_id = delivered()
        current_domain.process(
            GeneratePayoutInvoice(brand_id=brand, parcel_ids=json.dumps([parcel_id]), actor_id=admin),
            asynchronous=False,
        )
        assert current_domain.repository_for(ParcelTrackingView).get(parcel_id).is_invoiced is True

    def test_unknown_tracking_number(self):
        assert find_by_tracking_number("SD0000") is None


class TestDriverCashLedger:
    def test_delivery_adds_outstanding_cod(self, delivered, driver):
        delivered(cod_amount=1200.0)
        delivered(cod_amount=800.0)
        ledger = current_domain.repository_for(DriverCashLedger).get(driver)
        assert ledger.outstanding_count == 2
        assert ledger.outstanding_amount == 2000.0
        assert ledger.settled_amount == 0.0

    def test_reconciliation_settles_cod(self, delivered, driver, admin):
        first = delivered(cod_amount=1200.0)
        delivered(cod_amount=800.0)
        current_domain.process(
            ReconcileDriverCod(
                driver_id=driver,
                parcel_ids=json.dumps([first]),
                actor_id=admin,
                cash_amount=1200.0,
            ),
            asynchronous=False,
        )
        ledger = current_domain.repository_for(DriverCashLedger).get(driver)
        assert ledger.outstanding_count == 1
        assert ledger.outstanding_amount == 800.0
        assert ledger.settled_amount == 1200.0
