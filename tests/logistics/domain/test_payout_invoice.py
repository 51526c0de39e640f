"""Tests for the PayoutInvoice aggregate."""

from types import SimpleNamespace

import pytest
from logistics.settlement.invoice import PayoutInvoice, PayoutInvoiceStatus
from protean.exceptions import ValidationError


def _parcel(parcel_id, cod, charge, tax):
    return SimpleNamespace(
        id=parcel_id,
        tracking_number=f"SD{parcel_id[-4:]}",
        recipient_name="Bilal Khan",
        cod_amount=cod,
        delivery_charge=charge,
        tax=tax,
    )


def _make_invoice():
    parcels = [
        _parcel("parcel-0001", 600.0, 100.0, 16.0),
        _parcel("parcel-0002", 400.0, 100.0, 16.0),
    ]
    return PayoutInvoice.generate("brand-1", "Kapray Co", parcels, created_by="Ayesha Admin")


class TestGenerate:
    def test_totals_and_net(self):
        invoice = _make_invoice()
        assert invoice.total_cod == 1000.0
        assert invoice.total_charges == 200.0
        assert invoice.total_tax == 32.0
        assert invoice.net_payout == 768.0

    def test_one_line_per_parcel(self):
        invoice = _make_invoice()
        assert sorted(line.parcel_id for line in invoice.lines) == ["parcel-0001", "parcel-0002"]

    def test_starts_pending(self):
        assert _make_invoice().status == PayoutInvoiceStatus.PENDING.value

    def test_needs_parcels(self):
        with pytest.raises(ValidationError):
            PayoutInvoice.generate("brand-1", "Kapray Co", [])

    def test_raises_generated_event(self):
        invoice = _make_invoice()
        assert invoice._events[-1].__class__.__name__ == "PayoutInvoiceGenerated"


class TestMarkPaid:
    def test_mark_paid(self):
        invoice = _make_invoice()
        invoice.mark_paid("TX1")
        assert invoice.status == PayoutInvoiceStatus.PAID.value
        assert invoice.transaction_id == "TX1"
        assert invoice.paid_at is not None

    def test_transaction_reference_required(self):
        invoice = _make_invoice()
        with pytest.raises(ValidationError) as exc:
            invoice.mark_paid("  ")
        assert "transaction_id" in exc.value.messages

    def test_cannot_pay_twice(self):
        invoice = _make_invoice()
        invoice.mark_paid("TX1")
        with pytest.raises(ValidationError) as exc:
            invoice.mark_paid("TX2")
        assert "Cannot transition from Paid to Paid" in str(exc.value)
        assert invoice.transaction_id == "TX1"
