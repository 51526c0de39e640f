"""Driver cash ledger: COD each driver has collected but not yet settled.

Read-only view for the reconciliation screen; reconciliation itself always
works from parcel records.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.parcel.events import CodReconciled, ParcelStatusChanged
from logistics.parcel.parcel import Parcel, ParcelStatus


@logistics.projection
class DriverCashLedger:
    driver_id = Identifier(identifier=True, required=True)
    outstanding_count = Integer(default=0)
    outstanding_amount = Float(default=0.0)
    settled_amount = Float(default=0.0)
    updated_at = DateTime()


def _ledger_for(driver_id: str) -> DriverCashLedger:
    try:
        return current_domain.repository_for(DriverCashLedger).get(driver_id)
    except ObjectNotFoundError:
        return DriverCashLedger(driver_id=driver_id)


@logistics.projector(projector_for=DriverCashLedger, aggregates=[Parcel])
class DriverCashLedgerProjector:
    @on(ParcelStatusChanged)
    def on_parcel_status_changed(self, event):
        if event.to_status != ParcelStatus.DELIVERED.value or event.is_cod_reconciled:
            return
        if not event.delivery_driver_id:
            return

        ledger = _ledger_for(str(event.delivery_driver_id))
        ledger.outstanding_count = (ledger.outstanding_count or 0) + 1
        ledger.outstanding_amount = round((ledger.outstanding_amount or 0.0) + event.cod_amount, 2)
        ledger.updated_at = event.changed_at
        current_domain.repository_for(DriverCashLedger).add(ledger)

    @on(CodReconciled)
    def on_cod_reconciled(self, event):
        ledger = _ledger_for(str(event.driver_id))
        ledger.outstanding_count = max((ledger.outstanding_count or 0) - 1, 0)
        ledger.outstanding_amount = round(max((ledger.outstanding_amount or 0.0) - event.cod_amount, 0.0), 2)
        ledger.settled_amount = round((ledger.settled_amount or 0.0) + event.cod_amount, 2)
        ledger.updated_at = event.reconciled_at
        current_domain.repository_for(DriverCashLedger).add(ledger)
