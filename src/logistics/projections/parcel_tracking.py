"""Parcel tracking: lookup of a parcel's current state by tracking number."""

from protean.core.projector import on
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.parcel.events import ParcelBooked, ParcelInvoiced, ParcelStatusChanged
from logistics.parcel.parcel import Parcel


@logistics.projection
class ParcelTrackingView:
    parcel_id = Identifier(identifier=True, required=True)
    tracking_number = String(required=True)
    brand_id = Identifier(required=True)
    brand_name = String()
    status = String(required=True)
    delivery_zone = String()
    delivery_driver_id = Identifier()
    cod_amount = Float(default=0.0)
    is_exchange = Boolean(default=False)
    is_invoiced = Boolean(default=False)
    booked_at = DateTime()
    updated_at = DateTime()


def find_by_tracking_number(tracking_number: str) -> ParcelTrackingView | None:
    results = (
        current_domain.repository_for(ParcelTrackingView)._dao.query.filter(tracking_number=tracking_number).all()
    )
    return results.first if results and results.items else None


@logistics.projector(projector_for=ParcelTrackingView, aggregates=[Parcel])
class ParcelTrackingProjector:
    @on(ParcelBooked)
    def on_parcel_booked(self, event):
        current_domain.repository_for(ParcelTrackingView).add(
            ParcelTrackingView(
                parcel_id=event.parcel_id,
                tracking_number=event.tracking_number,
                brand_id=event.brand_id,
                brand_name=event.brand_name,
                status=event.status,
                cod_amount=event.cod_amount,
                is_exchange=event.is_exchange,
                booked_at=event.booked_at,
                updated_at=event.booked_at,
            )
        )

    @on(ParcelStatusChanged)
    def on_parcel_status_changed(self, event):
        repo = current_domain.repository_for(ParcelTrackingView)
        view = repo.get(event.parcel_id)
        view.status = event.to_status
        view.delivery_zone = event.delivery_zone
        view.delivery_driver_id = event.delivery_driver_id
        view.updated_at = event.changed_at
        repo.add(view)

    @on(ParcelInvoiced)
    def on_parcel_invoiced(self, event):
        repo = current_domain.repository_for(ParcelTrackingView)
        view = repo.get(event.parcel_id)
        view.is_invoiced = True
        view.updated_at = event.invoiced_at
        repo.add(view)
