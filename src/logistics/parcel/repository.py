"""Repository for the Parcel aggregate.

Settlement and commission queries scan parcels by status and driver. Scans
set an explicit limit so a busy period is never silently truncated.
"""

from logistics.domain import logistics
from logistics.parcel.parcel import Parcel, ParcelStatus

_SCAN_LIMIT = 100_000


@logistics.repository(part_of=Parcel)
class ParcelRepository:
    def find_by_tracking_number(self, tracking_number: str) -> Parcel | None:
        results = self._dao.query.filter(tracking_number=tracking_number).all().items
        return results[0] if results else None

    def tracking_number_taken(self, tracking_number: str) -> bool:
        return self.find_by_tracking_number(tracking_number) is not None

    def with_status(self, status: ParcelStatus) -> list[Parcel]:
        return self._dao.query.filter(status=status.value).limit(_SCAN_LIMIT).all().items

    def for_brand(self, brand_id: str) -> list[Parcel]:
        return self._dao.query.filter(brand_id=str(brand_id)).limit(_SCAN_LIMIT).all().items

    def for_pickup_driver(self, driver_id: str, statuses: set[ParcelStatus]) -> list[Parcel]:
        parcels = self._dao.query.filter(pickup_driver_id=str(driver_id)).limit(_SCAN_LIMIT).all().items
        wanted = {status.value for status in statuses}
        return [p for p in parcels if p.status in wanted]

    def for_delivery_driver(self, driver_id: str, statuses: set[ParcelStatus]) -> list[Parcel]:
        parcels = self._dao.query.filter(delivery_driver_id=str(driver_id)).limit(_SCAN_LIMIT).all().items
        wanted = {status.value for status in statuses}
        return [p for p in parcels if p.status in wanted]

    def unreconciled_for_driver(self, driver_id: str) -> list[Parcel]:
        """Delivered parcels whose COD the driver still holds."""
        return [
            p
            for p in self.for_delivery_driver(driver_id, {ParcelStatus.DELIVERED})
            if not p.is_cod_reconciled
        ]

    def awaiting_invoice(self) -> list[Parcel]:
        """Delivered parcels not yet on any payout invoice."""
        return [p for p in self.with_status(ParcelStatus.DELIVERED) if p.invoice_id is None]

    def snapshot(self) -> list[Parcel]:
        """Every parcel, read once for a financial computation."""
        return self._dao.query.limit(_SCAN_LIMIT).all().items
