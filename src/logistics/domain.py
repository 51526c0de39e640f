"""Logistics bounded context: parcel delivery operations and settlement.

Brands book parcels, drivers carry them from pickup through the hub to the
recipient, and finance staff settle the money: cash-on-delivery collected by
drivers, payouts owed to brands, and commissions owed to staff. Uses CQRS
because parcel workflows are linear and every financial figure is derived
from parcel records.
"""

from protean.domain import Domain

from logistics.utils.logging import configure_logging

configure_logging()

# Domain Composition Root
logistics = Domain(name="logistics")
