"""Pydantic API schemas for the Logistics domain.

These are the external API contracts, kept separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas: users
# ---------------------------------------------------------------------------
class PickupLocationRequest(BaseModel):
    location_code: str
    address: str
    assigned_driver_id: str | None = None


class BankDetailsRequest(BaseModel):
    bank_name: str | None = None
    account_title: str | None = None
    account_number: str | None = None
    iban: str | None = None


class RegisterUserRequest(BaseModel):
    name: str
    email: str
    role: str
    username: str | None = None
    phone: str | None = None
    office_address: str | None = None
    company_phone: str | None = None
    bank_details: BankDetailsRequest | None = None
    pickup_locations: list[PickupLocationRequest] = Field(default_factory=list)
    weight_tiers: dict[float, float] = Field(default_factory=dict)
    fuel_surcharge: float = 0.0
    delivery_zones: list[str] = Field(default_factory=list)
    base_salary: float = 0.0
    commission_rate: float = 0.0
    per_pickup_commission: float = 0.0
    per_delivery_commission: float = 0.0
    brand_commissions: dict[str, float] = Field(default_factory=dict)


class UpdateRateCardRequest(BaseModel):
    weight_tiers: dict[float, float]
    fuel_surcharge: float | None = None


class UpdatePickupLocationsRequest(BaseModel):
    locations: list[PickupLocationRequest]


class UpdateCommissionTermsRequest(BaseModel):
    base_salary: float | None = None
    commission_rate: float | None = None
    per_pickup_commission: float | None = None
    per_delivery_commission: float | None = None
    brand_commissions: dict[str, float] | None = None


class DriverLocationRequest(BaseModel):
    lat: float
    lng: float


class ReassignJobsRequest(BaseModel):
    to_driver_id: str
    kind: str  # "pickup" | "delivery"


# ---------------------------------------------------------------------------
# Request schemas: parcels
# ---------------------------------------------------------------------------
class BookParcelRequest(BaseModel):
    brand_id: str
    pickup_location_id: str
    recipient_name: str
    recipient_address: str
    recipient_phone: str
    weight: float
    cod_amount: float = 0.0
    order_id: str | None = None
    item_details: str | None = None
    delivery_instructions: str | None = None
    is_open_parcel: bool = False


class TransitionParcelRequest(BaseModel):
    target_status: str
    expected_status: str | None = None
    delivery_zone: str | None = None
    weight: float | None = None
    driver_id: str | None = None
    reason: str | None = None
    proof: str | None = None
    notes: str | None = None


class BulkTransitionRequest(BaseModel):
    parcel_ids: list[str]
    target_status: str
    remark: str | None = None
    delivery_zone: str | None = None
    driver_id: str | None = None


class ReturnItemRequest(BaseModel):
    name: str
    quantity: int


class InitiateExchangeRequest(BaseModel):
    return_items: list[ReturnItemRequest]
    order_id: str | None = None
    item_details: str | None = None
    cod_amount: float = 0.0
    weight: float | None = None
    delivery_instructions: str | None = None


class CompleteExchangeRequest(BaseModel):
    notes: str | None = None


class RemarkRequest(BaseModel):
    text: str


class AssignDriverRequest(BaseModel):
    kind: str  # "pickup" | "delivery"
    driver_id: str | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Request schemas: settlement
# ---------------------------------------------------------------------------
class TransferRequest(BaseModel):
    amount: float
    reference: str | None = None


class ReconcileCodRequest(BaseModel):
    driver_id: str
    parcel_ids: list[str]
    cash_amount: float = 0.0
    transfers: list[TransferRequest] = Field(default_factory=list)


class GenerateInvoiceRequest(BaseModel):
    brand_id: str
    parcel_ids: list[str]


class MarkInvoicePaidRequest(BaseModel):
    transaction_id: str


class RecordSalaryPaymentRequest(BaseModel):
    user_id: str
    period_start: date
    period_end: date
    transaction_id: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class UserIdResponse(BaseModel):
    user_id: str


class ParcelIdResponse(BaseModel):
    parcel_id: str


class InvoiceIdResponse(BaseModel):
    invoice_id: str


class PaymentIdResponse(BaseModel):
    payment_id: str


class StatusResponse(BaseModel):
    status: str


class BulkOutcomeResponse(BaseModel):
    succeeded: list[str]
    failed: dict[str, str]


class ExchangeResponse(BaseModel):
    outbound_parcel_id: str
    return_parcel_id: str


class HistoryEntryResponse(BaseModel):
    sequence: int
    status: str
    created_at: datetime
    updated_by: str | None = None
    notes: str | None = None
    proof: str | None = None


class ParcelResponse(BaseModel):
    parcel_id: str
    tracking_number: str
    status: str
    brand_id: str
    brand_name: str | None = None
    recipient_name: str
    recipient_address: str
    cod_amount: float
    delivery_charge: float
    tax: float
    weight: float
    delivery_zone: str | None = None
    pickup_driver_id: str | None = None
    delivery_driver_id: str | None = None
    is_cod_reconciled: bool
    invoice_id: str | None = None
    is_exchange: bool
    linked_parcel_id: str | None = None
    history: list[HistoryEntryResponse]


class TrackingResponse(BaseModel):
    parcel_id: str
    tracking_number: str
    status: str
    delivery_zone: str | None = None
    updated_at: datetime | None = None


class ReconciliationResponse(BaseModel):
    reconciled: list[str]
    total: float
    method: str


class PayoutGroupResponse(BaseModel):
    brand_id: str
    brand_name: str
    parcel_ids: list[str]
    total_cod: float
    total_charges: float
    total_tax: float
    net_payout: float


class SalaryStatementResponse(BaseModel):
    user_id: str
    user_name: str
    role: str
    period_start: date
    period_end: date
    base_salary: float
    commission: float
    total_salary: float
    breakdown: dict
    already_paid: bool


class CashLedgerResponse(BaseModel):
    driver_id: str
    outstanding_count: int
    outstanding_amount: float
    settled_amount: float
