"""FastAPI routes for the Logistics domain."""

import json
from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException
from protean.utils.globals import current_domain

from logistics.api.schemas import (
    AssignDriverRequest,
    BookParcelRequest,
    BulkOutcomeResponse,
    BulkTransitionRequest,
    CashLedgerResponse,
    CompleteExchangeRequest,
    DriverLocationRequest,
    ExchangeResponse,
    GenerateInvoiceRequest,
    HistoryEntryResponse,
    InitiateExchangeRequest,
    InvoiceIdResponse,
    MarkInvoicePaidRequest,
    ParcelIdResponse,
    ParcelResponse,
    PaymentIdResponse,
    PayoutGroupResponse,
    ReassignJobsRequest,
    ReconcileCodRequest,
    ReconciliationResponse,
    RecordSalaryPaymentRequest,
    RegisterUserRequest,
    RemarkRequest,
    SalaryStatementResponse,
    StatusResponse,
    TrackingResponse,
    TransitionParcelRequest,
    UpdateCommissionTermsRequest,
    UpdatePickupLocationsRequest,
    UpdateRateCardRequest,
    UserIdResponse,
)
from logistics.identity import get_identity_provider
from logistics.parcel.assignment import AssignDriver, reassign_driver_jobs
from logistics.parcel.booking import BookParcel
from logistics.parcel.bulk import bulk_transition_parcels
from logistics.parcel.exchange import CompleteExchangeDelivery, InitiateExchange
from logistics.parcel.lifecycle import TransitionParcel
from logistics.parcel.parcel import Parcel
from logistics.parcel.remarks import AddBrandRemark, AddShipperAdvice
from logistics.projections.driver_cash_ledger import DriverCashLedger
from logistics.projections.parcel_tracking import find_by_tracking_number
from logistics.settlement.commission import salary_statement
from logistics.settlement.payout import GeneratePayoutInvoice, MarkPayoutInvoicePaid, payout_groups
from logistics.settlement.reconciliation import ReconcileDriverCod
from logistics.settlement.salary import RecordSalaryPayment
from logistics.user.duty import ToggleDutyStatus, UpdateDriverLocation
from logistics.user.management import (
    ToggleUserStatus,
    UpdateCommissionTerms,
    UpdatePickupLocations,
    UpdateRateCard,
)
from logistics.user.registration import RegisterUser


def current_actor(x_actor_id: str | None = Header(default=None)) -> str:
    """Resolve the acting user from the ``X-Actor-Id`` header."""
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header")
    return get_identity_provider().resolve(x_actor_id).user_id


def _weight_tiers_json(tiers: dict[float, float]) -> str:
    return json.dumps({str(max_weight): charge for max_weight, charge in tiers.items()})


# ---------------------------------------------------------------------------
# Parcel Router
# ---------------------------------------------------------------------------
parcel_router = APIRouter(prefix="/parcels", tags=["parcels"])


@parcel_router.post("", status_code=201, response_model=ParcelIdResponse)
async def book_parcel(body: BookParcelRequest, actor_id: str = Depends(current_actor)) -> ParcelIdResponse:
    """Book a parcel for a brand at one of its pickup locations."""
    command = BookParcel(**body.model_dump(), actor_id=actor_id)
    result = current_domain.process(command, asynchronous=False)
    return ParcelIdResponse(parcel_id=result)


@parcel_router.get("/tracking/{tracking_number}", response_model=TrackingResponse)
async def track_parcel(tracking_number: str) -> TrackingResponse:
    view = find_by_tracking_number(tracking_number)
    if view is None:
        raise HTTPException(status_code=404, detail=f"No parcel with tracking number {tracking_number}")
    return TrackingResponse(
        parcel_id=str(view.parcel_id),
        tracking_number=view.tracking_number,
        status=view.status,
        delivery_zone=view.delivery_zone,
        updated_at=view.updated_at,
    )


@parcel_router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(parcel_id: str, actor_id: str = Depends(current_actor)) -> ParcelResponse:
    parcel = current_domain.repository_for(Parcel).get(parcel_id)
    return ParcelResponse(
        parcel_id=str(parcel.id),
        tracking_number=parcel.tracking_number,
        status=parcel.status,
        brand_id=str(parcel.brand_id),
        brand_name=parcel.brand_name,
        recipient_name=parcel.recipient_name,
        recipient_address=parcel.recipient_address,
        cod_amount=parcel.cod_amount,
        delivery_charge=parcel.delivery_charge,
        tax=parcel.tax,
        weight=parcel.weight,
        delivery_zone=parcel.delivery_zone,
        pickup_driver_id=parcel.pickup_driver_id,
        delivery_driver_id=parcel.delivery_driver_id,
        is_cod_reconciled=parcel.is_cod_reconciled,
        invoice_id=parcel.invoice_id,
        is_exchange=parcel.is_exchange,
        linked_parcel_id=parcel.linked_parcel_id,
        history=[
            HistoryEntryResponse(
                sequence=entry.sequence,
                status=entry.status,
                created_at=entry.created_at,
                updated_by=entry.updated_by,
                notes=entry.notes,
                proof=entry.proof,
            )
            for entry in parcel.timeline
        ],
    )


@parcel_router.put("/{parcel_id}/status", response_model=StatusResponse)
async def transition_parcel(
    parcel_id: str, body: TransitionParcelRequest, actor_id: str = Depends(current_actor)
) -> StatusResponse:
    """Move a parcel to a new lifecycle status."""
    command = TransitionParcel(parcel_id=parcel_id, actor_id=actor_id, **body.model_dump(exclude_none=True))
    result = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=result)


@parcel_router.post("/bulk/status", response_model=BulkOutcomeResponse)
async def bulk_transition(body: BulkTransitionRequest, actor_id: str = Depends(current_actor)) -> BulkOutcomeResponse:
    """Move several parcels to the same status; reports each parcel's outcome."""
    result = bulk_transition_parcels(
        body.parcel_ids,
        body.target_status,
        actor_id,
        remark=body.remark,
        delivery_zone=body.delivery_zone,
        driver_id=body.driver_id,
    )
    return BulkOutcomeResponse(**result)


@parcel_router.post("/{parcel_id}/exchange", status_code=201, response_model=ExchangeResponse)
async def initiate_exchange(
    parcel_id: str, body: InitiateExchangeRequest, actor_id: str = Depends(current_actor)
) -> ExchangeResponse:
    """Create the outbound and return legs of an exchange for a delivered parcel."""
    command = InitiateExchange(
        original_parcel_id=parcel_id,
        actor_id=actor_id,
        return_items=json.dumps([item.model_dump() for item in body.return_items]),
        order_id=body.order_id,
        item_details=body.item_details,
        cod_amount=body.cod_amount,
        weight=body.weight,
        delivery_instructions=body.delivery_instructions,
    )
    result = current_domain.process(command, asynchronous=False)
    return ExchangeResponse(**result)


@parcel_router.put("/{parcel_id}/exchange/complete", response_model=StatusResponse)
async def complete_exchange(
    parcel_id: str, body: CompleteExchangeRequest, actor_id: str = Depends(current_actor)
) -> StatusResponse:
    """Deliver the outbound leg and collect the return leg in one step."""
    command = CompleteExchangeDelivery(parcel_id=parcel_id, actor_id=actor_id, notes=body.notes)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="exchange_completed")


@parcel_router.put("/{parcel_id}/brand-remark", response_model=StatusResponse)
async def add_brand_remark(parcel_id: str, body: RemarkRequest, actor_id: str = Depends(current_actor)) -> StatusResponse:
    command = AddBrandRemark(parcel_id=parcel_id, actor_id=actor_id, remark=body.text)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="remark_added")


@parcel_router.put("/{parcel_id}/shipper-advice", response_model=StatusResponse)
async def add_shipper_advice(
    parcel_id: str, body: RemarkRequest, actor_id: str = Depends(current_actor)
) -> StatusResponse:
    command = AddShipperAdvice(parcel_id=parcel_id, actor_id=actor_id, advice=body.text)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="advice_added")


@parcel_router.put("/{parcel_id}/driver", response_model=StatusResponse)
async def assign_driver(
    parcel_id: str, body: AssignDriverRequest, actor_id: str = Depends(current_actor)
) -> StatusResponse:
    """Assign (or clear) the pickup or delivery driver of a parcel."""
    command = AssignDriver(
        parcel_id=parcel_id,
        kind=body.kind,
        actor_id=actor_id,
        driver_id=body.driver_id,
        notes=body.notes,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="driver_assigned")


# ---------------------------------------------------------------------------
# User Router
# ---------------------------------------------------------------------------
user_router = APIRouter(prefix="/users", tags=["users"])


@user_router.post("", status_code=201, response_model=UserIdResponse)
async def register_user(body: RegisterUserRequest) -> UserIdResponse:
    """Register a brand, driver, staff member or customer."""
    command = RegisterUser(
        name=body.name,
        email=body.email,
        role=body.role,
        username=body.username,
        phone=body.phone,
        office_address=body.office_address,
        company_phone=body.company_phone,
        bank_details=json.dumps(body.bank_details.model_dump()) if body.bank_details else None,
        pickup_locations=json.dumps([loc.model_dump() for loc in body.pickup_locations]),
        weight_tiers=_weight_tiers_json(body.weight_tiers),
        fuel_surcharge=body.fuel_surcharge,
        delivery_zones=json.dumps(body.delivery_zones),
        base_salary=body.base_salary,
        commission_rate=body.commission_rate,
        per_pickup_commission=body.per_pickup_commission,
        per_delivery_commission=body.per_delivery_commission,
        brand_commissions=json.dumps(body.brand_commissions),
    )
    result = current_domain.process(command, asynchronous=False)
    return UserIdResponse(user_id=result)


@user_router.put("/{user_id}/status/toggle", response_model=StatusResponse)
async def toggle_user_status(user_id: str, actor_id: str = Depends(current_actor)) -> StatusResponse:
    result = current_domain.process(ToggleUserStatus(user_id=user_id, actor_id=actor_id), asynchronous=False)
    return StatusResponse(status=result)


@user_router.put("/{user_id}/duty/toggle", response_model=StatusResponse)
async def toggle_duty_status(user_id: str) -> StatusResponse:
    on_duty = current_domain.process(ToggleDutyStatus(user_id=user_id), asynchronous=False)
    return StatusResponse(status="On_Duty" if on_duty else "Off_Duty")


@user_router.post("/{user_id}/location", status_code=202)
async def update_driver_location(user_id: str, body: DriverLocationRequest) -> None:
    """Record a driver's position. Accepted without waiting for a read-back."""
    current_domain.process(UpdateDriverLocation(user_id=user_id, lat=body.lat, lng=body.lng))


@user_router.put("/{user_id}/rate-card", response_model=StatusResponse)
async def update_rate_card(
    user_id: str, body: UpdateRateCardRequest, actor_id: str = Depends(current_actor)
) -> StatusResponse:
    command = UpdateRateCard(
        user_id=user_id,
        actor_id=actor_id,
        weight_tiers=_weight_tiers_json(body.weight_tiers),
        fuel_surcharge=body.fuel_surcharge,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="rate_card_updated")


@user_router.put("/{user_id}/pickup-locations", response_model=StatusResponse)
async def update_pickup_locations(
    user_id: str, body: UpdatePickupLocationsRequest, actor_id: str = Depends(current_actor)
) -> StatusResponse:
    command = UpdatePickupLocations(
        user_id=user_id,
        actor_id=actor_id,
        locations=json.dumps([loc.model_dump() for loc in body.locations]),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="pickup_locations_updated")


@user_router.put("/{user_id}/commission-terms", response_model=StatusResponse)
async def update_commission_terms(
    user_id: str, body: UpdateCommissionTermsRequest, actor_id: str = Depends(current_actor)
) -> StatusResponse:
    terms = body.model_dump(exclude_none=True)
    if "brand_commissions" in terms:
        terms["brand_commissions"] = json.dumps(terms["brand_commissions"])
    current_domain.process(UpdateCommissionTerms(user_id=user_id, actor_id=actor_id, **terms), asynchronous=False)
    return StatusResponse(status="commission_terms_updated")


@user_router.post("/{user_id}/jobs/reassign", response_model=BulkOutcomeResponse)
async def reassign_jobs(
    user_id: str, body: ReassignJobsRequest, actor_id: str = Depends(current_actor)
) -> BulkOutcomeResponse:
    """Hand every active pickup or delivery job of a driver to another driver."""
    result = reassign_driver_jobs(user_id, body.to_driver_id, body.kind, actor_id)
    return BulkOutcomeResponse(**result)


# ---------------------------------------------------------------------------
# Settlement Router
# ---------------------------------------------------------------------------
settlement_router = APIRouter(prefix="/settlements", tags=["settlements"])


@settlement_router.post("/cod-reconciliations", response_model=ReconciliationResponse)
async def reconcile_cod(body: ReconcileCodRequest, actor_id: str = Depends(current_actor)) -> ReconciliationResponse:
    """Settle a driver's collected COD; rejected as a whole on any mismatch."""
    command = ReconcileDriverCod(
        driver_id=body.driver_id,
        parcel_ids=json.dumps(body.parcel_ids),
        actor_id=actor_id,
        cash_amount=body.cash_amount,
        transfers=json.dumps([t.model_dump() for t in body.transfers]),
    )
    result = current_domain.process(command, asynchronous=False)
    return ReconciliationResponse(**result)


@settlement_router.get("/drivers/{driver_id}/cash-ledger", response_model=CashLedgerResponse)
async def driver_cash_ledger(driver_id: str, actor_id: str = Depends(current_actor)) -> CashLedgerResponse:
    ledger = current_domain.repository_for(DriverCashLedger).get(driver_id)
    return CashLedgerResponse(
        driver_id=str(ledger.driver_id),
        outstanding_count=ledger.outstanding_count,
        outstanding_amount=ledger.outstanding_amount,
        settled_amount=ledger.settled_amount,
    )


@settlement_router.get("/payout-groups", response_model=list[PayoutGroupResponse])
async def list_payout_groups(actor_id: str = Depends(current_actor)) -> list[PayoutGroupResponse]:
    """Delivered parcels awaiting invoice, grouped by brand."""
    return [
        PayoutGroupResponse(
            brand_id=group.brand_id,
            brand_name=group.brand_name,
            parcel_ids=group.parcel_ids,
            total_cod=group.total_cod,
            total_charges=group.total_charges,
            total_tax=group.total_tax,
            net_payout=group.net_payout,
        )
        for group in payout_groups()
    ]


@settlement_router.post("/invoices", status_code=201, response_model=InvoiceIdResponse)
async def generate_invoice(body: GenerateInvoiceRequest, actor_id: str = Depends(current_actor)) -> InvoiceIdResponse:
    command = GeneratePayoutInvoice(
        brand_id=body.brand_id,
        parcel_ids=json.dumps(body.parcel_ids),
        actor_id=actor_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return InvoiceIdResponse(invoice_id=result)


@settlement_router.put("/invoices/{invoice_id}/paid", response_model=StatusResponse)
async def mark_invoice_paid(
    invoice_id: str, body: MarkInvoicePaidRequest, actor_id: str = Depends(current_actor)
) -> StatusResponse:
    command = MarkPayoutInvoicePaid(invoice_id=invoice_id, transaction_id=body.transaction_id, actor_id=actor_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="Paid")


@settlement_router.get("/salary-statements/{user_id}", response_model=SalaryStatementResponse)
async def get_salary_statement(
    user_id: str, start: date, end: date, actor_id: str = Depends(current_actor)
) -> SalaryStatementResponse:
    """Base salary plus commission for a period, and whether it has been paid."""
    statement = salary_statement(user_id, start, end)
    return SalaryStatementResponse(
        user_id=statement.user_id,
        user_name=statement.user_name,
        role=statement.role,
        period_start=statement.period_start,
        period_end=statement.period_end,
        base_salary=statement.base_salary,
        commission=statement.commission,
        total_salary=statement.total_salary,
        breakdown=statement.breakdown,
        already_paid=statement.already_paid,
    )


@settlement_router.post("/salary-payments", status_code=201, response_model=PaymentIdResponse)
async def record_salary_payment(
    body: RecordSalaryPaymentRequest, actor_id: str = Depends(current_actor)
) -> PaymentIdResponse:
    command = RecordSalaryPayment(
        user_id=body.user_id,
        period_start=body.period_start,
        period_end=body.period_end,
        actor_id=actor_id,
        transaction_id=body.transaction_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return PaymentIdResponse(payment_id=result)
