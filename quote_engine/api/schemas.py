"""Pydantic request/response models for the HTTP API."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from quote_engine.penalties.rules import AmountCalculation, PenaltyType, SeverityLevel
from quote_engine.quotes.states import AssignmentResponse, ReviewDecision

T = TypeVar("T")


class Paginated(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    pages: int


class ErrorBody(BaseModel):
    kind: str
    code: str
    message: str
    details: dict[str, Any] = {}


class ErrorResponse(BaseModel):
    error: ErrorBody


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------


class ContractorProfileResponse(BaseModel):
    contractor_id: str
    business_name: str
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    verification_level: str | None = None
    is_placeholder: bool = False

    class Config:
        from_attributes = True


class UserProfileResponse(BaseModel):
    user_id: str
    name: str
    email: str | None = None
    phone: str | None = None
    is_placeholder: bool = False

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Quote requests
# ---------------------------------------------------------------------------


class QuoteRequestCreate(BaseModel):
    system_size_kwp: Decimal = Field(..., gt=0)
    location_address: str = Field(..., min_length=1)
    service_area: str = Field(..., min_length=1)
    property_details: dict[str, Any] | None = None
    electricity_consumption: dict[str, Any] | None = None
    notes: str | None = None
    contractor_ids: List[str] = []


class QuoteRequestResponse(BaseModel):
    id: int
    user_id: str
    system_size_kwp: Decimal
    location_address: str
    service_area: str
    property_details: dict[str, Any] | None
    electricity_consumption: dict[str, Any] | None
    selected_contractors: List[str] | None
    notes: str | None
    status: str
    cancellation_reason: str | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuoteRequestSummary(BaseModel):
    request: QuoteRequestResponse
    approved_quotes_count: int


class CancelRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


class AssignmentOut(BaseModel):
    id: int
    request_id: int
    contractor_id: str
    status: str
    assigned_by: str | None
    assigned_at: datetime
    viewed_at: datetime | None
    responded_at: datetime | None
    response_notes: str | None

    class Config:
        from_attributes = True


class ContractorAssignmentOut(AssignmentOut):
    request: QuoteRequestResponse


class AssignmentWithContractor(BaseModel):
    assignment: AssignmentOut
    contractor: ContractorProfileResponse


class AssignContractorsRequest(BaseModel):
    contractor_ids: List[str] = Field(..., min_length=1)


class AssignmentRespondRequest(BaseModel):
    response: AssignmentResponse
    notes: str | None = None


class AssignmentRespondResponse(BaseModel):
    assignment: AssignmentOut
    request_status: str


# ---------------------------------------------------------------------------
# Contractor quotes
# ---------------------------------------------------------------------------


class LineItemIn(BaseModel):
    item_name: str = Field(..., min_length=1)
    description: str | None = None
    unit: str | None = None
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., gt=0)
    serial_number: int | None = Field(None, gt=0)


class QuoteSubmitRequest(BaseModel):
    request_id: int
    base_price: Decimal
    price_per_kwp: Decimal
    installation_timeline_days: int = Field(..., gt=0)
    system_specs: dict[str, Any] | None = None
    panel_brand: str | None = None
    panel_model: str | None = None
    panel_quantity: int | None = None
    inverter_brand: str | None = None
    inverter_model: str | None = None
    inverter_quantity: int | None = None
    warranty_terms: str | None = None
    maintenance_terms: str | None = None
    notes: str | None = None
    line_items: List[LineItemIn] = []


class QuoteResponse(BaseModel):
    id: int
    request_id: int
    contractor_id: str
    base_price: Decimal
    price_per_kwp: Decimal
    overprice_amount: Decimal
    total_user_price: Decimal
    commission_amount: Decimal
    contractor_net_amount: Decimal
    platform_revenue: Decimal
    overprice_percent: Decimal
    commission_percent: Decimal
    system_specs: dict[str, Any] | None
    panel_brand: str | None
    panel_model: str | None
    panel_quantity: int | None
    inverter_brand: str | None
    inverter_model: str | None
    inverter_quantity: int | None
    installation_timeline_days: int
    warranty_terms: str | None
    maintenance_terms: str | None
    notes: str | None
    admin_status: str
    admin_notes: str | None
    rejection_reason: str | None
    reviewed_by: str | None
    reviewed_at: datetime | None
    is_selected: bool
    selected_at: datetime | None
    expires_at: datetime | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserQuoteResponse(BaseModel):
    """What a requester sees: no commission or contractor net figures."""

    id: int
    request_id: int
    contractor_id: str
    total_user_price: Decimal
    price_per_kwp: Decimal
    system_specs: dict[str, Any] | None
    panel_brand: str | None
    panel_model: str | None
    panel_quantity: int | None
    inverter_brand: str | None
    inverter_model: str | None
    inverter_quantity: int | None
    installation_timeline_days: int
    warranty_terms: str | None
    maintenance_terms: str | None
    is_selected: bool
    expires_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class QuoteWithContractor(BaseModel):
    quote: QuoteResponse
    contractor: ContractorProfileResponse


class UserQuoteWithContractor(BaseModel):
    quote: UserQuoteResponse
    contractor: ContractorProfileResponse


class LineItemResponse(BaseModel):
    id: int
    serial_number: int
    item_name: str
    description: str | None
    unit: str | None
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    commission_amount: Decimal
    over_price_amount: Decimal
    user_price: Decimal
    vendor_net_price: Decimal

    class Config:
        from_attributes = True


class QuotationTotalsResponse(BaseModel):
    total_price: Decimal
    total_commission: Decimal
    total_over_price: Decimal
    total_user_price: Decimal
    total_vendor_net: Decimal
    vat_percent: Decimal
    vat_amount: Decimal
    total_payable: Decimal
    item_count: int

    class Config:
        from_attributes = True


class QuoteDetailResponse(BaseModel):
    quote: QuoteResponse
    request: QuoteRequestResponse
    line_items: List[LineItemResponse]
    totals: QuotationTotalsResponse | None


class UserLineItemResponse(BaseModel):
    serial_number: int
    item_name: str
    description: str | None
    unit: str | None
    quantity: Decimal
    user_price: Decimal

    class Config:
        from_attributes = True


class UserQuoteDetailResponse(BaseModel):
    quote: UserQuoteResponse
    request: QuoteRequestResponse
    line_items: List[UserLineItemResponse]


class SelectQuoteRequest(BaseModel):
    reason: str | None = None


class SelectQuoteResponse(BaseModel):
    quote: UserQuoteResponse
    request: QuoteRequestResponse


class CompareQuotesRequest(BaseModel):
    quote_ids: List[int] = Field(..., min_length=1)
    criteria: dict[str, Any] | None = None


class PriceSummary(BaseModel):
    count: int
    min_price: Decimal | None
    max_price: Decimal | None
    avg_price: Decimal | None
    price_range: Decimal | None


class CompareQuotesResponse(BaseModel):
    comparison_id: int
    request_id: int
    views_count: int
    quotes: List[UserQuoteWithContractor]
    summary: PriceSummary


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class ReviewQuoteRequest(BaseModel):
    decision: ReviewDecision
    notes: str | None = None
    rejection_reason: str | None = None


class AdminQuoteView(BaseModel):
    quote: QuoteResponse
    request: QuoteRequestResponse
    contractor: ContractorProfileResponse
    user: UserProfileResponse


class PricingConfigValues(BaseModel):
    max_price_per_kwp: Decimal
    platform_overprice_percent: Decimal
    platform_commission_percent: Decimal
    min_system_size_kwp: Decimal
    max_system_size_kwp: Decimal

    class Config:
        from_attributes = True


class QuoteReviewDetail(QuoteDetailResponse):
    contractor: ContractorProfileResponse
    user: UserProfileResponse
    current_pricing_config: PricingConfigValues


class InvoiceResponse(BaseModel):
    contractor_amount: Decimal
    platform_commission: Decimal
    platform_markup: Decimal
    user_total: Decimal
    vat_percent: Decimal
    vat_amount: Decimal
    final_total: Decimal

    class Config:
        from_attributes = True


class DashboardQuotes(BaseModel):
    pending: int
    approved: int
    rejected: int
    total: int


class DashboardRevenue(BaseModel):
    approved_commission: Decimal
    approved_markup: Decimal
    selected_commission: Decimal
    selected_markup: Decimal
    selected_total: Decimal


class DashboardActivity(BaseModel):
    window_days: int
    active_contractors: int
    active_users: int


class DashboardResponse(BaseModel):
    quotes: DashboardQuotes
    revenue: DashboardRevenue
    activity: DashboardActivity
    penalties: dict[str, int]
    recent_quotes: List[QuoteResponse]


class PricingConfigUpdate(BaseModel):
    max_price_per_kwp: Decimal | None = None
    platform_overprice_percent: Decimal | None = None
    platform_commission_percent: Decimal | None = None
    min_system_size_kwp: Decimal | None = None
    max_system_size_kwp: Decimal | None = None


class PricingConfigResponse(BaseModel):
    config: PricingConfigValues
    version: int
    updated_by: str | None
    updated_at: datetime | None


class PricingConfigHistoryEntry(BaseModel):
    version: int
    old_value: dict[str, Any] | None
    new_value: dict[str, Any]
    changed_by: str
    changed_at: datetime


# ---------------------------------------------------------------------------
# Penalties
# ---------------------------------------------------------------------------


class PenaltyApplyRequest(BaseModel):
    contractor_id: str
    quote_id: int
    penalty_type: PenaltyType
    description: str = Field(..., min_length=1)
    custom_amount: Decimal | None = Field(None, gt=0)
    severity: SeverityLevel | None = None
    days_overdue: int | None = Field(None, gt=0)
    evidence: dict[str, Any] | None = None


class PenaltyResponse(BaseModel):
    id: int
    contractor_id: str
    quote_id: int
    rule_id: int
    penalty_type: str
    description: str
    amount: Decimal
    status: str
    applied_by: str
    applied_at: datetime | None
    evidence: dict[str, Any] | None
    dispute_reason: str | None
    disputed_at: datetime | None
    resolution_notes: str | None
    debit_attempts: int
    last_debit_error: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class DisputePenaltyRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class PenaltyRuleCreate(BaseModel):
    rule_name: str = Field(..., min_length=1)
    penalty_type: PenaltyType
    description: str | None = None
    severity_level: SeverityLevel
    amount_calculation: AmountCalculation
    amount_value: Decimal = Field(..., gt=0)
    maximum_amount: Decimal | None = Field(None, gt=0)
    grace_period_hours: int = Field(0, ge=0)
    is_active: bool = True


class PenaltyRuleUpdate(BaseModel):
    rule_name: str | None = None
    penalty_type: PenaltyType | None = None
    description: str | None = None
    severity_level: SeverityLevel | None = None
    amount_calculation: AmountCalculation | None = None
    amount_value: Decimal | None = Field(None, gt=0)
    maximum_amount: Decimal | None = Field(None, gt=0)
    grace_period_hours: int | None = Field(None, ge=0)
    is_active: bool | None = None


class PenaltyRuleResponse(BaseModel):
    id: int
    rule_name: str
    penalty_type: str
    description: str | None
    severity_level: str
    amount_calculation: str
    amount_value: Decimal
    maximum_amount: Decimal | None
    grace_period_hours: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PenaltyBucket(BaseModel):
    count: int
    amount: Decimal


class PenaltyStatisticsResponse(BaseModel):
    since: datetime | None
    total_count: int
    total_amount: Decimal
    by_status: dict[str, PenaltyBucket]
    by_type: dict[str, PenaltyBucket]


class PenaltyCheckResponse(BaseModel):
    violations_detected: int
    penalties_applied: int
    errors: int


class ReconcileResponse(BaseModel):
    checked: int
    applied: int
    still_pending: int


class SLAViolationResponse(BaseModel):
    quote_id: int
    request_id: int
    contractor_id: str
    base_price: Decimal
    installation_timeline_days: int
    deadline: date
    days_overdue: int
    severity: SeverityLevel

    class Config:
        from_attributes = True


class SchedulerJob(BaseModel):
    id: str
    name: str
    next_run_time: str | None


class SchedulerStatusResponse(BaseModel):
    running: bool
    jobs: List[SchedulerJob]
