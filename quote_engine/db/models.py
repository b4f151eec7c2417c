"""SQLAlchemy database models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class QuoteRequest(Base):
    """Homeowner request for installation quotes."""

    __tablename__ = "quote_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    system_size_kwp: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    location_address: Mapped[str] = mapped_column(Text, nullable=False)
    service_area: Mapped[str] = mapped_column(String(128), nullable=False)
    property_details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    electricity_consumption: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    selected_contractors: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), default="pending", nullable=False, index=True
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    assignments: Mapped[list["ContractorQuoteAssignment"]] = relationship(
        "ContractorQuoteAssignment", back_populates="request", cascade="all, delete-orphan"
    )
    quotes: Mapped[list["ContractorQuote"]] = relationship(
        "ContractorQuote", back_populates="request", cascade="all, delete-orphan"
    )


class ContractorQuoteAssignment(Base):
    """Invitation of a contractor to bid on a quote request."""

    __tablename__ = "contractor_quote_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quote_requests.id", ondelete="CASCADE"), nullable=False
    )
    contractor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), default="assigned", nullable=False)
    assigned_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    response_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    request: Mapped["QuoteRequest"] = relationship("QuoteRequest", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("request_id", "contractor_id", name="uq_assignment_request_contractor"),
    )


class ContractorQuote(Base):
    """Priced bid submitted by a contractor."""

    __tablename__ = "contractor_quotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quote_requests.id", ondelete="CASCADE"), nullable=False
    )
    contractor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Pricing (base price entered by the contractor, the rest derived)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_per_kwp: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    overprice_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_user_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    contractor_net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    overprice_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    commission_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    # System specification
    system_specs: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    panel_brand: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    panel_model: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    panel_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    inverter_brand: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    inverter_model: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    inverter_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    installation_timeline_days: Mapped[int] = mapped_column(Integer, nullable=False)
    warranty_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    maintenance_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Admin review
    admin_status: Mapped[str] = mapped_column(
        String(32), default="pending", nullable=False, index=True
    )
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Selection
    is_selected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    selected_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    request: Mapped["QuoteRequest"] = relationship("QuoteRequest", back_populates="quotes")
    line_items: Mapped[list["QuotationLineItem"]] = relationship(
        "QuotationLineItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationLineItem.serial_number",
    )

    __table_args__ = (
        UniqueConstraint("request_id", "contractor_id", name="uq_quote_request_contractor"),
    )


class QuotationLineItem(Base):
    """Single priced line of a detailed quotation."""

    __tablename__ = "quotation_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quotation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("contractor_quotes.id", ondelete="CASCADE"), nullable=False
    )
    serial_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Derived amounts, computed at submission
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    over_price_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    user_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    vendor_net_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    # Relationships
    quotation: Mapped["ContractorQuote"] = relationship(
        "ContractorQuote", back_populates="line_items"
    )

    __table_args__ = (
        UniqueConstraint("quotation_id", "serial_number", name="uq_line_item_serial"),
    )


class QuoteComparison(Base):
    """Record of a requester comparing approved quotes."""

    __tablename__ = "quote_comparisons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quote_requests.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    compared_quotes: Mapped[list] = mapped_column(JSONType, nullable=False)
    comparison_criteria: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    views_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    last_viewed_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    selected_quote_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("contractor_quotes.id"), nullable=True
    )
    selection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("request_id", "user_id", name="uq_comparison_request_user"),
    )


class PenaltyRule(Base):
    """Administrator-managed penalty rule."""

    __tablename__ = "penalty_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rule_name: Mapped[str] = mapped_column(String(128), nullable=False)
    penalty_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    severity_level: Mapped[str] = mapped_column(String(16), nullable=False)
    amount_calculation: Mapped[str] = mapped_column(String(16), nullable=False)
    amount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    maximum_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    grace_period_hours: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class PenaltyInstance(Base):
    """Monetary penalty levied against a contractor for one quote."""

    __tablename__ = "penalty_instances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contractor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    quote_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("contractor_quotes.id"), nullable=False
    )
    rule_id: Mapped[int] = mapped_column(Integer, ForeignKey("penalty_rules.id"), nullable=False)
    penalty_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default="pending", nullable=False, index=True
    )
    applied_by: Mapped[str] = mapped_column(String(64), nullable=False)
    applied_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    evidence: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    dispute_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    disputed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Wallet debit bookkeeping
    debit_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_debit_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    rule: Mapped["PenaltyRule"] = relationship("PenaltyRule")

    __table_args__ = (
        # At most one live penalty per (contractor, quote, type)
        Index(
            "uq_penalty_active_per_quote",
            "contractor_id",
            "quote_id",
            "penalty_type",
            unique=True,
            postgresql_where=text("status NOT IN ('reversed', 'waived')"),
            sqlite_where=text("status NOT IN ('reversed', 'waived')"),
        ),
    )


class BusinessConfig(Base):
    """Keyed JSON configuration (pricing rules live under 'pricing_rules')."""

    __tablename__ = "business_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    config_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    config_value: Mapped[dict] = mapped_column(JSONType, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class BusinessConfigHistory(Base):
    """Audit trail of business config changes."""

    __tablename__ = "business_config_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    config_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    old_value: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    new_value: Mapped[dict] = mapped_column(JSONType, nullable=False)
    changed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
