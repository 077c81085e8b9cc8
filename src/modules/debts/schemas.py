"""Pydantic schemas for Debts module."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from src.modules.debts.models import ComponentType
from src.shared.schemas.base import BaseSchema


# --- Schedule Schemas ---


class EnrollmentParams(BaseSchema):
    """Enrollment parameters the component schedule is derived from."""

    semesters: int = Field(ge=1, description="Number of terms to generate")
    start_year: int = Field(ge=1900, le=2200)
    tuition_base_annual: Decimal = Field(Decimal("0"), ge=0)
    living_stipend_choice: bool = True


class ComponentDraft(BaseSchema):
    """A component computed by the schedule generator, not yet persisted."""

    student_id: int
    semester: str
    academic_year: str
    component_type: ComponentType
    amount: Decimal
    description: str
    due_date: date | None = None


class Term(BaseSchema):
    """One academic term of a schedule."""

    semester: str  # 2025-FALL
    academic_year: str  # 2025/2026
    start_year: int
    is_fall: bool


# --- Ledger Schemas ---


class DebtComponentResponse(BaseSchema):
    """Component as shown to students and staff."""

    id: int
    student_id: int
    semester: str
    academic_year: str
    component_type: str
    amount: Decimal
    original_amount: Decimal
    status: str
    due_date: date | None
    description: str | None
    accrued_at: datetime


class PaymentHistoryEntry(BaseSchema):
    """Applied payment in a ledger summary."""

    id: int
    payment_number: str
    amount: Decimal
    payment_method: str
    transaction_ref: str | None
    status: str
    payment_date: datetime
    verified_by_id: int | None


class RecentRequestEntry(BaseSchema):
    """Recent payment request in a ledger summary."""

    id: int
    request_number: str
    requested_amount: Decimal
    payment_method: str
    status: str
    semester: str | None
    academic_year: str | None
    component_type: str | None
    requested_at: datetime
    approval_date: datetime | None
    rejection_reason: str | None


class DebtSummary(BaseSchema):
    """Everything the student debt page shows."""

    student_id: int
    debt_record_id: int | None
    initial_amount: Decimal
    current_balance: Decimal
    total_paid: Decimal
    living_stipend_total: Decimal
    tuition_total: Decimal
    medical_total: Decimal
    other_total: Decimal
    next_due_date: date | None
    last_updated: datetime | None
    updated_by_id: int | None
    legacy_mode: bool
    components: list[DebtComponentResponse]
    unpaid_components: list[DebtComponentResponse]
    payment_count: int
    last_payment: PaymentHistoryEntry | None
    payment_history: list[PaymentHistoryEntry]
    recent_requests: list[RecentRequestEntry]
