"""Pydantic schemas for Payments module."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field, model_validator

from src.modules.debts.models import ComponentType
from src.modules.payments.models import PaymentMethod, PaymentRequestStatus
from src.shared.schemas.base import BaseSchema


# --- Target ---


class ComponentTarget(BaseSchema):
    """Names one debt component: (semester, academic year, type)."""

    semester: str = Field(..., min_length=1, max_length=20)
    academic_year: str = Field(..., min_length=1, max_length=20)
    component_type: ComponentType


# --- Payment Request Schemas ---


class PaymentRequestCreate(BaseSchema):
    """
    Payment request submitted by a student.

    Either all of ``semester``, ``academic_year`` and ``component_type`` are
    given (payment for one component) or none of them (lump payment).
    """

    amount: Decimal = Field(gt=0, description="Amount paid (must be positive)")
    payment_method: PaymentMethod = PaymentMethod.RECEIPT
    transaction_ref: str | None = Field(None, max_length=100)
    receipt_url: str | None = Field(None, max_length=500)
    semester: str | None = Field(None, max_length=20)
    academic_year: str | None = Field(None, max_length=20)
    component_type: ComponentType | None = None

    @model_validator(mode="after")
    def require_complete_target(self):
        parts = (self.semester, self.academic_year, self.component_type)
        if any(parts) and not all(parts):
            raise ValueError(
                "semester, academic_year and component_type must be given together"
            )
        return self

    @property
    def target(self) -> ComponentTarget | None:
        if self.component_type is None:
            return None
        return ComponentTarget(
            semester=self.semester,
            academic_year=self.academic_year,
            component_type=self.component_type,
        )


class PaymentRequestReject(BaseSchema):
    reason: str | None = Field(None, max_length=1000)


class PaymentRequestResponse(BaseSchema):
    """Schema for payment request response."""

    id: int
    request_number: str
    student_id: int
    requested_amount: Decimal
    payment_method: str
    transaction_ref: str | None
    receipt_url: str | None
    semester: str | None
    academic_year: str | None
    component_type: str | None
    status: str
    rejection_reason: str | None
    requested_at: datetime
    approved_by_id: int | None
    approval_date: datetime | None
    verified_by_id: int | None
    verified_at: datetime | None


class PaymentRequestFilters(BaseSchema):
    """Filters of the finance queue; PENDING unless asked otherwise."""

    status: PaymentRequestStatus | None = PaymentRequestStatus.PENDING
    student_id: int | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)


# --- Allocation Schemas ---


class AllocationLine(BaseSchema):
    """Amount of one payment applied to one component."""

    component_id: int
    semester: str
    academic_year: str
    component_type: str
    allocated_amount: Decimal
    remaining_amount: Decimal
    status: str


class AllocationResult(BaseSchema):
    """Outcome of applying one payment to a student's ledger."""

    student_id: int
    payment_id: int
    payment_number: str
    amount: Decimal
    new_balance: Decimal
    legacy_mode: bool = False
    allocations: list[AllocationLine] = []


class VerificationResponse(BaseSchema):
    """Verified request together with the allocation it produced."""

    request: PaymentRequestResponse
    allocation: AllocationResult


# --- Policy Schemas ---


class PolicyDecision(BaseSchema):
    """Whether a submission may proceed."""

    allowed: bool
    reason: str | None = None
    blocking_components: int = 0
