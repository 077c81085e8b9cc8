"""Pydantic schemas for Clearance module."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from src.shared.schemas.base import BaseSchema

READY_FOR_CLEARANCE = "READY_FOR_CLEARANCE"


class ClearanceIssue(BaseSchema):
    student_id: int
    notes: str | None = Field(None, max_length=1000)


class ClearanceLetterResponse(BaseSchema):
    """Schema for clearance letter response."""

    id: int
    letter_number: str
    student_id: int
    debt_record_id: int | None
    issued_by_id: int
    notes: str | None
    issued_at: datetime


class ClearanceEligibility(BaseSchema):
    student_id: int
    eligible: bool
    current_balance: Decimal


class OfficeClearances(BaseSchema):
    """
    Per-office clearance status.

    Only the financial office is decided by the ledger; the other offices sign
    off outside this service and are always reported as PENDING here.
    """

    financial: str = "VERIFIED"
    departmental: str = "PENDING"
    library: str = "PENDING"
    laboratory: str = "PENDING"


class EligibleStudent(BaseSchema):
    """Active student with nothing left to pay."""

    student_id: int
    student_number: str
    full_name: str
    email: str | None
    department_name: str | None
    remaining_balance: Decimal
    clearances: OfficeClearances = Field(default_factory=OfficeClearances)
    status: str = READY_FOR_CLEARANCE


class MyClearanceResponse(BaseSchema):
    letter: ClearanceLetterResponse | None = None
