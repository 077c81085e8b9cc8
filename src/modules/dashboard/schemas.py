"""Schemas for dashboard API (admin overview of the whole ledger)."""

from decimal import Decimal

from src.shared.schemas.base import BaseSchema


class DashboardResponse(BaseSchema):
    """Headline figures for the admin main page."""

    # Money
    total_collections: Decimal = Decimal("0")
    outstanding_debt: Decimal = Decimal("0")

    # Work queues and population
    pending_requests_count: int = 0
    active_students_count: int = 0
    students_with_debt_count: int = 0


class StudentDebtRow(BaseSchema):
    """One student's original debt against what is still owed."""

    student_id: int
    student_number: str
    full_name: str
    email: str | None
    department_name: str | None
    batch: int | None
    enrollment_status: str
    total_debt: Decimal
    current_balance: Decimal
    legacy_mode: bool
