"""Schemas for Students module."""

import re
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.modules.debts.schemas import EnrollmentParams
from src.modules.students.models import EnrollmentStatus

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(v: str) -> str:
    normalized = v.strip().lower()
    if not EMAIL_REGEX.match(normalized):
        raise ValueError("Invalid email address")
    return normalized


class StudentCreate(BaseModel):
    """
    Schema for creating a student.

    With ``enrollment`` the ledger is built from the generated component
    schedule; without it the student starts in legacy mode with
    ``initial_debt`` (or the configured default) as a plain balance.
    """

    student_number: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str | None = Field(None, max_length=50)
    department_name: str | None = Field(None, min_length=1, max_length=200)
    batch: int | None = Field(None, ge=1900, le=2200)
    enrollment: EnrollmentParams | None = None
    initial_debt: Decimal | None = Field(None, ge=0)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("student_number", "full_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Must not be blank")
        return stripped


class StudentUpdate(BaseModel):
    """Schema for updating a student. Student number and email cannot change."""

    department_name: str | None = Field(None, min_length=1, max_length=200)
    batch: int | None = Field(None, ge=1900, le=2200)
    enrollment_status: EnrollmentStatus | None = None


class StudentResponse(BaseModel):
    """Schema for student response."""

    id: int
    student_number: str
    full_name: str
    email: str | None
    phone: str | None
    department_id: int | None
    department_name: str | None = None
    batch: int | None
    enrollment_status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DepartmentResponse(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}
