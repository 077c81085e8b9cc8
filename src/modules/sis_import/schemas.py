"""Pydantic schemas for SIS import module."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from src.shared.schemas.base import BaseSchema


class SisTotals(BaseSchema):
    """Debt totals declared by the SIS export."""

    tuition: Decimal = Decimal("0")
    living: Decimal = Decimal("0")
    medical: Decimal = Decimal("0")
    other: Decimal = Decimal("0")


class SisRecord(BaseSchema):
    """One student row of an SIS export, after header mapping."""

    student_number: str = ""
    full_name: str = ""
    email: str | None = None
    phone: str | None = None
    department_name: str = ""
    faculty: str | None = None
    batch_year: int | None = None
    semesters: int = 0
    program_code: str | None = None
    start_year: int | None = None
    living_stipend_choice: bool = True
    tuition_base_amount: Decimal | None = None
    totals: SisTotals = Field(default_factory=SisTotals)


class ParsedRow(BaseSchema):
    row_number: int
    errors: list[str] = []
    data: SisRecord

    @property
    def is_valid(self) -> bool:
        return not self.errors


class RowError(BaseSchema):
    row: int
    messages: list[str]


class ParseSummary(BaseSchema):
    """Totals over the valid rows plus the errors of the invalid ones."""

    total_students: int = 0
    total_debt: Decimal = Decimal("0.00")
    total_tuition: Decimal = Decimal("0.00")
    total_living: Decimal = Decimal("0.00")
    total_medical: Decimal = Decimal("0.00")
    total_other: Decimal = Decimal("0.00")
    errors: list[RowError] = []


class ParseResult(BaseSchema):
    summary: ParseSummary
    preview_rows: list[SisRecord]
    rows: list[ParsedRow]


class SisPreviewResponse(BaseSchema):
    """Returned by the preview endpoint: nothing is written yet."""

    file_name: str | None
    file_size_bytes: int
    summary: ParseSummary
    preview_rows: list[SisRecord]


class SisRecordsImport(BaseSchema):
    """Records already parsed by a client, imported as one batch."""

    records: list[SisRecord] = Field(..., min_length=1)
    file_name: str | None = Field(None, max_length=255)
    notes: str | None = None


class SisImportResult(BaseSchema):
    batch_id: int
    student_count: int
    total_debt_imported: Decimal


class SisImportBatchResponse(BaseSchema):
    id: int
    imported_by_id: int | None
    file_name: str | None
    file_size_bytes: int | None
    student_count: int
    total_debt_imported: Decimal
    status: str
    notes: str | None
    import_date: datetime


class SisBatchStudent(BaseSchema):
    """Student imported in a batch, as the SIS described it."""

    student_id: int
    student_number: str
    full_name: str
    email: str | None
    department_name: str | None
    batch_year: int | None
    program_code: str | None
    tuition_base_amount: Decimal | None
