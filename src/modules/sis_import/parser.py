"""Parsing of SIS student exports (CSV or Excel)."""

from __future__ import annotations

import csv
import io
import re
import zipfile
from decimal import Decimal, InvalidOperation
from pathlib import PurePath
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from src.core.config import settings
from src.core.exceptions import ValidationError
from src.modules.sis_import.schemas import (
    ParsedRow,
    ParseResult,
    ParseSummary,
    RowError,
    SisRecord,
    SisTotals,
)
from src.shared.utils.money import round_money, sum_money

CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")

MIN_START_YEAR = 1900
MAX_START_YEAR = 2200

TRUE_VALUES = ("yes", "true", "1", "y")
FALSE_VALUES = ("no", "false", "0", "n")

# Accepted column names per field, first match wins
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "student_number": ("student_number", "studentid", "student_id", "sis_student_id"),
    "full_name": ("full_name", "name", "student_name"),
    "email": ("email", "email_address", "student_email"),
    "phone": ("phone", "phone_number", "mobile"),
    "department_name": ("department", "department_name", "dept"),
    "faculty": ("faculty", "college", "school"),
    "batch_year": ("batch_year", "batch", "cohort_year"),
    "semesters": ("semesters", "total_semesters", "semester_count"),
    "program_code": ("program_code", "program"),
    "start_year": ("start_year", "startyear"),
    "living_stipend_choice": ("living_stipend_choice", "living_stipend", "receive_stipend"),
    "tuition_base_amount": ("tuition_base_amount", "tuition_base_annual", "tuition_base"),
    "total_tuition": ("total_tuition", "tuition_total"),
    "total_living": ("total_living", "living_total"),
    "total_medical": ("total_medical", "medical_total"),
    "total_other": ("total_other", "other_total"),
}

_WHITESPACE = re.compile(r"\s+")
_NON_HEADER_CHARS = re.compile(r"[^a-z0-9_]")


def normalize_header(header: Any) -> str:
    """'Student Number ' -> 'student_number'."""
    text = str(header or "").strip().lower()
    return _NON_HEADER_CHARS.sub("", _WHITESPACE.sub("_", text))


def parse_number(value: Any) -> Decimal:
    """Lenient number: thousands separators allowed, anything unreadable is 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    cleaned = str(value).replace(",", "").strip()
    if not cleaned:
        return Decimal("0")
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")
    return number if number.is_finite() else Decimal("0")


def parse_boolean(value: Any, default: bool = True) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    return default


def parse_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Excel hands numeric ids back as floats
        value = int(value)
    return str(value).strip()


def _pick(row: dict[str, Any], field: str) -> Any:
    for alias in COLUMN_ALIASES[field]:
        value = row.get(alias)
        if value not in (None, ""):
            return value
    return None


def validate_record(record: SisRecord) -> list[str]:
    """Row-level errors; an empty list means the record can be imported."""
    errors = []
    if not record.student_number:
        errors.append("Missing student number.")
    if not record.full_name:
        errors.append("Missing full name.")
    if not record.department_name:
        errors.append("Missing department.")
    if not record.semesters:
        errors.append("Semesters is required.")
    if record.start_year is not None and not MIN_START_YEAR <= record.start_year <= MAX_START_YEAR:
        errors.append("Invalid start year.")
    return errors


def map_row(row: dict[str, Any], row_number: int) -> ParsedRow:
    """Turn one row keyed by normalized headers into a record plus its errors."""
    batch_year = int(parse_number(_pick(row, "batch_year")))
    start_year = int(parse_number(_pick(row, "start_year")))
    tuition_base = parse_number(_pick(row, "tuition_base_amount"))

    record = SisRecord(
        student_number=parse_text(_pick(row, "student_number")),
        full_name=parse_text(_pick(row, "full_name")),
        email=parse_text(_pick(row, "email")).lower() or None,
        phone=parse_text(_pick(row, "phone")) or None,
        department_name=parse_text(_pick(row, "department_name")),
        faculty=parse_text(_pick(row, "faculty")) or None,
        batch_year=batch_year or None,
        semesters=max(0, int(parse_number(_pick(row, "semesters")))),
        program_code=parse_text(_pick(row, "program_code")) or None,
        start_year=max(0, start_year) or None,
        living_stipend_choice=parse_boolean(_pick(row, "living_stipend_choice"), True),
        tuition_base_amount=tuition_base if tuition_base > 0 else None,
        totals=SisTotals(
            tuition=parse_number(_pick(row, "total_tuition")),
            living=parse_number(_pick(row, "total_living")),
            medical=parse_number(_pick(row, "total_medical")),
            other=parse_number(_pick(row, "total_other")),
        ),
    )
    return ParsedRow(row_number=row_number, errors=validate_record(record), data=record)


def read_csv_rows(content: bytes) -> list[dict[str, Any]]:
    text = content.decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text))
    rows = []
    for raw in reader:
        rows.append({normalize_header(k): v for k, v in raw.items() if k is not None})
    return rows


def read_excel_rows(content: bytes) -> list[dict[str, Any]]:
    """Rows of the first worksheet; the first row holds the headers."""
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
        raise ValidationError("Failed to read Excel file", field="file") from exc

    try:
        if not workbook.sheetnames:
            return []
        sheet = workbook[workbook.sheetnames[0]]
        values = sheet.iter_rows(values_only=True)
        header_row = next(values, None)
        if header_row is None:
            return []
        headers = [normalize_header(h) for h in header_row]
        rows = []
        for cells in values:
            if cells is None or all(c in (None, "") for c in cells):
                continue
            rows.append({h: c for h, c in zip(headers, cells) if h})
        return rows
    finally:
        workbook.close()


def build_summary(rows: list[ParsedRow]) -> ParseSummary:
    valid = [r.data for r in rows if r.is_valid]
    tuition = sum_money(r.totals.tuition for r in valid)
    living = sum_money(r.totals.living for r in valid)
    medical = sum_money(r.totals.medical for r in valid)
    other = sum_money(r.totals.other for r in valid)
    return ParseSummary(
        total_students=len(valid),
        total_tuition=tuition,
        total_living=living,
        total_medical=medical,
        total_other=other,
        total_debt=round_money(tuition + living + medical + other),
        errors=[RowError(row=r.row_number, messages=r.errors) for r in rows if not r.is_valid],
    )


def parse_sis_file(content: bytes, file_name: str | None) -> ParseResult:
    """
    Parse an SIS export.

    Row numbers count data rows from 1, headers excluded.
    """
    suffix = PurePath(file_name or "").suffix.lower()
    if suffix in CSV_EXTENSIONS:
        raw_rows = read_csv_rows(content)
    elif suffix in EXCEL_EXTENSIONS:
        raw_rows = read_excel_rows(content)
    else:
        raise ValidationError(
            "Unsupported file type. Use CSV or Excel (.xlsx).", field="file"
        )

    rows = [map_row(row, index) for index, row in enumerate(raw_rows, start=1)]
    return ParseResult(
        summary=build_summary(rows),
        preview_rows=[r.data for r in rows if r.is_valid][: settings.sis_preview_rows],
        rows=rows,
    )
