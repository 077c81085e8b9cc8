"""Service for SIS import: students, SIS snapshots and ledgers from an SIS export."""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.exceptions import NotFoundError, ValidationError
from src.modules.debts.models import ComponentType
from src.modules.debts.schedule import ComponentScheduleGenerator, build_terms
from src.modules.debts.schemas import ComponentDraft, EnrollmentParams
from src.modules.debts.service import DebtLedgerService
from src.modules.sis_import.models import SisImportBatch, SisImportStatus, StudentSisData
from src.modules.sis_import.parser import parse_sis_file, validate_record
from src.modules.sis_import.schemas import (
    ParsedRow,
    RowError,
    SisBatchStudent,
    SisImportResult,
    SisPreviewResponse,
    SisRecord,
)
from src.modules.students.models import EnrollmentStatus, Student
from src.modules.students.service import StudentService
from src.shared.utils.money import ZERO, round_money, sum_money

logger = logging.getLogger(__name__)

OTHER_FEES_DESCRIPTION = "Imported SIS other fees"
UNKNOWN_DEPARTMENT = "Unknown"
HISTORY_LIMIT = 50


def _ensure_upload(content: bytes) -> None:
    if not content:
        raise ValidationError("No file uploaded.", field="file")
    if len(content) > settings.sis_import_max_bytes:
        raise ValidationError(
            f"File exceeds maximum size of {settings.sis_import_max_bytes} bytes",
            field="file",
        )


def _row_errors(rows: list[ParsedRow]) -> list[RowError]:
    return [RowError(row=r.row_number, messages=r.errors) for r in rows if not r.is_valid]


class SisImportService:
    """Imports SIS exports into students, SIS snapshots and debt ledgers."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.ledger = DebtLedgerService(db)
        self.students = StudentService(db)
        self.generator = ComponentScheduleGenerator()

    def preview(self, content: bytes, file_name: str | None) -> SisPreviewResponse:
        """Parse an upload and report what an import would do. Writes nothing."""
        _ensure_upload(content)
        result = parse_sis_file(content, file_name)
        return SisPreviewResponse(
            file_name=file_name,
            file_size_bytes=len(content),
            summary=result.summary,
            preview_rows=result.preview_rows,
        )

    async def import_file(
        self,
        content: bytes,
        file_name: str | None,
        imported_by_id: int,
        notes: str | None = None,
    ) -> SisImportResult:
        _ensure_upload(content)
        result = parse_sis_file(content, file_name)
        errors = _row_errors(result.rows)
        if errors:
            raise self._rows_rejected(errors)
        return await self.import_records(
            [r.data for r in result.rows],
            imported_by_id,
            file_name=file_name,
            file_size_bytes=len(content),
            notes=notes,
        )

    async def import_records(
        self,
        records: list[SisRecord],
        imported_by_id: int,
        file_name: str | None = None,
        file_size_bytes: int | None = None,
        notes: str | None = None,
    ) -> SisImportResult:
        """
        Import SIS records as one batch, all or nothing.

        Any row error refuses the whole batch. Each student's components are
        regenerated and the ledger is reseeded with the new total.
        """
        rows = [
            ParsedRow(row_number=index, errors=validate_record(record), data=record)
            for index, record in enumerate(records, start=1)
        ]
        errors = _row_errors(rows)
        if errors:
            raise self._rows_rejected(errors)

        batch = SisImportBatch(
            imported_by_id=imported_by_id,
            file_name=file_name,
            file_size_bytes=file_size_bytes,
            student_count=0,
            total_debt_imported=ZERO,
            status=SisImportStatus.COMPLETED.value,
            notes=notes,
        )
        self.db.add(batch)
        await self.db.flush()

        totals: list[Decimal] = []
        for record in records:
            student_total = await self._import_record(batch, record, imported_by_id)
            totals.append(student_total)

        batch.student_count = len(records)
        batch.total_debt_imported = sum_money(totals)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.SIS_IMPORT,
            entity_type="SisImportBatch",
            entity_id=batch.id,
            entity_identifier=file_name,
            user_id=imported_by_id,
            new_values={
                "student_count": batch.student_count,
                "total_debt_imported": str(batch.total_debt_imported),
            },
            comment=notes,
        )

        await self.db.commit()
        logger.info(
            "SIS import batch %s finished: %s student(s), %s imported",
            batch.id,
            batch.student_count,
            batch.total_debt_imported,
        )
        return SisImportResult(
            batch_id=batch.id,
            student_count=batch.student_count,
            total_debt_imported=batch.total_debt_imported,
        )

    async def _import_record(
        self, batch: SisImportBatch, record: SisRecord, imported_by_id: int
    ) -> Decimal:
        """Upsert one student with SIS data and components; returns the seeded total."""
        department = await self.students.find_or_create_department(
            record.department_name or UNKNOWN_DEPARTMENT
        )

        student = await self.students.find_student(record.email, record.student_number)
        if student is None:
            student = Student(
                student_number=record.student_number,
                full_name=record.full_name,
                email=record.email,
                phone=record.phone,
                department_id=department.id,
                batch=record.batch_year,
                enrollment_status=EnrollmentStatus.ACTIVE.value,
            )
            self.db.add(student)
            await self.db.flush()

        await self._upsert_sis_data(student.id, batch.id, record)

        start_year = record.start_year or datetime.now(timezone.utc).year
        params = EnrollmentParams(
            semesters=record.semesters,
            start_year=start_year,
            tuition_base_annual=record.tuition_base_amount or Decimal("0"),
            living_stipend_choice=record.living_stipend_choice,
        )
        drafts = self.generator.generate(student.id, params)

        other = round_money(record.totals.other)
        if other > 0:
            first_term = build_terms(start_year, 1)[0]
            drafts.append(
                ComponentDraft(
                    student_id=student.id,
                    semester=first_term.semester,
                    academic_year=first_term.academic_year,
                    component_type=ComponentType.OTHER,
                    amount=other,
                    description=OTHER_FEES_DESCRIPTION,
                )
            )

        await self.ledger.remove_stale_components(student.id, drafts)
        await self.ledger.upsert_components(drafts)
        student_total = sum_money(d.amount for d in drafts)
        await self.ledger.seed(student.id, student_total, imported_by_id)
        await self.ledger.recompute_aggregate(student.id, imported_by_id)
        return student_total

    async def _upsert_sis_data(self, student_id: int, batch_id: int, record: SisRecord) -> None:
        result = await self.db.execute(
            select(StudentSisData).where(StudentSisData.student_id == student_id)
        )
        sis_data = result.scalar_one_or_none()
        if sis_data is None:
            sis_data = StudentSisData(student_id=student_id)
            self.db.add(sis_data)

        sis_data.batch_id = batch_id
        sis_data.sis_student_id = record.student_number
        sis_data.program_code = record.program_code
        sis_data.living_stipend_choice = record.living_stipend_choice
        sis_data.full_name = record.full_name
        sis_data.email = record.email
        sis_data.phone = record.phone
        sis_data.department_name = record.department_name
        sis_data.faculty = record.faculty
        sis_data.batch_year = record.batch_year
        sis_data.tuition_base_amount = (
            round_money(record.tuition_base_amount)
            if record.tuition_base_amount is not None
            else None
        )
        sis_data.imported_at = datetime.now(timezone.utc)
        await self.db.flush()

    @staticmethod
    def _rows_rejected(errors: list[RowError]) -> ValidationError:
        logger.warning("SIS import refused: %s row(s) with errors", len(errors))
        return ValidationError(
            "SIS file contains validation errors.",
            details={"rows": [e.model_dump() for e in errors]},
        )

    # --- History ---

    async def list_batches(self, limit: int = HISTORY_LIMIT) -> list[SisImportBatch]:
        result = await self.db.execute(
            select(SisImportBatch)
            .order_by(SisImportBatch.import_date.desc(), SisImportBatch.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_batch_students(self, batch_id: int) -> list[SisBatchStudent]:
        batch = await self.db.get(SisImportBatch, batch_id)
        if batch is None:
            raise NotFoundError("SIS import batch", batch_id)

        result = await self.db.execute(
            select(StudentSisData)
            .where(StudentSisData.batch_id == batch_id)
            .options(selectinload(StudentSisData.student).selectinload(Student.department))
        )
        students = [
            SisBatchStudent(
                student_id=sis_data.student.id,
                student_number=sis_data.student.student_number,
                full_name=sis_data.student.full_name,
                email=sis_data.student.email,
                department_name=sis_data.student.department_name,
                batch_year=sis_data.batch_year,
                program_code=sis_data.program_code,
                tuition_base_amount=sis_data.tuition_base_amount,
            )
            for sis_data in result.scalars().all()
        ]
        return sorted(students, key=lambda s: (s.full_name, s.student_id))
