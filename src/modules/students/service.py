"""Service for Students module."""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.exceptions import DuplicateError, NotFoundError
from src.modules.clearance.models import ClearanceLetter
from src.modules.debts.models import DebtComponent, DebtRecord
from src.modules.debts.schedule import ComponentScheduleGenerator
from src.modules.debts.service import DebtLedgerService
from src.modules.payments.models import PaymentAllocation, PaymentHistory, PaymentRequest
from src.modules.sis_import.models import StudentSisData
from src.modules.students.models import Department, EnrollmentStatus, Student
from src.modules.students.schemas import StudentCreate, StudentUpdate
from src.shared.utils.money import round_money, sum_money

logger = logging.getLogger(__name__)


class StudentService:
    """Service for managing students and departments."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.ledger = DebtLedgerService(db)

    # --- Department Methods ---

    async def find_or_create_department(self, name: str | None) -> Department | None:
        """Department matched by name, case-insensitively; created when missing."""
        if not name or not name.strip():
            return None
        name = name.strip()
        result = await self.db.execute(
            select(Department).where(func.lower(Department.name) == name.lower())
        )
        department = result.scalars().first()
        if department is None:
            department = Department(name=name)
            self.db.add(department)
            await self.db.flush()
            logger.info("Created department %r", name)
        return department

    async def list_departments(self) -> list[Department]:
        result = await self.db.execute(select(Department).order_by(Department.name))
        return list(result.scalars().all())

    # --- Student Methods ---

    async def create_student(self, data: StudentCreate, created_by_id: int) -> Student:
        """Create a student and seed the debt ledger."""
        await self._ensure_unique(data.student_number, data.email)
        department = await self.find_or_create_department(data.department_name)

        student = Student(
            student_number=data.student_number,
            full_name=data.full_name,
            email=data.email,
            phone=data.phone,
            department_id=department.id if department else None,
            batch=data.batch,
            enrollment_status=EnrollmentStatus.ACTIVE.value,
        )
        self.db.add(student)
        await self.db.flush()

        if data.enrollment is not None:
            drafts = ComponentScheduleGenerator().generate(student.id, data.enrollment)
            await self.ledger.upsert_components(drafts)
            total = sum_money(d.amount for d in drafts)
            await self.ledger.seed(student.id, total, created_by_id)
            await self.ledger.recompute_aggregate(student.id, created_by_id)
        else:
            initial_debt = (
                data.initial_debt
                if data.initial_debt is not None
                else settings.default_initial_debt
            )
            total = round_money(initial_debt)
            await self.ledger.seed(student.id, total, created_by_id)

        await self.audit.log(
            action=AuditAction.CREATE,
            entity_type="Student",
            entity_id=student.id,
            entity_identifier=student.student_number,
            user_id=created_by_id,
            new_values={
                "student_number": student.student_number,
                "department_id": student.department_id,
                "batch": student.batch,
                "initial_debt": str(total),
            },
        )

        await self.db.commit()
        logger.info("Student %s created with initial debt %s", student.id, total)
        return await self.get_student_by_id(student.id)

    async def get_student_by_id(self, student_id: int) -> Student:
        """Get student by ID with department loaded."""
        result = await self.db.execute(
            select(Student)
            .where(Student.id == student_id)
            .options(selectinload(Student.department))
            .execution_options(populate_existing=True)
        )
        student = result.scalar_one_or_none()
        if not student:
            raise NotFoundError("Student", student_id)
        return student

    async def find_student(self, email: str | None, student_number: str | None) -> Student | None:
        """Existing student matched by email first, then by student number."""
        if email:
            result = await self.db.execute(
                select(Student).where(func.lower(Student.email) == email.strip().lower())
            )
            student = result.scalars().first()
            if student is not None:
                return student
        if student_number:
            result = await self.db.execute(
                select(Student).where(Student.student_number == student_number.strip())
            )
            return result.scalars().first()
        return None

    async def list_students(
        self,
        enrollment_status: EnrollmentStatus | None = None,
        department_id: int | None = None,
        batch: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[Student], int]:
        """List students with optional filters."""
        query = (
            select(Student)
            .options(selectinload(Student.department))
            .order_by(Student.full_name, Student.id)
        )

        if enrollment_status is not None:
            query = query.where(Student.enrollment_status == enrollment_status.value)
        if department_id is not None:
            query = query.where(Student.department_id == department_id)
        if batch is not None:
            query = query.where(Student.batch == batch)
        if search:
            search_term = f"%{search}%"
            query = query.where(
                or_(
                    Student.full_name.ilike(search_term),
                    Student.student_number.ilike(search_term),
                    Student.email.ilike(search_term),
                )
            )

        # Count total
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.offset((page - 1) * limit).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_student(
        self, student_id: int, data: StudentUpdate, updated_by_id: int
    ) -> Student:
        """Update department, batch or enrollment status."""
        student = await self.get_student_by_id(student_id)
        old_values = {}
        new_values = {}

        if data.department_name is not None:
            department = await self.find_or_create_department(data.department_name)
            if department.id != student.department_id:
                old_values["department_id"] = student.department_id
                student.department_id = department.id
                new_values["department_id"] = department.id

        if data.batch is not None and data.batch != student.batch:
            old_values["batch"] = student.batch
            student.batch = data.batch
            new_values["batch"] = data.batch

        if (
            data.enrollment_status is not None
            and data.enrollment_status.value != student.enrollment_status
        ):
            old_values["enrollment_status"] = student.enrollment_status
            student.enrollment_status = data.enrollment_status.value
            new_values["enrollment_status"] = data.enrollment_status.value

        if new_values:
            student.updated_at = datetime.now(timezone.utc)
            await self.audit.log(
                action=AuditAction.UPDATE,
                entity_type="Student",
                entity_id=student_id,
                entity_identifier=student.student_number,
                user_id=updated_by_id,
                old_values=old_values,
                new_values=new_values,
            )

        await self.db.commit()
        return await self.get_student_by_id(student_id)

    async def delete_student(self, student_id: int, deleted_by_id: int) -> None:
        """
        Delete a student together with the whole ledger.

        Rows go in dependency order: allocations, payment history, components,
        requests, clearance letters, SIS data, debt record, student.
        """
        student = await self.get_student_by_id(student_id)
        student_number = student.student_number

        record_ids = select(DebtRecord.id).where(DebtRecord.student_id == student_id)
        component_ids = select(DebtComponent.id).where(DebtComponent.student_id == student_id)
        payment_ids = select(PaymentHistory.id).where(
            PaymentHistory.debt_record_id.in_(record_ids)
        )

        statements = [
            delete(PaymentAllocation).where(
                or_(
                    PaymentAllocation.component_id.in_(component_ids),
                    PaymentAllocation.payment_id.in_(payment_ids),
                )
            ),
            delete(PaymentHistory).where(PaymentHistory.debt_record_id.in_(record_ids)),
            delete(DebtComponent).where(DebtComponent.student_id == student_id),
            delete(PaymentRequest).where(PaymentRequest.student_id == student_id),
            delete(ClearanceLetter).where(ClearanceLetter.student_id == student_id),
            delete(StudentSisData).where(StudentSisData.student_id == student_id),
            delete(DebtRecord).where(DebtRecord.student_id == student_id),
            delete(Student).where(Student.id == student_id),
        ]
        for statement in statements:
            await self.db.execute(statement.execution_options(synchronize_session=False))
        self.db.expunge(student)

        await self.audit.log(
            action=AuditAction.DELETE,
            entity_type="Student",
            entity_id=student_id,
            entity_identifier=student_number,
            user_id=deleted_by_id,
        )

        await self.db.commit()
        logger.info("Student %s deleted with its ledger", student_id)

    async def _ensure_unique(self, student_number: str, email: str) -> None:
        existing = await self.db.execute(
            select(Student.id).where(func.lower(Student.email) == email.lower())
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError("Student", "email", email)
        existing = await self.db.execute(
            select(Student.id).where(Student.student_number == student_number)
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError("Student", "student_number", student_number)
