"""Service for Clearance module."""

import logging

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.documents.number_generator import DocumentNumberGenerator, DocumentPrefix
from src.core.exceptions import NotFoundError, OutstandingBalanceError
from src.modules.clearance.models import ClearanceLetter
from src.modules.clearance.schemas import ClearanceEligibility, EligibleStudent
from src.modules.debts.models import OUTSTANDING_STATUSES, DebtComponent, DebtRecord
from src.modules.debts.service import DebtLedgerService
from src.modules.students.models import EnrollmentStatus, Student
from src.shared.utils.money import round_money

logger = logging.getLogger(__name__)


class ClearanceService:
    """Financial clearance: a student may be cleared once the balance is zero."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.ledger = DebtLedgerService(db)

    async def is_eligible(self, student_id: int) -> bool:
        balance = await self.ledger.get_balance(student_id)
        return balance <= 0

    async def get_eligibility(self, student_id: int) -> ClearanceEligibility:
        balance = await self.ledger.get_balance(student_id)
        return ClearanceEligibility(
            student_id=student_id,
            eligible=balance <= 0,
            current_balance=balance,
        )

    async def issue(
        self, student_id: int, issued_by_id: int, notes: str | None = None
    ) -> ClearanceLetter:
        """
        Issue a clearance letter.

        The balance is read again under the debt record lock, so a letter is
        never issued against a payment that was undone in the meantime.
        """
        student = await self.db.get(Student, student_id)
        if student is None:
            raise NotFoundError("Student", student_id)

        record = await self.ledger.get_record(student_id, lock=True)
        balance = await self.ledger.get_balance(student_id)
        if balance > 0:
            logger.warning(
                "Clearance for student %s refused, outstanding balance %s", student_id, balance
            )
            raise OutstandingBalanceError(student_id, balance)

        letter_number = await DocumentNumberGenerator(self.db).generate(
            DocumentPrefix.CLEARANCE_LETTER
        )
        letter = ClearanceLetter(
            letter_number=letter_number,
            student_id=student_id,
            debt_record_id=record.id if record else None,
            issued_by_id=issued_by_id,
            notes=notes,
        )
        self.db.add(letter)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.ISSUE_CLEARANCE,
            entity_type="ClearanceLetter",
            entity_id=letter.id,
            entity_identifier=letter_number,
            user_id=issued_by_id,
            new_values={"student_id": student_id},
            comment=notes,
        )

        await self.db.commit()
        logger.info("Clearance letter %s issued for student %s", letter_number, student_id)
        return await self.get_letter(letter.id)

    async def get_letter(self, letter_id: int) -> ClearanceLetter:
        result = await self.db.execute(
            select(ClearanceLetter).where(ClearanceLetter.id == letter_id)
        )
        letter = result.scalar_one_or_none()
        if letter is None:
            raise NotFoundError("Clearance letter", letter_id)
        return letter

    async def get_latest_letter(self, student_id: int) -> ClearanceLetter | None:
        result = await self.db.execute(
            select(ClearanceLetter)
            .where(ClearanceLetter.student_id == student_id)
            .order_by(ClearanceLetter.issued_at.desc(), ClearanceLetter.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_eligible(self) -> list[EligibleStudent]:
        """Active students with a ledger whose balance is zero, by name."""
        outstanding = (
            select(
                DebtComponent.student_id.label("student_id"),
                func.count(DebtComponent.id).label("component_count"),
                func.sum(
                    case(
                        (DebtComponent.status.in_(OUTSTANDING_STATUSES), DebtComponent.amount),
                        else_=0,
                    )
                ).label("open_amount"),
            )
            .group_by(DebtComponent.student_id)
            .subquery()
        )
        query = (
            select(
                Student,
                DebtRecord.current_balance,
                outstanding.c.component_count,
                outstanding.c.open_amount,
            )
            .join(DebtRecord, DebtRecord.student_id == Student.id)
            .outerjoin(outstanding, outstanding.c.student_id == Student.id)
            .where(Student.enrollment_status == EnrollmentStatus.ACTIVE.value)
            .options(selectinload(Student.department))
            .order_by(Student.full_name, Student.id)
        )
        result = await self.db.execute(query)

        eligible: list[EligibleStudent] = []
        for student, stored_balance, component_count, open_amount in result.all():
            if component_count:
                balance = round_money(open_amount or 0)
            else:
                balance = round_money(stored_balance)
            if balance > 0:
                continue
            eligible.append(
                EligibleStudent(
                    student_id=student.id,
                    student_number=student.student_number,
                    full_name=student.full_name,
                    email=student.email,
                    department_name=student.department_name,
                    remaining_balance=balance,
                )
            )
        return eligible
