"""Service for dashboard summary (admin main page)."""

import logging
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.modules.dashboard.schemas import StudentDebtRow
from src.modules.debts.models import OUTSTANDING_STATUSES, DebtComponent, DebtRecord
from src.modules.payments.models import (
    PaymentHistory,
    PaymentHistoryStatus,
    PaymentRequest,
    PaymentRequestStatus,
)
from src.modules.students.models import EnrollmentStatus, Student
from src.shared.utils.money import round_money

logger = logging.getLogger(__name__)


def _money(value) -> Decimal:
    return round_money(Decimal(str(value or 0)))


def component_totals():
    """Per-student original and outstanding component amounts."""
    return (
        select(
            DebtComponent.student_id.label("student_id"),
            func.sum(DebtComponent.original_amount).label("total_amount"),
            func.sum(
                case(
                    (DebtComponent.status.in_(OUTSTANDING_STATUSES), DebtComponent.amount),
                    else_=0,
                )
            ).label("remaining"),
        )
        .group_by(DebtComponent.student_id)
        .subquery()
    )


class DashboardService:
    """Aggregates ledger-wide figures for the admin dashboard."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_summary(self) -> dict:
        """
        Build dashboard summary.

        Outstanding debt is the open component remainder of every student
        with components plus the stored balance of students in legacy mode.
        """
        total_collections = await self._get_total_collections()
        component_debt, legacy_debt = await self._get_outstanding_debt()
        pending_requests_count = await self._count(
            select(func.count(PaymentRequest.id)).where(
                PaymentRequest.status == PaymentRequestStatus.PENDING.value
            )
        )
        active_students_count = await self._count(
            select(func.count(Student.id)).where(
                Student.enrollment_status == EnrollmentStatus.ACTIVE.value
            )
        )
        students_with_debt_count = await self._count_students_with_debt()

        logger.debug(
            "Dashboard: components %s, legacy %s, pending %s",
            component_debt,
            legacy_debt,
            pending_requests_count,
        )
        return {
            "total_collections": total_collections,
            "outstanding_debt": round_money(component_debt + legacy_debt),
            "pending_requests_count": pending_requests_count,
            "active_students_count": active_students_count,
            "students_with_debt_count": students_with_debt_count,
        }

    async def list_student_debts(
        self,
        enrollment_status: EnrollmentStatus | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[StudentDebtRow], int]:
        """Initial debt against the live balance per student, newest first."""
        components = component_totals()
        query = (
            select(
                Student,
                DebtRecord.initial_amount,
                DebtRecord.current_balance,
                components.c.total_amount,
                components.c.remaining,
            )
            .outerjoin(DebtRecord, DebtRecord.student_id == Student.id)
            .outerjoin(components, components.c.student_id == Student.id)
            .options(selectinload(Student.department))
            .order_by(Student.created_at.desc(), Student.id.desc())
        )
        count_query = select(func.count(Student.id))
        if enrollment_status is not None:
            query = query.where(Student.enrollment_status == enrollment_status.value)
            count_query = count_query.where(
                Student.enrollment_status == enrollment_status.value
            )
        total = await self._count(count_query)

        result = await self.db.execute(query.offset((page - 1) * limit).limit(limit))
        rows = []
        for student, initial_amount, stored_balance, component_total, remaining in result.all():
            legacy_mode = remaining is None
            rows.append(
                StudentDebtRow(
                    student_id=student.id,
                    student_number=student.student_number,
                    full_name=student.full_name,
                    email=student.email,
                    department_name=student.department_name,
                    batch=student.batch,
                    enrollment_status=student.enrollment_status,
                    total_debt=_money(
                        initial_amount if initial_amount is not None else component_total
                    ),
                    current_balance=_money(stored_balance if legacy_mode else remaining),
                    legacy_mode=legacy_mode,
                )
            )
        return rows, total

    async def _get_total_collections(self) -> Decimal:
        result = await self.db.execute(
            select(func.coalesce(func.sum(PaymentHistory.amount), 0)).where(
                PaymentHistory.status == PaymentHistoryStatus.SUCCESS.value
            )
        )
        return _money(result.scalar())

    async def _get_outstanding_debt(self) -> tuple[Decimal, Decimal]:
        """(open component remainder, legacy record balances)."""
        components = component_totals()
        component_result = await self.db.execute(
            select(func.coalesce(func.sum(components.c.remaining), 0))
        )
        legacy_result = await self.db.execute(
            select(func.coalesce(func.sum(DebtRecord.current_balance), 0))
            .select_from(DebtRecord)
            .outerjoin(components, components.c.student_id == DebtRecord.student_id)
            .where(components.c.student_id.is_(None))
        )
        return _money(component_result.scalar()), _money(legacy_result.scalar())

    async def _count_students_with_debt(self) -> int:
        components = component_totals()
        with_components = await self._count(
            select(func.count()).select_from(components).where(components.c.remaining > 0)
        )
        legacy = await self._count(
            select(func.count(DebtRecord.id))
            .select_from(DebtRecord)
            .outerjoin(components, components.c.student_id == DebtRecord.student_id)
            .where(components.c.student_id.is_(None), DebtRecord.current_balance > 0)
        )
        return with_components + legacy

    async def _count(self, query) -> int:
        result = await self.db.execute(query)
        return int(result.scalar() or 0)
