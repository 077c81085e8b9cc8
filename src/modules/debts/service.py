"""Service for Debts module: the per-student debt ledger."""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.exceptions import NotFoundError
from src.modules.debts.models import (
    OUTSTANDING_STATUSES,
    ComponentStatus,
    ComponentType,
    DebtComponent,
    DebtRecord,
)
from src.modules.debts.schemas import (
    ComponentDraft,
    DebtComponentResponse,
    DebtSummary,
    PaymentHistoryEntry,
    RecentRequestEntry,
)
from src.modules.payments.models import PaymentAllocation, PaymentHistory, PaymentRequest
from src.modules.students.models import Student
from src.shared.utils.money import ZERO, round_money, sum_money

logger = logging.getLogger(__name__)

RECENT_REQUESTS_LIMIT = 5


def lump_sort_key(component: DebtComponent) -> tuple:
    """Order in which a lump payment settles components."""
    return (
        component.priority,
        component.due_date is None,
        component.due_date or datetime.max.date(),
        component.id,
    )


class DebtLedgerService:
    """
    Aggregate balance plus per-component ledger of each student.

    Methods never commit; callers own the transaction so that ledger changes
    land together with whatever triggered them.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    # --- Records ---

    async def get_record(self, student_id: int, lock: bool = False) -> DebtRecord | None:
        query = select(DebtRecord).where(DebtRecord.student_id == student_id)
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_record(self, student_id: int, lock: bool = False) -> DebtRecord:
        record = await self.get_record(student_id, lock=lock)
        if record is None:
            raise NotFoundError("Debt record for student", student_id)
        return record

    async def seed(
        self,
        student_id: int,
        total_amount: Decimal,
        seeded_by_id: int | None = None,
    ) -> DebtRecord:
        """
        Set initial amount and current balance to ``total_amount``.

        An existing record is overwritten in place; re-importing a student
        restarts the ledger from the SIS total.
        """
        total_amount = round_money(total_amount)
        record = await self.get_record(student_id, lock=True)
        old_values = None
        if record is None:
            record = DebtRecord(
                student_id=student_id,
                initial_amount=total_amount,
                current_balance=total_amount,
                updated_by_id=seeded_by_id,
            )
            self.db.add(record)
        else:
            old_values = {
                "initial_amount": str(record.initial_amount),
                "current_balance": str(record.current_balance),
            }
            record.initial_amount = total_amount
            record.current_balance = total_amount
            record.updated_by_id = seeded_by_id
            record.last_updated = datetime.now(timezone.utc)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.SEED_LEDGER,
            entity_type="DebtRecord",
            entity_id=record.id,
            user_id=seeded_by_id,
            old_values=old_values,
            new_values={"student_id": student_id, "initial_amount": str(total_amount)},
        )
        logger.info("Seeded ledger of student %s with %s", student_id, total_amount)
        return record

    # --- Balances ---

    async def _outstanding_total(self, student_id: int) -> tuple[int, Decimal]:
        """Number of component rows (any status) and sum of outstanding amounts."""
        result = await self.db.execute(
            select(
                func.count(DebtComponent.id),
                func.coalesce(
                    func.sum(
                        case(
                            (DebtComponent.status.in_(OUTSTANDING_STATUSES), DebtComponent.amount),
                            else_=0,
                        )
                    ),
                    0,
                ),
            ).where(DebtComponent.student_id == student_id)
        )
        count, total = result.one()
        return count, round_money(total or 0)

    async def has_components(self, student_id: int) -> bool:
        count, _ = await self._outstanding_total(student_id)
        return count > 0

    async def get_balance(self, student_id: int) -> Decimal:
        """
        Current balance of a student.

        Computed from outstanding components when the student has any,
        otherwise the stored aggregate is authoritative (legacy mode).
        """
        count, total = await self._outstanding_total(student_id)
        if count:
            return total
        record = await self.get_record(student_id)
        if record is None:
            raise NotFoundError("Debt record for student", student_id)
        return round_money(record.current_balance)

    async def recompute_aggregate(
        self, student_id: int, updated_by_id: int | None = None
    ) -> Decimal | None:
        """
        Write the sum of outstanding component amounts to ``current_balance``.

        Students without components keep their stored balance. Returns the
        balance now on the record, or None when no record exists.
        """
        record = await self.get_record(student_id)
        if record is None:
            return None
        count, total = await self._outstanding_total(student_id)
        if count == 0:
            return record.current_balance
        if record.current_balance != total:
            logger.debug(
                "Balance of student %s recomputed: %s -> %s",
                student_id,
                record.current_balance,
                total,
            )
        record.current_balance = total
        if updated_by_id is not None:
            record.updated_by_id = updated_by_id
        record.last_updated = datetime.now(timezone.utc)
        await self.db.flush()
        return total

    # --- Components ---

    async def upsert_components(self, drafts: Sequence[ComponentDraft]) -> list[DebtComponent]:
        """
        Persist generated components, keyed by (student, semester, type).

        Existing rows are overwritten with the new amounts and go back to
        UNPAID; running the same schedule twice leaves one row per key.
        """
        if not drafts:
            return []

        student_ids = {draft.student_id for draft in drafts}
        result = await self.db.execute(
            select(DebtComponent)
            .where(DebtComponent.student_id.in_(student_ids))
            .with_for_update()
        )
        existing = {
            (c.student_id, c.semester, c.component_type): c for c in result.scalars().all()
        }

        components: list[DebtComponent] = []
        for draft in drafts:
            amount = round_money(draft.amount)
            key = (draft.student_id, draft.semester, draft.component_type.value)
            component = existing.get(key)
            if component is None:
                component = DebtComponent(
                    student_id=draft.student_id,
                    semester=draft.semester,
                    component_type=draft.component_type.value,
                )
                self.db.add(component)
                existing[key] = component
            component.academic_year = draft.academic_year
            component.amount = amount
            component.original_amount = amount
            component.status = ComponentStatus.UNPAID.value
            component.description = draft.description
            component.due_date = draft.due_date
            components.append(component)

        await self.db.flush()
        return components

    async def remove_stale_components(
        self, student_id: int, drafts: Sequence[ComponentDraft]
    ) -> int:
        """
        Delete outstanding components a regenerated schedule no longer has.

        Components that already carry payment allocations are kept.
        Returns the number of rows removed.
        """
        keep = {(draft.semester, draft.component_type.value) for draft in drafts}
        result = await self.db.execute(
            select(DebtComponent)
            .where(
                DebtComponent.student_id == student_id,
                DebtComponent.status.in_(OUTSTANDING_STATUSES),
                DebtComponent.id.not_in(select(PaymentAllocation.component_id)),
            )
            .order_by(DebtComponent.id)
            .with_for_update()
        )
        stale = [
            component
            for component in result.scalars().all()
            if (component.semester, component.component_type) not in keep
        ]
        for component in stale:
            await self.db.delete(component)
        if stale:
            await self.db.flush()
            logger.info(
                "Removed %s stale component(s) of student %s", len(stale), student_id
            )
        return len(stale)

    async def list_components(self, student_id: int) -> list[DebtComponent]:
        result = await self.db.execute(
            select(DebtComponent)
            .where(DebtComponent.student_id == student_id)
            .order_by(
                DebtComponent.academic_year,
                DebtComponent.semester,
                DebtComponent.component_type,
                DebtComponent.id,
            )
        )
        return list(result.scalars().all())

    async def list_unpaid_components(
        self,
        student_id: int,
        component_type: ComponentType | str | None = None,
    ) -> list[DebtComponent]:
        """Outstanding components, earliest due first."""
        query = select(DebtComponent).where(
            DebtComponent.student_id == student_id,
            DebtComponent.status.in_(OUTSTANDING_STATUSES),
        )
        if component_type:
            query = query.where(DebtComponent.component_type == str(component_type))
        query = query.order_by(
            DebtComponent.due_date.is_(None),
            DebtComponent.due_date,
            DebtComponent.id,
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_open_component(
        self,
        student_id: int,
        semester: str,
        academic_year: str,
        component_type: ComponentType | str,
        lock: bool = False,
    ) -> DebtComponent:
        """The outstanding component a targeted payment names, or NotFoundError."""
        query = select(DebtComponent).where(
            DebtComponent.student_id == student_id,
            DebtComponent.semester == semester,
            DebtComponent.academic_year == academic_year,
            DebtComponent.component_type == str(component_type),
            DebtComponent.status.in_(OUTSTANDING_STATUSES),
        )
        if lock:
            query = query.with_for_update()
        component = (await self.db.execute(query)).scalar_one_or_none()
        if component is None:
            raise NotFoundError(
                f"Unpaid {component_type} component for {semester} ({academic_year})"
            )
        return component

    async def lock_open_components(self, student_id: int) -> list[DebtComponent]:
        """Outstanding components of a student locked in id order."""
        result = await self.db.execute(
            select(DebtComponent)
            .where(
                DebtComponent.student_id == student_id,
                DebtComponent.status.in_(OUTSTANDING_STATUSES),
            )
            .order_by(DebtComponent.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def count_open_components(
        self, student_id: int, component_type: ComponentType | str
    ) -> int:
        result = await self.db.execute(
            select(func.count(DebtComponent.id)).where(
                DebtComponent.student_id == student_id,
                DebtComponent.component_type == str(component_type),
                DebtComponent.status.in_(OUTSTANDING_STATUSES),
            )
        )
        return result.scalar() or 0

    # --- Summary ---

    async def get_summary(self, student_id: int) -> DebtSummary:
        """Balance, components, payments and recent requests of a student."""
        student = await self.db.get(Student, student_id)
        if student is None:
            raise NotFoundError("Student", student_id)

        record = await self.get_record(student_id)
        components = await self.list_components(student_id)
        unpaid = [c for c in components if c.is_outstanding]

        totals = {component_type: [] for component_type in ComponentType}
        for component in components:
            totals[ComponentType(component.component_type)].append(component.original_amount)

        if components:
            current_balance = sum_money(c.amount for c in unpaid)
        elif record is not None:
            current_balance = round_money(record.current_balance)
        else:
            current_balance = ZERO
        initial_amount = round_money(record.initial_amount) if record else ZERO

        payments: list[PaymentHistory] = []
        if record is not None:
            result = await self.db.execute(
                select(PaymentHistory)
                .where(PaymentHistory.debt_record_id == record.id)
                .order_by(PaymentHistory.payment_date.desc(), PaymentHistory.id.desc())
            )
            payments = list(result.scalars().all())

        result = await self.db.execute(
            select(PaymentRequest)
            .where(PaymentRequest.student_id == student_id)
            .order_by(PaymentRequest.requested_at.desc(), PaymentRequest.id.desc())
            .limit(RECENT_REQUESTS_LIMIT)
        )
        recent_requests = list(result.scalars().all())

        due_dates = [c.due_date for c in unpaid if c.due_date is not None]
        history = [PaymentHistoryEntry.model_validate(p) for p in payments]

        return DebtSummary(
            student_id=student_id,
            debt_record_id=record.id if record else None,
            initial_amount=initial_amount,
            current_balance=current_balance,
            total_paid=round_money(initial_amount - current_balance) if record else ZERO,
            living_stipend_total=sum_money(totals[ComponentType.LIVING_STIPEND]),
            tuition_total=sum_money(totals[ComponentType.TUITION]),
            medical_total=sum_money(totals[ComponentType.MEDICAL]),
            other_total=sum_money(totals[ComponentType.OTHER]),
            next_due_date=min(due_dates) if due_dates else None,
            last_updated=record.last_updated if record else None,
            updated_by_id=record.updated_by_id if record else None,
            legacy_mode=not components,
            components=[DebtComponentResponse.model_validate(c) for c in components],
            unpaid_components=[DebtComponentResponse.model_validate(c) for c in unpaid],
            payment_count=len(history),
            last_payment=history[0] if history else None,
            payment_history=history,
            recent_requests=[RecentRequestEntry.model_validate(r) for r in recent_requests],
        )
