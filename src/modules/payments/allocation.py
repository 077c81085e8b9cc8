"""Applies a payment to a student's debt components."""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.documents.number_generator import DocumentNumberGenerator, DocumentPrefix
from src.core.exceptions import (
    ExceedsComponentBalanceError,
    ExceedsTotalBalanceError,
    ValidationError,
)
from src.modules.debts.models import ComponentStatus, DebtComponent, DebtRecord
from src.modules.debts.service import DebtLedgerService, lump_sort_key
from src.modules.payments.models import (
    PaymentAllocation,
    PaymentHistory,
    PaymentHistoryStatus,
    PaymentMethod,
)
from src.modules.payments.schemas import AllocationLine, AllocationResult, ComponentTarget
from src.shared.utils.money import ZERO, round_money, sum_money

logger = logging.getLogger(__name__)


class PaymentAllocationEngine:
    """
    Distributes a payment over outstanding components and records it.

    A targeted payment settles exactly the component it names. A lump payment
    walks the outstanding components by priority (living stipend, medical,
    tuition, other), then earliest due date, then id. Students without any
    component rows are paid down on the aggregate balance directly.

    Everything happens in the caller's transaction: rows are flushed, never
    committed.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = DebtLedgerService(db)
        self.audit = AuditService(db)

    async def allocate(
        self,
        student_id: int,
        amount: Decimal,
        target: ComponentTarget | None = None,
        *,
        payment_method: PaymentMethod | str = PaymentMethod.RECEIPT,
        transaction_ref: str | None = None,
        recorded_by_id: int | None = None,
        payment_request_id: int | None = None,
        notes: str | None = None,
    ) -> AllocationResult:
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be positive", field="amount")

        # Lock order: debt record, then components by id
        record = await self.ledger.require_record(student_id, lock=True)

        if target is not None:
            component = await self.ledger.find_open_component(
                student_id,
                target.semester,
                target.academic_year,
                target.component_type,
                lock=True,
            )
            if amount > component.amount:
                raise ExceedsComponentBalanceError(component.id, amount, component.amount)
            plan = [(component, amount)]
        else:
            components = await self.ledger.lock_open_components(student_id)
            if not components and not await self.ledger.has_components(student_id):
                return await self._allocate_legacy(
                    record,
                    amount,
                    payment_method=payment_method,
                    transaction_ref=transaction_ref,
                    recorded_by_id=recorded_by_id,
                    payment_request_id=payment_request_id,
                    notes=notes,
                )
            plan = self.plan_lump(student_id, components, amount)

        payment = await self._record_payment(
            record,
            amount,
            payment_method=payment_method,
            transaction_ref=transaction_ref,
            recorded_by_id=recorded_by_id,
            payment_request_id=payment_request_id,
            notes=notes,
        )

        lines: list[AllocationLine] = []
        for component, share in plan:
            self._apply(component, share)
            self.db.add(
                PaymentAllocation(
                    payment_id=payment.id,
                    component_id=component.id,
                    allocated_amount=share,
                )
            )
            lines.append(
                AllocationLine(
                    component_id=component.id,
                    semester=component.semester,
                    academic_year=component.academic_year,
                    component_type=component.component_type,
                    allocated_amount=share,
                    remaining_amount=component.amount,
                    status=component.status,
                )
            )
        await self.db.flush()

        new_balance = await self.ledger.recompute_aggregate(student_id, recorded_by_id)

        await self.audit.log(
            action=AuditAction.ALLOCATE_PAYMENT,
            entity_type="PaymentHistory",
            entity_id=payment.id,
            entity_identifier=payment.payment_number,
            user_id=recorded_by_id,
            new_values={
                "student_id": student_id,
                "amount": str(amount),
                "allocations": {str(line.component_id): str(line.allocated_amount) for line in lines},
                "new_balance": str(new_balance),
            },
        )
        logger.info(
            "Payment %s of %s applied to %s component(s) of student %s, balance now %s",
            payment.payment_number,
            amount,
            len(lines),
            student_id,
            new_balance,
        )

        return AllocationResult(
            student_id=student_id,
            payment_id=payment.id,
            payment_number=payment.payment_number,
            amount=amount,
            new_balance=new_balance,
            allocations=lines,
        )

    @staticmethod
    def plan_lump(
        student_id: int, components: list[DebtComponent], amount: Decimal
    ) -> list[tuple[DebtComponent, Decimal]]:
        """
        Shares of ``amount`` per component in settlement order.

        Raises ExceedsTotalBalanceError when the amount is larger than the
        sum of what the components still owe.
        """
        outstanding = sum_money(c.amount for c in components)
        if amount > outstanding:
            raise ExceedsTotalBalanceError(student_id, amount, outstanding)

        plan: list[tuple[DebtComponent, Decimal]] = []
        remaining = amount
        for component in sorted(components, key=lump_sort_key):
            if remaining <= 0:
                break
            share = min(component.amount, remaining)
            if share <= 0:
                continue
            plan.append((component, share))
            remaining = round_money(remaining - share)
        return plan

    @staticmethod
    def _apply(component: DebtComponent, share: Decimal) -> None:
        left = round_money(component.amount - share)
        if left <= 0:
            component.amount = ZERO
            component.status = ComponentStatus.PAID.value
        else:
            component.amount = left
            component.status = ComponentStatus.PARTIALLY_PAID.value

    async def _record_payment(
        self,
        record: DebtRecord,
        amount: Decimal,
        *,
        payment_method: PaymentMethod | str,
        transaction_ref: str | None,
        recorded_by_id: int | None,
        payment_request_id: int | None,
        notes: str | None,
    ) -> PaymentHistory:
        payment_number = await DocumentNumberGenerator(self.db).generate(DocumentPrefix.PAYMENT)
        payment = PaymentHistory(
            payment_number=payment_number,
            debt_record_id=record.id,
            payment_request_id=payment_request_id,
            amount=amount,
            payment_method=str(payment_method),
            transaction_ref=transaction_ref,
            status=PaymentHistoryStatus.SUCCESS.value,
            payment_date=datetime.now(timezone.utc),
            notes=notes,
            verified_by_id=recorded_by_id,
        )
        self.db.add(payment)
        await self.db.flush()
        return payment

    async def _allocate_legacy(
        self,
        record: DebtRecord,
        amount: Decimal,
        **payment_fields,
    ) -> AllocationResult:
        """Pays down the aggregate balance of a student who has no components."""
        balance = round_money(record.current_balance)
        if amount > balance:
            raise ExceedsTotalBalanceError(record.student_id, amount, balance)

        payment = await self._record_payment(record, amount, **payment_fields)
        record.current_balance = round_money(balance - amount)
        record.updated_by_id = payment_fields.get("recorded_by_id")
        record.last_updated = datetime.now(timezone.utc)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.ALLOCATE_PAYMENT,
            entity_type="PaymentHistory",
            entity_id=payment.id,
            entity_identifier=payment.payment_number,
            user_id=payment_fields.get("recorded_by_id"),
            old_values={"current_balance": str(balance)},
            new_values={
                "student_id": record.student_id,
                "amount": str(amount),
                "new_balance": str(record.current_balance),
            },
        )
        logger.info(
            "Payment %s of %s applied to aggregate balance of student %s (no components), "
            "balance now %s",
            payment.payment_number,
            amount,
            record.student_id,
            record.current_balance,
        )

        return AllocationResult(
            student_id=record.student_id,
            payment_id=payment.id,
            payment_number=payment.payment_number,
            amount=amount,
            new_balance=record.current_balance,
            legacy_mode=True,
        )
