"""Tests for the payment allocation engine."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import (
    ExceedsComponentBalanceError,
    ExceedsTotalBalanceError,
    NotFoundError,
    ValidationError,
)
from src.modules.debts.models import ComponentStatus, ComponentType
from src.modules.debts.service import DebtLedgerService
from src.modules.payments.allocation import PaymentAllocationEngine
from src.modules.payments.models import PaymentAllocation, PaymentHistory
from src.modules.payments.schemas import ComponentTarget


async def _components_by_type(db_session: AsyncSession, student_id: int) -> dict:
    components = await DebtLedgerService(db_session).list_components(student_id)
    return {c.component_type: c for c in components}


async def _count(db_session: AsyncSession, model) -> int:
    return await db_session.scalar(select(func.count()).select_from(model))


class TestLumpAllocation:
    """Lump payments settle components by priority."""

    async def test_living_stipend_settled_before_tuition(
        self, db_session: AsyncSession, make_ledger
    ):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        engine = PaymentAllocationEngine(db_session)

        result = await engine.allocate(student.id, Decimal("700.00"))
        await db_session.commit()

        components = await _components_by_type(db_session, student.id)
        living = components[ComponentType.LIVING_STIPEND.value]
        tuition = components[ComponentType.TUITION.value]
        assert living.status == ComponentStatus.PAID.value
        assert living.amount == Decimal("0.00")
        assert tuition.status == ComponentStatus.PARTIALLY_PAID.value
        assert tuition.amount == Decimal("800.00")
        assert result.new_balance == Decimal("800.00")
        assert [line.allocated_amount for line in result.allocations] == [
            Decimal("500.00"),
            Decimal("200.00"),
        ]

    async def test_priority_order_across_types(self, db_session: AsyncSession, make_ledger):
        """Living stipend, then medical, then tuition, then other."""
        student = await make_ledger(
            [
                (ComponentType.OTHER, "100.00"),
                (ComponentType.TUITION, "100.00"),
                (ComponentType.MEDICAL, "100.00"),
                (ComponentType.LIVING_STIPEND, "100.00"),
            ]
        )
        result = await PaymentAllocationEngine(db_session).allocate(student.id, Decimal("250.00"))

        assert [line.component_type for line in result.allocations] == [
            ComponentType.LIVING_STIPEND.value,
            ComponentType.MEDICAL.value,
            ComponentType.TUITION.value,
        ]
        assert result.allocations[-1].allocated_amount == Decimal("50.00")

    async def test_earlier_due_date_first_within_type(
        self, db_session: AsyncSession, make_ledger
    ):
        student = await make_ledger(
            [
                (ComponentType.TUITION, "300.00", "2024-FALL", date(2024, 10, 15)),
                (ComponentType.TUITION, "300.00", "2024-SPRING", date(2024, 3, 15)),
            ]
        )
        result = await PaymentAllocationEngine(db_session).allocate(student.id, Decimal("300.00"))

        assert len(result.allocations) == 1
        assert result.allocations[0].semester == "2024-SPRING"
        assert result.allocations[0].status == ComponentStatus.PAID.value

    async def test_amount_above_total_rejected(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        student_id = student.id
        with pytest.raises(ExceedsTotalBalanceError):
            await PaymentAllocationEngine(db_session).allocate(student_id, Decimal("1500.01"))
        await db_session.rollback()

        assert await DebtLedgerService(db_session).get_balance(student_id) == Decimal("1500.00")
        assert await _count(db_session, PaymentHistory) == 0

    async def test_exact_total_clears_everything(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        result = await PaymentAllocationEngine(db_session).allocate(student.id, Decimal("1500"))

        assert result.new_balance == Decimal("0.00")
        assert {line.status for line in result.allocations} == {ComponentStatus.PAID.value}

    async def test_balance_conservation(self, db_session: AsyncSession, make_ledger):
        """Initial minus current always equals what was allocated."""
        student = await make_ledger(
            [
                (ComponentType.LIVING_STIPEND, "15000.00"),
                (ComponentType.TUITION, "1500.00"),
                (ComponentType.MEDICAL, "500.00"),
            ]
        )
        engine = PaymentAllocationEngine(db_session)
        for amount in ("333.33", "14000", "1666.67", "0.01"):
            await engine.allocate(student.id, Decimal(amount))
        await db_session.commit()

        record = await DebtLedgerService(db_session).require_record(student.id)
        allocated = await db_session.scalar(
            select(func.sum(PaymentAllocation.allocated_amount))
        )
        assert abs(
            (record.initial_amount - record.current_balance) - Decimal(str(allocated))
        ) <= Decimal("0.01")
        assert record.current_balance == Decimal("999.99")

    async def test_non_positive_amount(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger([(ComponentType.TUITION, "100.00")])
        with pytest.raises(ValidationError):
            await PaymentAllocationEngine(db_session).allocate(student.id, Decimal("0.004"))


class TestTargetedAllocation:
    """Targeted payments settle only the named component."""

    async def test_exact_remaining_pays_component(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        target = ComponentTarget(
            semester="2024-FALL", academic_year="2024/2025", component_type=ComponentType.TUITION
        )
        result = await PaymentAllocationEngine(db_session).allocate(
            student.id, Decimal("1000.00"), target
        )

        components = await _components_by_type(db_session, student.id)
        assert components[ComponentType.TUITION.value].status == ComponentStatus.PAID.value
        assert components[ComponentType.TUITION.value].amount == Decimal("0.00")
        assert components[ComponentType.LIVING_STIPEND.value].amount == Decimal("500.00")
        assert result.new_balance == Decimal("500.00")

    async def test_one_cent_over_is_rejected(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger([(ComponentType.TUITION, "1000.00")])
        student_id = student.id
        target = ComponentTarget(
            semester="2024-FALL", academic_year="2024/2025", component_type=ComponentType.TUITION
        )

        with pytest.raises(ExceedsComponentBalanceError) as exc_info:
            await PaymentAllocationEngine(db_session).allocate(
                student_id, Decimal("1000.01"), target
            )
        await db_session.rollback()

        assert exc_info.value.details["remaining"] == "1000.00"
        tuition = (await _components_by_type(db_session, student_id))[ComponentType.TUITION.value]
        assert tuition.amount == Decimal("1000.00")
        assert tuition.status == ComponentStatus.UNPAID.value
        assert await _count(db_session, PaymentAllocation) == 0

    async def test_partial_targeted_payment(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger([(ComponentType.MEDICAL, "500.00")])
        target = ComponentTarget(
            semester="2024-FALL", academic_year="2024/2025", component_type=ComponentType.MEDICAL
        )
        result = await PaymentAllocationEngine(db_session).allocate(
            student.id, Decimal("125.50"), target
        )

        line = result.allocations[0]
        assert line.status == ComponentStatus.PARTIALLY_PAID.value
        assert line.remaining_amount == Decimal("374.50")

    async def test_paid_component_cannot_be_targeted(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger([(ComponentType.MEDICAL, "500.00")])
        target = ComponentTarget(
            semester="2024-FALL", academic_year="2024/2025", component_type=ComponentType.MEDICAL
        )
        engine = PaymentAllocationEngine(db_session)
        await engine.allocate(student.id, Decimal("500.00"), target)

        with pytest.raises(NotFoundError):
            await engine.allocate(student.id, Decimal("1.00"), target)


class TestLegacyAllocation:
    """Students without components are paid down on the aggregate."""

    async def test_legacy_payment(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(balance="1000.00")

        result = await PaymentAllocationEngine(db_session).allocate(student.id, Decimal("400.00"))
        await db_session.commit()

        assert result.legacy_mode is True
        assert result.new_balance == Decimal("600.00")
        assert result.allocations == []
        assert await _count(db_session, PaymentHistory) == 1
        assert await _count(db_session, PaymentAllocation) == 0
        assert await DebtLedgerService(db_session).get_balance(student.id) == Decimal("600.00")

    async def test_legacy_overpayment(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(balance="1000.00")
        with pytest.raises(ExceedsTotalBalanceError):
            await PaymentAllocationEngine(db_session).allocate(student.id, Decimal("1000.01"))

    async def test_fully_paid_components_are_not_legacy(
        self, db_session: AsyncSession, make_ledger
    ):
        """Once every component is paid, further lump payments exceed the zero balance."""
        student = await make_ledger([(ComponentType.TUITION, "100.00")])
        engine = PaymentAllocationEngine(db_session)
        await engine.allocate(student.id, Decimal("100.00"))

        with pytest.raises(ExceedsTotalBalanceError):
            await engine.allocate(student.id, Decimal("1.00"))

    async def test_student_without_record(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await PaymentAllocationEngine(db_session).allocate(12345, Decimal("10"))
