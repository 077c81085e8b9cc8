"""Tests for the payment policy gate."""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import PolicyBlockedError
from src.modules.debts.models import ComponentType
from src.modules.payments.allocation import PaymentAllocationEngine
from src.modules.payments.policy import PaymentPolicyGate


class TestPaymentPolicyGate:
    """Tuition is blocked while living stipend components are open."""

    async def test_tuition_blocked_by_unpaid_living_stipend(
        self, db_session: AsyncSession, make_ledger
    ):
        student = await make_ledger(
            [
                (ComponentType.LIVING_STIPEND, "500.00", "2024-FALL"),
                (ComponentType.LIVING_STIPEND, "500.00", "2024-SPRING"),
                (ComponentType.TUITION, "1000.00"),
            ]
        )
        decision = await PaymentPolicyGate(db_session).check_submission(
            student.id, ComponentType.TUITION
        )

        assert decision.allowed is False
        assert decision.blocking_components == 2
        assert "2 unpaid living stipend component(s)" in decision.reason

    async def test_partially_paid_stipend_still_blocks(
        self, db_session: AsyncSession, make_ledger
    ):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        await PaymentAllocationEngine(db_session).allocate(student.id, Decimal("499.99"))

        decision = await PaymentPolicyGate(db_session).check_submission(
            student.id, ComponentType.TUITION
        )
        assert decision.allowed is False

    async def test_tuition_allowed_once_stipend_paid(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        await PaymentAllocationEngine(db_session).allocate(student.id, Decimal("500.00"))

        decision = await PaymentPolicyGate(db_session).check_submission(
            student.id, ComponentType.TUITION
        )
        assert decision.allowed is True
        assert decision.reason is None

    @pytest.mark.parametrize(
        "component_type",
        [None, ComponentType.LIVING_STIPEND, ComponentType.MEDICAL, ComponentType.OTHER],
    )
    async def test_other_submissions_pass(
        self, db_session: AsyncSession, make_ledger, component_type
    ):
        """Lump payments and non-tuition targets are never blocked."""
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        decision = await PaymentPolicyGate(db_session).check_submission(
            student.id, component_type
        )
        assert decision.allowed is True

    async def test_enforce_raises(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        with pytest.raises(PolicyBlockedError) as exc_info:
            await PaymentPolicyGate(db_session).enforce(student.id, ComponentType.TUITION)

        assert exc_info.value.status_code == 403
        assert exc_info.value.details["blocking_components"] == 1
