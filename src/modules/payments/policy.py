"""Ordering rules applied to payment submissions."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import PolicyBlockedError
from src.modules.debts.models import ComponentType
from src.modules.debts.service import DebtLedgerService
from src.modules.payments.schemas import PolicyDecision

logger = logging.getLogger(__name__)

LIVING_STIPEND_FIRST = (
    "Living stipend must be fully paid before tuition payment is allowed. "
    "You have {count} unpaid living stipend component(s)."
)


class PaymentPolicyGate:
    """Tuition may only be paid once the living stipend is settled."""

    def __init__(self, db: AsyncSession):
        self.ledger = DebtLedgerService(db)

    async def check_submission(
        self, student_id: int, component_type: ComponentType | str | None
    ) -> PolicyDecision:
        """Lump submissions and non-tuition targets always pass."""
        if component_type is None or str(component_type) != ComponentType.TUITION:
            return PolicyDecision(allowed=True)

        blocking = await self.ledger.count_open_components(
            student_id, ComponentType.LIVING_STIPEND
        )
        if blocking:
            return PolicyDecision(
                allowed=False,
                reason=LIVING_STIPEND_FIRST.format(count=blocking),
                blocking_components=blocking,
            )
        return PolicyDecision(allowed=True)

    async def enforce(
        self, student_id: int, component_type: ComponentType | str | None
    ) -> PolicyDecision:
        decision = await self.check_submission(student_id, component_type)
        if not decision.allowed:
            logger.warning(
                "Tuition payment of student %s blocked by %s open living stipend component(s)",
                student_id,
                decision.blocking_components,
            )
            raise PolicyBlockedError(decision.reason, decision.blocking_components)
        return decision
