"""Service for Payments module: the payment request workflow."""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.documents.number_generator import DocumentNumberGenerator, DocumentPrefix
from src.core.exceptions import (
    AppException,
    ConcurrencyConflictError,
    ExceedsComponentBalanceError,
    ExceedsTotalBalanceError,
    NotFoundError,
    RequestNotPendingError,
    ValidationError,
)
from src.modules.debts.service import DebtLedgerService
from src.modules.payments.allocation import PaymentAllocationEngine
from src.modules.payments.models import PaymentRequest, PaymentRequestStatus
from src.modules.payments.policy import PaymentPolicyGate
from src.modules.payments.schemas import (
    AllocationResult,
    ComponentTarget,
    PaymentRequestCreate,
    PaymentRequestFilters,
)
from src.modules.students.models import Student
from src.shared.utils.money import round_money

logger = logging.getLogger(__name__)

VERIFICATION_NOTE = "Verified by finance officer"

# Requests leave PENDING exactly once; terminal states have no way out
ALLOWED_TRANSITIONS: dict[PaymentRequestStatus, frozenset[PaymentRequestStatus]] = {
    PaymentRequestStatus.PENDING: frozenset(
        {PaymentRequestStatus.VERIFIED, PaymentRequestStatus.REJECTED}
    ),
    PaymentRequestStatus.VERIFIED: frozenset(),
    PaymentRequestStatus.REJECTED: frozenset(),
}


def ensure_transition(request: PaymentRequest, target: PaymentRequestStatus) -> None:
    """Raise RequestNotPendingError unless ``request`` may move to ``target``."""
    current = PaymentRequestStatus(request.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise RequestNotPendingError(request.id, request.status)


def request_target(request: PaymentRequest) -> ComponentTarget | None:
    if not request.has_target:
        return None
    return ComponentTarget(
        semester=request.semester,
        academic_year=request.academic_year,
        component_type=request.component_type,
    )


class PaymentRequestService:
    """Submission, verification and rejection of student payment requests."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.ledger = DebtLedgerService(db)
        self.policy = PaymentPolicyGate(db)

    # --- Submission ---

    async def submit(
        self,
        student_id: int,
        data: PaymentRequestCreate,
        submitted_by_id: int | None = None,
    ) -> PaymentRequest:
        """
        Create a PENDING request after the policy and balance checks.

        The ledger is not touched until finance verifies the request.
        """
        student = await self.db.get(Student, student_id)
        if student is None:
            raise NotFoundError("Student", student_id)

        amount = round_money(data.amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be positive", field="amount")

        await self.policy.enforce(student_id, data.component_type)

        target = data.target
        if target is not None:
            component = await self.ledger.find_open_component(
                student_id, target.semester, target.academic_year, target.component_type
            )
            if amount > component.amount:
                logger.warning(
                    "Request of student %s for %s exceeds component %s (%s left)",
                    student_id,
                    amount,
                    component.id,
                    component.amount,
                )
                raise ExceedsComponentBalanceError(component.id, amount, component.amount)
        else:
            balance = await self.ledger.get_balance(student_id)
            if amount > balance:
                logger.warning(
                    "Lump request of student %s for %s exceeds balance %s",
                    student_id,
                    amount,
                    balance,
                )
                raise ExceedsTotalBalanceError(student_id, amount, balance)

        request_number = await DocumentNumberGenerator(self.db).generate(
            DocumentPrefix.PAYMENT_REQUEST
        )
        request = PaymentRequest(
            request_number=request_number,
            student_id=student_id,
            requested_amount=amount,
            payment_method=data.payment_method.value,
            transaction_ref=data.transaction_ref,
            receipt_url=data.receipt_url,
            semester=target.semester if target else None,
            academic_year=target.academic_year if target else None,
            component_type=target.component_type.value if target else None,
            status=PaymentRequestStatus.PENDING.value,
            requested_at=datetime.now(timezone.utc),
        )
        self.db.add(request)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.SUBMIT_PAYMENT_REQUEST,
            entity_type="PaymentRequest",
            entity_id=request.id,
            entity_identifier=request_number,
            user_id=submitted_by_id,
            new_values={
                "amount": str(amount),
                "payment_method": request.payment_method,
                "component_type": request.component_type,
                "semester": request.semester,
            },
        )

        await self.db.commit()
        logger.info(
            "Payment request %s submitted by student %s for %s",
            request_number,
            student_id,
            amount,
        )
        return request

    # --- Verification ---

    async def verify(
        self, request_id: int, verifier_id: int
    ) -> tuple[PaymentRequest, AllocationResult]:
        """
        Apply a pending request to the ledger and mark it VERIFIED.

        Allocation, payment history and the status change commit together;
        any failure rolls the whole unit back and the request stays PENDING.
        """
        try:
            request = await self._lock_request(request_id)
            ensure_transition(request, PaymentRequestStatus.VERIFIED)

            engine = PaymentAllocationEngine(self.db)
            result = await engine.allocate(
                request.student_id,
                request.requested_amount,
                request_target(request),
                payment_method=request.payment_method,
                transaction_ref=request.transaction_ref or f"REQ-{request.id}",
                recorded_by_id=verifier_id,
                payment_request_id=request.id,
                notes=VERIFICATION_NOTE,
            )

            now = datetime.now(timezone.utc)
            request.status = PaymentRequestStatus.VERIFIED.value
            request.approved_by_id = verifier_id
            request.approval_date = now
            request.verified_by_id = verifier_id
            request.verified_at = now
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.VERIFY_PAYMENT_REQUEST,
                entity_type="PaymentRequest",
                entity_id=request.id,
                entity_identifier=request.request_number,
                user_id=verifier_id,
                old_values={"status": PaymentRequestStatus.PENDING.value},
                new_values={
                    "status": request.status,
                    "payment_number": result.payment_number,
                    "new_balance": str(result.new_balance),
                },
            )
            await self.db.commit()
        except (OperationalError, IntegrityError) as exc:
            await self.db.rollback()
            logger.warning("Verification of payment request %s conflicted: %s", request_id, exc)
            raise ConcurrencyConflictError() from exc
        except AppException as exc:
            await self.db.rollback()
            logger.warning("Verification of payment request %s refused: %s", request_id, exc.message)
            raise
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Payment request %s verified by %s, balance of student %s now %s",
            request.request_number,
            verifier_id,
            request.student_id,
            result.new_balance,
        )
        return request, result

    async def reject(
        self, request_id: int, verifier_id: int, reason: str | None = None
    ) -> PaymentRequest:
        """Mark a pending request REJECTED. The ledger is left as it is."""
        try:
            request = await self._lock_request(request_id)
            # Same lock order as verify
            await self.ledger.get_record(request.student_id, lock=True)
            ensure_transition(request, PaymentRequestStatus.REJECTED)

            request.status = PaymentRequestStatus.REJECTED.value
            request.rejection_reason = reason
            request.approved_by_id = verifier_id
            request.approval_date = datetime.now(timezone.utc)
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.REJECT_PAYMENT_REQUEST,
                entity_type="PaymentRequest",
                entity_id=request.id,
                entity_identifier=request.request_number,
                user_id=verifier_id,
                old_values={"status": PaymentRequestStatus.PENDING.value},
                new_values={"status": request.status},
                comment=reason,
            )
            await self.db.commit()
        except (OperationalError, IntegrityError) as exc:
            await self.db.rollback()
            logger.warning("Rejection of payment request %s conflicted: %s", request_id, exc)
            raise ConcurrencyConflictError() from exc
        except AppException as exc:
            await self.db.rollback()
            logger.warning("Rejection of payment request %s refused: %s", request_id, exc.message)
            raise
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Payment request %s rejected by %s", request.request_number, verifier_id)
        return request

    # --- Reads ---

    async def get_request(self, request_id: int) -> PaymentRequest:
        result = await self.db.execute(
            select(PaymentRequest).where(PaymentRequest.id == request_id)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("Payment request", request_id)
        return request

    async def list_requests(
        self, filters: PaymentRequestFilters
    ) -> tuple[list[PaymentRequest], int]:
        """Finance queue, oldest first so requests are handled in arrival order."""
        query = select(PaymentRequest)
        if filters.status:
            query = query.where(PaymentRequest.status == filters.status.value)
        if filters.student_id:
            query = query.where(PaymentRequest.student_id == filters.student_id)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(PaymentRequest.requested_at, PaymentRequest.id)
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def list_student_requests(self, student_id: int) -> list[PaymentRequest]:
        result = await self.db.execute(
            select(PaymentRequest)
            .where(PaymentRequest.student_id == student_id)
            .order_by(PaymentRequest.requested_at.desc(), PaymentRequest.id.desc())
        )
        return list(result.scalars().all())

    async def _lock_request(self, request_id: int) -> PaymentRequest:
        result = await self.db.execute(
            select(PaymentRequest).where(PaymentRequest.id == request_id).with_for_update()
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("Payment request", request_id)
        return request
