"""PaymentRequest, PaymentHistory and PaymentAllocation models."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class PaymentMethod(StrEnum):
    """Payment method options. All capture is manual: the student asserts a receipt."""

    RECEIPT = "RECEIPT"
    BANK_TRANSFER = "BANK_TRANSFER"
    MOBILE_MONEY = "MOBILE_MONEY"
    CASH = "CASH"


class PaymentRequestStatus(StrEnum):
    """Payment request lifecycle."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class PaymentHistoryStatus(StrEnum):
    SUCCESS = "SUCCESS"


class PaymentRequest(Base):
    """
    Student claim for payment credit.

    Leaves PENDING exactly once, to VERIFIED (ledger credited) or REJECTED
    (ledger untouched), and is immutable afterwards. The target columns are
    either all set (payment for one component) or all NULL (lump payment).
    """

    __tablename__ = "payment_requests"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    request_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True, index=True
    )

    student_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("students.id"), nullable=False, index=True
    )

    requested_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethod.RECEIPT.value
    )
    transaction_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    receipt_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Optional target component
    semester: Mapped[str | None] = mapped_column(String(20), nullable=True)
    academic_year: Mapped[str | None] = mapped_column(String(20), nullable=True)
    component_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentRequestStatus.PENDING.value, index=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    # Set by both verify and reject
    approved_by_id: Mapped[int | None] = mapped_column(BigIntPK, nullable=True)
    approval_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Set by verify only
    verified_by_id: Mapped[int | None] = mapped_column(BigIntPK, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    student: Mapped["Student"] = relationship("Student")
    payment: Mapped["PaymentHistory | None"] = relationship(
        "PaymentHistory", back_populates="payment_request", uselist=False
    )

    @property
    def has_target(self) -> bool:
        return bool(self.semester and self.academic_year and self.component_type)


class PaymentHistory(Base):
    """Applied payment. Append-only: one row per verified request."""

    __tablename__ = "payment_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    payment_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True, index=True
    )

    debt_record_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("debt_records.id"), nullable=False, index=True
    )
    # Unique: a request can produce at most one payment
    payment_request_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("payment_requests.id"), nullable=True, unique=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentHistoryStatus.SUCCESS.value
    )
    payment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by_id: Mapped[int | None] = mapped_column(BigIntPK, nullable=True)

    # Relationships
    debt_record: Mapped["DebtRecord"] = relationship("DebtRecord", back_populates="payments")
    payment_request: Mapped["PaymentRequest | None"] = relationship(
        "PaymentRequest", back_populates="payment"
    )
    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        "PaymentAllocation", back_populates="payment"
    )


class PaymentAllocation(Base):
    """Share of a payment applied to one debt component."""

    __tablename__ = "payment_allocations"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    payment_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("payment_history.id"), nullable=False, index=True
    )
    component_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("debt_components.id"), nullable=False, index=True
    )
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    payment: Mapped["PaymentHistory"] = relationship("PaymentHistory", back_populates="allocations")
    component: Mapped["DebtComponent"] = relationship("DebtComponent")


# Import for type hints
from src.modules.students.models import Student
from src.modules.debts.models import DebtComponent, DebtRecord
