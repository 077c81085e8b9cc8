"""DebtRecord and DebtComponent models."""

from datetime import date, datetime
from decimal import Decimal
from enum import IntEnum, StrEnum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class ComponentType(StrEnum):
    """Fee component kinds."""

    TUITION = "TUITION"
    LIVING_STIPEND = "LIVING_STIPEND"
    MEDICAL = "MEDICAL"
    OTHER = "OTHER"


class AllocationPriority(IntEnum):
    """Lump payments settle lower values first."""

    LIVING_STIPEND = 1
    MEDICAL = 2
    TUITION = 3
    OTHER = 4

    @classmethod
    def of(cls, component_type: str) -> int:
        return cls[ComponentType(component_type).name].value


class ComponentStatus(StrEnum):
    """Payment status of a component."""

    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


OUTSTANDING_STATUSES = (ComponentStatus.UNPAID.value, ComponentStatus.PARTIALLY_PAID.value)


class DebtRecord(Base):
    """
    Aggregate debt of a student.

    ``current_balance`` mirrors the sum of outstanding component amounts and is
    recomputed in the same transaction as every component change. A student
    without components is in legacy mode: the balance itself is authoritative.
    """

    __tablename__ = "debt_records"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("students.id"), nullable=False, unique=True, index=True
    )

    initial_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    updated_by_id: Mapped[int | None] = mapped_column(BigIntPK, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    student: Mapped["Student"] = relationship("Student", back_populates="debt_record")
    payments: Mapped[list["PaymentHistory"]] = relationship(
        "PaymentHistory", back_populates="debt_record"
    )

    @property
    def total_paid(self) -> Decimal:
        return self.initial_amount - self.current_balance


class DebtComponent(Base):
    """One fee obligation of a student for one term. ``amount`` is what is still owed."""

    __tablename__ = "debt_components"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("students.id"), nullable=False, index=True
    )

    semester: Mapped[str] = mapped_column(String(20), nullable=False)  # 2025-FALL
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False)  # 2025/2026
    component_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    original_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ComponentStatus.UNPAID.value, index=True
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    accrued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "student_id", "semester", "component_type", name="uq_debt_component_student_term_type"
        ),
        CheckConstraint("amount >= 0", name="ck_debt_components_amount_non_negative"),
    )

    # Relationships
    student: Mapped["Student"] = relationship("Student", back_populates="components")

    @property
    def is_outstanding(self) -> bool:
        return self.status in OUTSTANDING_STATUSES

    @property
    def priority(self) -> int:
        return AllocationPriority.of(self.component_type)


# Import for type hints
from src.modules.students.models import Student
from src.modules.payments.models import PaymentHistory
