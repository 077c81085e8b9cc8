"""SIS import batch and per-student SIS snapshot models."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class SisImportStatus(StrEnum):
    COMPLETED = "COMPLETED"


class SisImportBatch(Base):
    """One confirmed SIS import."""

    __tablename__ = "sis_import_batches"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    imported_by_id: Mapped[int | None] = mapped_column(BigIntPK, nullable=True)

    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    student_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_debt_imported: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SisImportStatus.COMPLETED.value
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    import_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    students: Mapped[list["StudentSisData"]] = relationship(
        "StudentSisData", back_populates="batch"
    )


class StudentSisData(Base):
    """Latest SIS snapshot of a student; overwritten on re-import."""

    __tablename__ = "student_sis_data"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("students.id"), nullable=False, unique=True
    )
    batch_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("sis_import_batches.id"), nullable=True, index=True
    )

    sis_student_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    program_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    enrollment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_graduation: Mapped[date | None] = mapped_column(Date, nullable=True)
    living_stipend_choice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    department_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    faculty: Mapped[str | None] = mapped_column(String(200), nullable=True)
    batch_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tuition_base_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)

    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    batch: Mapped["SisImportBatch | None"] = relationship("SisImportBatch", back_populates="students")
    student: Mapped["Student"] = relationship("Student")


# Import for type hints
from src.modules.students.models import Student
