"""ClearanceLetter model."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class ClearanceLetter(Base):
    """Financial clearance issued to a student with nothing left to pay. Append-only."""

    __tablename__ = "clearance_letters"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    letter_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True, index=True
    )

    student_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("students.id"), nullable=False, index=True
    )
    debt_record_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("debt_records.id"), nullable=True
    )

    issued_by_id: Mapped[int] = mapped_column(BigIntPK, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    # Relationships
    student: Mapped["Student"] = relationship("Student")


# Import for type hints
from src.modules.students.models import Student
