"""Student and Department models."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class EnrollmentStatus(StrEnum):
    """Enrollment status enumeration."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    GRADUATED = "GRADUATED"
    WITHDRAWN = "WITHDRAWN"


class Department(Base):
    """Academic department. Names are matched case-insensitively on import."""

    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    students: Mapped[list["Student"]] = relationship("Student", back_populates="department")


class Student(Base):
    """Student enrolled at the university. Identity (number, email) is immutable."""

    __tablename__ = "students"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    student_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True, index=True
    )  # issued by the SIS / registrar

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Optional in SIS exports
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    department_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("departments.id"), nullable=True, index=True
    )
    batch: Mapped[int | None] = mapped_column(Integer, nullable=True)  # cohort year

    enrollment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    department: Mapped["Department | None"] = relationship("Department", back_populates="students")
    debt_record: Mapped["DebtRecord | None"] = relationship(
        "DebtRecord", back_populates="student", uselist=False
    )
    components: Mapped[list["DebtComponent"]] = relationship(
        "DebtComponent", back_populates="student"
    )

    @property
    def department_name(self) -> str | None:
        return self.department.name if self.department else None


# Import at the end to avoid circular imports
from src.modules.debts.models import DebtComponent, DebtRecord
