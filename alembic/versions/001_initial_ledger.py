"""Student debt ledger schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # Document sequences table
    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("prefix", sa.String(20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("prefix", "year", name="uq_document_sequence_prefix_year"),
    )

    # Audit logs table
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column("entity_identifier", sa.String(200), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"], unique=False)
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"], unique=False)

    # Departments and students
    op.create_table(
        "departments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_departments_name"),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("student_number", sa.String(50), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("department_id", sa.BigInteger(), nullable=True),
        sa.Column("batch", sa.Integer(), nullable=True),
        sa.Column("enrollment_status", sa.String(20), nullable=False, server_default="ACTIVE"),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
    )
    op.create_index("ix_students_student_number", "students", ["student_number"], unique=True)
    op.create_index("ix_students_email", "students", ["email"], unique=True)
    op.create_index("ix_students_department_id", "students", ["department_id"], unique=False)
    op.create_index(
        "ix_students_enrollment_status", "students", ["enrollment_status"], unique=False
    )

    # Ledger: aggregate record and per-term components
    op.create_table(
        "debt_records",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("student_id", sa.BigInteger(), nullable=False),
        sa.Column("initial_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("current_balance", sa.Numeric(15, 2), nullable=False),
        sa.Column("updated_by_id", sa.BigInteger(), nullable=True),
        _created_at(),
        _created_at("last_updated"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"]),
    )
    op.create_index("ix_debt_records_student_id", "debt_records", ["student_id"], unique=True)

    op.create_table(
        "debt_components",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("student_id", sa.BigInteger(), nullable=False),
        sa.Column("semester", sa.String(20), nullable=False),
        sa.Column("academic_year", sa.String(20), nullable=False),
        sa.Column("component_type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("original_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="UNPAID"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at("accrued_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"]),
        sa.UniqueConstraint(
            "student_id",
            "semester",
            "component_type",
            name="uq_debt_component_student_term_type",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_debt_components_amount_non_negative"),
    )
    op.create_index("ix_debt_components_student_id", "debt_components", ["student_id"])
    op.create_index("ix_debt_components_component_type", "debt_components", ["component_type"])
    op.create_index("ix_debt_components_status", "debt_components", ["status"])

    # Payment requests, applied payments and their allocations
    op.create_table(
        "payment_requests",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("request_number", sa.String(50), nullable=False),
        sa.Column("student_id", sa.BigInteger(), nullable=False),
        sa.Column("requested_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="RECEIPT"),
        sa.Column("transaction_ref", sa.String(100), nullable=True),
        sa.Column("receipt_url", sa.String(500), nullable=True),
        sa.Column("semester", sa.String(20), nullable=True),
        sa.Column("academic_year", sa.String(20), nullable=True),
        sa.Column("component_type", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _created_at("requested_at"),
        sa.Column("approved_by_id", sa.BigInteger(), nullable=True),
        sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by_id", sa.BigInteger(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"]),
    )
    op.create_index(
        "ix_payment_requests_request_number", "payment_requests", ["request_number"], unique=True
    )
    op.create_index("ix_payment_requests_student_id", "payment_requests", ["student_id"])
    op.create_index("ix_payment_requests_status", "payment_requests", ["status"])
    op.create_index("ix_payment_requests_requested_at", "payment_requests", ["requested_at"])

    op.create_table(
        "payment_history",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("payment_number", sa.String(50), nullable=False),
        sa.Column("debt_record_id", sa.BigInteger(), nullable=False),
        sa.Column("payment_request_id", sa.BigInteger(), nullable=True),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("transaction_ref", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="SUCCESS"),
        _created_at("payment_date"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("verified_by_id", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["debt_record_id"], ["debt_records.id"]),
        sa.ForeignKeyConstraint(["payment_request_id"], ["payment_requests.id"]),
        sa.UniqueConstraint("payment_request_id", name="uq_payment_history_payment_request_id"),
    )
    op.create_index(
        "ix_payment_history_payment_number", "payment_history", ["payment_number"], unique=True
    )
    op.create_index("ix_payment_history_debt_record_id", "payment_history", ["debt_record_id"])
    op.create_index("ix_payment_history_payment_date", "payment_history", ["payment_date"])

    op.create_table(
        "payment_allocations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("payment_id", sa.BigInteger(), nullable=False),
        sa.Column("component_id", sa.BigInteger(), nullable=False),
        sa.Column("allocated_amount", sa.Numeric(15, 2), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["payment_id"], ["payment_history.id"]),
        sa.ForeignKeyConstraint(["component_id"], ["debt_components.id"]),
    )
    op.create_index("ix_payment_allocations_payment_id", "payment_allocations", ["payment_id"])
    op.create_index(
        "ix_payment_allocations_component_id", "payment_allocations", ["component_id"]
    )

    # Clearance letters
    op.create_table(
        "clearance_letters",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("letter_number", sa.String(50), nullable=False),
        sa.Column("student_id", sa.BigInteger(), nullable=False),
        sa.Column("debt_record_id", sa.BigInteger(), nullable=True),
        sa.Column("issued_by_id", sa.BigInteger(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at("issued_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"]),
        sa.ForeignKeyConstraint(["debt_record_id"], ["debt_records.id"]),
    )
    op.create_index(
        "ix_clearance_letters_letter_number", "clearance_letters", ["letter_number"], unique=True
    )
    op.create_index("ix_clearance_letters_student_id", "clearance_letters", ["student_id"])
    op.create_index("ix_clearance_letters_issued_at", "clearance_letters", ["issued_at"])

    # SIS import batches and snapshots
    op.create_table(
        "sis_import_batches",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("imported_by_id", sa.BigInteger(), nullable=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_size_bytes", sa.Integer(), nullable=True),
        sa.Column("student_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "total_debt_imported", sa.Numeric(15, 2), nullable=False, server_default="0.00"
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="COMPLETED"),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at("import_date"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_sis_import_batches_import_date", "sis_import_batches", ["import_date"]
    )

    op.create_table(
        "student_sis_data",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("student_id", sa.BigInteger(), nullable=False),
        sa.Column("batch_id", sa.BigInteger(), nullable=True),
        sa.Column("sis_student_id", sa.String(50), nullable=True),
        sa.Column("program_code", sa.String(50), nullable=True),
        sa.Column("enrollment_date", sa.Date(), nullable=True),
        sa.Column("expected_graduation", sa.Date(), nullable=True),
        sa.Column("living_stipend_choice", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("department_name", sa.String(200), nullable=True),
        sa.Column("faculty", sa.String(200), nullable=True),
        sa.Column("batch_year", sa.Integer(), nullable=True),
        sa.Column("tuition_base_amount", sa.Numeric(15, 2), nullable=True),
        _created_at("imported_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"]),
        sa.ForeignKeyConstraint(["batch_id"], ["sis_import_batches.id"]),
        sa.UniqueConstraint("student_id", name="uq_student_sis_data_student_id"),
    )
    op.create_index("ix_student_sis_data_batch_id", "student_sis_data", ["batch_id"])


def downgrade() -> None:
    op.drop_table("student_sis_data")
    op.drop_table("sis_import_batches")
    op.drop_table("clearance_letters")
    op.drop_table("payment_allocations")
    op.drop_table("payment_history")
    op.drop_table("payment_requests")
    op.drop_table("debt_components")
    op.drop_table("debt_records")
    op.drop_table("students")
    op.drop_table("departments")
    op.drop_table("audit_logs")
    op.drop_table("document_sequences")
