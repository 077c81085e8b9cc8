"""Tests for the debt ledger."""

from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.models import UserRole
from src.core.exceptions import NotFoundError
from src.modules.debts.models import ComponentStatus, ComponentType, DebtComponent
from src.modules.debts.schedule import ComponentScheduleGenerator
from src.modules.debts.schemas import EnrollmentParams
from src.modules.debts.service import DebtLedgerService
from src.modules.students.models import Student


class TestDebtLedgerService:
    """Tests for DebtLedgerService."""

    async def test_regenerating_schedule_keeps_one_row_per_key(
        self, db_session: AsyncSession, make_ledger
    ):
        """Running the generator twice leaves one component per (semester, type)."""
        student = await make_ledger(balance="0")
        ledger = DebtLedgerService(db_session)
        params = EnrollmentParams(
            semesters=3, start_year=2024, tuition_base_annual=Decimal("20000")
        )
        drafts = ComponentScheduleGenerator().generate(student.id, params)

        await ledger.upsert_components(drafts)
        await ledger.upsert_components(drafts)
        await db_session.commit()

        count = await db_session.scalar(
            select(func.count(DebtComponent.id)).where(DebtComponent.student_id == student.id)
        )
        assert count == 9

    async def test_upsert_resets_component(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger([(ComponentType.TUITION, "1000.00")])
        ledger = DebtLedgerService(db_session)
        component = (await ledger.list_components(student.id))[0]
        component.amount = Decimal("0.00")
        component.status = ComponentStatus.PAID.value
        await db_session.flush()

        drafts = ComponentScheduleGenerator(tuition_share_percentage=Decimal("0.10")).generate(
            student.id,
            EnrollmentParams(semesters=1, start_year=2024, tuition_base_annual=Decimal("30000")),
        )
        await ledger.upsert_components(
            [d for d in drafts if d.component_type == ComponentType.TUITION]
        )

        assert component.amount == Decimal("1500.00")
        assert component.original_amount == Decimal("1500.00")
        assert component.status == ComponentStatus.UNPAID.value

    async def test_balance_is_sum_of_outstanding_components(
        self, db_session: AsyncSession, make_ledger
    ):
        student = await make_ledger(
            [
                (ComponentType.LIVING_STIPEND, "500.00"),
                (ComponentType.TUITION, "1000.00"),
                (ComponentType.MEDICAL, "250.50"),
            ]
        )
        ledger = DebtLedgerService(db_session)

        assert await ledger.get_balance(student.id) == Decimal("1750.50")
        record = await ledger.require_record(student.id)
        assert record.current_balance == Decimal("1750.50")
        assert record.initial_amount == Decimal("1750.50")

    async def test_recompute_ignores_paid_components(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        ledger = DebtLedgerService(db_session)
        living = (await ledger.list_unpaid_components(student.id, ComponentType.LIVING_STIPEND))[0]
        living.amount = Decimal("0.00")
        living.status = ComponentStatus.PAID.value
        await db_session.flush()

        assert await ledger.recompute_aggregate(student.id) == Decimal("1000.00")

    async def test_legacy_balance_is_stored_aggregate(
        self, db_session: AsyncSession, make_ledger
    ):
        student = await make_ledger(balance="1000.00")
        ledger = DebtLedgerService(db_session)

        assert await ledger.get_balance(student.id) == Decimal("1000.00")
        assert await ledger.has_components(student.id) is False
        # Without components the aggregate stays as seeded
        assert await ledger.recompute_aggregate(student.id) == Decimal("1000.00")

    async def test_balance_without_record(self, db_session: AsyncSession):
        student = Student(student_number="NOREC-1", full_name="No Record")
        db_session.add(student)
        await db_session.flush()

        with pytest.raises(NotFoundError):
            await DebtLedgerService(db_session).get_balance(student.id)

    async def test_seed_overwrites_existing_record(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(balance="1000.00")
        ledger = DebtLedgerService(db_session)

        record = await ledger.seed(student.id, Decimal("2500"), seeded_by_id=1)

        assert record.initial_amount == Decimal("2500.00")
        assert record.current_balance == Decimal("2500.00")
        assert record.updated_by_id == 1

    async def test_unpaid_components_ordered_by_due_date(
        self, db_session: AsyncSession, make_ledger
    ):
        student = await make_ledger(
            [
                (ComponentType.TUITION, "100", "2024-FALL", date(2024, 10, 15)),
                (ComponentType.TUITION, "100", "2024-SPRING", date(2024, 3, 15)),
                (ComponentType.OTHER, "100", "2025-FALL", None),
            ]
        )
        unpaid = await DebtLedgerService(db_session).list_unpaid_components(student.id)
        assert [c.semester for c in unpaid] == ["2024-SPRING", "2024-FALL", "2025-FALL"]

    async def test_find_open_component_missing(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger([(ComponentType.TUITION, "100")])
        with pytest.raises(NotFoundError):
            await DebtLedgerService(db_session).find_open_component(
                student.id, "2030-FALL", "2030/2031", ComponentType.TUITION
            )

    async def test_summary(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger(
            [
                (ComponentType.LIVING_STIPEND, "500.00", "2024-FALL", date(2024, 10, 15)),
                (ComponentType.TUITION, "1000.00", "2024-FALL", date(2024, 10, 15)),
                (ComponentType.MEDICAL, "250.00", "2024-SPRING", date(2024, 3, 15)),
            ]
        )
        summary = await DebtLedgerService(db_session).get_summary(student.id)

        assert summary.current_balance == Decimal("1750.00")
        assert summary.total_paid == Decimal("0.00")
        assert summary.living_stipend_total == Decimal("500.00")
        assert summary.tuition_total == Decimal("1000.00")
        assert summary.medical_total == Decimal("250.00")
        assert summary.next_due_date == date(2024, 3, 15)
        assert summary.legacy_mode is False
        assert len(summary.unpaid_components) == 3
        assert summary.payment_count == 0
        assert summary.last_payment is None

    async def test_summary_unknown_student(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await DebtLedgerService(db_session).get_summary(999)


class TestDebtsAPI:
    """Tests for debts API endpoints."""

    async def test_my_debt(self, client: AsyncClient, make_ledger, auth_headers):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        response = await client.get(
            "/api/v1/debts/me",
            headers=auth_headers(UserRole.STUDENT, 100, student_id=student.id),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert Decimal(data["current_balance"]) == Decimal("1500.00")
        assert len(data["components"]) == 2

    async def test_my_components_filtered(self, client: AsyncClient, make_ledger, auth_headers):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        response = await client.get(
            "/api/v1/debts/me/components",
            params={"component_type": "TUITION"},
            headers=auth_headers(UserRole.STUDENT, 100, student_id=student.id),
        )

        assert response.status_code == 200
        items = response.json()["data"]
        assert [c["component_type"] for c in items] == ["TUITION"]

    async def test_student_token_without_student_id(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/v1/debts/me", headers=auth_headers(UserRole.STUDENT, 100)
        )
        assert response.status_code == 403

    async def test_staff_reads_student_ledger(
        self, client: AsyncClient, make_ledger, registrar_headers
    ):
        student = await make_ledger(balance="1000.00")
        response = await client.get(
            f"/api/v1/debts/students/{student.id}", headers=registrar_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["legacy_mode"] is True
        assert Decimal(data["current_balance"]) == Decimal("1000.00")
