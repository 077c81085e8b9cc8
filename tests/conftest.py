from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.auth.jwt import create_access_token
from src.core.auth.models import UserRole
from src.core.database import get_db
from src.core.database.base import Base
from src.main import app
from src.modules.debts.schemas import ComponentDraft
from src.modules.debts.service import DebtLedgerService
from src.modules.students.models import EnrollmentStatus, Student

# In-memory SQLite, one connection shared by the whole test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_ID = 1
FINANCE_ID = 2
REGISTRAR_ID = 3
STUDENT_USER_ID = 100


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh schema per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Get test database session."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


def _bearer(role: UserRole, user_id: int, student_id: int | None = None) -> dict[str, str]:
    token = create_access_token(user_id, role.value, student_id=student_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Bearer header factory for a principal as the identity provider would issue it."""
    return _bearer


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return _bearer(UserRole.ADMIN, ADMIN_ID)


@pytest.fixture
def finance_headers() -> dict[str, str]:
    return _bearer(UserRole.FINANCE, FINANCE_ID)


@pytest.fixture
def registrar_headers() -> dict[str, str]:
    return _bearer(UserRole.REGISTRAR, REGISTRAR_ID)


@pytest.fixture
def make_ledger(db_session: AsyncSession):
    """
    Factory for a student with a seeded ledger.

    ``components`` are ``(component_type, amount)`` or
    ``(component_type, amount, semester, due_date)`` tuples; without any the
    student is in legacy mode with ``balance`` as the aggregate.
    """
    counter = {"n": 0}

    async def _make(
        components: list[tuple] = (),
        balance: Decimal | str | None = None,
        full_name: str | None = None,
    ) -> Student:
        counter["n"] += 1
        n = counter["n"]
        student = Student(
            student_number=f"STU-{n:05d}",
            full_name=full_name or f"Student {n:02d}",
            email=f"student{n}@uni.edu",
            enrollment_status=EnrollmentStatus.ACTIVE.value,
        )
        db_session.add(student)
        await db_session.flush()

        ledger = DebtLedgerService(db_session)
        drafts = []
        for entry in components:
            component_type, amount = entry[0], Decimal(str(entry[1]))
            semester = entry[2] if len(entry) > 2 else "2024-FALL"
            due = entry[3] if len(entry) > 3 else date(2024, 10, 15)
            year = int(semester.split("-")[0])
            drafts.append(
                ComponentDraft(
                    student_id=student.id,
                    semester=semester,
                    academic_year=f"{year}/{year + 1}",
                    component_type=component_type,
                    amount=amount,
                    description=f"{component_type} {semester}",
                    due_date=due,
                )
            )
        if drafts:
            await ledger.upsert_components(drafts)
            total = sum(d.amount for d in drafts)
            await ledger.seed(student.id, total)
            await ledger.recompute_aggregate(student.id)
        else:
            await ledger.seed(student.id, Decimal(str(balance or "0")))
        await db_session.commit()
        return student

    return _make
