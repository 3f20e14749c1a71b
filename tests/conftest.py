import os
from decimal import Decimal
from typing import AsyncGenerator, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fee_ledger.auth.models import User
from fee_ledger.auth.security import create_access_token
from fee_ledger.core.enums import DueItem, DueType
from fee_ledger.core.models import AcademicYear, SchoolClass, Student, StudentDue
from fee_ledger.db.session import Base, get_db
from fee_ledger.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the FastAPI dependency uses the same session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def admin_user(db_session: AsyncSession) -> User:
    user = User(full_name="Accounts Admin", email="admin@example.com", role="ADMIN", status="ACTIVE")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture()
def auth_headers(admin_user: User) -> dict:
    token = create_access_token(subject={"user_id": str(admin_user.id), "role": admin_user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def academic_year(db_session: AsyncSession) -> AcademicYear:
    ay = AcademicYear(code="2024-25", name="2024-25", start_month=4, is_active=True, is_current=True)
    db_session.add(ay)
    await db_session.commit()
    return ay


@pytest.fixture()
async def school_class(db_session: AsyncSession) -> SchoolClass:
    c = SchoolClass(name="I", display_order=1, is_active=True)
    db_session.add(c)
    await db_session.commit()
    return c


@pytest.fixture()
async def student(db_session: AsyncSession, school_class: SchoolClass) -> Student:
    s = Student(name="Asha", ledger_number="L-001", class_id=school_class.id, is_hosteller=False, status="ACTIVE")
    db_session.add(s)
    await db_session.commit()
    return s


@pytest.fixture()
def make_due(db_session: AsyncSession, academic_year: AcademicYear):
    """Factory for dues on a student. Monthly when due_month is given, one-time otherwise."""

    async def _make(
        student: Student,
        amount: str,
        due_month: Optional[str] = None,
        item_type: Optional[DueItem] = None,
    ) -> StudentDue:
        due = StudentDue(
            student_id=student.id,
            class_id=student.class_id,
            academic_year=academic_year.code,
            due_type=DueType.monthly.value if due_month else DueType.one_time.value,
            due_month=due_month,
            item_type=(item_type or (DueItem.MONTHLY if due_month else DueItem.ADMISSION)).value,
            amount=Decimal(amount),
            paid_amount=Decimal("0"),
        )
        db_session.add(due)
        await db_session.commit()
        return due

    return _make
