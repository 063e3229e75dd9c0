import os
from datetime import datetime, timezone
from typing import AsyncGenerator, Awaitable, Callable, Dict, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.auth.security import create_access_token, hash_password
from app.core.models import (
    BankAccount,
    Mentor,
    Mission,
    Pack,
    Payment,
    PaymentSchedule,
    Professor,
    Quote,
    Student,
    User,
)
from app.db.session import Base, get_db


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "StrongPass123"


def utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """One in-memory database per test, shared by the test and the app through get_db."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
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


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(subject={"user_id": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    counter = {"n": 0}

    async def _make(role: str, *, active: bool = True, email: Optional[str] = None) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"{role.lower()}{counter['n']}@example.com",
            first_name=role.title(),
            last_name=str(counter["n"]),
            role=role,
            active=active,
            password_hash=hash_password(TEST_PASSWORD),
        )
        db_session.add(user)
        await db_session.flush()
        if role == "STUDENT":
            db_session.add(Student(user_id=user.id))
        elif role == "MENTOR":
            db_session.add(Mentor(user_id=user.id))
        elif role == "PROFESSOR":
            db_session.add(Professor(user_id=user.id, type="QUANT"))
        await db_session.commit()
        return user

    return _make


@pytest.fixture()
async def admin_user(make_user) -> User:
    return await make_user("ADMIN")


@pytest.fixture()
def admin_headers(admin_user: User) -> Dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture()
async def student(db_session: AsyncSession, make_user) -> Student:
    user = await make_user("STUDENT")
    return await _profile(db_session, Student, user)


@pytest.fixture()
async def mentor(db_session: AsyncSession, make_user) -> Mentor:
    user = await make_user("MENTOR")
    return await _profile(db_session, Mentor, user)


@pytest.fixture()
async def professor(db_session: AsyncSession, make_user) -> Professor:
    user = await make_user("PROFESSOR")
    return await _profile(db_session, Professor, user)


async def _profile(db_session: AsyncSession, model, user: User):
    result = await db_session.execute(select(model).where(model.user_id == user.id))
    return result.scalar_one()


@pytest.fixture()
async def bank_account(db_session: AsyncSession) -> BankAccount:
    account = BankAccount(name="Main EUR", currency="EUR", is_active=True)
    db_session.add(account)
    await db_session.commit()
    return account


@pytest.fixture()
def make_schedule(db_session: AsyncSession) -> Callable[..., Awaitable[PaymentSchedule]]:
    async def _make(
        *,
        amount: int,
        due_date: datetime,
        status: str = "PENDING",
        paid_amount: int = 0,
        currency: str = "EUR",
        student_id=None,
        quote_id=None,
    ) -> PaymentSchedule:
        schedule = PaymentSchedule(
            student_id=student_id,
            quote_id=quote_id,
            amount=amount,
            paid_amount=paid_amount,
            currency=currency,
            due_date=due_date,
            status=status,
        )
        db_session.add(schedule)
        await db_session.commit()
        return schedule

    return _make


@pytest.fixture()
def make_payment(db_session: AsyncSession) -> Callable[..., Awaitable[Payment]]:
    async def _make(*, student_id, amount: int, currency: str = "EUR") -> Payment:
        payment = Payment(
            type="STUDENT",
            student_id=student_id,
            amount=amount,
            currency=currency,
            payment_date=utc(2024, 3, 15),
        )
        db_session.add(payment)
        await db_session.commit()
        return payment

    return _make


@pytest.fixture()
def make_mission(db_session: AsyncSession) -> Callable[..., Awaitable[Mission]]:
    async def _make(*, mentor_id=None, professor_id=None, amount: int = 50000, status: str = "PENDING") -> Mission:
        mission = Mission(
            mentor_id=mentor_id,
            professor_id=professor_id,
            description="Application review",
            amount=amount,
            paid_amount=0,
            currency="EUR",
            start_date=utc(2024, 1, 1),
            end_date=utc(2024, 1, 31),
            status=status,
        )
        db_session.add(mission)
        await db_session.commit()
        return mission

    return _make


@pytest.fixture()
async def pack(db_session: AsyncSession) -> Pack:
    pack = Pack(name="Premium", price=300000, currency="EUR", active=True)
    db_session.add(pack)
    await db_session.commit()
    return pack


@pytest.fixture()
def make_quote(db_session: AsyncSession) -> Callable[..., Awaitable[Quote]]:
    counter = {"n": 0}

    async def _make(*, student_id, status: str = "DRAFT", total_amount: int = 300000) -> Quote:
        counter["n"] += 1
        quote = Quote(
            quote_number=f"QUOTE-2024-{counter['n']:03d}",
            student_id=student_id,
            total_amount=total_amount,
            currency="EUR",
            status=status,
        )
        db_session.add(quote)
        await db_session.commit()
        return quote

    return _make
