"""Database and row factories for service tests."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tutorlink.db.base import Base
from tutorlink.models import (
    Course,
    Payment,
    PaymentStatus,
    PostRequirement,
    Subject,
    TeacherProfile,
    User,
    UserRole,
)


def create_test_engine() -> AsyncEngine:
    """Create an in-memory SQLite engine shared by every session of a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        # SQLAlchemy emits BEGIN itself so that SAVEPOINTs nest correctly
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


async def create_schema(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def add_user(
    session: AsyncSession,
    role: UserRole = UserRole.STUDENT,
    name: str = "Test User",
    phone: str | None = None,
) -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"user_{uuid.uuid4().hex[:10]}@example.com",
        name=name,
        phone=phone,
        role=role,
        is_active=True,
    )
    session.add(user)
    await session.flush()
    return user


async def add_teacher(
    session: AsyncSession,
    is_approved: bool = True,
    subjects: list[dict] | None = None,
    languages: list[str] | None = None,
    name: str = "Ana Tutor",
) -> TeacherProfile:
    user = await add_user(session, UserRole.TEACHER, name=name)
    if subjects is None:
        subjects = [{"name": "Math", "fromLevel": "Grade 6", "toLevel": "Grade 12"}]
    profile = TeacherProfile(
        user_id=user.id,
        speciality="Mathematics",
        subjects=subjects,
        languages=languages if languages is not None else ["English"],
        is_approved=is_approved,
    )
    session.add(profile)
    await session.flush()
    return profile


async def add_post(
    session: AsyncSession,
    owner: User,
    subjects: list[dict] | None = None,
    languages: list[str] | None = None,
    phone: dict | None = None,
) -> PostRequirement:
    post = PostRequirement(
        user_id=owner.id,
        description="Looking for a maths tutor for my O Level exams next spring term",
        subjects=subjects if subjects is not None else [{"name": "math", "level": "Grade 10"}],
        languages=languages if languages is not None else ["english"],
        phone=phone,
        location="Online",
    )
    session.add(post)
    await session.flush()
    return post


async def add_catalog(session: AsyncSession) -> tuple[Subject, Course]:
    subject = Subject(name="Physics", level="O Level")
    course = Course(name="O Level Science", level="O Level")
    session.add_all([subject, course])
    await session.flush()
    return subject, course


async def add_payment(
    session: AsyncSession,
    user: User,
    order_id: str,
    coins: int = 1000,
    amount: Decimal = Decimal("1.00"),
    status: PaymentStatus = PaymentStatus.PENDING,
    created_at: datetime | None = None,
) -> Payment:
    payment = Payment(
        user_id=user.id,
        amount=amount,
        currency="USD",
        coins=coins,
        status=status,
        gateway_order_id=order_id,
    )
    if created_at is not None:
        payment.created_at = created_at
    session.add(payment)
    await session.flush()
    return payment
