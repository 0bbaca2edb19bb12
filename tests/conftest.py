"""
Pytest configuration and fixtures for the Zenith settlement worker tests
"""

import pytest
from decimal import Decimal
from typing import AsyncGenerator

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.database.crud import create_user
from src.database.models import Base, Wallet


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_db_engine():
    """
    Create test database engine
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(test_db_engine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to the test engine (what the jobs receive)
    """
    return async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    Create test database session
    """
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_user(db_session):
    """
    Create a user and set wallet columns directly

    Usage:
        user = await make_user(balance=Decimal("5000"), btc=Decimal("2"))
    """
    counter = {"n": 0}

    async def _make_user(email: str | None = None, **wallet_values):
        counter["n"] += 1
        user = await create_user(
            db_session,
            full_name=f"Test User {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
        )
        if wallet_values:
            await db_session.execute(
                update(Wallet)
                .where(Wallet.user_id == user.id)
                .values(**{key: Decimal(str(value)) for key, value in wallet_values.items()})
            )
            await db_session.commit()
        return user

    return _make_user
