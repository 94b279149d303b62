"""
Shared pytest fixtures for all tests.

Provides:
- A fresh SQLite database file per test, with every table created
- An AsyncSession configured like the application's sessions
- Factories for users and sponsors

Example usage:

    async def test_something(db, user_factory, sponsor_factory):
        user = await user_factory(fname="Ada")
        sponsor = await sponsor_factory(name="Acme")
"""
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.database.engine import init_db, make_engine, make_sessionmaker
from app.features.sponsors.models import Sponsor
from app.features.sponsors.service import create_sponsor
from app.features.users.models import User


VALID_SPONSOR_ATTRS: dict[str, Any] = {
    "name": "Acme",
    "display_name": "Acme Corporation",
    "address1": "1 Main Street",
    "address2": "Suite 200",
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "phone": "555-0100",
}


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_sessionmaker(engine)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_factory(db: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Create and commit users with unique emails."""
    counter = 0

    async def _create(**kwargs: Any) -> User:
        nonlocal counter
        counter += 1
        kwargs.setdefault("email", f"user{counter}@example.com")
        kwargs.setdefault("fname", "User")
        kwargs.setdefault("lname", str(counter))
        user = User(**kwargs)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _create


@pytest.fixture
def sponsor_factory(db: AsyncSession) -> Callable[..., Awaitable[Sponsor]]:
    """Create and save valid sponsors; keyword arguments override the defaults."""

    async def _create(**kwargs: Any) -> Sponsor:
        return await create_sponsor(db, **{**VALID_SPONSOR_ATTRS, **kwargs})

    return _create
