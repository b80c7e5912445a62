"""Service test fixtures — async DB, FastAPI test client, and an in-memory repository.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched so the readiness check sees the test engine
    - memory_repo copies loans on every read and write, like a real store

Design Decisions:
    - SQLite in-memory with StaticPool: all sessions share the one database
    - memory_repo yields to the event loop inside reads/writes so concurrent
      callers interleave at the same points a networked store would
"""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

import loan_service.models  # noqa: F401
from loan_service.core.errors import ConcurrencyError, LoanNotFoundError
from loan_service.db.base import Base
from loan_service.infrastructure.database import get_db, DatabaseSessionManager
import loan_service.infrastructure.database as db_module
from loan_service.main import app
from loan_service.services.loan_locks import LoanLockRegistry
from loan_service.services.loan_service import LoanService


class InMemoryLoanRepository:
    """LoanRepository double with the same copy and version semantics as the SQL one."""

    def __init__(self):
        self.rows = {}
        self.save_calls = 0

    async def create(self, loan):
        self.rows[loan.id] = loan.snapshot()

    async def find_by_id(self, loan_id):
        await asyncio.sleep(0)
        stored = self.rows.get(loan_id)
        if stored is None:
            raise LoanNotFoundError(loan_id)
        return stored.snapshot()

    async def find_all(self, status=None, borrower_id=None):
        return [
            loan.snapshot() for loan in self.rows.values()
            if (status is None or loan.status == status)
            and (borrower_id is None or loan.borrower_id == borrower_id)
        ]

    async def save(self, loan):
        self.save_calls += 1
        await asyncio.sleep(0)
        stored = self.rows.get(loan.id)
        if stored is None:
            raise LoanNotFoundError(loan.id)
        if stored.version != loan.version:
            raise ConcurrencyError("stale loan version")
        loan.version += 1
        self.rows[loan.id] = loan.snapshot()

    async def delete(self, loan):
        await asyncio.sleep(0)
        stored = self.rows.get(loan.id)
        if stored is None:
            raise LoanNotFoundError(loan.id)
        if stored.version != loan.version:
            raise ConcurrencyError("stale loan version")
        del self.rows[loan.id]


@pytest.fixture
def memory_repo():
    return InMemoryLoanRepository()


@pytest.fixture
def service(memory_repo):
    return LoanService(memory_repo, LoanLockRegistry())


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
