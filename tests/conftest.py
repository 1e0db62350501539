"""
Pytest configuration and fixtures for report engine tests.

Provides:
- Async test database with SQLite
- Test client for API testing
- Fake content generator and delivery channel
- Factory fixtures for creating test data
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from report_engine.core.database import get_db
from report_engine.core.scheduler import ReportScheduler, get_report_scheduler
from report_engine.main import app
from report_engine.models import Base
from report_engine.models.history import ReportAnalytics, ReportHistory
from report_engine.models.schedule import ReportFrequency, ReportSchedule
from report_engine.services.cycle_runner import CycleRunner
from report_engine.services.failure_tracker import FailureTracker
from report_engine.services.job_store import SqlAlchemyJobStore
from report_engine.services.report_executor import ReportExecutor
from tests.fakes import FIXED_NOW, FakeDeliveryChannel, FakeGenerator, fixed_clock, no_sleep

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_sessionmaker(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(db_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with db_sessionmaker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def job_store(db_sessionmaker) -> SqlAlchemyJobStore:
    return SqlAlchemyJobStore(db_sessionmaker)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def delivery() -> FakeDeliveryChannel:
    return FakeDeliveryChannel()


@pytest.fixture
def executor(job_store, generator, delivery) -> ReportExecutor:
    return ReportExecutor(
        store=job_store,
        generator=generator,
        delivery=delivery,
        brand_name="Acme",
        clock=fixed_clock,
    )


@pytest.fixture
def tracker() -> FailureTracker:
    return FailureTracker(max_failures=3)


@pytest.fixture
def runner(job_store, executor, tracker) -> CycleRunner:
    return CycleRunner(
        store=job_store,
        executor=executor,
        tracker=tracker,
        batch_size=5,
        inter_job_delay=5,
        clock=fixed_clock,
        sleep=no_sleep,
    )


@pytest.fixture
def report_scheduler(runner, tracker) -> ReportScheduler:
    return ReportScheduler(runner, tracker, interval_minutes=5)


@pytest_asyncio.fixture
async def client(db_sessionmaker, report_scheduler) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database and scheduler overrides."""
    from report_engine.core.rate_limit import limiter

    async def override_get_db():
        async with db_sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_report_scheduler] = lambda: report_scheduler

    # Reset rate limiter storage before each test
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def schedule_factory(db_sessionmaker):
    """Factory for creating committed report schedules."""

    async def _create_schedule(
        entity_id: int = 1,
        report_type: str = "financial",
        frequency: ReportFrequency = ReportFrequency.DAILY,
        recipients: list[str] | None = None,
        is_active: bool = True,
        next_run: datetime | None = FIXED_NOW - timedelta(hours=1),
        last_run: datetime | None = None,
    ) -> ReportSchedule:
        schedule = ReportSchedule(
            user_id=1,
            entity_id=entity_id,
            report_type=report_type,
            frequency=frequency,
            recipients=["owner@example.com"] if recipients is None else recipients,
            is_active=is_active,
            next_run=next_run,
            last_run=last_run,
        )
        async with db_sessionmaker() as db:
            db.add(schedule)
            await db.commit()
        return schedule

    return _create_schedule


@pytest_asyncio.fixture
async def fetch(db_sessionmaker):
    """Helpers for reading back rows written by the engine."""

    class _Fetch:
        async def schedule(self, schedule_id: int) -> ReportSchedule | None:
            async with db_sessionmaker() as db:
                return await db.get(ReportSchedule, schedule_id)

        async def history(self, schedule_id: int | None = None) -> list[ReportHistory]:
            query = select(ReportHistory).order_by(ReportHistory.id)
            if schedule_id is not None:
                query = query.where(ReportHistory.schedule_id == schedule_id)
            async with db_sessionmaker() as db:
                return list((await db.execute(query)).scalars().all())

        async def analytics(self, schedule_id: int | None = None) -> list[ReportAnalytics]:
            query = select(ReportAnalytics).order_by(ReportAnalytics.id)
            if schedule_id is not None:
                query = query.where(ReportAnalytics.schedule_id == schedule_id)
            async with db_sessionmaker() as db:
                return list((await db.execute(query)).scalars().all())

    return _Fetch()
