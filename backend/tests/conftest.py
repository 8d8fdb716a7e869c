"""
Pytest configuration and shared fixtures.
"""
import os
import tempfile

# Module-level engine and scheduler read these at import time
os.environ.setdefault("DATA_PATH", tempfile.mkdtemp(prefix="sitehealth-test-"))
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime, timedelta
from typing import Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitehealth.database import Base, build_engine
from sitehealth.models import Site
from sitehealth.models.site import DEPLOYED_ACTIVE
from sitehealth.services.aggregator import StatusAggregator
from sitehealth.services.incidents import IncidentManager
from sitehealth.services.orchestrator import MonitoringOrchestrator
from sitehealth.services.recorder import CheckRecorder


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2026, 3, 2, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeNotifier:
    """Records messages instead of sending them."""

    channel = "test"

    def __init__(self):
        self.messages = []
        self.result = True
        self.error: Optional[Exception] = None

    async def send(self, text: str) -> bool:
        self.messages.append(text)
        if self.error is not None:
            raise self.error
        return self.result


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database file per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def make_site(session_factory):
    """Factory adding a site to the directory."""

    async def _make_site(
        name: str = "Acme Plumbing",
        website_url: Optional[str] = "https://acme.example",
        contact_form_endpoint: Optional[str] = None,
        project_status: str = DEPLOYED_ACTIVE,
    ) -> Site:
        async with session_factory() as session:
            site = Site(
                name=name,
                website_url=website_url,
                contact_form_endpoint=contact_form_endpoint,
                project_status=project_status,
            )
            session.add(site)
            await session.commit()
            return site

    return _make_site


@pytest.fixture
def recorder(clock) -> CheckRecorder:
    return CheckRecorder(retention_days=30, clock=clock)


@pytest.fixture
def aggregator(recorder, clock) -> StatusAggregator:
    return StatusAggregator(recorder, clock=clock)


@pytest.fixture
def incident_manager(notifier, clock) -> IncidentManager:
    return IncidentManager(notifier, clock=clock)


@pytest.fixture
def build_orchestrator(recorder, aggregator, incident_manager, session_factory):
    """Orchestrator for a checker, sharing the test's recorder, clock and notifier."""

    def _build(checker) -> MonitoringOrchestrator:
        return MonitoringOrchestrator(checker, recorder, aggregator, incident_manager, session_factory)

    return _build


@pytest.fixture
def mock_transport():
    """Factory for a transport answering every request with the same response."""

    def _mock_transport(status_code: int = 200, **response_kwargs) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, **response_kwargs)

        return httpx.MockTransport(handler)

    return _mock_transport


@pytest.fixture
def certificate_expiring_in(clock):
    """Factory for a stand-in of SslChecker._get_certificate_expiry."""

    def _certificate_expiring_in(**kwargs):
        def fake_expiry(host: str, port: int) -> datetime:
            return clock() + timedelta(**kwargs)

        return fake_expiry

    return _certificate_expiring_in
