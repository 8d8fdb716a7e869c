import sqlite3
from datetime import timedelta

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError

from sitehealth.models import SiteCheck
from sitehealth.models.enums import CheckType, HealthStatus
from sitehealth.services.checker import CheckOutcome


@pytest.mark.asyncio
async def test_record_stores_outcome(session, recorder, make_site, clock) -> None:
    site = await make_site()
    outcome = CheckOutcome(
        status=HealthStatus.DOWN,
        response_time_ms=812,
        status_code=503,
        error_message="HTTP 503",
    )

    check = await recorder.record(session, site.id, CheckType.UPTIME, outcome)

    assert check.id is not None
    stored = await session.get(SiteCheck, check.id)
    assert stored.site_id == site.id
    assert stored.check_type is CheckType.UPTIME
    assert stored.status is HealthStatus.DOWN
    assert stored.status_code == 503
    assert stored.response_time_ms == 812
    assert stored.error_message == "HTTP 503"
    assert stored.checked_at == clock()


@pytest.mark.asyncio
async def test_latest_checks_returns_newest_per_type(session, recorder, make_site, clock) -> None:
    site = await make_site()
    other = await make_site(name="Other Co", website_url="https://other.example")

    await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.DOWN))
    await recorder.record(session, site.id, CheckType.SSL, CheckOutcome(status=HealthStatus.DEGRADED, ssl_days_remaining=9))
    clock.advance(minutes=30)
    await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.HEALTHY))
    await recorder.record(session, other.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.DOWN))

    latest = await recorder.latest_checks(session, site.id)

    assert set(latest) == {CheckType.UPTIME, CheckType.SSL}
    assert latest[CheckType.UPTIME].status is HealthStatus.HEALTHY
    assert latest[CheckType.SSL].ssl_days_remaining == 9


@pytest.mark.asyncio
async def test_latest_checks_breaks_timestamp_ties_by_insertion(session, recorder, make_site) -> None:
    site = await make_site()

    await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.DOWN))
    await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.HEALTHY))

    latest = await recorder.latest_checks(session, site.id)

    assert latest[CheckType.UPTIME].status is HealthStatus.HEALTHY


@pytest.mark.asyncio
async def test_latest_checks_empty_for_unchecked_site(session, recorder, make_site) -> None:
    site = await make_site()

    assert await recorder.latest_checks(session, site.id) == {}


@pytest.mark.asyncio
async def test_prune_deletes_results_past_retention(session, recorder, make_site, clock) -> None:
    site = await make_site()
    now = clock()

    await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.DOWN),
                          checked_at=now - timedelta(days=45))
    await recorder.record(session, site.id, CheckType.SSL, CheckOutcome(status=HealthStatus.HEALTHY),
                          checked_at=now - timedelta(days=31))
    await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.HEALTHY),
                          checked_at=now - timedelta(days=2))

    deleted = await recorder.prune(session)

    assert deleted == 2
    remaining = await session.scalar(select(func.count()).select_from(SiteCheck))
    assert remaining == 1


def _fail_statements(engine, prefix: str, error: str, times: int):
    """Make the next `times` statements starting with prefix raise a driver error."""
    failures = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith(prefix) and len(failures) < times:
            failures.append(statement)
            raise sqlite3.OperationalError(error)

    event.listen(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    return failures, lambda: event.remove(engine.sync_engine, "before_cursor_execute", before_cursor_execute)


@pytest.mark.asyncio
async def test_record_retries_after_database_lock(session, recorder, make_site, engine) -> None:
    site = await make_site()
    failures, restore = _fail_statements(engine, "INSERT INTO site_checks", "database is locked", times=1)
    try:
        check = await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.DOWN))
    finally:
        restore()

    assert len(failures) == 1
    assert check.id is not None
    assert await session.scalar(select(func.count()).select_from(SiteCheck)) == 1


@pytest.mark.asyncio
async def test_record_gives_up_on_persistent_lock(session, recorder, make_site, engine) -> None:
    site = await make_site()
    failures, restore = _fail_statements(engine, "INSERT INTO site_checks", "database is locked", times=10)
    try:
        with pytest.raises(OperationalError):
            await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.DOWN))
    finally:
        restore()

    assert len(failures) == 3
    assert await session.scalar(select(func.count()).select_from(SiteCheck)) == 0


@pytest.mark.asyncio
async def test_record_does_not_retry_other_errors(session, recorder, make_site, engine) -> None:
    site = await make_site()
    failures, restore = _fail_statements(engine, "INSERT INTO site_checks", "disk I/O error", times=10)
    try:
        with pytest.raises(OperationalError):
            await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.DOWN))
    finally:
        restore()

    assert len(failures) == 1


@pytest.mark.asyncio
async def test_prune_retries_after_database_lock(session, recorder, make_site, clock, engine) -> None:
    site = await make_site()
    await recorder.record(session, site.id, CheckType.UPTIME, CheckOutcome(status=HealthStatus.DOWN))
    clock.advance(days=31)

    failures, restore = _fail_statements(engine, "DELETE FROM site_checks", "database is locked", times=1)
    try:
        deleted = await recorder.prune(session)
    finally:
        restore()

    assert len(failures) == 1
    assert deleted == 1
