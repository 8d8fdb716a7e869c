import pytest
from sqlalchemy import select

from sitehealth.models import Incident, Site, SiteCheck
from sitehealth.models.enums import CheckType, HealthStatus, IncidentType
from sitehealth.services.checker import SslChecker, UptimeChecker
from sitehealth.services.directory import MonitoredSite, get_monitored_sites


async def _open_incidents(session_factory, site_id):
    async with session_factory() as session:
        result = await session.execute(
            select(Incident).where(Incident.site_id == site_id, Incident.resolved_at.is_(None))
        )
        return {incident.type: incident for incident in result.scalars().all()}


async def _site(session_factory, site_id) -> Site:
    async with session_factory() as session:
        return await session.get(Site, site_id)


@pytest.mark.asyncio
async def test_monitored_sites_eligibility(session, make_site) -> None:
    active = await make_site(name="Active", contact_form_endpoint="https://active.example/contact")
    no_form = await make_site(name="No Form")
    await make_site(name="Paused", project_status="Paused")
    await make_site(name="No Url", website_url=None)
    await make_site(name="Blank Url", website_url="")
    await make_site(name="Blank Form", contact_form_endpoint="")

    uptime = await get_monitored_sites(session, CheckType.UPTIME)
    contact = await get_monitored_sites(session, CheckType.CONTACT_FORM)

    assert [s.name for s in uptime] == ["Active", "No Form", "Blank Form"]
    assert [s.name for s in await get_monitored_sites(session, CheckType.SSL)] == [s.name for s in uptime]
    assert contact == [MonitoredSite(
        id=active.id,
        name="Active",
        website_url="https://acme.example",
        contact_form_endpoint="https://active.example/contact",
    )]
    assert no_form.id not in [s.id for s in contact]


@pytest.mark.asyncio
async def test_healthy_uptime_resolves_open_incidents(
    session, session_factory, build_orchestrator, incident_manager, notifier, make_site, mock_transport, clock
) -> None:
    site = await make_site(name="Site A")
    monitored = MonitoredSite.from_site(site)
    await incident_manager.handle_incident(session, monitored, IncidentType.DOWN, "HTTP 503")
    await incident_manager.handle_incident(session, monitored, IncidentType.DEGRADED, "HTTP 404")

    clock.advance(minutes=30)
    results = await build_orchestrator(UptimeChecker(transport=mock_transport(200))).run()

    assert len(results) == 1
    assert results[0].name == "Site A"
    assert results[0].status is HealthStatus.HEALTHY
    assert results[0].error is None

    assert await _open_incidents(session_factory, site.id) == {}
    resolved = [m for m in notifier.messages if m.startswith("✅")]
    assert len(resolved) == 2

    stored = await _site(session_factory, site.id)
    assert stored.current_health_status is HealthStatus.HEALTHY
    assert stored.last_health_check == clock()


@pytest.mark.asyncio
async def test_ssl_expiring_alerts_once(
    session_factory, build_orchestrator, notifier, make_site, clock, certificate_expiring_in
) -> None:
    site = await make_site(name="Site B")
    checker = SslChecker(clock=clock)
    orchestrator = build_orchestrator(checker)

    checker._get_certificate_expiry = certificate_expiring_in(days=10)
    results = await orchestrator.run()

    assert results[0].status is HealthStatus.DEGRADED
    assert results[0].days_remaining == 10
    incidents = await _open_incidents(session_factory, site.id)
    assert set(incidents) == {IncidentType.SSL_EXPIRING}
    assert incidents[IncidentType.SSL_EXPIRING].alert_count == 1
    assert notifier.messages[0].startswith("🟡 <b>Site B</b>\nSSL expires in 10 days")

    clock.advance(minutes=30)
    checker._get_certificate_expiry = certificate_expiring_in(days=9)
    results = await orchestrator.run()

    assert results[0].days_remaining == 9
    incidents = await _open_incidents(session_factory, site.id)
    assert incidents[IncidentType.SSL_EXPIRING].alert_count == 1
    assert len(notifier.messages) == 1
    assert (await _site(session_factory, site.id)).current_health_status is HealthStatus.DEGRADED


@pytest.mark.asyncio
async def test_ssl_connection_failure_leaves_incidents_alone(
    session_factory, build_orchestrator, notifier, make_site, clock, certificate_expiring_in
) -> None:
    site = await make_site()
    checker = SslChecker(clock=clock)
    orchestrator = build_orchestrator(checker)

    checker._get_certificate_expiry = certificate_expiring_in(days=5)
    await orchestrator.run()

    def refuse(host: str, port: int):
        raise ConnectionResetError("Connection reset by peer")

    clock.advance(days=1)
    checker._get_certificate_expiry = refuse
    results = await orchestrator.run()

    assert results[0].status is HealthStatus.DEGRADED
    assert results[0].days_remaining is None
    # Still open, not resolved by a failed connection
    assert set(await _open_incidents(session_factory, site.id)) == {IncidentType.SSL_EXPIRING}
    assert len(notifier.messages) == 1


@pytest.mark.asyncio
async def test_uptime_down_keeps_degraded_incident_open(
    session_factory, build_orchestrator, make_site, mock_transport, clock
) -> None:
    site = await make_site()

    await build_orchestrator(UptimeChecker(transport=mock_transport(404))).run()
    clock.advance(minutes=30)
    results = await build_orchestrator(UptimeChecker(transport=mock_transport(503))).run()

    assert results[0].status is HealthStatus.DOWN
    assert set(await _open_incidents(session_factory, site.id)) == {IncidentType.DOWN, IncidentType.DEGRADED}
    assert (await _site(session_factory, site.id)).current_health_status is HealthStatus.DOWN


@pytest.mark.asyncio
async def test_overall_status_combines_check_types(
    session_factory, build_orchestrator, make_site, mock_transport, clock, certificate_expiring_in
) -> None:
    site = await make_site()
    ssl_checker = SslChecker(clock=clock)
    ssl_checker._get_certificate_expiry = certificate_expiring_in(days=3)

    await build_orchestrator(ssl_checker).run()
    await build_orchestrator(UptimeChecker(transport=mock_transport(200))).run()

    # Healthy uptime does not hide the expiring certificate
    assert (await _site(session_factory, site.id)).current_health_status is HealthStatus.DEGRADED


@pytest.mark.asyncio
async def test_every_site_failing_is_reported(
    session_factory, build_orchestrator, notifier, make_site, mock_transport
) -> None:
    sites = [await make_site(name=f"Site {n}") for n in range(3)]

    results = await build_orchestrator(UptimeChecker(transport=mock_transport(502))).run()

    assert [r.status for r in results] == [HealthStatus.DOWN] * 3
    assert len(notifier.messages) == 3
    for site in sites:
        assert set(await _open_incidents(session_factory, site.id)) == {IncidentType.DOWN}


class _FlakyChecker(UptimeChecker):
    """Blows up for one site by name."""

    async def check(self, site):
        if site.name == "Broken Co":
            raise RuntimeError("boom")
        return await super().check(site)


@pytest.mark.asyncio
async def test_one_site_failure_does_not_stop_the_run(
    session_factory, build_orchestrator, make_site, mock_transport
) -> None:
    await make_site(name="Broken Co")
    healthy = await make_site(name="Fine Co")

    results = await build_orchestrator(_FlakyChecker(transport=mock_transport(200))).run()

    by_name = {r.name: r for r in results}
    assert by_name["Broken Co"].status is None
    assert by_name["Broken Co"].error == "boom"
    assert by_name["Fine Co"].status is HealthStatus.HEALTHY
    assert by_name["Fine Co"].error is None
    assert (await _site(session_factory, healthy.id)).current_health_status is HealthStatus.HEALTHY


@pytest.mark.asyncio
async def test_pipeline_failure_after_check_keeps_status(
    session_factory, build_orchestrator, incident_manager, make_site, mock_transport, monkeypatch
) -> None:
    site = await make_site()

    async def broken_handle(*args, **kwargs):
        raise RuntimeError("incident store unavailable")

    monkeypatch.setattr(incident_manager, "handle_incident", broken_handle)
    results = await build_orchestrator(UptimeChecker(transport=mock_transport(500))).run()

    assert results[0].status is HealthStatus.DOWN
    assert results[0].error == "incident store unavailable"
    # The result itself was recorded before the failure
    async with session_factory() as session:
        checks = (await session.execute(select(SiteCheck))).scalars().all()
    assert [c.status for c in checks] == [HealthStatus.DOWN]


@pytest.mark.asyncio
async def test_no_eligible_sites(build_orchestrator, make_site, mock_transport) -> None:
    await make_site(project_status="Archived")

    assert await build_orchestrator(UptimeChecker(transport=mock_transport(200))).run() == []