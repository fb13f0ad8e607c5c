from datetime import datetime, timedelta, timezone

import pytest

from autopilot.models import PublishingSettings
from autopilot.services import autopilot as autopilot_service
from autopilot.services.autopilot import RunOutcome, due_tenants, is_run_due
from autopilot.services.scheduler import SchedulerService
from autopilot.worker import tasks

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "frequency, elapsed, due",
    [
        ("daily", timedelta(hours=23), False),
        ("daily", timedelta(hours=24), True),
        ("3x_week", timedelta(hours=55), False),
        ("3x_week", timedelta(hours=56), True),
        ("weekly", timedelta(days=6), False),
        ("weekly", timedelta(days=7), True),
        ("hourly", timedelta(hours=23), False),
    ],
)
def test_is_run_due(frequency, elapsed, due):
    assert is_run_due(frequency, NOW - elapsed, NOW) is due


def test_never_run_is_due():
    assert is_run_due("weekly", None, NOW) is True


def test_naive_last_run_is_utc():
    assert is_run_due("daily", (NOW - timedelta(hours=25)).replace(tzinfo=None), NOW) is True


async def _seed_tenants(session_factory):
    recent = datetime.now(timezone.utc) - timedelta(hours=1)
    old = datetime.now(timezone.utc) - timedelta(days=2)
    async with session_factory() as session:
        session.add_all([
            PublishingSettings(tenant_id="never-ran", autopilot_enabled=True),
            PublishingSettings(tenant_id="ran-recently", autopilot_enabled=True, autopilot_last_run=recent),
            PublishingSettings(tenant_id="ran-long-ago", autopilot_enabled=True, autopilot_last_run=old),
            PublishingSettings(tenant_id="disabled", autopilot_enabled=False),
            PublishingSettings(tenant_id="stopped", autopilot_enabled=True, emergency_stop=True),
        ])
        await session.commit()


async def test_due_tenants_filters_enabled_and_elapsed(session_factory):
    await _seed_tenants(session_factory)

    async with session_factory() as session:
        due = await due_tenants(session)

    assert sorted(due) == ["never-ran", "ran-long-ago"]


async def test_tick_runs_due_tenants_inline(session_factory, monkeypatch):
    await _seed_tenants(session_factory)
    calls = []

    async def fake_run(session, tenant_id, *, action="run", force=False, trigger=None):
        calls.append((tenant_id, trigger))
        ok = tenant_id == "never-ran"
        return RunOutcome(200 if ok else 500, {"success": ok})

    monkeypatch.setattr(autopilot_service, "run_autopilot", fake_run)
    service = SchedulerService()
    service.configure(session_factory=session_factory)

    result = await service._run_autopilot_tick()

    assert result == {"processed": 2, "completed": 1, "failed": 1}
    assert sorted(t for t, _ in calls) == ["never-ran", "ran-long-ago"]
    assert {trigger.value for _, trigger in calls} == {"scheduled"}


async def test_tick_enqueues_when_celery_enabled(session_factory, monkeypatch, clean_settings):
    await _seed_tenants(session_factory)
    monkeypatch.setattr(clean_settings, "celery_enabled", True)
    enqueued = []

    class FakeTask:
        def apply_async(self, args, queue):
            enqueued.append((args[0], queue))

    monkeypatch.setattr(tasks, "run_tenant", FakeTask())
    service = SchedulerService()
    service.configure(session_factory=session_factory)

    result = await service._run_autopilot_tick()

    assert sorted(result["enqueued"]) == ["never-ran", "ran-long-ago"]
    assert {queue for _, queue in enqueued} == {"autopilot"}


async def test_start_respects_disabled_flag(monkeypatch, clean_settings):
    monkeypatch.setattr(clean_settings, "scheduler_enabled", False)
    service = SchedulerService()

    service.start()

    assert service.is_running() is False
    assert service.get_jobs() == []


async def test_start_registers_tick_job(monkeypatch, clean_settings):
    monkeypatch.setattr(clean_settings, "scheduler_enabled", True)
    service = SchedulerService()
    try:
        service.start()
        jobs = service.get_jobs()
        assert service.is_running() is True
        assert [j["id"] for j in jobs] == ["autopilot_tick"]
        assert jobs[0]["next_run"] is not None
    finally:
        service.stop()
    assert service.is_running() is False


async def test_run_now_unknown_job():
    assert await SchedulerService().run_now("nope") == {"error": "Job nope not found"}


async def test_scheduler_status_route(client):
    resp = await client.get("/api/scheduler/status")

    assert resp.status_code == 200
    assert resp.json() == {"running": False, "jobs_count": 0, "jobs": []}


async def test_scheduler_routes_when_disabled(client, monkeypatch, clean_settings):
    monkeypatch.setattr(clean_settings, "scheduler_enabled", False)

    assert (await client.post("/api/scheduler/start")).json() == {"status": "disabled"}
    assert (await client.post("/api/scheduler/stop")).json() == {"status": "already_stopped"}

    resp = await client.post("/api/scheduler/jobs/nope/run")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Job nope not found"}
