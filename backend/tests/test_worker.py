from autopilot.services import notify
from autopilot.worker import tasks
from autopilot.worker.celery_app import celery_app


def test_celery_routing_defaults():
    assert celery_app.conf.task_default_queue == "autopilot"
    assert celery_app.conf.task_serializer == "json"
    assert celery_app.conf.broker_transport_options["visibility_timeout"] > celery_app.conf.task_time_limit
    assert tasks.run_tenant.name == "autopilot.run_tenant"
    assert tasks.notify_run_summary.name == "notifications.run_summary"


def test_run_tenant_executes_async_run(monkeypatch):
    seen = []

    async def fake_run(tenant_id):
        seen.append(tenant_id)
        return {"success": True, "runId": 1}

    monkeypatch.setattr(tasks, "_run_tenant_async", fake_run)

    assert tasks.run_tenant.run("acme") == {"success": True, "runId": 1}
    assert seen == ["acme"]


def test_notify_task_sends_summary(monkeypatch):
    sent = []

    async def fake_send(summary):
        sent.append(summary)
        return True

    monkeypatch.setattr(notify, "send_run_summary", fake_send)

    assert tasks.notify_run_summary.run({"success": False, "runId": 2}) is True
    assert sent == [{"success": False, "runId": 2}]


async def test_run_tenant_uses_worker_owned_engine(monkeypatch, tmp_path):
    from autopilot import db

    url = f"sqlite+aiosqlite:///{tmp_path / 'worker.db'}"
    setup = db.make_engine(url)
    async with setup.begin() as conn:
        await conn.run_sync(db.Base.metadata.create_all)
    await setup.dispose()
    real_make_engine = db.make_engine
    created = []

    def make_engine(url_arg=None):
        engine = real_make_engine(url)
        created.append(engine)
        return engine

    monkeypatch.setattr(db, "make_engine", make_engine)

    body = await tasks._run_tenant_async("acme")

    assert body == {"success": False, "error": "Autopilot is not enabled"}
    assert len(created) == 1
