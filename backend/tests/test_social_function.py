from datetime import datetime, timedelta, timezone

import pytest
from conftest import image_completion
from sqlalchemy import select

from autopilot.models import SocialConnection, SocialPlatform, SocialPost, SocialPublicationLog
from autopilot.services import publisher
from autopilot.services.llm_provider import LLMHTTPError

URL = "/functions/v1/social-media"


async def _post(session_factory, **kwargs) -> int:
    async with session_factory() as session:
        post = SocialPost(tenant_id="default", platform=kwargs.pop("platform", "linkedin"), caption="Hello", **kwargs)
        session.add(post)
        await session.commit()
        return post.id


async def _connect(session_factory, platform="linkedin", **kwargs):
    async with session_factory() as session:
        session.add(SocialConnection(tenant_id="default", platform=platform, account_name="Acme", **kwargs))
        await session.commit()


async def _logs(session_factory) -> list[SocialPublicationLog]:
    async with session_factory() as session:
        return list((await session.execute(select(SocialPublicationLog))).scalars().all())


async def test_publish_without_connection_marks_post_failed(client, session_factory):
    post_id = await _post(session_factory)

    resp = await client.post(URL, json={"action": "publish-post", "payload": {"post_id": post_id}})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Platform linkedin is not connected", "requires_connection": True}
    async with session_factory() as session:
        post = await session.get(SocialPost, post_id)
    assert post.status == "failed"
    assert post.error_message == "linkedin n'est pas connecté"
    logs = await _logs(session_factory)
    assert [(l.action, l.status, l.social_post_id) for l in logs] == [("published", "failed", post_id)]


async def test_publish_with_connection_is_simulated(client, session_factory):
    post_id = await _post(session_factory)
    await _connect(session_factory)

    resp = await client.post(URL, json={"action": "publish-post", "payload": {"post_id": post_id}})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["simulated"] is True
    assert body["message"] == publisher.SIMULATED_MESSAGE
    assert body["data"]["external_post_id"].startswith("sim_")
    assert body["data"]["external_post_url"].startswith("https://linkedin.com/post/")

    async with session_factory() as session:
        post = await session.get(SocialPost, post_id)
    assert post.status == "published"
    assert post.published_at is not None
    assert post.external_post_id == body["data"]["external_post_id"]
    logs = await _logs(session_factory)
    assert len(logs) == 1
    assert logs[0].status == "success"
    assert logs[0].details == body["data"]


async def test_disconnected_connection_does_not_count(client, session_factory):
    post_id = await _post(session_factory)
    await _connect(session_factory, connection_status="disconnected")

    resp = await client.post(URL, json={"action": "publish-post", "payload": {"post_id": post_id}})

    assert resp.status_code == 400
    assert resp.json()["requires_connection"] is True


async def test_rejected_post_cannot_be_published(client, session_factory):
    post_id = await _post(session_factory, approval_status="rejected")
    await _connect(session_factory)

    resp = await client.post(URL, json={"action": "publish-post", "payload": {"post_id": post_id}})

    assert resp.status_code == 400
    async with session_factory() as session:
        post = await session.get(SocialPost, post_id)
    assert post.status == "draft"
    assert await _logs(session_factory) == []


async def test_publish_missing_post(client):
    resp = await client.post(URL, json={"action": "publish-post", "payload": {"post_id": 404}})

    assert resp.status_code == 404
    assert resp.json() == {"error": "Post not found"}


async def test_adapter_failure_is_reported(client, session_factory, monkeypatch):
    post_id = await _post(session_factory)
    await _connect(session_factory)

    class Broken(publisher.PublisherAdapter):
        platform = "linkedin"

        async def publish(self, post, connection):
            raise RuntimeError("Bearer abc.def-123 rejected")

    monkeypatch.setitem(publisher._ADAPTERS, "linkedin", Broken())

    resp = await client.post(URL, json={"action": "publish-post", "payload": {"post_id": post_id}})

    assert resp.status_code == 502
    assert resp.json()["error"] == "Publish error: Bearer *** rejected"
    async with session_factory() as session:
        post = await session.get(SocialPost, post_id)
    assert post.status == "failed"


async def test_test_connection_states(client, session_factory):
    resp = await client.post(URL, json={"action": "test-connection", "payload": {"platform": "twitter"}})
    assert resp.json() == {"connected": False, "message": "twitter n'est pas encore connecté"}

    await _connect(
        session_factory,
        platform="twitter",
        token_expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    body = (await client.post(URL, json={"action": "test-connection", "payload": {"platform": "twitter"}})).json()
    assert body["connected"] is False
    assert body["requires_refresh"] is True
    assert body["account_name"] == "Acme"


async def test_unknown_action(client):
    resp = await client.post(URL, json={"action": "delete-everything"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Unknown action: delete-everything"}


async def test_invalid_payload(client):
    resp = await client.post(URL, json={"action": "test-connection", "payload": {"platform": "myspace"}})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid payload"


async def test_schedule_post_creates_scheduled_row_and_log(client, session_factory):
    when = "2026-11-02T09:30:00+00:00"
    resp = await client.post(URL, json={
        "action": "schedule-post",
        "payload": {"platform": "instagram", "caption": "Bientôt", "hashtags": ["#x"], "scheduled_for": when},
    })

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "scheduled"
    assert data["platform"] == "instagram"
    assert data["hashtags"] == ["#x"]
    logs = await _logs(session_factory)
    assert [(l.action, l.status, l.social_post_id) for l in logs] == [("scheduled", "success", data["id"])]
    assert logs[0].details["scheduled_for"].startswith("2026-11-02T09:30:00")


async def test_generate_captions_omits_failed_platforms(client, install_llm):
    def handler(model, messages, options):
        if "TWITTER" in messages[1]["content"]:
            return LLMHTTPError(500, "boom")
        return '```json\n{"caption": "Post", "hashtags": ["#a"]}\n```'

    fake = install_llm(handler)

    resp = await client.post(URL, json={
        "action": "generate-captions",
        "payload": {"title": "Titre", "excerpt": "Extrait", "platforms": ["linkedin", "twitter"]},
    })

    assert resp.status_code == 200
    assert resp.json()["data"] == {"linkedin": {"caption": "Post", "hashtags": ["#a"]}}
    assert len(fake.calls) == 2
    assert {c["options"]["temperature"] for c in fake.calls} == {0.8}


async def test_generate_captions_requires_gateway(client, install_llm):
    install_llm(lambda model, messages, options: "{}", configured=False)

    resp = await client.post(URL, json={
        "action": "generate-captions",
        "payload": {"title": "Titre", "platforms": ["linkedin"]},
    })

    assert resp.status_code == 500
    assert resp.json() == {"error": "AI service not configured"}


async def test_suggest_best_time(client, install_llm):
    install_llm(lambda model, messages, options: '{"best_times": [{"day": "mardi", "time": "10:00"}], "tips": []}')

    resp = await client.post(URL, json={"action": "suggest-best-time", "payload": {"platform": "linkedin"}})

    assert resp.status_code == 200
    assert resp.json()["data"]["best_times"][0]["day"] == "mardi"


async def test_suggest_best_time_invalid_json(client, install_llm):
    install_llm(lambda model, messages, options: "mardi matin")

    resp = await client.post(URL, json={"action": "suggest-best-time", "payload": {"platform": "linkedin"}})

    assert resp.status_code == 500
    assert resp.json() == {"error": "AI service returned invalid JSON"}


async def test_generate_image_returns_data_url(client, install_llm, clean_settings):
    fake = install_llm(lambda model, messages, options: image_completion(model))

    resp = await client.post(URL, json={
        "action": "generate-image",
        "payload": {"title": "Réforme 2026", "platform": "tiktok"},
    })

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["image_url"].startswith("data:image/png;base64,")
    assert data["platform"] == "tiktok"
    assert "1080x1920 (9:16)" in data["prompt_used"]
    assert fake.calls[0]["model"] == clean_settings.cover_image_model


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Bearer abc.def", "Bearer ***"),
        ("url?access_token=xyz&x=1", "url?access_token=***&x=1"),
        ("api_key: secret123", "api_key=***"),
        ("a" * 45, "***TOKEN***"),
        (None, None),
    ],
)
def test_sanitize(raw, expected):
    assert publisher._sanitize(raw) == expected


def test_every_platform_has_a_publisher():
    for platform in SocialPlatform:
        assert isinstance(publisher.get_publisher(platform.value.upper()), publisher.SimulatedPublisher)
    assert publisher.get_publisher("myspace") is None
    assert publisher.PublishResult(success=True, external_id="x", url="u").to_dict() == {
        "external_post_id": "x",
        "external_post_url": "u",
    }
