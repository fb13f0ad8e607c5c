from sqlalchemy import select

from autopilot.models import SocialAnalytics, SocialConnection, SocialPost, SocialPublicationLog


async def test_connection_upsert_and_disconnect(client, session_factory):
    resp = await client.put("/api/social/connections", json={
        "platform": "linkedin",
        "account_name": "  Acme Formation ",
        "access_token": "tok-1",
    })
    assert resp.status_code == 200
    first = resp.json()
    assert first["account_name"] == "Acme Formation"
    assert first["connection_status"] == "connected"
    assert first["last_connected_at"] is not None
    assert "access_token" not in first

    resp = await client.put("/api/social/connections", json={"platform": "linkedin", "access_token": "tok-2"})
    assert resp.json()["id"] == first["id"]
    assert resp.json()["account_name"] == "Acme Formation"

    resp = await client.post("/api/social/connections/linkedin/disconnect")
    assert resp.json()["connection_status"] == "disconnected"
    async with session_factory() as session:
        row = (await session.execute(select(SocialConnection))).scalar_one()
    assert row.access_token is None

    listed = (await client.get("/api/social/connections")).json()
    assert [c["platform"] for c in listed] == ["linkedin"]


async def test_disconnect_unknown_platform(client):
    resp = await client.post("/api/social/connections/tiktok/disconnect")

    assert resp.status_code == 404


async def _posts(session_factory) -> list[int]:
    async with session_factory() as session:
        posts = [
            SocialPost(tenant_id="default", platform="linkedin", caption="A"),
            SocialPost(tenant_id="default", platform="twitter", caption="B", status="published"),
            SocialPost(tenant_id="acme", platform="twitter", caption="C"),
        ]
        session.add_all(posts)
        await session.commit()
        return [p.id for p in posts]


async def test_list_posts_filters(client, session_factory):
    await _posts(session_factory)

    assert len((await client.get("/api/social/posts")).json()) == 2
    body = (await client.get("/api/social/posts", params={"status": "published"})).json()
    assert [p["caption"] for p in body] == ["B"]
    body = (await client.get("/api/social/posts", params={"platform": "twitter", "tenant_id": "acme"})).json()
    assert [p["caption"] for p in body] == ["C"]


async def test_update_post(client, session_factory):
    post_id = (await _posts(session_factory))[0]

    resp = await client.patch(f"/api/social/posts/{post_id}", json={"caption": "Nouveau", "hashtags": ["#a"]})

    assert resp.status_code == 200
    assert resp.json()["caption"] == "Nouveau"
    assert resp.json()["hashtags"] == ["#a"]
    assert resp.json()["status"] == "draft"


async def test_update_post_rejects_unknown_status(client, session_factory):
    post_id = (await _posts(session_factory))[0]

    resp = await client.patch(f"/api/social/posts/{post_id}", json={"status": "viral"})

    assert resp.status_code == 400


async def test_cancel_post(client, session_factory):
    post_id = (await _posts(session_factory))[0]

    resp = await client.delete(f"/api/social/posts/{post_id}")

    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"


async def test_cancel_post_of_other_tenant_is_404(client, session_factory):
    other_id = (await _posts(session_factory))[2]

    resp = await client.delete(f"/api/social/posts/{other_id}")

    assert resp.status_code == 404


async def test_settings_get_creates_defaults_then_patch(client):
    body = (await client.get("/api/social/settings")).json()
    assert body["tenant_id"] == "default"
    assert body["autopilot_enabled"] is False
    assert body["require_approval"] is True
    assert body["autopilot_frequency"] == "daily"

    resp = await client.patch("/api/social/settings", json={
        "autopilot_frequency": "weekly",
        "forbidden_words": ["gratuit"],
        "auto_publish_platforms": ["linkedin"],
    })
    body = resp.json()
    assert resp.status_code == 200
    assert body["autopilot_frequency"] == "weekly"
    assert body["forbidden_words"] == ["gratuit"]
    assert body["auto_publish_platforms"] == ["linkedin"]
    assert body["require_approval"] is True


async def test_settings_patch_rejects_unknown_frequency(client):
    resp = await client.patch("/api/social/settings", json={"autopilot_frequency": "hourly"})

    assert resp.status_code == 422


async def test_logs_and_analytics(client, session_factory):
    async with session_factory() as session:
        posts = [
            SocialPost(tenant_id="default", platform="linkedin", caption="A"),
            SocialPost(tenant_id="default", platform="linkedin", caption="B"),
        ]
        session.add_all(posts)
        await session.flush()
        session.add_all([
            SocialAnalytics(social_post_id=posts[0].id, platform="linkedin", likes=10, views=100, engagement_rate=0.1),
            SocialAnalytics(social_post_id=posts[1].id, platform="linkedin", likes=5, views=50, engagement_rate=0.3),
            SocialPublicationLog(
                tenant_id="default", social_post_id=posts[0].id, action="published", status="success", platform="linkedin"
            ),
        ])
        await session.commit()

    logs = (await client.get("/api/social/logs")).json()
    assert [(l["action"], l["status"]) for l in logs] == [("published", "success")]

    stats = (await client.get("/api/social/analytics")).json()
    assert len(stats) == 1
    assert stats[0]["platform"] == "linkedin"
    assert stats[0]["posts"] == 2
    assert stats[0]["likes"] == 15
    assert stats[0]["views"] == 150
    assert stats[0]["comments"] == 0
    assert abs(stats[0]["avg_engagement_rate"] - 0.2) < 1e-9
