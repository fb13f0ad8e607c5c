import asyncio
import json

import httpx

from autopilot.services import notify


def test_format_success_summary():
    text = notify.format_run_summary({
        "success": True,
        "runId": 7,
        "tenant_id": "acme",
        "topic": "IA & formation",
        "socialPostsGenerated": 4,
    })

    assert "run #7 completed" in text
    assert "IA &amp; formation" in text
    assert "4 social posts" in text


def test_format_failure_escapes_error():
    text = notify.format_run_summary({"success": False, "runId": 3, "error": "<bad> response"})

    assert "run #3 failed" in text
    assert "<code>&lt;bad&gt; response</code>" in text
    assert "default" in text


async def test_dispatch_is_noop_without_telegram(monkeypatch):
    sent = []

    async def fake_send(summary):
        sent.append(summary)
        return True

    monkeypatch.setattr(notify, "send_run_summary", fake_send)

    notify.dispatch_run_summary({"success": True, "runId": 1})
    await asyncio.sleep(0)

    assert sent == []


async def test_dispatch_schedules_background_send(monkeypatch, clean_settings):
    monkeypatch.setattr(clean_settings, "telegram_bot_token", "bot-token")
    monkeypatch.setattr(clean_settings, "telegram_chat_id", "42")
    sent = []

    async def fake_send(summary):
        sent.append(summary)
        return True

    monkeypatch.setattr(notify, "send_run_summary", fake_send)

    notify.dispatch_run_summary({"success": True, "runId": 1})
    await asyncio.gather(*notify._background)

    assert sent == [{"success": True, "runId": 1}]


async def test_send_telegram_posts_html_message(monkeypatch, clean_settings):
    monkeypatch.setattr(clean_settings, "telegram_bot_token", "bot-token")
    monkeypatch.setattr(clean_settings, "telegram_chat_id", "42")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True})

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        notify.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    assert await notify.send_telegram("hello") is True
    assert seen["url"] == "https://api.telegram.org/botbot-token/sendMessage"
    assert seen["body"]["chat_id"] == "42"
    assert seen["body"]["parse_mode"] == "HTML"
