"""
Notification service: Telegram alerts for finished autopilot runs.

Env:
  TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID

Delivery is best-effort and never blocks or fails the caller: with Celery
enabled the message goes through the `notifications` queue, otherwise it is
sent from a background asyncio task.
"""
from __future__ import annotations

import asyncio
import html
import logging
from typing import Any

import httpx

from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

_background: set[asyncio.Task] = set()


def _get_config() -> tuple[str | None, str | None]:
    s = get_settings()
    return s.telegram_bot_token, s.telegram_chat_id


def is_configured() -> bool:
    token, chat_id = _get_config()
    return bool(token and chat_id)


async def send_telegram(text: str) -> bool:
    token, chat_id = _get_config()
    if not token or not chat_id:
        logger.debug("[notify] Telegram not configured, skipping")
        return False
    url = f"https://api.telegram.org/bot{token}/sendMessage"
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.post(url, json={
                "chat_id": chat_id,
                "text": text[:4000],
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            })
            if r.status_code == 200:
                return True
            logger.warning(f"[notify] Telegram API {r.status_code}: {r.text[:200]}")
    except Exception as e:
        logger.warning(f"[notify] Telegram send failed: {e}")
    return False


def format_run_summary(summary: dict[str, Any]) -> str:
    run_id = summary.get("runId")
    tenant = html.escape(str(summary.get("tenant_id") or "default"))
    if summary.get("success"):
        return (
            f"✅ <b>Autopilot run #{run_id} completed</b>\n\n"
            f"🏢 {tenant}\n"
            f"📰 {html.escape(str(summary.get('topic') or ''))}\n"
            f"📱 {summary.get('socialPostsGenerated', 0)} social posts"
        )
    error = html.escape(str(summary.get("error") or "unknown error"))[:300]
    return (
        f"❌ <b>Autopilot run #{run_id} failed</b>\n\n"
        f"🏢 {tenant}\n"
        f"<code>{error}</code>"
    )


async def send_run_summary(summary: dict[str, Any]) -> bool:
    return await send_telegram(format_run_summary(summary))


def dispatch_run_summary(summary: dict[str, Any]) -> None:
    """Fire-and-forget run notification. Failures are logged, never raised."""
    if not is_configured():
        return

    if get_settings().celery_enabled:
        try:
            from autopilot.worker.tasks import notify_run_summary
            notify_run_summary.apply_async(args=[summary], queue="notifications")
        except Exception as e:
            logger.warning(f"[notify] Could not enqueue run summary: {e}")
        return

    try:
        task = asyncio.get_running_loop().create_task(send_run_summary(summary))
    except RuntimeError:
        logger.warning("[notify] No running event loop, run summary dropped")
        return
    _background.add(task)
    task.add_done_callback(_background.discard)
