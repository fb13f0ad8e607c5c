"""
Content autopilot function.

Single endpoint dispatching on the `action` field of the JSON body.
An absent or unknown action (or an unreadable body) means `run`.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from autopilot.db import get_session
from autopilot.models import RunTrigger
from autopilot.schemas import AutopilotRequest, SocialPostRead
from autopilot.services import autopilot as service
from autopilot.services.errors import AutopilotError
from autopilot.services.trend_detector import detect_trends
from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["autopilot"])
SessionDep = Depends(get_session)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


async def _read_body(request: Request) -> AutopilotRequest:
    try:
        raw = await request.json()
    except ValueError:
        raw = {}
    if not isinstance(raw, dict):
        raw = {}
    return AutopilotRequest.model_validate(raw)


@router.post("/content-autopilot")
async def content_autopilot(request: Request, session: AsyncSession = SessionDep):
    try:
        body = await _read_body(request)
    except ValidationError as exc:
        return _error(400, f"Invalid request: {exc.errors()[0].get('msg')}")

    tenant_id = body.tenant_id or get_settings().default_tenant
    action = body.action or "run"
    logger.info("[autopilot] action=%s tenant=%s", action, tenant_id)

    if action == "toggle":
        if body.enabled is None:
            return _error(400, "enabled required")
        return await service.toggle_autopilot(session, tenant_id, body.enabled)

    if action == "status":
        return await service.get_status(session, tenant_id)

    if action == "get-social-posts":
        if not body.article_id:
            return _error(400, "article_id required")
        posts = await service.get_social_posts_for_article(session, tenant_id, body.article_id)
        return {"success": True, "posts": posts}

    if action == "approve-post":
        if not body.post_id:
            return _error(400, "post_id required")
        post = await service.approve_post(session, tenant_id, body.post_id, bool(body.approved))
        if post is None:
            return _error(404, "Post not found")
        return {"success": True, "post": SocialPostRead.model_validate(post).model_dump(mode="json")}

    if action == "test-trends":
        try:
            trends = await detect_trends(body.topics or service.TEST_TREND_TOPICS)
        except AutopilotError as exc:
            return _error(500, str(exc))
        except Exception:
            logger.exception("[autopilot] test-trends failed")
            return _error(500, "Trend detection failed")
        return {"success": True, "trends": trends.model_dump()}

    if action == "update-settings":
        return await service.update_autopilot_settings(
            session,
            tenant_id,
            topics=body.topics,
            tone=body.tone,
            frequency=body.frequency.value if body.frequency else None,
            require_approval=body.require_approval,
            auto_publish_enabled=body.auto_publish_enabled,
        )

    run_action = "run-once" if action == "run-once" else "run"
    outcome = await service.run_autopilot(
        session,
        tenant_id,
        action=run_action,
        force=body.force,
        trigger=RunTrigger.run_once if run_action == "run-once" else RunTrigger.manual,
    )
    return JSONResponse(outcome.body, status_code=outcome.status_code)
