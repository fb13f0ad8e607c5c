from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .routes_autopilot import router as autopilot_router
from .routes_blog import router as blog_router
from .routes_scheduler import router as scheduler_router
from .routes_social import function_router as social_function_router
from .routes_social import router as social_router
from .settings import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")

settings = get_settings()
app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url)
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.get("/ping")
async def ping():
    return {"status": "ok"}


app.include_router(autopilot_router)
app.include_router(social_function_router)
app.include_router(social_router)
app.include_router(blog_router)
app.include_router(scheduler_router)


@app.on_event("startup")
async def startup_event():
    """Start scheduler on app startup."""
    from autopilot.db import AsyncSessionLocal
    from autopilot.services.scheduler import scheduler_service
    scheduler_service.configure(session_factory=AsyncSessionLocal)
    scheduler_service.start()


@app.on_event("shutdown")
async def shutdown_event():
    from autopilot.services.scheduler import scheduler_service
    scheduler_service.stop()
