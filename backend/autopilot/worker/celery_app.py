"""
Celery application for background autopilot runs and notifications.

Broker/backend: Redis (REDIS_URL env).
Queues: autopilot (pipeline runs), notifications (Telegram summaries).
"""
from celery import Celery

from autopilot.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "content_autopilot",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_time_limit=30 * 60,        # 30 min hard limit
    task_soft_time_limit=25 * 60,   # 25 min soft limit
    task_default_queue="autopilot",
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # visibility_timeout MUST be > task_time_limit to prevent redelivery
    broker_transport_options={"visibility_timeout": 3600},
)

celery_app.autodiscover_tasks(["autopilot.worker"])
