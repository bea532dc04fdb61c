from celery import Celery

from farmestly.config import settings

celery_app = Celery(
    "farmestly",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["farmestly.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "cleanup-expired-reports": {
            "task": "cleanup_expired_reports",
            "schedule": settings.report_cleanup_interval_minutes * 60.0,
        },
        "cleanup-email-queue": {
            "task": "cleanup_email_queue",
            "schedule": 24 * 60 * 60.0,
        },
    },
)
