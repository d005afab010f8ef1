from celery import Celery
from celery.schedules import crontab
from ..platform.config import settings

celery_app = Celery(
    "clevrs",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "expire-assignment-candidates": {
            "task": "app.tasks.rotation_tasks.expire_candidates",
            "schedule": settings.EXPIRY_SWEEP_INTERVAL_SECONDS,
        },
        "cleanup-old-assignment-candidates-daily": {
            "task": "app.tasks.rotation_tasks.cleanup_old_candidates",
            "schedule": crontab(hour=3, minute=15),
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["app.tasks"])
