from celery import Celery
from celery.schedules import crontab

from rfqhub.config import settings

app = Celery(
    "rfqhub",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "rfqhub.tasks.event_tasks.*": {"queue": "events"},
        "rfqhub.tasks.lifecycle_tasks.*": {"queue": "lifecycle"},
    },
    beat_schedule={
        "expire-stale-rfqs": {
            "task": "rfqhub.tasks.lifecycle_tasks.expire_stale_rfqs",
            "schedule": crontab(minute=0),  # every hour
        },
    },
)

app.autodiscover_tasks(
    [
        "rfqhub.tasks.event_tasks",
        "rfqhub.tasks.lifecycle_tasks",
    ]
)
