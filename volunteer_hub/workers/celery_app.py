"""
Celery application instance.

Configured with Redis broker and backend.
"""

from celery import Celery
from celery.schedules import crontab

from volunteer_hub.core.config import settings

celery_app = Celery(
    "volunteer_hub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "volunteer_hub.workers.email_tasks",
        "volunteer_hub.workers.maintenance_tasks",
    ],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Results
    result_expires=3600,
    # Retry policy
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Concurrency
    worker_prefetch_multiplier=1,
    # Routing
    task_default_queue="default",
    task_queues={
        "default": {},
        "email": {},
        "maintenance": {},
    },
    task_routes={
        "volunteer_hub.workers.email_tasks.*": {"queue": "email"},
        "volunteer_hub.workers.maintenance_tasks.*": {"queue": "maintenance"},
    },
    # Periodic jobs (run with `celery -A volunteer_hub.workers.celery_app beat`)
    beat_schedule={
        "purge-expired-magic-links": {
            "task": "volunteer_hub.workers.maintenance_tasks.purge_expired_magic_links",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
