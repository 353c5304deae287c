"""Celery configuration and app."""

from celery import Celery
from celery.schedules import crontab

from krafts.core.config import settings

celery_app = Celery(
    "krafts",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task settings
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,

    # Result settings
    result_expires=3600,

    # Task routing
    task_routes={
        "krafts.workers.maintenance.*": {"queue": "maintenance"},
    },

    task_default_queue="default",

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Beat scheduler configuration
    beat_schedule={
        "cleanup-expired-otps": {
            "task": "krafts.workers.maintenance.cleanup_expired_otps",
            "schedule": crontab(minute=0),  # Every hour
            "options": {"queue": "maintenance"},
        },
        "cleanup-stale-presence": {
            "task": "krafts.workers.maintenance.cleanup_stale_presence",
            "schedule": crontab(minute="*/5"),
            "options": {"queue": "maintenance"},
        },
    },
)

# Import worker modules so tasks register with the app
import krafts.workers.maintenance  # noqa: F401, E402
