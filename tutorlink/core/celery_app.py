"""Celery application instance for asynchronous task processing."""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from tutorlink.core.config import get_settings
from tutorlink.core.logging import setup_logging

# Load settings
settings = get_settings()

# Create Celery instance with unique application name
celery_app = Celery(
    "tutorlink_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["tutorlink.worker"],
)

# Configure Celery
celery_app.conf.update(
    # Serialization settings
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone settings
    timezone="UTC",
    enable_utc=True,

    # Task tracking and execution settings
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per task
    result_expires=3600,  # Results expire after 1 hour

    # Periodic maintenance
    beat_schedule={
        "expire-stale-payments": {
            "task": "expire_stale_payments",
            "schedule": 3600.0,
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    setup_logging(settings.LOG_LEVEL)
