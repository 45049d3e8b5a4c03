"""Celery tasks for Atlantic Pool.

The only periodic task is the standings refresh. It calls the same
``/api/standings/update`` endpoint an administrator uses, authenticated
with the cron secret, so the scheduler has no private write path.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import get_settings

settings = get_settings()
schedule = settings.load_defaults_config().get("schedule", {})

# Create Celery application
celery_app = Celery(
    "atlantic_pool",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.tasks.standings",
    ],
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
    # Task behavior
    task_track_started=True,
    task_time_limit=180,
    task_soft_time_limit=150,
    # Result expiration
    result_expires=3600,  # 1 hour
    # Worker settings
    worker_prefetch_multiplier=1,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # Standings refresh - daily
    "refresh-standings": {
        "task": "app.tasks.standings.refresh_standings",
        "schedule": crontab(
            hour=schedule.get("refresh_hour", 8),
            minute=schedule.get("refresh_minute", 0),
        ),
        "options": {"expires": 3600},
    },
}
