"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from ..config import get_settings

settings = get_settings()

# Use CELERY_BROKER_URL / CELERY_RESULT_BACKEND if set, otherwise REDIS_URL
CELERY_BROKER_URL = settings.celery_broker_url or settings.redis_url
CELERY_RESULT_BACKEND = settings.celery_result_backend or settings.redis_url

# Create Celery app
app = Celery(
    "marketplace",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=[
        "marketplace.tasks.search",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60 * 60,  # 1 hour
    task_soft_time_limit=55 * 60,  # 55 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Configure periodic tasks with Celery Beat
app.conf.beat_schedule = {
    # Refresh time-decayed relevance once per day
    "update-search-index-daily": {
        "task": "tasks.update_search_index",
        "schedule": crontab(hour=settings.update_hour, minute=settings.update_minute),
        # A run still waiting after a day is superseded by the next one
        "options": {"expires": 23 * 60 * 60},
    },
}

if __name__ == "__main__":
    app.start()
