# lessonbook/config/celery_config.py
"""Celery configuration, task routing and beat schedule"""
from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from lessonbook.config.settings import get_settings

settings = get_settings()


def create_celery_app() -> Celery:
    """Create and configure Celery application"""

    celery_app = Celery(
        "lessonbook",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["lessonbook.tasks.schedule_tasks"],
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,

        # Task routing
        task_routes={
            "lessonbook.tasks.schedule_tasks.sync_tutor_slots": {"queue": "schedule"},
            "lessonbook.tasks.schedule_tasks.roll_forward_all_tutors": {"queue": "schedule"},
            "lessonbook.tasks.schedule_tasks.release_expired_holds": {"queue": "maintenance"},
            "lessonbook.tasks.schedule_tasks.complete_past_bookings": {"queue": "maintenance"},
        },

        # Queue definitions
        task_queues=(
            Queue("schedule", routing_key="schedule"),
            Queue("maintenance", routing_key="maintenance"),
        ),

        beat_schedule={
            "release-expired-holds": {
                "task": "lessonbook.tasks.schedule_tasks.release_expired_holds",
                "schedule": float(settings.HOLD_SWEEP_INTERVAL_SECONDS),
            },
            "complete-past-bookings": {
                "task": "lessonbook.tasks.schedule_tasks.complete_past_bookings",
                "schedule": crontab(minute=5),
            },
            "roll-forward-availability": {
                "task": "lessonbook.tasks.schedule_tasks.roll_forward_all_tutors",
                "schedule": crontab(hour=0, minute=15),
            },
        },

        # Worker settings
        worker_max_tasks_per_child=1000,
        worker_prefetch_multiplier=1,
        task_acks_late=True,

        # Retry settings
        task_retry_max_retries=3,
        task_retry_delay=60,  # 1 minute

        broker_connection_retry_on_startup=True,
    )

    return celery_app


# Create the Celery app instance
celery_app = create_celery_app()
