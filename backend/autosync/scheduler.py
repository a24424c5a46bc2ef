import logging
from celery.schedules import crontab

from autosync.celery_config import celery_app
from autosync.config import settings

logger = logging.getLogger(__name__)

REMINDER_SCHEDULE_NAME = "send-lead-reminders"


def configure_periodic_tasks(app=celery_app):
    """Register the beat schedule: the 24h reminder sweep at the top of every hour."""
    app.conf.beat_schedule = {
        REMINDER_SCHEDULE_NAME: {
            "task": "autosync.tasks.send_reminders_task",
            "schedule": crontab(minute=0),
            # Drop a tick that sat in the queue too long rather than stack sweeps
            "options": {"expires": settings.REMINDER_TASK_EXPIRES_S},
        },
    }
    logger.info("Periodic tasks configured successfully")


configure_periodic_tasks()
