import asyncio
import logging
from dataclasses import asdict

from autosync.celery_config import celery_app
from autosync.db.init import init_db
from autosync.services.email import SmtpEmailSender
from autosync.services.lead_store import LeadStore
from autosync.services.reminders import ReminderSweepWorker

logger = logging.getLogger(__name__)


@celery_app.task(name="autosync.tasks.send_reminders_task", acks_late=True)
def send_reminders_task():
    """
    Hourly 24h follow-up sweep.

    Not retried by Celery: leads that were not reminded this time are simply
    picked up again by the next hourly run.
    """
    async def sweep():
        await init_db()
        worker = ReminderSweepWorker(LeadStore(), SmtpEmailSender())
        return await worker.run_once()

    try:
        result = asyncio.run(sweep())
    except Exception as e:
        logger.error("=== SEND_REMINDERS_TASK FAILED ===")
        logger.error(f"Error: {e}", exc_info=True)
        raise
    return asdict(result)
