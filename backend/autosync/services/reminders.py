import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from autosync.config import settings
from autosync.errors import StorageError
from autosync.services.email import REMINDER_SUBJECT, EmailSender, render_reminder
from autosync.services.lead_store import LeadStore
from autosync.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    selected: int = 0
    sent: int = 0
    failed: int = 0


class ReminderSweepWorker:
    """
    One pass of the 24h follow-up: find leads that downloaded the guide,
    never booked and were never reminded, then send and mark each one.

    A lead is only marked after its email went out, so a failed send is
    retried on the next hourly pass. If the send succeeds but the mark
    write fails, the next pass will email that lead again; duplicate
    reminders are accepted over lost ones.
    """

    def __init__(self, store: LeadStore, email_sender: EmailSender, delay: Optional[timedelta] = None):
        self.store = store
        self.email_sender = email_sender
        self.delay = delay or timedelta(hours=settings.REMINDER_DELAY_HOURS)

    async def run_once(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or utcnow()
        cutoff = now - self.delay
        logger.info(f"[REMINDER] === SWEEP STARTED === cutoff={cutoff.isoformat()}")

        # StorageError here aborts the whole sweep; the next tick retries
        leads = await self.store.find_reminder_candidates(cutoff)
        result = SweepResult(selected=len(leads))
        hours = self.delay.total_seconds() / 3600
        logger.info(f"[REMINDER] Found {len(leads)} leads past the {hours:g}h mark")

        for lead in leads:
            try:
                await self.email_sender.send(lead.email, REMINDER_SUBJECT, render_reminder(lead))
            except Exception as e:
                result.failed += 1
                logger.warning(f"[REMINDER] Send failed for {lead.email}, will retry next sweep: {e}")
                continue

            try:
                marked = await self.store.mark_reminder_sent(lead.id)
            except StorageError as e:
                result.failed += 1
                logger.error(
                    f"[REMINDER] Reminder sent to {lead.email} but not recorded; "
                    f"it may be sent again next sweep: {e}"
                )
                continue

            result.sent += 1
            if not marked:
                logger.warning(f"[REMINDER] Lead {lead.id} was already marked by a concurrent sweep")

        logger.info(
            f"[REMINDER] === SWEEP COMPLETED === selected={result.selected} "
            f"sent={result.sent} failed={result.failed}"
        )
        return result
