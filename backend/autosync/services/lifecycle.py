import logging
from datetime import datetime
from typing import Any, Dict, Optional

from autosync.config import settings
from autosync.models.lead import LeadAction, LeadModel, LeadTag
from autosync.services.booking import BookingAdapter, BookingConfirmation
from autosync.services.email import (
    BOOKING_CONFIRMATION_SUBJECT,
    GUIDE_DELIVERY_SUBJECT,
    EmailSender,
    render_booking_confirmation,
    render_guide_delivery,
)
from autosync.services.lead_store import LeadStore
from autosync.timeutils import ensure_utc

logger = logging.getLogger(__name__)

INITIAL_TAGS = {
    LeadAction.DOWNLOAD: LeadTag.DOWNLOADED_GUIDE,
    LeadAction.BOOK: LeadTag.BOOKED_DEMO,
}


def initial_tag(action: Optional[str]) -> LeadTag:
    try:
        return INITIAL_TAGS[LeadAction(action)]
    except (ValueError, KeyError):
        return LeadTag.NEW_LEAD


class LeadLifecycleService:
    """
    Applies pipeline transitions to leads and fires the emails that go with them.

    Storage errors propagate; email and Calendly failures are logged and the
    transition goes ahead without them.
    """

    def __init__(
        self,
        store: LeadStore,
        email_sender: EmailSender,
        booking_adapter: Optional[BookingAdapter] = None,
        send_booking_confirmation: Optional[bool] = None,
    ):
        self.store = store
        self.email_sender = email_sender
        self.booking_adapter = booking_adapter
        if send_booking_confirmation is None:
            send_booking_confirmation = settings.BOOKING_CONFIRMATION_ENABLED
        self.send_booking_confirmation = send_booking_confirmation

    async def create_lead(self, data: Dict[str, Any], action: Optional[str] = None) -> LeadModel:
        tag = initial_tag(action)
        # "book" counts as booked straight away, before Calendly confirms a time
        lead = LeadModel(**data, tag=tag, booked=tag == LeadTag.BOOKED_DEMO)
        lead = await self.store.insert(lead)
        logger.info(f"[LEADS] Created lead {lead.id} ({lead.email}) tagged '{tag.value}'")

        if tag == LeadTag.DOWNLOADED_GUIDE:
            await self._send_quietly(
                lead, GUIDE_DELIVERY_SUBJECT, render_guide_delivery(lead), "guide delivery"
            )
        return lead

    async def mark_booked(self, lead_id: str, event_ref: Optional[str] = None) -> LeadModel:
        start_time = end_time = None
        if event_ref and self.booking_adapter is not None:
            times = await self.booking_adapter.fetch_event_times(event_ref)
            if times:
                start_time, end_time = times

        previous, lead = await self.store.apply_booking(lead_id, start_time, end_time)
        logger.info(
            f"[BOOKING] Lead {lead_id} marked booked"
            + (f" for {start_time.isoformat()}" if start_time else " without exact times")
        )
        await self._confirm_if_rescheduled(previous, lead)
        return lead

    async def confirm_booking_by_email(self, confirmation: BookingConfirmation) -> Optional[LeadModel]:
        """
        Record a webhook-confirmed booking against the newest lead with that email.

        Returns None and changes nothing when no lead matches.
        """
        match = await self.store.find_latest_by_email(confirmation.email)
        if match is None:
            logger.warning(f"[WEBHOOK] No lead found for invitee {confirmation.email}")
            return None

        previous, lead = await self.store.apply_booking(
            match.id, confirmation.start_time, confirmation.end_time
        )
        logger.info(
            f"[WEBHOOK] Lead {lead.id} booked for {confirmation.start_time.isoformat()} "
            f"(timing from {confirmation.timing_source})"
        )
        # A fallback time is a guess that changes on every replay; don't announce it
        if confirmation.timing_source != "fallback":
            await self._confirm_if_rescheduled(previous, lead)
        return lead

    async def _confirm_if_rescheduled(self, previous: LeadModel, lead: LeadModel) -> None:
        if not self.send_booking_confirmation or lead.booking_start_time is None:
            return
        if _same_instant(previous.booking_start_time, lead.booking_start_time):
            return
        await self._send_quietly(
            lead, BOOKING_CONFIRMATION_SUBJECT, render_booking_confirmation(lead), "booking confirmation"
        )

    async def _send_quietly(self, lead: LeadModel, subject: str, html_body: str, kind: str) -> None:
        try:
            await self.email_sender.send(lead.email, subject, html_body)
        except Exception as e:
            # The lead is already stored; a failed email must not undo that
            logger.error(f"[EMAIL] Failed to send {kind} email to {lead.email}: {e}", exc_info=True)


def _same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None or b is None:
        return a is b
    # Mongo keeps millisecond precision
    return abs(ensure_utc(a) - ensure_utc(b)).total_seconds() < 0.001
