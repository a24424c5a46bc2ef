import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from autosync.api.deps import get_lifecycle_service
from autosync.errors import StorageError
from autosync.services.booking import parse_webhook_event
from autosync.services.lifecycle import LeadLifecycleService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/webhooks/calendly", response_class=PlainTextResponse)
async def calendly_webhook(
    request: Request,
    lifecycle: LeadLifecycleService = Depends(get_lifecycle_service),
):
    """
    Calendly ``invitee.created`` notifications.

    Calendly retries on non-2xx, so anything we can't use is still
    acknowledged; only a storage failure returns 500 to get a redelivery.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("[WEBHOOK] Body is not valid JSON")
        return PlainTextResponse("Invalid payload", status_code=400)

    logger.info(f"[WEBHOOK] Received Calendly event {body.get('event') if isinstance(body, dict) else None!r}")
    confirmation = parse_webhook_event(body)
    if confirmation is None:
        return PlainTextResponse("Webhook received")

    try:
        await lifecycle.confirm_booking_by_email(confirmation)
    except StorageError as e:
        logger.error(f"[WEBHOOK] Calendly webhook error: {e}", exc_info=True)
        return PlainTextResponse("Error processing webhook", status_code=500)
    return PlainTextResponse("Webhook received")
