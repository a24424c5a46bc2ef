"""
Calendly booking adapter.

A booking reaches us two ways, with no ordering or single-delivery guarantee
between them:

* Path A: the booking page redirects back with a Calendly event URI, which
  we resolve against the Calendly API to get the exact start/end times.
* Path B: Calendly posts an ``invitee.created`` webhook carrying the
  invitee's email and (depending on setup) the timing.

Both end in the same keyed ``$set`` on the lead, so replaying either one is
harmless.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Tuple
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from autosync.config import settings
from autosync.errors import ExternalServiceError
from autosync.timeutils import parse_timestamp, utcnow

logger = logging.getLogger(__name__)

INVITEE_CREATED = "invitee.created"
DEFAULT_MEETING_LENGTH = timedelta(minutes=30)


class _Timing(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start_time: Optional[Any] = None
    end_time: Optional[Any] = None


class InviteePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    name: Optional[str] = None
    start_time: Optional[Any] = None
    end_time: Optional[Any] = None
    tracking: Optional[_Timing] = None
    scheduled_event: Optional[_Timing] = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: Optional[str] = None
    payload: Optional[InviteePayload] = None


@dataclass(frozen=True)
class BookingConfirmation:
    """A webhook booking normalised to what the lead store needs."""
    email: str
    name: Optional[str]
    start_time: datetime
    end_time: datetime
    timing_source: str  # tracking | payload | scheduled_event | fallback


def _read_timing(timing: Optional[_Timing]) -> Optional[Tuple[datetime, Optional[datetime]]]:
    if timing is None or timing.start_time in (None, ""):
        return None
    try:
        start = parse_timestamp(timing.start_time)
        end = parse_timestamp(timing.end_time)
    except (TypeError, ValueError) as e:
        logger.warning(f"[WEBHOOK] Ignoring unparseable booking time: {e}")
        return None
    return start, end


def parse_webhook_event(body: Any, now: Optional[datetime] = None) -> Optional[BookingConfirmation]:
    """
    Normalise a raw Calendly webhook body.

    Returns None for anything other than an ``invitee.created`` event that
    names an invitee email. Timing is taken from the first shape that has a
    start time; with none, the booking is assumed to start now and last
    thirty minutes.
    """
    try:
        event = WebhookEvent.model_validate(body)
    except ValidationError as e:
        logger.warning(f"[WEBHOOK] Unrecognised webhook body: {e}")
        return None

    if event.event != INVITEE_CREATED:
        logger.info(f"[WEBHOOK] Ignoring event type {event.event!r}")
        return None
    invitee = event.payload
    if invitee is None or not invitee.email:
        logger.warning("[WEBHOOK] invitee.created without an invitee email")
        return None

    shapes = (
        ("tracking", invitee.tracking),
        ("payload", _Timing(start_time=invitee.start_time, end_time=invitee.end_time)),
        ("scheduled_event", invitee.scheduled_event),
    )
    for source, timing in shapes:
        resolved = _read_timing(timing)
        if resolved is None:
            continue
        start, end = resolved
        return BookingConfirmation(
            email=invitee.email.strip(),
            name=invitee.name,
            start_time=start,
            end_time=end or start + DEFAULT_MEETING_LENGTH,
            timing_source=source,
        )

    now = now or utcnow()
    return BookingConfirmation(
        email=invitee.email.strip(),
        name=invitee.name,
        start_time=now,
        end_time=now + DEFAULT_MEETING_LENGTH,
        timing_source="fallback",
    )


class BookingAdapter:
    """Resolves Calendly event URIs into exact booking times (Path A)."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_host: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token if token is not None else settings.CALENDLY_PERSONAL_TOKEN
        self.api_host = api_host or settings.CALENDLY_API_HOST
        self.timeout = timeout or settings.CALENDLY_TIMEOUT_S
        self._transport = transport

    def _is_calendly_uri(self, uri: str) -> bool:
        parsed = urlparse(uri)
        return parsed.scheme == "https" and parsed.hostname == self.api_host

    async def fetch_event_times(self, event_uri: str) -> Optional[Tuple[datetime, datetime]]:
        """
        Best-effort lookup of a scheduled event's start and end.

        Returns None when there is no token, when the URI is not on the
        Calendly API host (the token is never sent anywhere else), or when
        the lookup fails for any reason.
        """
        if not self.token:
            logger.info("[BOOKING] No Calendly token configured, skipping event lookup")
            return None
        if not self._is_calendly_uri(event_uri):
            logger.warning(f"[BOOKING] Refusing to resolve non-Calendly event URI: {event_uri}")
            return None
        try:
            return await self._get_event_times(event_uri)
        except ExternalServiceError as e:
            logger.error(f"[BOOKING] Failed to fetch Calendly event details: {e}")
            return None

    async def _get_event_times(self, event_uri: str) -> Tuple[datetime, datetime]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    event_uri, headers={"Authorization": f"Bearer {self.token}"}
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Calendly request failed: {e}") from e

        try:
            resource = response.json()["resource"]
            start = parse_timestamp(resource["start_time"])
            end = parse_timestamp(resource["end_time"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(f"Unexpected Calendly response: {e}") from e
        if start is None or end is None:
            raise ExternalServiceError("Calendly event has no start/end time")
        return start, end
