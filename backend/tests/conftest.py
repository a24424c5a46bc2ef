from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from autosync.errors import ExternalServiceError
from autosync.models.lead import LeadModel, LeadTag
from autosync.services.lead_store import LeadStore
from autosync.services.lifecycle import LeadLifecycleService
from autosync.timeutils import naive_utc, utcnow


@dataclass
class SentEmail:
    to: str
    subject: str
    html_body: str


class RecordingEmailSender:
    """EmailSender double that records every attempt and can be told to fail."""

    def __init__(self, fail_for: Optional[set] = None):
        self.attempts: List[SentEmail] = []
        self.sent: List[SentEmail] = []
        self.fail_for = fail_for or set()

    async def send(self, to: str, subject: str, html_body: str) -> None:
        email = SentEmail(to, subject, html_body)
        self.attempts.append(email)
        if to in self.fail_for:
            raise ExternalServiceError(f"SMTP send failed for {to}")
        self.sent.append(email)

    def sent_to(self, address: str) -> List[SentEmail]:
        return [email for email in self.sent if email.to == address]


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["autosync_test"]
    await init_beanie(database=database, document_models=[LeadModel])
    yield database


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def store(db):
    return LeadStore()


@pytest.fixture
def lifecycle(store, email_sender):
    return LeadLifecycleService(store, email_sender, booking_adapter=None)


@pytest.fixture
def make_lead(db):
    """Insert a lead directly, bypassing the lifecycle service."""

    async def _make_lead(
        email: str = "lead@acme.io",
        name: str = "Lead",
        tag: LeadTag = LeadTag.DOWNLOADED_GUIDE,
        booked: bool = False,
        reminder_sent: bool = False,
        age: timedelta = timedelta(hours=25),
        now: Optional[datetime] = None,
        **fields,
    ) -> LeadModel:
        now = now or utcnow()
        lead = LeadModel(
            name=name,
            email=email,
            phone="+1 555 0100",
            tag=tag,
            booked=booked,
            reminder_sent=reminder_sent,
            created_at=naive_utc(now - age),
            **fields,
        )
        await lead.insert()
        return lead

    return _make_lead
