from beanie import Document, Indexed
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime
from enum import Enum
from typing import Optional

from autosync.timeutils import utcnow


class LeadTag(str, Enum):
    NEW_LEAD = "New Lead"
    DOWNLOADED_GUIDE = "Downloaded Guide"
    BOOKED_DEMO = "Booked Demo"


class BusinessType(str, Enum):
    REAL_ESTATE = "Real Estate"
    CLINIC = "Clinic"
    EDUCATION = "Education"
    OTHER = "Other"


class MonthlyBudget(str, Enum):
    UNDER_10K = "< 10k"
    FROM_10K_TO_50K = "10k - 50k"
    OVER_50K = "50k+"


class LeadAction(str, Enum):
    DOWNLOAD = "download"
    BOOK = "book"


class LeadModel(Document):
    """
    A captured landing-page contact moving through the pipeline.

    tag == Booked Demo exactly when booked is true; the booking times are
    either both set or both unset, and only ever set on a booked lead.
    """
    name: str = Field(..., examples=["John Doe"])
    email: Indexed(str) = Field(..., examples=["john@example.com"])
    phone: str = Field(..., examples=["+1 555 0100"])
    business_type: Optional[BusinessType] = None
    monthly_budget: Optional[MonthlyBudget] = None
    ready_to_automate: Optional[bool] = None
    source: str = "Meta Ad"

    # Attribution, written once at creation
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None
    fbclid: Optional[str] = None
    referrer: Optional[str] = None

    tag: LeadTag = LeadTag.NEW_LEAD
    booked: bool = False
    reminder_sent: bool = False
    booking_start_time: Optional[datetime] = None
    booking_end_time: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "leads"
        indexes = [
            # Reminder sweep and admin filters
            IndexModel(
                [
                    ("tag", ASCENDING),
                    ("booked", ASCENDING),
                    ("reminder_sent", ASCENDING),
                    ("created_at", ASCENDING),
                ],
                name="reminder_sweep",
            ),
        ]
