from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from autosync.models.lead import BusinessType, LeadModel, LeadTag, MonthlyBudget


class CamelModel(BaseModel):
    # The landing page and dashboard speak camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LeadCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, examples=["Jane Doe"])
    email: str = Field(..., min_length=3, examples=["jane@example.com"])
    phone: str = Field(..., min_length=1, examples=["+1 555 0100"])
    business_type: Optional[BusinessType] = None
    monthly_budget: Optional[MonthlyBudget] = None
    ready_to_automate: Optional[bool] = None
    # download | book; anything else creates a plain New Lead
    action: Optional[str] = None

    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None
    fbclid: Optional[str] = None
    referrer: Optional[str] = None

    def lead_fields(self) -> dict:
        return self.model_dump(exclude={"action"})


class MarkBookedRequest(CamelModel):
    event_uri: Optional[str] = None


class AdminLoginRequest(CamelModel):
    email: str
    password: str


class LeadResponse(CamelModel):
    id: str
    name: str
    email: str
    phone: str
    business_type: Optional[BusinessType] = None
    monthly_budget: Optional[MonthlyBudget] = None
    ready_to_automate: Optional[bool] = None
    source: str
    tag: LeadTag
    booked: bool
    reminder_sent: bool
    booking_start_time: Optional[datetime] = None
    booking_end_time: Optional[datetime] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None
    fbclid: Optional[str] = None
    referrer: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, lead: LeadModel) -> "LeadResponse":
        data = lead.model_dump(exclude={"id", "revision_id"})
        return cls(id=str(lead.id), **data)


class LeadEnvelope(CamelModel):
    success: bool = True
    data: LeadResponse


class LeadListEnvelope(CamelModel):
    success: bool = True
    count: int
    data: List[LeadResponse]


class Stats(CamelModel):
    total_leads: int
    downloaded_guide: int
    booked_demo: int
    conversion_rate: float


class StatsEnvelope(CamelModel):
    success: bool = True
    data: Stats


class MessageResponse(CamelModel):
    success: bool = True
    message: str
