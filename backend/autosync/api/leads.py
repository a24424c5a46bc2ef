import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from autosync.api.deps import get_lead_store, get_lifecycle_service, require_admin
from autosync.api.schemas import (
    LeadCreateRequest,
    LeadEnvelope,
    LeadListEnvelope,
    LeadResponse,
    MarkBookedRequest,
    Stats,
    StatsEnvelope,
)
from autosync.models.lead import BusinessType, LeadTag, MonthlyBudget
from autosync.services.lead_store import LeadStore
from autosync.services.lifecycle import LeadLifecycleService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/leads", response_model=LeadEnvelope, status_code=201)
async def create_lead(
    request: LeadCreateRequest,
    lifecycle: LeadLifecycleService = Depends(get_lifecycle_service),
):
    """Landing page submission."""
    logger.info(f"[LEADS] New submission from {request.email} (action={request.action})")
    lead = await lifecycle.create_lead(request.lead_fields(), action=request.action)
    return LeadEnvelope(data=LeadResponse.from_model(lead))


@router.get("/leads", response_model=LeadListEnvelope, dependencies=[Depends(require_admin)])
async def list_leads(
    tag: Optional[LeadTag] = None,
    monthly_budget: Optional[MonthlyBudget] = Query(default=None, alias="monthlyBudget"),
    business_type: Optional[BusinessType] = Query(default=None, alias="businessType"),
    store: LeadStore = Depends(get_lead_store),
):
    leads = await store.list_leads(
        tag=tag.value if tag else None,
        monthly_budget=monthly_budget.value if monthly_budget else None,
        business_type=business_type.value if business_type else None,
    )
    return LeadListEnvelope(count=len(leads), data=[LeadResponse.from_model(lead) for lead in leads])


@router.get("/leads/stats", response_model=StatsEnvelope, dependencies=[Depends(require_admin)])
async def get_stats(store: LeadStore = Depends(get_lead_store)):
    return StatsEnvelope(data=Stats(**await store.stats()))


@router.get("/leads/wakeup/cron")
async def wakeup():
    """Keep-alive ping for hosts that idle the process."""
    return {"message": "Server is awake!"}


@router.get("/leads/{lead_id}", response_model=LeadEnvelope)
async def get_lead(lead_id: str, store: LeadStore = Depends(get_lead_store)):
    lead = await store.get(lead_id)
    return LeadEnvelope(data=LeadResponse.from_model(lead))


@router.put("/leads/{lead_id}/book", response_model=LeadEnvelope)
async def mark_lead_booked(
    lead_id: str,
    request: Optional[MarkBookedRequest] = None,
    lifecycle: LeadLifecycleService = Depends(get_lifecycle_service),
):
    """Booking page callback once the visitor finished scheduling."""
    event_uri = request.event_uri if request else None
    lead = await lifecycle.mark_booked(lead_id, event_ref=event_uri)
    return LeadEnvelope(data=LeadResponse.from_model(lead))
