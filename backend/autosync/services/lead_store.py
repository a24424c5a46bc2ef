import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from beanie import PydanticObjectId
from beanie.odm.queries.update import UpdateResponse
from bson import ObjectId
from pymongo.errors import PyMongoError

from autosync.errors import NotFoundError, StorageError
from autosync.models.lead import LeadModel, LeadTag
from autosync.timeutils import naive_utc, utcnow

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(operation: str):
    try:
        yield
    except PyMongoError as e:
        logger.error(f"[STORE] {operation} failed: {e}", exc_info=True)
        raise StorageError(f"{operation} failed: {e}") from e


def _object_id(lead_id) -> PydanticObjectId:
    if isinstance(lead_id, ObjectId):
        return PydanticObjectId(lead_id)
    if not isinstance(lead_id, str) or not ObjectId.is_valid(lead_id):
        raise NotFoundError(str(lead_id))
    return PydanticObjectId(lead_id)


class LeadStore:
    """
    Persistence for LeadModel.

    Every mutation is a single keyed document write; nothing here needs a
    transaction or a lock, and concurrent writers resolve last-write-wins.
    """

    async def insert(self, lead: LeadModel) -> LeadModel:
        with _storage_errors("insert lead"):
            await lead.insert()
        return lead

    async def get(self, lead_id: str) -> LeadModel:
        oid = _object_id(lead_id)
        with _storage_errors("get lead"):
            lead = await LeadModel.get(oid)
        if lead is None:
            raise NotFoundError(lead_id)
        return lead

    async def find_latest_by_email(self, email: str) -> Optional[LeadModel]:
        with _storage_errors("find lead by email"):
            return await LeadModel.find({"email": email}).sort("-created_at").first_or_none()

    async def apply_booking(
        self,
        lead_id,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> Tuple[LeadModel, LeadModel]:
        """
        Tag the lead Booked Demo and, when both are given, record the times.

        Returns (previous, updated) so callers can tell whether the booking
        times actually changed.
        """
        oid = _object_id(lead_id)
        updates = {"tag": LeadTag.BOOKED_DEMO.value, "booked": True, "updated_at": utcnow()}
        if start_time is not None and end_time is not None:
            updates["booking_start_time"] = start_time
            updates["booking_end_time"] = end_time

        with _storage_errors("apply booking"):
            previous = await LeadModel.find_one({"_id": oid}).update(
                {"$set": updates},
                response_type=UpdateResponse.OLD_DOCUMENT,
            )
            if previous is None:
                raise NotFoundError(str(lead_id))
            updated = await LeadModel.get(oid)
        return previous, updated

    async def find_reminder_candidates(self, cutoff: datetime) -> List[LeadModel]:
        with _storage_errors("find reminder candidates"):
            return await LeadModel.find({
                "tag": LeadTag.DOWNLOADED_GUIDE.value,
                "booked": False,
                "reminder_sent": False,
                # pymongo reads naive datetimes as UTC
                "created_at": {"$lt": naive_utc(cutoff)},
            }).to_list()

    async def mark_reminder_sent(self, lead_id) -> bool:
        """Flip reminder_sent to true. False if another sweep already did."""
        oid = _object_id(lead_id)
        with _storage_errors("mark reminder sent"):
            result = await LeadModel.find_one({"_id": oid, "reminder_sent": False}).update(
                {"$set": {"reminder_sent": True, "updated_at": utcnow()}}
            )
        return bool(result and result.modified_count)

    async def list_leads(
        self,
        tag: Optional[str] = None,
        monthly_budget: Optional[str] = None,
        business_type: Optional[str] = None,
    ) -> List[LeadModel]:
        query: Dict[str, str] = {}
        if tag:
            query["tag"] = tag
        if monthly_budget:
            query["monthly_budget"] = monthly_budget
        if business_type:
            query["business_type"] = business_type
        with _storage_errors("list leads"):
            return await LeadModel.find(query).sort("-created_at").to_list()

    async def stats(self) -> Dict[str, float]:
        with _storage_errors("compute stats"):
            total = await LeadModel.find({}).count()
            downloaded = await LeadModel.find({"tag": LeadTag.DOWNLOADED_GUIDE.value}).count()
            booked = await LeadModel.find({"tag": LeadTag.BOOKED_DEMO.value}).count()
        conversion_rate = 0 if total == 0 else round(booked / total * 100, 2)
        return {
            "total_leads": total,
            "downloaded_guide": downloaded,
            "booked_demo": booked,
            "conversion_rate": conversion_rate,
        }
