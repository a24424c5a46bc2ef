from typing import Optional

from fastapi import Cookie, Depends, HTTPException

from autosync.services.auth import SESSION_COOKIE, AdminAuth
from autosync.services.booking import BookingAdapter
from autosync.services.email import EmailSender, SmtpEmailSender
from autosync.services.lead_store import LeadStore
from autosync.services.lifecycle import LeadLifecycleService


def get_lead_store() -> LeadStore:
    return LeadStore()


def get_email_sender() -> EmailSender:
    return SmtpEmailSender()


def get_booking_adapter() -> BookingAdapter:
    return BookingAdapter()


def get_admin_auth() -> AdminAuth:
    return AdminAuth()


def get_lifecycle_service(
    store: LeadStore = Depends(get_lead_store),
    email_sender: EmailSender = Depends(get_email_sender),
    booking_adapter: BookingAdapter = Depends(get_booking_adapter),
) -> LeadLifecycleService:
    return LeadLifecycleService(store, email_sender, booking_adapter)


def require_admin(
    session: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    auth: AdminAuth = Depends(get_admin_auth),
) -> None:
    if not session:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    if not auth.verify_token(session):
        raise HTTPException(status_code=401, detail="Not authorized, token failed")
