import asyncio
import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape

from autosync.config import settings
from autosync.errors import ExternalServiceError
from autosync.models.lead import LeadModel

logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "../templates/emails")

GUIDE_DELIVERY_SUBJECT = "Your CRM Automation Guide inside \U0001F4E6"
REMINDER_SUBJECT = "Quick question about your automation guide..."
BOOKING_CONFIRMATION_SUBJECT = "Your strategy session is confirmed"

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, html_body: str) -> None:
        ...


def booking_link(lead: LeadModel) -> str:
    """Booking page URL pre-filled with the lead's contact details."""
    params = {
        "email": lead.email,
        "userid": str(lead.id) if lead.id else "",
        "phoneno": lead.phone,
        "name": lead.name,
    }
    return f"{settings.BOOKING_PAGE_URL}?{urlencode(params)}"


def render_guide_delivery(lead: LeadModel) -> str:
    return _env.get_template("guide_delivery.html").render(
        lead=lead, guide_url=settings.GUIDE_URL, booking_url=booking_link(lead)
    )


def render_reminder(lead: LeadModel) -> str:
    return _env.get_template("reminder.html").render(lead=lead, booking_url=booking_link(lead))


def render_booking_confirmation(lead: LeadModel) -> str:
    start = lead.booking_start_time
    time_label = start.strftime("%A, %d %B %Y at %H:%M UTC") if start else None
    return _env.get_template("booking_confirmation.html").render(lead=lead, time_label=time_label)


class SmtpEmailSender:
    """
    Sends HTML email over SMTP with STARTTLS.

    smtplib blocks, so the actual conversation runs in a worker thread.
    Any transport failure is raised as ExternalServiceError.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USERNAME
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.from_name = from_name or settings.EMAIL_FROM_NAME

    def build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.username}>"
        msg["To"] = to
        msg["Reply-To"] = self.username
        msg["List-Unsubscribe"] = f"<mailto:{self.username}?subject=unsubscribe>"
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _send_sync(self, to: str, subject: str, html_body: str) -> None:
        if not self.username or not self.password:
            logger.error("[EMAIL] Missing SMTP credentials")
            logger.error(f"[EMAIL] SMTP_USERNAME: {'SET' if self.username else 'MISSING'}")
            logger.error(f"[EMAIL] SMTP_PASSWORD: {'SET' if self.password else 'MISSING'}")
            raise ExternalServiceError("Missing SMTP credentials")

        msg = self.build_message(to, subject, html_body)
        try:
            logger.debug(f"[EMAIL] Connecting to {self.host}:{self.port}")
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                server.starttls()
                server.login(self.username, self.password)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"[EMAIL] SMTP authentication failed: {e}")
            raise ExternalServiceError(f"SMTP authentication failed: {e}") from e
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"[EMAIL] SMTP recipients refused for {to}: {e}")
            raise ExternalServiceError(f"Recipient refused: {to}") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[EMAIL] Failed to send email to {to}: {e}")
            raise ExternalServiceError(f"SMTP send failed: {e}") from e

    async def send(self, to: str, subject: str, html_body: str) -> None:
        logger.info(f"[EMAIL] Sending '{subject}' to {to}")
        await asyncio.to_thread(self._send_sync, to, subject, html_body)
        logger.info(f"[EMAIL] Email sent successfully to {to}")
