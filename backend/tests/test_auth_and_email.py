from urllib.parse import parse_qs, urlparse

import pytest

from autosync.errors import ExternalServiceError
from autosync.models.lead import LeadTag
from autosync.services.auth import AdminAuth
from autosync.services.email import (
    SmtpEmailSender,
    booking_link,
    render_guide_delivery,
    render_reminder,
)


def test_admin_credentials():
    auth = AdminAuth(admin_email="admin@crm.com", admin_password="pw", secret_key="k")

    assert auth.verify_credentials("admin@crm.com", "pw") is True
    assert auth.verify_credentials("admin@crm.com", "PW") is False
    assert auth.verify_credentials("other@crm.com", "pw") is False


def test_session_token_round_trip_and_forgery():
    auth = AdminAuth(admin_email="a", admin_password="b", secret_key="k")
    other = AdminAuth(admin_email="a", admin_password="b", secret_key="different")
    token = auth.issue_token()

    assert auth.verify_token(token) is True
    assert other.verify_token(token) is False
    assert auth.verify_token(token + "x") is False
    assert auth.verify_token(None) is False


async def test_reminder_email_links_back_to_booking_page(make_lead):
    lead = await make_lead(email="jo@acme.io", name="Jo <script>", tag=LeadTag.DOWNLOADED_GUIDE)

    link = booking_link(lead)
    html = render_reminder(lead)

    query = parse_qs(urlparse(link).query)
    assert query["email"] == ["jo@acme.io"]
    assert query["userid"] == [str(lead.id)]
    assert "Jo &lt;script&gt;" in html
    assert "<script>" not in html


async def test_guide_email_contains_download_link(make_lead):
    lead = await make_lead(name="Jo")

    html = render_guide_delivery(lead)

    assert "Hi Jo," in html
    assert "Download Blueprint PDF" in html


def test_build_message_headers():
    sender = SmtpEmailSender(username="crm@acme.io", password="pw", from_name="AutoSync")

    msg = sender.build_message("jo@acme.io", "Hello", "<p>Hi</p>")

    assert msg["To"] == "jo@acme.io"
    assert msg["From"] == "AutoSync <crm@acme.io>"
    assert msg["Subject"] == "Hello"


async def test_missing_smtp_credentials_raise_external_error():
    sender = SmtpEmailSender(username="", password="")

    with pytest.raises(ExternalServiceError):
        await sender.send("jo@acme.io", "Hello", "<p>Hi</p>")
