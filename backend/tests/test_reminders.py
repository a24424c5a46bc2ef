from datetime import timedelta

from autosync.errors import StorageError
from autosync.models.lead import LeadModel, LeadTag
from autosync.services.email import REMINDER_SUBJECT
from autosync.services.lead_store import LeadStore
from autosync.services.reminders import ReminderSweepWorker
from autosync.timeutils import utcnow


class FlakyMarkStore(LeadStore):
    """LeadStore whose reminder mark fails for chosen emails."""

    def __init__(self, fail_for):
        self.fail_for = set(fail_for)

    async def mark_reminder_sent(self, lead_id):
        lead = await LeadModel.get(lead_id)
        if lead.email in self.fail_for:
            raise StorageError("write rejected")
        return await super().mark_reminder_sent(lead_id)


async def test_selects_only_stale_unbooked_unreminded_guide_leads(store, email_sender, make_lead):
    now = utcnow()
    eligible = await make_lead(email="old@x.com", age=timedelta(hours=25), now=now)
    await make_lead(email="young@x.com", age=timedelta(hours=23), now=now)
    await make_lead(email="reminded@x.com", reminder_sent=True, age=timedelta(days=10), now=now)
    await make_lead(
        email="booked@x.com", tag=LeadTag.BOOKED_DEMO, booked=True, age=timedelta(hours=30), now=now
    )
    await make_lead(email="new@x.com", tag=LeadTag.NEW_LEAD, age=timedelta(hours=30), now=now)

    candidates = await store.find_reminder_candidates(now - timedelta(hours=24))

    assert [lead.id for lead in candidates] == [eligible.id]


async def test_sweep_sends_and_marks(store, email_sender, make_lead):
    now = utcnow()
    lead = await make_lead(email="old@x.com", now=now)

    result = await ReminderSweepWorker(store, email_sender).run_once(now=now)

    assert (result.selected, result.sent, result.failed) == (1, 1, 0)
    assert len(email_sender.sent_to("old@x.com")) == 1
    assert email_sender.sent[0].subject == REMINDER_SUBJECT
    refreshed = await LeadModel.get(lead.id)
    assert refreshed.reminder_sent is True
    assert refreshed.tag == LeadTag.DOWNLOADED_GUIDE


async def test_second_sweep_does_not_resend(store, email_sender, make_lead):
    now = utcnow()
    await make_lead(email="old@x.com", now=now)
    worker = ReminderSweepWorker(store, email_sender)

    await worker.run_once(now=now)
    second = await worker.run_once(now=now + timedelta(hours=1))

    assert second.selected == 0
    assert len(email_sender.sent_to("old@x.com")) == 1


async def test_send_failure_leaves_lead_for_next_sweep(store, email_sender, make_lead):
    now = utcnow()
    failing = await make_lead(email="bounce@x.com", now=now)
    await make_lead(email="ok@x.com", now=now)
    email_sender.fail_for = {"bounce@x.com"}
    worker = ReminderSweepWorker(store, email_sender)

    result = await worker.run_once(now=now)

    assert (result.selected, result.sent, result.failed) == (2, 1, 1)
    assert len(email_sender.sent_to("ok@x.com")) == 1
    assert (await LeadModel.get(failing.id)).reminder_sent is False

    email_sender.fail_for = set()
    retry = await worker.run_once(now=now + timedelta(hours=1))

    assert (retry.selected, retry.sent) == (1, 1)
    assert (await LeadModel.get(failing.id)).reminder_sent is True


async def test_mark_failure_is_counted_and_does_not_stop_sweep(email_sender, make_lead):
    now = utcnow()
    unmarked = await make_lead(email="flaky@x.com", now=now)
    await make_lead(email="ok@x.com", now=now)
    worker = ReminderSweepWorker(FlakyMarkStore({"flaky@x.com"}), email_sender)

    result = await worker.run_once(now=now)

    assert (result.sent, result.failed) == (1, 1)
    # The email went out but was not recorded, so the next sweep sends it again
    assert len(email_sender.sent_to("flaky@x.com")) == 1
    assert (await LeadModel.get(unmarked.id)).reminder_sent is False


async def test_lead_booked_after_download_is_not_reminded(store, lifecycle, email_sender, make_lead):
    now = utcnow()
    lead = await make_lead(email="b@x.com", now=now)
    await lifecycle.mark_booked(str(lead.id))

    result = await ReminderSweepWorker(store, email_sender).run_once(now=now)

    assert result.selected == 0
    assert email_sender.sent_to("b@x.com") == []


async def test_mark_reminder_sent_only_once(store, make_lead):
    lead = await make_lead()

    assert await store.mark_reminder_sent(lead.id) is True
    assert await store.mark_reminder_sent(lead.id) is False
