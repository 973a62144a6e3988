from __future__ import annotations

import smtplib
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from research_tasks.models import Role, Task, User
from research_tasks.services.reminders import (
    REMINDER_SUBJECT,
    LoggingEmailSender,
    ReminderScheduler,
    SmtpEmailSender,
    build_email_sender,
    find_missing_submitters,
    seconds_until,
    send_reminders,
)
from research_tasks.config import Settings


@pytest.mark.unit
class TestSecondsUntil:
    def test_later_today(self):
        now = datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)
        assert seconds_until(18, now) == 7.5 * 3600

    def test_rolls_over_to_tomorrow(self):
        now = datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)
        assert seconds_until(18, now) == 24 * 3600


@pytest.mark.unit
def test_sender_falls_back_to_logging_without_smtp():
    assert isinstance(build_email_sender(Settings(SMTP_HOST=None)), LoggingEmailSender)
    assert isinstance(build_email_sender(Settings(SMTP_HOST="smtp.test")), SmtpEmailSender)


@pytest.fixture
async def db(app):
    async with app.state.db.sessionmaker() as session:
        yield session


@pytest.fixture
async def population(db):
    now = datetime.now(timezone.utc)
    db.add_all(
        [
            User(email="busy@x.com", name="Busy", role=Role.USER),
            User(email="idle@x.com", name="Idle", role=Role.USER),
            User(email="stale@x.com", role=Role.GUEST),
            User(email="gone@x.com", role=Role.USER, is_active=False),
            User(email="boss@x.com", role=Role.ADMIN),
        ]
    )
    await db.flush()
    db.add_all(
        [
            Task(owner_email="busy@x.com", research="today", submitted_at=now - timedelta(hours=2)),
            Task(owner_email="stale@x.com", research="old", submitted_at=now - timedelta(days=3)),
        ]
    )
    await db.commit()
    return now


@pytest.mark.integration
async def test_finds_active_members_without_a_recent_task(db, population):
    missing = await find_missing_submitters(db, population)
    assert [u.email for u in missing] == ["idle@x.com", "stale@x.com"]


@pytest.mark.integration
async def test_send_reminders_emails_each_missing_user(db, population):
    sender = AsyncMock()
    sent = await send_reminders(db, sender, population)
    assert sent == 2
    first = sender.send.await_args_list[0]
    assert first.args[0] == "idle@x.com"
    assert first.args[1] == REMINDER_SUBJECT
    assert "Hi Idle" in first.args[2]
    # no display name: greet by mailbox
    assert "Hi stale" in sender.send.await_args_list[1].args[2]


@pytest.mark.integration
async def test_one_failed_address_does_not_stop_the_run(db, population):
    sender = AsyncMock()
    sender.send.side_effect = [smtplib.SMTPRecipientsRefused({}), None]
    assert await send_reminders(db, sender, population) == 1
    assert sender.send.await_count == 2


@pytest.mark.integration
async def test_scheduler_starts_and_stops(app):
    scheduler = ReminderScheduler(app.state.db, AsyncMock(), hour_utc=3)
    scheduler.start()
    await scheduler.stop()
    await scheduler.stop()
