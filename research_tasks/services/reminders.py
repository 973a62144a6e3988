"""Daily reminder for users who have not submitted a task in the last 24h."""

import asyncio
import logging
import smtplib
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from typing import List, Optional, Protocol

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from research_tasks.config import Settings
from research_tasks.database import Database
from research_tasks.models import Role, Task, User

logger = logging.getLogger(__name__)

REMINDER_SUBJECT = "Reminder: Daily Task Submission"
REMINDER_BODY = (
    "Hi {name},\n\n"
    "This is a reminder that you haven't submitted your daily task yet. "
    "Please submit it as soon as possible.\n\n"
    "Best regards,\nResearch Tasks"
)


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, body: str) -> None: ...


class LoggingEmailSender:
    """Used when no SMTP server is configured."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Email to %s not sent (SMTP not configured): %s", to, subject)


class SmtpEmailSender:
    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        use_tls: bool,
        sender: str,
        timeout: float = 15,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(host=self.host, port=self.port, timeout=self.timeout) as s:
            if self.use_tls:
                s.starttls()
            if self.username:
                s.login(self.username, self.password or "")
            s.send_message(message)

    async def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        await asyncio.to_thread(self._send_sync, message)


def build_email_sender(settings: Settings) -> EmailSender:
    if not settings.SMTP_HOST:
        return LoggingEmailSender()
    return SmtpEmailSender(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        sender=settings.SMTP_FROM,
    )


async def find_missing_submitters(db: AsyncSession, now: Optional[datetime] = None) -> List[User]:
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(hours=24)
    submitted_recently = exists().where(
        and_(Task.owner_email == User.email, Task.submitted_at >= since)
    )
    result = await db.execute(
        select(User)
        .where(User.role.in_([Role.GUEST, Role.USER]))
        .where(User.is_active.is_(True))
        .where(~submitted_recently)
        .order_by(User.id)
    )
    return list(result.scalars().all())


async def send_reminders(db: AsyncSession, sender: EmailSender, now: Optional[datetime] = None) -> int:
    """Returns how many reminders went out. One failed address doesn't stop the run."""
    sent = 0
    for user in await find_missing_submitters(db, now):
        try:
            await sender.send(
                user.email,
                REMINDER_SUBJECT,
                REMINDER_BODY.format(name=user.name or user.email.split("@")[0]),
            )
        except (OSError, smtplib.SMTPException):
            logger.exception("Could not send reminder to %s", user.email)
            continue
        sent += 1
        logger.info("Reminder email sent to %s", user.email)
    return sent


def seconds_until(hour_utc: int, now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    next_run = now.replace(hour=hour_utc, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


class ReminderScheduler:
    """Background loop that runs ``send_reminders`` once a day at a fixed UTC hour."""

    def __init__(self, database: Database, sender: EmailSender, hour_utc: int):
        self._database = database
        self._sender = sender
        self._hour_utc = hour_utc
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="daily-reminders")

    async def run(self) -> None:
        logger.info("Reminder scheduler started (daily at %02d:00 UTC)", self._hour_utc)
        while True:
            await asyncio.sleep(seconds_until(self._hour_utc))
            try:
                async with self._database.sessionmaker() as db:
                    sent = await send_reminders(db, self._sender)
                logger.info("Daily reminder run finished, %d email(s) sent", sent)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Daily reminder run failed")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reminder scheduler stopped")
