"""
Fire-and-forget booking notifications.

The coordinators call NotificationDispatcher.submit() after their transaction
has committed. submit() only enqueues: it never blocks and never raises.
A single background worker drains the queue and delivers through an
EmailSender. Delivery failures are logged and counted, nothing more; they can
never undo or fail a reservation.
"""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from eventflow.core.config import Settings
from eventflow.core.clock import as_utc
from eventflow.core.logging import get_logger
from eventflow.core.metrics import record_notification

logger = get_logger(__name__)


@dataclass(frozen=True)
class Notification:
    recipient: str
    subject: str
    body: str


class EmailSender(ABC):
    @abstractmethod
    async def send(self, recipient: str, subject: str, body: str) -> bool:
        """Deliver one message. Returns True on success."""


class LoggingEmailSender(EmailSender):
    """Logs messages instead of sending them. Used when no SMTP host is configured."""

    def __init__(self):
        self.sent: list[Notification] = []

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        self.sent.append(Notification(recipient=recipient, subject=subject, body=body))
        logger.info("email_logged", recipient=recipient, subject=subject)
        return True


class SmtpEmailSender(EmailSender):
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._send_blocking, recipient, subject, body)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("smtp_send_failed", recipient=recipient, host=self.host, error=str(exc))
            return False
        return True

    def _send_blocking(self, recipient: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)


def build_email_sender(settings: Settings) -> EmailSender:
    if settings.SMTP_HOST:
        return SmtpEmailSender(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.EMAIL_FROM,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
        )
    return LoggingEmailSender()


def booking_confirmation(recipient: str, event, booking) -> Notification:
    event_time = as_utc(event.event_time).strftime("%Y-%m-%d %H:%M UTC")
    body = "\n".join([
        f"Dear {recipient},",
        "",
        f"Your booking for the event {event.title} has been confirmed!",
        "",
        f"Event Date: {event_time}",
        f"Venue: {event.venue or 'TBA'}",
        f"Tickets Booked: {booking.number_of_tickets}",
        f"Booking Reference: #{booking.id}",
        "",
        "Thank you for your booking!",
        "",
        "Best regards,",
        "The EventFlow Team",
    ])
    return Notification(
        recipient=recipient,
        subject=f"Event Booking Confirmation: {event.title}",
        body=body,
    )


class NotificationDispatcher:
    """Bounded queue drained by one background worker task."""

    def __init__(self, sender: EmailSender, max_queue_size: int = 1000):
        self.sender = sender
        self._queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=max_queue_size)
        self._worker: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def submit(self, notification: Notification) -> bool:
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            record_notification("dropped")
            logger.warning("notification_dropped", recipient=notification.recipient, reason="queue_full")
            return False
        return True

    async def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
        logger.info("notification_dispatcher_started")

    async def drain(self) -> None:
        """Wait until every queued notification has been attempted."""
        await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        if not self.is_running:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning("notification_dispatcher_stop_timeout", pending=self._queue.qsize())
        self._worker.cancel()
        await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
        logger.info("notification_dispatcher_stopped")

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self._deliver(notification)
            finally:
                self._queue.task_done()

    async def _deliver(self, notification: Notification) -> None:
        try:
            delivered = await self.sender.send(
                notification.recipient, notification.subject, notification.body
            )
        except Exception:
            # Delivery is best effort; the worker must outlive a broken sender
            record_notification("failed")
            logger.exception("notification_failed", recipient=notification.recipient)
            return

        if delivered:
            record_notification("sent")
            logger.info("notification_sent", recipient=notification.recipient)
        else:
            record_notification("failed")
            logger.error("notification_failed", recipient=notification.recipient)
