"""
Notification service - Outgoing email that is not part of registration.

Wraps the EmailSender port for the email endpoints: raw messages,
provider-side templates, bulk sends, and the welcome and password-reset
notifications. Delivery stays best-effort: a sender that raises is
reported as a failed delivery, the same as one that returns failure.
"""

import html
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from urllib.parse import urlencode

from .models import EmailMessage, TemplatedEmail
from .ports import EmailDelivery, EmailSender

logger = logging.getLogger(__name__)

PASSWORD_RESET_SUBJECT = "Password Reset Request"


@dataclass(frozen=True)
class BulkDelivery:
    """Summary of a bulk send; ``failed`` lists the recipients not reached."""

    sent: int
    failed: list[str] = field(default_factory=list)


@dataclass
class NotificationService:
    email_sender: EmailSender
    password_reset_url: str

    def send(self, message: EmailMessage) -> EmailDelivery:
        return self._deliver(message.to, lambda: self.email_sender.send(message))

    def send_template(self, email: TemplatedEmail) -> EmailDelivery:
        return self._deliver(email.to, lambda: self.email_sender.send_template(email))

    def send_welcome(self, email: str, first_name: str | None) -> EmailDelivery:
        return self._deliver(email, lambda: self.email_sender.send_welcome(email, first_name))

    def send_password_reset(self, email: str, reset_token: str) -> EmailDelivery:
        link = f"{self.password_reset_url}?{urlencode({'token': reset_token})}"
        message = EmailMessage(
            to=email,
            subject=PASSWORD_RESET_SUBJECT,
            text_content=f"Click the following link to reset your password: {link}",
            html_content=(
                "<html><body>"
                "<h2>Password Reset Request</h2>"
                "<p>Click the following link to reset your password:</p>"
                f'<p><a href="{html.escape(link)}">Reset Password</a></p>'
                "<p>If you didn't request this, please ignore this email.</p>"
                "</body></html>"
            ),
        )
        return self.send(message)

    def send_bulk(self, messages: Iterable[EmailMessage]) -> BulkDelivery:
        """Send each message in turn; one failure does not stop the rest."""
        sent = 0
        failed: list[str] = []
        for message in messages:
            if self.send(message).sent:
                sent += 1
            else:
                failed.append(message.to)
        logger.info("Bulk email completed: %d sent, %d failed", sent, len(failed))
        return BulkDelivery(sent=sent, failed=failed)

    def _deliver(self, recipient: str, send: Callable[[], EmailDelivery]) -> EmailDelivery:
        try:
            delivery = send()
        except Exception as exc:
            logger.warning("Email to %s raised: %s", recipient, exc)
            return EmailDelivery.failed(str(exc))
        if not delivery.sent:
            logger.warning("Email to %s not sent: %s", recipient, delivery.detail)
        return delivery
