"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging outgoing email for development setups where
no email provider is configured.
"""

import logging

from src.domain.models import EmailMessage, TemplatedEmail
from src.domain.ports import EmailDelivery

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - every message counts as delivered.
    Message bodies are not logged.
    """

    def send_welcome(self, email: str, first_name: str | None) -> EmailDelivery:
        """
        Log the welcome notification (simulates email delivery).

        Args:
            email: Recipient email address
            first_name: Name used in the greeting
        """
        logger.info("[WELCOME] Email: %s Name: %s", email, first_name or "-")
        return EmailDelivery.delivered()

    def send(self, message: EmailMessage) -> EmailDelivery:
        logger.info("[EMAIL] To: %s Subject: %s", message.to, message.subject)
        return EmailDelivery.delivered()

    def send_template(self, email: TemplatedEmail) -> EmailDelivery:
        logger.info("[TEMPLATE] To: %s Template: %s", email.to, email.template_id)
        return EmailDelivery.delivered()
