"""
SendGrid email sender adapter - Implements EmailSender protocol.

Sends transactional email through the SendGrid v3 ``mail/send`` endpoint
with a shared httpx.Client: raw text/HTML messages and dynamic templates
stored at SendGrid. Delivery is best-effort: every failure, including
transport errors and timeouts, is returned as an EmailDelivery with
``sent=False`` and never raised.
"""

import html
import logging
from typing import Any

import httpx

from src.domain.models import EmailMessage, TemplatedEmail
from src.domain.ports import EmailDelivery

logger = logging.getLogger(__name__)

WELCOME_SUBJECT = "Welcome to MOBA Authorization!"


class SendGridEmailSender:
    """
    Implements EmailSender protocol via the SendGrid HTTP API.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        client: httpx.Client,
        api_key: str,
        from_address: str,
        from_name: str,
    ) -> None:
        """
        Initialize sender.

        Args:
            client: httpx.Client whose base_url points at the SendGrid API
            api_key: SendGrid API key (sent as bearer token)
            from_address: Sender address
            from_name: Sender display name
        """
        self._client = client
        self._api_key = api_key
        self._from_address = from_address
        self._from_name = from_name

    def send_welcome(self, email: str, first_name: str | None) -> EmailDelivery:
        name = first_name or "there"
        message = EmailMessage(
            to=email,
            subject=WELCOME_SUBJECT,
            text_content=(
                f"Hello {name},\n\n"
                "Welcome to MOBA Authorization system. "
                "Your account has been created successfully."
            ),
            html_content=(
                "<html><body>"
                "<h2>Welcome to MOBA Authorization!</h2>"
                f"<p>Hello <strong>{html.escape(name)}</strong>,</p>"
                "<p>Welcome to MOBA Authorization system. "
                "Your account has been created successfully.</p>"
                "<p>Best regards,<br>MOBA Team</p>"
                "</body></html>"
            ),
        )
        return self.send(message)

    def send(self, message: EmailMessage) -> EmailDelivery:
        """Send one message; returns a failed delivery instead of raising."""
        content = [{"type": "text/plain", "value": message.text_content}]
        if message.html_content is not None:
            content.append({"type": "text/html", "value": message.html_content})
        return self._post(
            message.to,
            {
                "personalizations": [{"to": [{"email": message.to}]}],
                "from": self._sender(),
                "subject": message.subject,
                "content": content,
            },
        )

    def send_template(self, email: TemplatedEmail) -> EmailDelivery:
        """Send a SendGrid dynamic template filled with ``template_data``."""
        return self._post(
            email.to,
            {
                "personalizations": [
                    {
                        "to": [{"email": email.to}],
                        "dynamic_template_data": email.template_data,
                    }
                ],
                "from": self._sender(),
                "template_id": email.template_id,
            },
        )

    def _post(self, recipient: str, payload: dict[str, Any]) -> EmailDelivery:
        try:
            response = self._client.post(
                "/v3/mail/send",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Email to %s not sent, transport error: %s", recipient, exc)
            return EmailDelivery.failed(f"transport error: {exc}")

        if not response.is_success:
            logger.warning(
                "Email to %s rejected by SendGrid with status %s", recipient, response.status_code
            )
            return EmailDelivery.failed(f"rejected with status {response.status_code}")

        logger.info("Email sent to %s (status %s)", recipient, response.status_code)
        return EmailDelivery.delivered()

    def _sender(self) -> dict[str, str]:
        return {"email": self._from_address, "name": self._from_name}
