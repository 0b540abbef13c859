"""Email adapters - Console and SendGrid implementations."""

from .console import ConsoleEmailSender
from .sendgrid import EmailMessage, SendGridEmailSender

__all__ = ["ConsoleEmailSender", "EmailMessage", "SendGridEmailSender"]
