from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Email, Mail

from ahaar.core.config import (
    EMAIL_TOKEN_MAX_AGE_SECONDS,
    MAIL_FROM,
    MAIL_PROVIDER,
    MAIL_REPLY_TO,
    SENDGRID_API_KEY,
)

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


@dataclass
class MailMessage:
    email: str
    subject: str
    html: str


class MailSender(Protocol):
    def send(self, message: MailMessage) -> None:
        ...


class ConsoleMailSender:
    """Development sender: logs the message and keeps it in ``outbox``."""

    def __init__(self) -> None:
        self.outbox: list[MailMessage] = []

    def send(self, message: MailMessage) -> None:
        self.outbox.append(message)
        logger.info("mail queued to=%s subject=%s", message.email, message.subject)


SENDGRID_ACCEPTED = {200, 201, 202}


class SendGridMailSender:
    """Production sender on the SendGrid v3 API."""

    def __init__(
        self,
        *,
        api_key: str = SENDGRID_API_KEY,
        sender: str = MAIL_FROM,
        reply_to: str = MAIL_REPLY_TO,
        client: Any = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise RuntimeError("SENDGRID_API_KEY is not configured.")
            client = SendGridAPIClient(api_key=api_key)
        self.client = client
        self.sender = sender
        self.reply_to = reply_to

    def build(self, message: MailMessage) -> Mail:
        mail = Mail(
            from_email=Email(self.sender),
            to_emails=message.email,
            subject=message.subject,
            html_content=message.html,
        )
        if self.reply_to:
            mail.reply_to = Email(self.reply_to)
        return mail

    def send(self, message: MailMessage) -> None:
        try:
            response = self.client.send(self.build(message))
        except Exception as exc:
            raise MailDeliveryError(str(exc)) from exc
        if response.status_code not in SENDGRID_ACCEPTED:
            raise MailDeliveryError(f"SendGrid rejected the message status={response.status_code}")
        logger.info("mail sent to=%s subject=%s", message.email, message.subject)


def build_verification_email(*, name: str, email: str, link: str) -> MailMessage:
    minutes = max(1, EMAIL_TOKEN_MAX_AGE_SECONDS // 60)
    return MailMessage(
        email=email,
        subject="Account Creation Confirmation",
        html=(
            f'<h2 style="text-transform: capitalize;">Hello {html.escape(name)}!</h2>'
            f'<p>Please click here to <a href="{html.escape(link)}">activate your account</a></p>'
            f"<p>This link will expire in {minutes} minutes</p>"
        ),
    )


def deliver(sender: MailSender, message: MailMessage) -> bool:
    """Best-effort send: failures are logged and reported, never raised."""
    try:
        sender.send(message)
    except Exception:
        logger.exception("mail delivery failed to=%s subject=%s", message.email, message.subject)
        return False
    return True


@lru_cache(maxsize=1)
def get_mail_sender() -> MailSender:
    if MAIL_PROVIDER == "sendgrid":
        return SendGridMailSender()
    return ConsoleMailSender()
