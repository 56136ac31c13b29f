"""
infra/notifier.py — Outgoing email.

SmtpNotificationSender delivers through an SMTP relay. When no relay is
configured (development, tests) LogNotificationSender writes the message to
the log instead, so the calling code never branches on environment.

Senders raise on failure. Swallowing delivery errors is the job of
services/notification_service.py, not of the transport.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class SmtpNotificationSender:

    def __init__(
            self,
            host: str,
            port: int,
            sender: str,
            username: str | None = None,
            password: str | None = None,
            use_tls: bool = True,
            timeout: float = 10.0,
    ) -> None:
        self.host     = host
        self.port     = port
        self.sender   = sender
        self.username = username
        self.password = password
        self.use_tls  = use_tls
        self.timeout  = timeout

    def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"]    = self.sender
        message["To"]      = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

        logger.info("Sent email %r to %s", subject, to)


class LogNotificationSender:

    def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Email to %s: %s\n%s", to, subject, body)


def build_notifier(config):
    """Picks the sender for this app's configuration."""
    host = config.get("EMAIL_SMTP_HOST")
    if not host:
        return LogNotificationSender()
    return SmtpNotificationSender(
        host=host,
        port=config.get("EMAIL_SMTP_PORT", 587),
        sender=config["EMAIL_FROM"],
        username=config.get("EMAIL_SMTP_USER"),
        password=config.get("EMAIL_SMTP_PASSWORD"),
        use_tls=config.get("EMAIL_SMTP_USE_TLS", True),
    )
