from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from app.crm.config import EmailSettings
from app.crm.resources.base import Deadline, Resource, ServiceKey

logger = logging.getLogger(__name__)


class MailerResource(Resource):
    """
    Outbound SMTP settings. Initialization only validates configuration;
    connections are opened per message.
    """

    def __init__(self, settings: EmailSettings) -> None:
        super().__init__()
        self.settings = settings

    @property
    def configured(self) -> bool:
        return bool(self.settings.host and self.settings.from_address)

    def _open(self, deadline: Deadline, deps: dict[ServiceKey, Resource]) -> None:
        if not self.settings.host:
            logger.warning("SMTP_HOST not set; outbound email disabled.")
            return
        if not self.settings.from_address:
            raise ValueError("SMTP_FROM is required when SMTP_HOST is set")
        logger.info("Mailer resource initialized (%s:%s)", self.settings.host, self.settings.port)

    def _close(self, deadline: Deadline | None) -> None:
        return None

    def send(self, to: str, subject: str, body: str, *, timeout: float = 10.0) -> bool:
        self.require_ready()
        if not self.configured:
            logger.info("Email to %s not sent (mailer not configured): %s", to, subject)
            return False
        msg = EmailMessage()
        msg["From"] = self.settings.from_address
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        with smtplib.SMTP(self.settings.host, self.settings.port, timeout=timeout) as server:
            if self.settings.use_tls:
                server.starttls()
            if self.settings.username:
                server.login(self.settings.username, self.settings.password)
            server.send_message(msg)
        logger.info("Email sent to %s: %s", to, subject)
        return True
