"""
SMTP mail sender adapter - Implements MailSender protocol.

Delivers messages through an SMTP relay with STARTTLS. Any SMTP or socket
error is surfaced as DispatchFailure; nothing is retried here.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage

from src.domain.exceptions import DispatchFailure
from src.domain.models import Message

logger = logging.getLogger(__name__)


class SmtpMailSender:
    """Implements MailSender protocol via smtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        user: str | None = None,
        password: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._user = user
        self._password = password
        self._timeout = timeout

    def send(self, message: Message) -> None:
        """
        Send the message as an HTML email.

        Raises:
            DispatchFailure: If the relay refused the message or was unreachable
        """
        email = EmailMessage()
        email["Subject"] = message.subject
        email["From"] = self._sender
        email["To"] = message.to
        email.set_content(message.html, subtype="html")

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                smtp.starttls(context=ssl.create_default_context())
                if self._user and self._password:
                    smtp.login(self._user, self._password)
                smtp.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Mail delivery to %s failed: %s", message.to, e)
            raise DispatchFailure(f"Mail delivery to {message.to} failed") from e
