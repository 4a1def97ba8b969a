"""
Console delivery adapters for local development.

Nothing leaves the process: messages and phone codes are written to the
log so they show up in the service output.
"""

import logging

from src.domain.models import Message

logger = logging.getLogger(__name__)


class ConsoleMailSender:
    """MailSender that logs each message at INFO instead of delivering it."""

    def send(self, message: Message) -> None:
        logger.info("[MAIL] To: %s Subject: %s\n%s", message.to, message.subject, message.html)


class ConsolePhoneCodeSender:
    """
    Delivers phone confirmation codes by logging them.

    There is no SMS transport; the issued code is returned by the domain
    and handed to this sender by the API layer.
    """

    def send_phone_code(self, phone: str, code: str) -> None:
        logger.info("[VERIFICATION] Phone: %s Code: %s", phone, code)
