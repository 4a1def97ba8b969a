"""
Unit tests for the console delivery adapters.

Tests verify the console senders satisfy their protocols and log
messages and phone codes in the expected format.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.adapters.smtp.console import ConsoleMailSender, ConsolePhoneCodeSender
from src.domain.models import Message
from src.domain.ports import MailSender


def _message(to: str = "user@example.com", html: str = "<p>Code 1234</p>") -> Message:
    return Message(to=to, subject="Confirm your email", html=html)


class TestConsoleMailSenderProtocol:
    """Tests for MailSender protocol compliance."""

    def test_implements_mail_sender_protocol(self) -> None:
        sender = ConsoleMailSender()

        def accepts_mail_sender(s: MailSender) -> None:
            pass

        accepts_mail_sender(sender)
        assert callable(sender.send)

    def test_no_explicit_inheritance(self) -> None:
        """ConsoleMailSender uses structural subtyping, not inheritance."""
        assert ConsoleMailSender.__bases__ == (object,)


class TestSend:
    """Tests for ConsoleMailSender.send."""

    def test_logs_at_info(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            ConsoleMailSender().send(_message())

        assert len(caplog.records) == 1
        assert caplog.records[0].levelno == logging.INFO

    def test_log_format(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            ConsoleMailSender().send(_message(to="a@x.com", html="<p>Code 5678</p>"))

        assert "[MAIL]" in caplog.text
        assert "To: a@x.com" in caplog.text
        assert "Subject: Confirm your email" in caplog.text
        assert "<p>Code 5678</p>" in caplog.text

    def test_returns_none(self) -> None:
        assert ConsoleMailSender().send(_message()) is None

    def test_concurrent_logging_is_thread_safe(self, caplog: pytest.LogCaptureFixture) -> None:
        """Concurrent sends produce one complete record each."""
        sender = ConsoleMailSender()

        with caplog.at_level(logging.INFO), ThreadPoolExecutor(max_workers=5) as executor:
            futures = [
                executor.submit(sender.send, _message(to=f"user{i}@example.com"))
                for i in range(10)
            ]
            for f in futures:
                f.result()

        assert len(caplog.records) == 10
        for record in caplog.records:
            assert "[MAIL]" in record.message
            assert "Subject:" in record.message


class TestConsolePhoneCodeSender:
    """Tests for ConsolePhoneCodeSender."""

    def test_log_format(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            ConsolePhoneCodeSender().send_phone_code("+1000", "0042")

        assert "[VERIFICATION]" in caplog.text
        assert "Phone: +1000" in caplog.text
        assert "Code: 0042" in caplog.text

    @pytest.mark.parametrize("code", ["0000", "1234", "999999"])
    def test_code_kept_verbatim(self, caplog: pytest.LogCaptureFixture, code: str) -> None:
        """Leading zeros survive."""
        with caplog.at_level(logging.INFO):
            ConsolePhoneCodeSender().send_phone_code("+1000", code)

        assert f"Code: {code}" in caplog.text
