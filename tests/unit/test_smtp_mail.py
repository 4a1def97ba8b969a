"""
Unit tests for SMTP delivery and mail templates.

smtplib.SMTP is patched so no connection is ever opened.
"""

import logging
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from src.adapters.smtp.sender import SmtpMailSender
from src.adapters.smtp.templates import confirm_template
from src.domain.exceptions import DispatchFailure
from src.domain.models import Message


@pytest.fixture
def smtp_class():
    with patch("src.adapters.smtp.sender.smtplib.SMTP") as smtp_class:
        yield smtp_class


def _session(smtp_class: MagicMock) -> MagicMock:
    return smtp_class.return_value.__enter__.return_value


class TestSmtpMailSender:
    """Tests for SmtpMailSender.send."""

    def test_sends_html_message(self, smtp_class: MagicMock) -> None:
        sender = SmtpMailSender("smtp.example.com", 587, "noreply@example.com", timeout=5)

        sender.send(Message(to="a@x.com", subject="Hi", html="<p>Hello</p>"))

        smtp_class.assert_called_once_with("smtp.example.com", 587, timeout=5)
        session = _session(smtp_class)
        session.starttls.assert_called_once()
        session.login.assert_not_called()
        sent = session.send_message.call_args[0][0]
        assert sent["To"] == "a@x.com"
        assert sent["From"] == "noreply@example.com"
        assert sent["Subject"] == "Hi"
        assert sent.get_content_subtype() == "html"
        assert "<p>Hello</p>" in sent.get_content()

    def test_logs_in_with_credentials(self, smtp_class: MagicMock) -> None:
        sender = SmtpMailSender("smtp.example.com", 587, "noreply@example.com", "user", "secret")

        sender.send(Message(to="a@x.com", subject="Hi", html="<p>Hello</p>"))

        _session(smtp_class).login.assert_called_once_with("user", "secret")

    def test_smtp_error_becomes_dispatch_failure(
        self, smtp_class: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        _session(smtp_class).send_message.side_effect = smtplib.SMTPRecipientsRefused({})
        sender = SmtpMailSender("smtp.example.com", 587, "noreply@example.com")

        with caplog.at_level(logging.ERROR), pytest.raises(DispatchFailure):
            sender.send(Message(to="a@x.com", subject="Hi", html="<p>Hello</p>"))

        assert "a@x.com" in caplog.text

    def test_unreachable_relay_becomes_dispatch_failure(self, smtp_class: MagicMock) -> None:
        smtp_class.side_effect = ConnectionRefusedError()
        sender = SmtpMailSender("smtp.example.com", 587, "noreply@example.com")

        with pytest.raises(DispatchFailure):
            sender.send(Message(to="a@x.com", subject="Hi", html="<p>Hello</p>"))


class TestConfirmTemplate:
    """Tests for confirm_template."""

    def test_renders_code_and_link(self) -> None:
        rendered = confirm_template(
            base_url="https://app.example.com/", username="alice", check="012345"
        )

        assert rendered.subject == "Confirm your email"
        assert "Hello, alice!" in rendered.content
        assert "<strong>012345</strong>" in rendered.content
        assert "https://app.example.com/confirm-email?code=012345" in rendered.content

    def test_escapes_username(self) -> None:
        rendered = confirm_template(
            base_url="https://app.example.com", username="<b>eve</b>", check="1"
        )

        assert "<b>eve</b>" not in rendered.content
        assert "&lt;b&gt;eve&lt;/b&gt;" in rendered.content
