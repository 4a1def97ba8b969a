"""Mail templates - Pure renderers for outgoing messages."""

from html import escape
from urllib.parse import quote

from src.domain.models import RenderedMail


def confirm_template(base_url: str, username: str, check: str) -> RenderedMail:
    """Render the email-confirmation message carrying a one-time code."""
    link = f"{base_url.rstrip('/')}/confirm-email?code={quote(check)}"
    content = (
        f"<p>Hello, {escape(username)}!</p>"
        "<p>Use this code to confirm your email address:</p>"
        f"<p><strong>{escape(check)}</strong></p>"
        f'<p>Or follow <a href="{escape(link)}">this link</a>.</p>'
        "<p>If you did not request this, ignore this message.</p>"
    )
    return RenderedMail(subject="Confirm your email", content=content)
