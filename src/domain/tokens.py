"""
Token vault - Purpose-scoped tokens per account.

At most one token exists per (account, purpose). Upserting an existing
token refreshes it: the token keeps its identifier and value while its
expiry slides forward.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .exceptions import NotFound
from .models import Account, Token
from .ports import AccountLock, TokenRepository

logger = logging.getLogger(__name__)


@dataclass
class TokenVault:
    """Issues, refreshes and revokes tokens."""

    tokens: TokenRepository
    locks: AccountLock
    ttl: timedelta = timedelta(days=30)
    token_bytes: int = 32

    def find(self, value: str) -> Token:
        """
        Exact lookup with the account attached.

        Raises:
            NotFound: No token has this value
        """
        token = self.tokens.find_by_value(value)
        if token is None:
            raise NotFound("Token not found")
        return token

    def upsert(self, account: Account, purpose: str) -> Token:
        """Refresh the (account, purpose) token or create it."""
        with self.locks.hold(account.id):
            expires_at = datetime.now(timezone.utc) + self.ttl
            token = self.tokens.find_by_purpose(account.id, purpose)
            if token is not None:
                token.expires_at = expires_at
                self.tokens.save(token)
            else:
                token = self.tokens.create(
                    account.id, purpose, secrets.token_urlsafe(self.token_bytes), expires_at
                )
                logger.info("Issued %s token for account %s", purpose, account.id)

            refreshed = self.tokens.get(token.id)
        if refreshed is None:
            raise NotFound("Token not found")
        return refreshed

    def revoke(self, value: str) -> Token:
        """
        Delete the token with this value.

        Returns:
            The deleted record

        Raises:
            NotFound: No token has this value; nothing is deleted
        """
        token = self.find(value)
        self.tokens.remove(token)
        logger.info("Revoked %s token for account %s", token.purpose, token.account_id)
        return token
