"""
One-time check issuer - Single-use confirmation codes for contact channels.

A check is scoped to (account, purpose, payload) where the payload is the
contact value being confirmed. Issuing a check for a purpose first removes
every earlier check for that (account, purpose), so only the newest code
can ever confirm.

Codes are generated with the secrets module and stored as bcrypt hashes;
matching uses bcrypt's constant-time comparison.

Delivery
========
- confirm-email: the issuer renders the confirmation template and sends it
  through the MailSender. A send failure propagates as DispatchFailure and
  the stored check is kept (no compensating rollback).
- confirm-phone: the issuer only stores the check and returns the
  IssuedCheck; the surrounding layer owns the transport.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass

import bcrypt

from .exceptions import IllegalState
from .models import (
    Account,
    CheckPurpose,
    IssuedCheck,
    Level2Details,
    Message,
    OneTimeCheck,
    VerificationLevel,
    VerificationRequest,
)
from .ports import (
    AccountLock,
    CheckRepository,
    ConfirmTemplate,
    MailSender,
    VerificationRequestRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class OneTimeCheckIssuer:
    """
    Issues, matches and consumes one-time checks.

    Triggers require an active level-2 request whose contact value for the
    purpose is present and not yet confirmed.
    """

    requests: VerificationRequestRepository
    checks: CheckRepository
    mail_sender: MailSender
    confirm_template: ConfirmTemplate
    locks: AccountLock
    base_url: str
    code_length: int = 6
    hash_rounds: int = 10

    def trigger_phone_confirmation(self, account: Account) -> IssuedCheck:
        """
        Issue a fresh confirm-phone check for the pending phone number.

        Returns:
            The stored check and its plaintext code, for out-of-band delivery

        Raises:
            IllegalState: No active level-2 request, or phone already confirmed
        """
        with self.locks.hold(account.id):
            request = self._require_pending(account, lambda details: details.is_phone_confirmed)
            issued = self._issue(account, CheckPurpose.CONFIRM_PHONE, request.payload.phone)
        logger.debug("[confirm-phone] account: %s, check: %s", account.id, issued.check.id)
        return issued

    def trigger_email_confirmation(self, account: Account) -> IssuedCheck:
        """
        Issue a fresh confirm-email check and mail the code to the pending address.

        Raises:
            IllegalState: No active level-2 request, or email already confirmed
            DispatchFailure: The message could not be delivered
        """
        with self.locks.hold(account.id):
            request = self._require_pending(account, lambda details: details.is_email_confirmed)
            issued = self._issue(account, CheckPurpose.CONFIRM_EMAIL, request.payload.email)
            logger.debug("[confirm-email] account: %s, check: %s", account.id, issued.check.id)

            rendered = self.confirm_template(
                base_url=self.base_url,
                username=account.name,
                check=issued.code,
            )
            message = Message(
                to=request.payload.email, subject=rendered.subject, html=rendered.content
            )
            self.mail_sender.send(message)
        return issued

    def match(
        self, account: Account, purpose: CheckPurpose, payload: str, code: str
    ) -> OneTimeCheck | None:
        """Return the active check for (account, purpose, payload) whose code matches."""
        for check in self.checks.find(account.id, purpose, payload):
            if bcrypt.checkpw(code.encode(), check.code_hash.encode()):
                return check
        return None

    def consume(self, check: OneTimeCheck) -> bool:
        """Destroy a matched check. Returns False if it was already consumed."""
        return self.checks.remove(check)

    def _require_pending(
        self, account: Account, is_confirmed: Callable[[Level2Details], bool]
    ) -> VerificationRequest:
        request = self.requests.find_active(account.id, VerificationLevel.LEVEL_2)
        if request is None or not isinstance(request.payload, Level2Details):
            raise IllegalState("No active level-2 request")
        if is_confirmed(request.payload):
            raise IllegalState("Contact already confirmed")
        return request

    def _issue(self, account: Account, purpose: CheckPurpose, payload: str | None) -> IssuedCheck:
        if not payload:
            raise IllegalState(f"Nothing to confirm for {purpose.value}")

        self.checks.remove_all(account.id, purpose)

        code = self._generate_code()
        check = self.checks.create(account.id, purpose, payload, self._hash_code(code))
        return IssuedCheck(check=check, code=code)

    def _generate_code(self) -> str:
        """
        Generate a cryptographically secure numeric code.

        Returns string to preserve leading zeros.
        """
        return "".join(secrets.choice("0123456789") for _ in range(self.code_length))

    def _hash_code(self, code: str) -> str:
        return bcrypt.hashpw(code.encode(), bcrypt.gensalt(rounds=self.hash_rounds)).decode()
