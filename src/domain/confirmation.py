"""
Confirmation processor - Closes the level-2 contact confirmation loop.

Submitted codes are matched against the checks issued for the values that
are stored on the pending request. A matching check is consumed and the
corresponding flag set; a wrong code consumes nothing and changes nothing,
so the check stays usable until it is matched or superseded.
"""

import logging
from dataclasses import dataclass

from .checks import OneTimeCheckIssuer
from .exceptions import PreconditionFailed, TypeMismatch
from .models import (
    Account,
    CheckPurpose,
    ConfirmationResult,
    Level2Confirmation,
    Level2Details,
    VerificationLevel,
)
from .ports import AccountLock, VerificationRequestRepository

logger = logging.getLogger(__name__)


@dataclass
class ConfirmationProcessor:
    """Validates submitted level-2 codes and finalizes contact confirmation."""

    requests: VerificationRequestRepository
    issuer: OneTimeCheckIssuer
    locks: AccountLock

    def confirm_level2(
        self, account: Account, confirmation: Level2Confirmation
    ) -> ConfirmationResult:
        """
        Try the submitted email and/or phone codes.

        The request is written only if at least one channel was verified.

        Returns:
            Which channels were tried and which were verified

        Raises:
            TypeMismatch: confirmation is not a Level2Confirmation
            PreconditionFailed: the account has no active level-2 request
        """
        if not isinstance(confirmation, Level2Confirmation):
            raise TypeMismatch(f"Expected Level2Confirmation, got {type(confirmation).__name__}")

        with self.locks.hold(account.id):
            request = self.requests.find_active(account.id, VerificationLevel.LEVEL_2)
            if request is None or not isinstance(request.payload, Level2Details):
                raise PreconditionFailed("No active level-2 request")
            details = request.payload

            is_email_tried = bool(confirmation.email_code)
            is_email_verified = is_email_tried and self._confirm(
                account, CheckPurpose.CONFIRM_EMAIL, details.email, confirmation.email_code
            )
            if is_email_verified:
                details.is_email_confirmed = True

            is_phone_tried = bool(confirmation.phone_code)
            is_phone_verified = is_phone_tried and self._confirm(
                account, CheckPurpose.CONFIRM_PHONE, details.phone, confirmation.phone_code
            )
            if is_phone_verified:
                details.is_phone_confirmed = True

            if is_email_verified or is_phone_verified:
                self.requests.save(request)

        logger.info(
            "Level-2 confirmation for account %s: email=%s/%s phone=%s/%s",
            account.id,
            is_email_tried,
            is_email_verified,
            is_phone_tried,
            is_phone_verified,
        )
        return ConfirmationResult(
            is_email_tried=is_email_tried,
            is_email_verified=is_email_verified,
            is_phone_tried=is_phone_tried,
            is_phone_verified=is_phone_verified,
        )

    def _confirm(
        self, account: Account, purpose: CheckPurpose, payload: str | None, code: str
    ) -> bool:
        if not payload:
            return False
        check = self.issuer.match(account, purpose, payload, code)
        if check is None:
            return False
        return self.issuer.consume(check)
