"""
Verification workflow - Level 1-4 request state machine.

Request States
==============
- created: the single active state managed here, one per (account, level)
- approved / declined: terminal, set by a reviewer outside this module

Submissions (upsert semantics):
    none    -> created   (first submission for the level)
    created -> created   (resubmission replaces the pending fields)

Level-2 bookkeeping:
- A confirmation flag survives a resubmission only when its contact value
  is unchanged; on first creation it is set when the value equals the
  account's current confirmed contact.
- After the upsert, every unconfirmed contact gets a fresh one-time check
  (phone first, then email).

Every submission holds the account's lock for the whole find-then-write
sequence so two concurrent submissions cannot both create a request.
"""

import logging
from dataclasses import dataclass

from .checks import OneTimeCheckIssuer
from .exceptions import TypeMismatch
from .models import (
    Account,
    Level1Details,
    Level1Submission,
    Level2Details,
    Level2Submission,
    Level3Details,
    Level3Submission,
    Level4Details,
    Level4Submission,
    LevelDetails,
    SubmissionResult,
    VerificationLevel,
)
from .ports import AccountLock, VerificationRequestRepository

logger = logging.getLogger(__name__)


def _require(submission: object, expected: type) -> None:
    if not isinstance(submission, expected):
        raise TypeMismatch(f"Expected {expected.__name__}, got {type(submission).__name__}")


@dataclass
class VerificationWorkflow:
    """Accepts level submissions and keeps one pending request per level."""

    requests: VerificationRequestRepository
    issuer: OneTimeCheckIssuer
    locks: AccountLock

    def submit(self, account: Account, submission: object) -> SubmissionResult:
        """Route a submission variant to its level handler."""
        if isinstance(submission, Level1Submission):
            return self.submit_level1(account, submission)
        if isinstance(submission, Level2Submission):
            return self.submit_level2(account, submission)
        if isinstance(submission, Level3Submission):
            return self.submit_level3(account, submission)
        if isinstance(submission, Level4Submission):
            return self.submit_level4(account, submission)
        raise TypeMismatch(f"Unsupported submission {type(submission).__name__}")

    def submit_level1(self, account: Account, submission: Level1Submission) -> SubmissionResult:
        """
        Upsert the pending level-1 request.

        Any edit voids an earlier review: validation_comment and is_valid
        are reset.
        """
        _require(submission, Level1Submission)
        details = Level1Details(
            user_name=submission.user_name,
            birth_date=submission.birth_date,
            avatar=submission.avatar,
        )
        with self.locks.hold(account.id):
            return self._upsert(account, VerificationLevel.LEVEL_1, details)

    def submit_level2(self, account: Account, submission: Level2Submission) -> SubmissionResult:
        """
        Upsert the pending level-2 request and re-trigger contact checks.

        Raises:
            TypeMismatch: submission is not a Level2Submission
            DispatchFailure: the email confirmation could not be delivered. Checks
                issued before the failure stay stored; a phone code lost this way
                is re-issued with trigger_phone_confirmation.
        """
        _require(submission, Level2Submission)
        with self.locks.hold(account.id):
            request = self.requests.find_active(account.id, VerificationLevel.LEVEL_2)
            if request is not None and isinstance(request.payload, Level2Details):
                previous = request.payload
                request.payload = Level2Details(
                    email=submission.email,
                    phone=submission.phone,
                    is_email_confirmed=(
                        previous.is_email_confirmed if submission.email == previous.email else False
                    ),
                    is_phone_confirmed=(
                        previous.is_phone_confirmed if submission.phone == previous.phone else False
                    ),
                )
                self.requests.save(request)
            else:
                request = self.requests.create(
                    account.id,
                    VerificationLevel.LEVEL_2,
                    Level2Details(
                        email=submission.email,
                        phone=submission.phone,
                        is_email_confirmed=submission.email == account.confirmed_email,
                        is_phone_confirmed=submission.phone == account.confirmed_phone,
                    ),
                )
                logger.info("Created level-2 request %s for account %s", request.id, account.id)

            result = SubmissionResult(request=request)
            details = request.payload
            if not details.is_phone_confirmed and details.phone:
                result.issued.append(self.issuer.trigger_phone_confirmation(account))
            if not details.is_email_confirmed and details.email:
                result.issued.append(self.issuer.trigger_email_confirmation(account))
            return result

    def submit_level3(self, account: Account, submission: Level3Submission) -> SubmissionResult:
        """Upsert the pending level-3 (document) request."""
        _require(submission, Level3Submission)
        details = Level3Details(
            passport=submission.passport,
            expiration_date=submission.expiration_date,
            attachments=list(submission.attachments),
        )
        with self.locks.hold(account.id):
            return self._upsert(account, VerificationLevel.LEVEL_3, details)

    def submit_level4(self, account: Account, submission: Level4Submission) -> SubmissionResult:
        """Upsert the pending level-4 (address) request."""
        _require(submission, Level4Submission)
        details = Level4Details(
            country=submission.country,
            state=submission.state,
            city=submission.city,
            zip=submission.zip,
            address_line1=submission.address_line1,
            address_line2=submission.address_line2,
            attachments=list(submission.attachments),
        )
        with self.locks.hold(account.id):
            return self._upsert(account, VerificationLevel.LEVEL_4, details)

    def _upsert(
        self, account: Account, level: VerificationLevel, details: LevelDetails
    ) -> SubmissionResult:
        request = self.requests.find_active(account.id, level)
        if request is not None:
            request.payload = details
            self.requests.save(request)
            return SubmissionResult(request=request)

        request = self.requests.create(account.id, level, details)
        logger.info("Created %s request %s for account %s", level.value, request.id, account.id)
        return SubmissionResult(request=request)
