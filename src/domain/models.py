"""
Domain models - Entities and submission variants.

Entities mirror the records kept by the storage collaborator. Submissions
are the already-validated, level-specific variants accepted by the
verification workflow.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Union

ETHEREUM_ADDRESS = "ethereum-address"


class VerificationLevel(str, Enum):
    """
    Escalating trust levels.

    - LEVEL_1: basic identity (name, birth date, avatar)
    - LEVEL_2: contact ownership (email, phone)
    - LEVEL_3: document proof (passport)
    - LEVEL_4: address proof
    """

    LEVEL_1 = "level-1"
    LEVEL_2 = "level-2"
    LEVEL_3 = "level-3"
    LEVEL_4 = "level-4"


class RequestStatus(str, Enum):
    """
    Verification request states.

    CREATED is the only state managed here. APPROVED and DECLINED are
    terminal and set by a reviewer outside the domain.
    """

    CREATED = "created"
    APPROVED = "approved"
    DECLINED = "declined"


class CheckPurpose(str, Enum):
    """What a one-time check proves control of."""

    CONFIRM_EMAIL = "confirm-email"
    CONFIRM_PHONE = "confirm-phone"


@dataclass
class Account:
    """
    Internal identity record a person authenticates as.

    ``email``/``phone`` are the contact fields shown on the profile;
    ``confirmed_email``/``confirmed_phone`` hold the contacts approved in an
    earlier level-2 review.
    """

    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    confirmed_email: str | None = None
    confirmed_phone: str | None = None
    notifications: dict[str, Any] = field(default_factory=dict)


@dataclass
class Person:
    """An account viewed through one of its signature addresses."""

    account: Account
    address: str


@dataclass
class Signature:
    """Binding between an external address and exactly one account."""

    id: str
    account_id: str
    type: str
    value: str
    account: Account | None = None


@dataclass
class Level1Details:
    user_name: str
    birth_date: date | None = None
    avatar: str | None = None
    validation_comment: str | None = None
    is_valid: bool = False


@dataclass
class Level2Details:
    email: str | None = None
    phone: str | None = None
    is_email_confirmed: bool = False
    is_phone_confirmed: bool = False
    validation_comment: str | None = None
    is_valid: bool = False


@dataclass
class Level3Details:
    passport: str
    expiration_date: date | None = None
    attachments: list[str] = field(default_factory=list)


@dataclass
class Level4Details:
    country: str
    state: str | None = None
    city: str | None = None
    zip: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    attachments: list[str] = field(default_factory=list)


LevelDetails = Union[Level1Details, Level2Details, Level3Details, Level4Details]

DETAILS_BY_LEVEL: dict[VerificationLevel, type] = {
    VerificationLevel.LEVEL_1: Level1Details,
    VerificationLevel.LEVEL_2: Level2Details,
    VerificationLevel.LEVEL_3: Level3Details,
    VerificationLevel.LEVEL_4: Level4Details,
}


@dataclass
class VerificationRequest:
    """A pending or decided claim at one verification level."""

    id: str
    account_id: str
    level: VerificationLevel
    payload: LevelDetails
    status: RequestStatus = RequestStatus.CREATED


@dataclass
class OneTimeCheck:
    """
    Single-use code scoped to (account, purpose, payload).

    Only the bcrypt hash of the code is stored.
    """

    id: str
    account_id: str
    purpose: CheckPurpose
    payload: str
    code_hash: str
    created_at: datetime | None = None


@dataclass
class IssuedCheck:
    """A freshly stored check together with its plaintext code."""

    check: OneTimeCheck
    code: str


@dataclass
class Token:
    """Opaque value scoped to (account, purpose)."""

    id: str
    account_id: str
    purpose: str
    value: str
    created_at: datetime | None = None
    expires_at: datetime | None = None
    account: Account | None = None


@dataclass
class Profile:
    """An account together with every verification request it owns."""

    account: Account
    requests: list[VerificationRequest] = field(default_factory=list)


# Submission variants (validated at the boundary)


@dataclass(frozen=True)
class Level1Submission:
    user_name: str
    birth_date: date | None = None
    avatar: str | None = None


@dataclass(frozen=True)
class Level2Submission:
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Level3Submission:
    passport: str
    expiration_date: date | None = None
    attachments: tuple[str, ...] = ()


@dataclass(frozen=True)
class Level4Submission:
    country: str
    state: str | None = None
    city: str | None = None
    zip: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    attachments: tuple[str, ...] = ()


Submission = Union[Level1Submission, Level2Submission, Level3Submission, Level4Submission]


@dataclass(frozen=True)
class Level2Confirmation:
    email_code: str | None = None
    phone_code: str | None = None


@dataclass(frozen=True)
class ConfirmationResult:
    is_email_tried: bool = False
    is_email_verified: bool = False
    is_phone_tried: bool = False
    is_phone_verified: bool = False


@dataclass(frozen=True)
class NotificationToggle:
    domain: str
    type: str
    name: str
    value: bool


@dataclass(frozen=True)
class Message:
    """Outgoing email."""

    to: str
    subject: str
    html: str


@dataclass(frozen=True)
class RenderedMail:
    subject: str
    content: str


@dataclass
class SubmissionResult:
    """
    Outcome of a level submission.

    ``issued`` holds the checks created by the submission; phone codes in it
    must be delivered by the caller.
    """

    request: VerificationRequest
    issued: list[IssuedCheck] = field(default_factory=list)
