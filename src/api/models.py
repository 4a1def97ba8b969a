"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Request models validate the level-specific shape at the boundary and convert
to the domain submission variants.
"""

from dataclasses import asdict
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from src.domain.models import (
    Account,
    ConfirmationResult,
    Level1Submission,
    Level2Confirmation,
    Level2Submission,
    Level3Submission,
    Level4Submission,
    NotificationToggle,
    Person,
    Profile,
    Token,
    VerificationRequest,
)


class Level1Request(BaseModel):
    """Request model for level-1 (basic identity) submission."""

    user_name: str = Field(..., min_length=1, max_length=200)
    birth_date: date | None = None
    avatar: str | None = Field(None, description="Reference to an uploaded avatar")

    def to_domain(self) -> Level1Submission:
        return Level1Submission(
            user_name=self.user_name, birth_date=self.birth_date, avatar=self.avatar
        )


class Level2Request(BaseModel):
    """Request model for level-2 (contact) submission."""

    email: EmailStr | None = None
    phone: str | None = Field(
        None,
        pattern=r"^\+?[0-9]{4,20}$",
        description="Phone number, digits with optional leading +",
    )

    def to_domain(self) -> Level2Submission:
        return Level2Submission(email=self.email, phone=self.phone)


class Level3Request(BaseModel):
    """Request model for level-3 (document) submission."""

    passport: str = Field(..., min_length=1, max_length=100)
    expiration_date: date | None = None
    attachments: list[str] = Field(default_factory=list)

    def to_domain(self) -> Level3Submission:
        return Level3Submission(
            passport=self.passport,
            expiration_date=self.expiration_date,
            attachments=tuple(self.attachments),
        )


class Level4Request(BaseModel):
    """Request model for level-4 (address) submission."""

    country: str = Field(..., min_length=1, max_length=100)
    state: str | None = None
    city: str | None = None
    zip: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    attachments: list[str] = Field(default_factory=list)

    def to_domain(self) -> Level4Submission:
        return Level4Submission(
            country=self.country,
            state=self.state,
            city=self.city,
            zip=self.zip,
            address_line1=self.address_line1,
            address_line2=self.address_line2,
            attachments=tuple(self.attachments),
        )


class ConfirmLevel2Request(BaseModel):
    """Request model for level-2 code confirmation."""

    email_code: str | None = Field(None, pattern=r"^\d{4,10}$", description="Code sent by email")
    phone_code: str | None = Field(None, pattern=r"^\d{4,10}$", description="Code sent by SMS")

    def to_domain(self) -> Level2Confirmation:
        return Level2Confirmation(email_code=self.email_code, phone_code=self.phone_code)


class NotificationToggleRequest(BaseModel):
    """Request model for a notification preference switch."""

    domain: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    value: bool

    def to_domain(self) -> NotificationToggle:
        return NotificationToggle(
            domain=self.domain, type=self.type, name=self.name, value=self.value
        )


class AccountResponse(BaseModel):
    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    confirmed_email: str | None = None
    confirmed_phone: str | None = None
    notifications: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            phone=account.phone,
            confirmed_email=account.confirmed_email,
            confirmed_phone=account.confirmed_phone,
            notifications=account.notifications,
        )


class PersonResponse(BaseModel):
    id: str
    name: str
    address: str

    @classmethod
    def from_domain(cls, person: Person) -> "PersonResponse":
        return cls(id=person.account.id, name=person.account.name, address=person.address)


class VerificationRequestResponse(BaseModel):
    """Response model for a verification request."""

    id: str
    level: str
    status: str
    payload: dict[str, Any]

    @classmethod
    def from_domain(cls, request: VerificationRequest) -> "VerificationRequestResponse":
        return cls(
            id=request.id,
            level=request.level.value,
            status=request.status.value,
            payload=asdict(request.payload),
        )


class ProfileResponse(BaseModel):
    account: AccountResponse
    requests: list[VerificationRequestResponse]

    @classmethod
    def from_domain(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            account=AccountResponse.from_domain(profile.account),
            requests=[VerificationRequestResponse.from_domain(r) for r in profile.requests],
        )


class ConfirmationResponse(BaseModel):
    """Response model for level-2 confirmation."""

    is_email_tried: bool
    is_email_verified: bool
    is_phone_tried: bool
    is_phone_verified: bool

    @classmethod
    def from_domain(cls, result: ConfirmationResult) -> "ConfirmationResponse":
        return cls(**asdict(result))


class TokenResponse(BaseModel):
    id: str
    purpose: str
    expires_at: datetime | None = None

    @classmethod
    def from_domain(cls, token: Token) -> "TokenResponse":
        return cls(id=token.id, purpose=token.purpose, expires_at=token.expires_at)


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
