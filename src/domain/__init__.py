"""
Domain layer - Pure business logic with zero framework imports.

This package contains the identity verification core: address bindings,
the level 1-4 verification request state machine, one-time confirmation
checks and purpose-scoped tokens. It defines its own port interfaces for
infrastructure abstraction, ensuring true hexagonal architecture decoupling.
"""

from .accounts import AccountService
from .checks import OneTimeCheckIssuer
from .confirmation import ConfirmationProcessor
from .exceptions import (
    DispatchFailure,
    IllegalState,
    NotFound,
    PreconditionFailed,
    TypeMismatch,
    VerificationError,
)
from .identity import IdentityLinkRegistry
from .ports import (
    AccountLock,
    AccountRepository,
    CheckRepository,
    ConfirmTemplate,
    MailSender,
    SignatureRepository,
    TokenRepository,
    VerificationRequestRepository,
)
from .tokens import TokenVault
from .workflow import VerificationWorkflow

__all__ = [
    "AccountLock",
    "AccountRepository",
    "AccountService",
    "CheckRepository",
    "ConfirmTemplate",
    "ConfirmationProcessor",
    "DispatchFailure",
    "IdentityLinkRegistry",
    "IllegalState",
    "MailSender",
    "NotFound",
    "OneTimeCheckIssuer",
    "PreconditionFailed",
    "SignatureRepository",
    "TokenRepository",
    "TokenVault",
    "TypeMismatch",
    "VerificationError",
    "VerificationRequestRepository",
    "VerificationWorkflow",
]
