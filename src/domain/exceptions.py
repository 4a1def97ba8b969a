"""
Domain exceptions - Semantic error types for identity verification.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
None of them is retried inside the domain; the invoking layer decides.
"""


class VerificationError(Exception):
    """Base class for verification domain errors."""

    pass


class IllegalState(VerificationError):
    """Confirmation triggered with no active request or an already confirmed contact."""

    pass


class PreconditionFailed(VerificationError):
    """Operation requires an active request that does not exist."""

    pass


class TypeMismatch(VerificationError):
    """Submission is not the variant expected for its level."""

    pass


class NotFound(VerificationError):
    """Signature or token lookup found nothing."""

    pass


class DispatchFailure(VerificationError):
    """Mail delivery failed. The issued check remains valid."""

    pass
