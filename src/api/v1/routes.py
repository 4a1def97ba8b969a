"""
API v1 routes.

Defines REST endpoints for the identity verification API. Every endpoint
acts on the account behind the bearer token.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.adapters.smtp.console import ConsolePhoneCodeSender
from src.api.dependencies import (
    Services,
    get_current_account,
    get_current_token,
    get_phone_code_sender,
    get_services,
)
from src.api.models import (
    ConfirmationResponse,
    ConfirmLevel2Request,
    ErrorResponse,
    Level1Request,
    Level2Request,
    Level3Request,
    Level4Request,
    MessageResponse,
    NotificationToggleRequest,
    PersonResponse,
    ProfileResponse,
    TokenResponse,
    VerificationRequestResponse,
)
from src.domain.exceptions import (
    DispatchFailure,
    IllegalState,
    NotFound,
    PreconditionFailed,
    TypeMismatch,
    VerificationError,
)
from src.domain.models import Account, CheckPurpose, SubmissionResult, Token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["v1"])

# Status code and client-facing detail per domain error
_ERROR_RESPONSES: list[tuple[type[VerificationError], int, str]] = [
    (IllegalState, status.HTTP_401_UNAUTHORIZED, "Illegal state"),
    (PreconditionFailed, status.HTTP_409_CONFLICT, "No active level-2 request"),
    (TypeMismatch, status.HTTP_422_UNPROCESSABLE_CONTENT, "Unexpected submission shape"),
    (NotFound, status.HTTP_404_NOT_FOUND, "Not found"),
    (DispatchFailure, status.HTTP_502_BAD_GATEWAY, "Confirmation email could not be sent"),
]

_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Invalid token or illegal state"},
    422: {"description": "Validation error"},
}


def _http_error(error: VerificationError) -> HTTPException:
    for error_type, status_code, detail in _ERROR_RESPONSES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")


def _deliver_phone_codes(result: SubmissionResult, phone_sender: ConsolePhoneCodeSender) -> None:
    for issued in result.issued:
        if issued.check.purpose == CheckPurpose.CONFIRM_PHONE:
            phone_sender.send_phone_code(issued.check.payload, issued.code)


@router.get(
    "/profile", response_model=ProfileResponse, responses=_RESPONSES, summary="Current profile"
)
def get_profile(
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> ProfileResponse:
    """Account details together with all of its verification requests."""
    return ProfileResponse.from_domain(services.accounts.select_profile(account))


@router.get(
    "/persons",
    response_model=list[PersonResponse],
    responses=_RESPONSES,
    summary="Resolve addresses",
)
def list_persons(
    address: list[str] = Query(..., min_length=1),
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> list[PersonResponse]:
    """
    Resolve several addresses at once.

    Addresses without a binding are left out of the result.
    """
    people = services.registry.resolve_accounts(address)
    return [PersonResponse.from_domain(person) for person in people]


@router.get(
    "/persons/{address}",
    response_model=PersonResponse,
    responses={**_RESPONSES, 404: {"model": ErrorResponse, "description": "Unknown address"}},
    summary="Resolve one address",
)
def get_person(
    address: str,
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> PersonResponse:
    try:
        person = services.registry.resolve_account(address)
    except NotFound as e:
        raise _http_error(e) from None
    return PersonResponse.from_domain(person)


@router.post(
    "/verification/level-1",
    response_model=VerificationRequestResponse,
    responses=_RESPONSES,
    summary="Submit basic identity",
)
def submit_level1(
    request_data: Level1Request,
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> VerificationRequestResponse:
    try:
        result = services.workflow.submit_level1(account, request_data.to_domain())
    except VerificationError as e:
        raise _http_error(e) from None
    return VerificationRequestResponse.from_domain(result.request)


@router.post(
    "/verification/level-2",
    response_model=VerificationRequestResponse,
    responses={**_RESPONSES, 502: {"model": ErrorResponse, "description": "Mail delivery failed"}},
    summary="Submit contacts",
    description="Stores email and phone. Every unconfirmed contact receives a fresh code.",
)
def submit_level2(
    request_data: Level2Request,
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
    phone_sender: ConsolePhoneCodeSender = Depends(get_phone_code_sender),
) -> VerificationRequestResponse:
    try:
        result = services.workflow.submit_level2(account, request_data.to_domain())
    except VerificationError as e:
        raise _http_error(e) from None
    _deliver_phone_codes(result, phone_sender)
    return VerificationRequestResponse.from_domain(result.request)


@router.post(
    "/verification/level-3",
    response_model=VerificationRequestResponse,
    responses=_RESPONSES,
    summary="Submit document",
)
def submit_level3(
    request_data: Level3Request,
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> VerificationRequestResponse:
    try:
        result = services.workflow.submit_level3(account, request_data.to_domain())
    except VerificationError as e:
        raise _http_error(e) from None
    return VerificationRequestResponse.from_domain(result.request)


@router.post(
    "/verification/level-4",
    response_model=VerificationRequestResponse,
    responses=_RESPONSES,
    summary="Submit address",
)
def submit_level4(
    request_data: Level4Request,
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> VerificationRequestResponse:
    try:
        result = services.workflow.submit_level4(account, request_data.to_domain())
    except VerificationError as e:
        raise _http_error(e) from None
    return VerificationRequestResponse.from_domain(result.request)


@router.post(
    "/verification/level-2/confirm",
    response_model=ConfirmationResponse,
    responses={
        **_RESPONSES,
        409: {"model": ErrorResponse, "description": "No active level-2 request"},
    },
    summary="Confirm contacts with codes",
)
def confirm_level2(
    request_data: ConfirmLevel2Request,
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> ConfirmationResponse:
    """
    Check the email and/or phone codes.

    A wrong code is reported through the returned flags, not as an error.
    """
    try:
        result = services.confirmation.confirm_level2(account, request_data.to_domain())
    except VerificationError as e:
        raise _http_error(e) from None
    return ConfirmationResponse.from_domain(result)


@router.post(
    "/verification/level-2/email/resend",
    response_model=MessageResponse,
    responses={**_RESPONSES, 502: {"model": ErrorResponse, "description": "Mail delivery failed"}},
    summary="Resend email confirmation code",
)
def resend_email_code(
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> MessageResponse:
    try:
        services.issuer.trigger_email_confirmation(account)
    except VerificationError as e:
        raise _http_error(e) from None
    return MessageResponse(message="Confirmation code sent")


@router.post(
    "/verification/level-2/phone/resend",
    response_model=MessageResponse,
    responses=_RESPONSES,
    summary="Resend phone confirmation code",
)
def resend_phone_code(
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
    phone_sender: ConsolePhoneCodeSender = Depends(get_phone_code_sender),
) -> MessageResponse:
    try:
        issued = services.issuer.trigger_phone_confirmation(account)
    except VerificationError as e:
        raise _http_error(e) from None
    phone_sender.send_phone_code(issued.check.payload, issued.code)
    return MessageResponse(message="Confirmation code sent")


@router.put(
    "/notifications",
    response_model=MessageResponse,
    responses=_RESPONSES,
    summary="Toggle a notification preference",
)
def update_notification(
    request_data: NotificationToggleRequest,
    account: Account = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> MessageResponse:
    try:
        services.accounts.update_notification_preference(account, request_data.to_domain())
    except VerificationError as e:
        raise _http_error(e) from None
    return MessageResponse(message="Notification preference updated")


@router.delete(
    "/tokens/current",
    response_model=TokenResponse,
    responses={**_RESPONSES, 404: {"model": ErrorResponse, "description": "Token already revoked"}},
    summary="Revoke the current token",
)
def revoke_current_token(
    token: Token = Depends(get_current_token),
    services: Services = Depends(get_services),
) -> TokenResponse:
    try:
        revoked = services.tokens.revoke(token.value)
    except NotFound as e:
        raise _http_error(e) from None
    logger.info("Token %s revoked by its owner", revoked.id)
    return TokenResponse.from_domain(revoked)
