"""
API v1 routes.

Defines REST endpoints for the registration workflow: the verification
gate, the step-wise wizard and payment reconciliation.

Handlers are plain ``def`` functions; FastAPI runs them in its thread
pool, so blocking database and bcrypt calls do not stall the event loop.
Domain exceptions propagate to the handlers in ``src.api.errors``.
"""

from fastapi import APIRouter, Depends, Request, Response, status

from src.api.dependencies import get_payment_service, get_registration_service, get_verification_service
from src.api.models import (
    ContributionResponse,
    ErrorResponse,
    MessageResponse,
    PaymentRequest,
    PaymentResponse,
    ReconcileResponse,
    RegistrationResponse,
    RequestCodeRequest,
    RequestCodeResponse,
    SaveStepRequest,
    SaveStepResponse,
    StatsResponse,
    TransactionResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from src.config.settings import Settings, get_settings
from src.domain.payments import PaymentService
from src.domain.registration import RegistrationService
from src.domain.verification import VerificationService

router = APIRouter(tags=["v1"])

_BAD_REQUEST = {400: {"model": ErrorResponse, "description": "Validation error"}}
_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Registration not found"}}
_CONFLICT = {409: {"model": ErrorResponse, "description": "Concurrent modification"}}


@router.post(
    "/verification/request-code",
    response_model=RequestCodeResponse,
    response_model_exclude_none=True,
    responses=_BAD_REQUEST,
    summary="Request a verification code",
    description="Issue a one-time code for an email and contact number pair. "
    "Any earlier code for either identifier is invalidated.",
)
def request_code(
    request_data: RequestCodeRequest,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
    settings: Settings = Depends(get_settings),
) -> RequestCodeResponse:
    """
    Issue a verification code.

    - **email**: Email address the code is sent to
    - **contactNumber**: Phone number the code is sent to

    The code itself is only echoed back outside production.
    """
    issued = service.request_code(
        request_data.email,
        request_data.contact_number,
        requester_ip=request.client.host if request.client else None,
        requester_agent=request.headers.get("user-agent"),
    )
    return RequestCodeResponse(
        otp_id=issued.record_id,
        expires_in_seconds=issued.expires_in_seconds,
        code=None if settings.is_production else issued.code,
    )


@router.post(
    "/verification/verify",
    response_model=VerifyCodeResponse,
    responses={
        **_BAD_REQUEST,
        401: {"model": ErrorResponse, "description": "Invalid code"},
        404: {"model": ErrorResponse, "description": "No verification found"},
    },
    summary="Verify a code",
    description="Check the one-time code. On success a verification token is returned; "
    "it must accompany the first wizard step.",
)
def verify_code(
    request_data: VerifyCodeRequest,
    service: VerificationService = Depends(get_verification_service),
) -> VerifyCodeResponse:
    outcome = service.verify_code(request_data.email, request_data.contact_number, request_data.code)
    return VerifyCodeResponse(
        verified=outcome.verified,
        token=outcome.token,
        existing_registration=outcome.existing_registration,
        registration_id=outcome.registration_id,
    )


@router.get(
    "/registrations/stats",
    response_model=StatsResponse,
    summary="Registration statistics",
)
def registration_stats(
    service: RegistrationService = Depends(get_registration_service),
) -> StatsResponse:
    return StatsResponse.from_domain(service.registration_stats())


@router.post(
    "/registrations/step/{registration_id}",
    response_model=SaveStepResponse,
    responses={
        201: {"model": SaveStepResponse, "description": "Registration created"},
        **_BAD_REQUEST,
        401: {"model": ErrorResponse, "description": "Verification required"},
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Identity already registered or concurrent modification"},
    },
    summary="Save a wizard step",
    description="Merge one step's sections into the registration. "
    "Use `new` as the id together with a verification token to create it at step 1.",
)
def save_step(
    registration_id: str,
    request_data: SaveStepRequest,
    response: Response,
    service: RegistrationService = Depends(get_registration_service),
) -> SaveStepResponse:
    """
    Save one wizard page.

    - **step**: 1 to 8
    - **stepData.formDataStructured**: sections keyed by section name
    - **verificationToken**: required only when creating
    """
    saved = service.save_step(
        registration_id,
        request_data.step,
        request_data.step_data.form_data_structured,
        verification_token=request_data.verification_token,
    )
    if saved.created:
        response.status_code = status.HTTP_201_CREATED
    return SaveStepResponse(
        registration_id=saved.registration_id,
        current_step=saved.current_step,
        is_complete=saved.is_complete,
    )


@router.get(
    "/registrations/{registration_id}",
    response_model=RegistrationResponse,
    responses=_NOT_FOUND,
    summary="Get a registration",
)
def get_registration(
    registration_id: str,
    service: RegistrationService = Depends(get_registration_service),
) -> RegistrationResponse:
    return RegistrationResponse.from_domain(service.get_registration(registration_id))


@router.get(
    "/registrations/{registration_id}/contribution",
    response_model=ContributionResponse,
    responses=_NOT_FOUND,
    summary="Assess the contribution",
    description="Minimum suggested contribution for the registered party, "
    "compared against the pledge and the amount paid so far.",
)
def get_contribution(
    registration_id: str,
    service: RegistrationService = Depends(get_registration_service),
) -> ContributionResponse:
    return ContributionResponse.from_domain(service.assess_contribution(registration_id))


@router.post(
    "/registrations/{registration_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_BAD_REQUEST, **_NOT_FOUND, **_CONFLICT},
    summary="Record a payment",
    description="Record a completed gateway payment. Sending the same `idempotencyKey` "
    "again returns the original transaction.",
)
def record_payment(
    registration_id: str,
    request_data: PaymentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    receipt = service.record_payment(
        registration_id,
        request_data.amount,
        request_data.payment_method,
        gateway_response=request_data.payment_gateway_response,
        purpose=request_data.purpose,
        is_anonymous=request_data.is_anonymous,
        notes=request_data.notes,
        idempotency_key=request_data.idempotency_key,
    )
    return PaymentResponse.from_domain(receipt)


@router.get(
    "/registrations/{registration_id}/transactions",
    response_model=list[TransactionResponse],
    responses=_NOT_FOUND,
    summary="List transactions",
)
def list_transactions(
    registration_id: str,
    service: PaymentService = Depends(get_payment_service),
) -> list[TransactionResponse]:
    return [TransactionResponse.from_domain(t) for t in service.list_transactions(registration_id)]


@router.post(
    "/registrations/{registration_id}/hardship",
    response_model=ContributionResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND, **_CONFLICT},
    summary="Decline the minimum contribution",
    description="Submit without paying the minimum. The registration stays incomplete "
    "with a financial-difficulty payment status pending manual follow-up.",
)
def decline_contribution(
    registration_id: str,
    service: PaymentService = Depends(get_payment_service),
) -> ContributionResponse:
    return ContributionResponse.from_domain(service.decline_contribution(registration_id))


@router.post(
    "/registrations/{registration_id}/reconcile",
    response_model=ReconcileResponse,
    responses={**_NOT_FOUND, **_CONFLICT},
    summary="Reconcile transactions",
    description="Apply any recorded transactions the registration has not yet counted.",
)
def reconcile(
    registration_id: str,
    service: PaymentService = Depends(get_payment_service),
) -> ReconcileResponse:
    return ReconcileResponse(applied=service.reconcile(registration_id))


@router.post(
    "/registrations/{registration_id}/confirmation",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        **_BAD_REQUEST,
        **_NOT_FOUND,
        503: {"model": ErrorResponse, "description": "Notification could not be queued"},
    },
    summary="Re-send the registration confirmation",
)
def resend_confirmation(
    registration_id: str,
    service: RegistrationService = Depends(get_registration_service),
) -> MessageResponse:
    service.resend_confirmation(registration_id)
    return MessageResponse(message="Confirmation queued")
