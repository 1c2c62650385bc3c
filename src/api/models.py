"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from src.domain.contribution import ContributionAssessment
from src.domain.models import Registration, RegistrationStats, Transaction
from src.domain.payments import PaymentReceipt
from src.domain.ports import WizardStep


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestCodeRequest(CamelModel):
    """Request model for issuing a verification code."""

    email: EmailStr
    contact_number: str = Field(..., min_length=1, description="Phone number, whitespace ignored")


class RequestCodeResponse(CamelModel):
    """
    Response model for an issued code.

    ``code`` is only populated outside production, for manual testing.
    """

    otp_id: str
    expires_in_seconds: int
    code: str | None = None


class VerifyCodeRequest(CamelModel):
    """Request model for checking a verification code."""

    email: EmailStr
    contact_number: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, max_length=12, description="One-time code")


class VerifyCodeResponse(CamelModel):
    verified: bool
    token: str
    existing_registration: bool
    registration_id: str | None = None


class StepData(CamelModel):
    form_data_structured: dict[str, Any]


class SaveStepRequest(CamelModel):
    """Request model for saving one wizard page."""

    step: int = Field(..., ge=1, le=8, description="Wizard step number")
    step_data: StepData
    verification_token: str | None = Field(
        default=None, description="Token from /verification/verify, required to create"
    )


class SaveStepResponse(CamelModel):
    registration_id: str
    current_step: int
    is_complete: bool


class RegistrationResponse(CamelModel):
    """Registration aggregate with its derived flat fields."""

    id: str
    email: str
    contact_number: str
    name: str | None = None
    country: str | None = None
    school: str | None = None
    year_of_passing: int | None = None
    is_attending: bool
    attendees: dict[str, dict[str, int]]
    will_contribute: bool
    pledged_amount: int
    contribution_amount: int
    current_step: int
    completed_steps: list[int]
    step0_complete: bool = False
    step1_complete: bool = False
    step2_complete: bool = False
    step3_complete: bool = False
    step4_complete: bool = False
    step5_complete: bool = False
    step6_complete: bool = False
    step7_complete: bool = False
    step8_complete: bool = False
    form_submission_complete: bool
    registration_status: str
    payment_status: str
    payment_id: str | None = None
    registration_date: datetime
    last_updated: datetime
    form_data_structured: dict[str, dict[str, Any]]

    @classmethod
    def from_domain(cls, registration: Registration) -> "RegistrationResponse":
        return cls(
            id=registration.id,
            email=registration.email,
            contact_number=registration.contact_number,
            name=registration.name,
            country=registration.country,
            school=registration.school,
            year_of_passing=registration.year_of_passing,
            is_attending=registration.is_attending,
            attendees=registration.attendees.to_wire(),
            will_contribute=registration.will_contribute,
            pledged_amount=registration.pledged_amount,
            contribution_amount=registration.contribution_amount,
            current_step=registration.current_step,
            completed_steps=sorted(registration.completed_steps),
            **{f"step{step.value}_complete": registration.is_step_complete(step) for step in WizardStep},
            form_submission_complete=registration.form_submission_complete,
            registration_status=registration.registration_status.value,
            payment_status=registration.payment_status.value,
            payment_id=registration.payment_id,
            registration_date=registration.registration_date,
            last_updated=registration.last_updated,
            form_data_structured=registration.form.to_wire(),
        )


class ContributionResponse(CamelModel):
    minimum: int
    pledged: int
    paid: int
    is_attending: bool
    requires_hardship: bool
    satisfied: bool

    @classmethod
    def from_domain(cls, assessment: ContributionAssessment) -> "ContributionResponse":
        return cls(
            minimum=assessment.minimum,
            pledged=assessment.pledged,
            paid=assessment.paid,
            is_attending=assessment.is_attending,
            requires_hardship=assessment.requires_hardship,
            satisfied=assessment.satisfied,
        )


class PaymentRequest(CamelModel):
    """Request model for recording a completed gateway payment."""

    amount: int = Field(..., gt=0, description="Amount in whole currency units")
    payment_method: str = Field(..., min_length=1)
    payment_gateway_response: dict[str, Any] | None = None
    purpose: str = "registration"
    is_anonymous: bool = False
    notes: str | None = None
    idempotency_key: str | None = Field(default=None, max_length=200)


class PaymentResponse(CamelModel):
    transaction_id: str
    registration_id: str
    amount: int
    status: str
    completed_at: datetime

    @classmethod
    def from_domain(cls, receipt: PaymentReceipt) -> "PaymentResponse":
        return cls(
            transaction_id=receipt.transaction_id,
            registration_id=receipt.registration_id,
            amount=receipt.amount,
            status=receipt.status,
            completed_at=receipt.completed_at,
        )


class TransactionResponse(CamelModel):
    transaction_id: str
    amount: int
    payment_method: str
    purpose: str
    is_anonymous: bool
    notes: str | None = None
    completed_at: datetime

    @classmethod
    def from_domain(cls, transaction: Transaction) -> "TransactionResponse":
        return cls(
            transaction_id=transaction.transaction_id,
            amount=transaction.amount,
            payment_method=transaction.payment_method,
            purpose=transaction.purpose,
            is_anonymous=transaction.is_anonymous,
            notes=transaction.notes,
            completed_at=transaction.completed_at,
        )


class ReconcileResponse(CamelModel):
    applied: int


class MessageResponse(CamelModel):
    message: str


class StatsResponse(CamelModel):
    total_registrations: int
    attending: int
    not_attending: int
    payment_counts: dict[str, int]
    total_amount_collected: int

    @classmethod
    def from_domain(cls, stats: RegistrationStats) -> "StatsResponse":
        return cls(
            total_registrations=stats.total_registrations,
            attending=stats.attending,
            not_attending=stats.not_attending,
            payment_counts=dict(stats.payment_counts),
            total_amount_collected=stats.total_amount_collected,
        )


class ErrorResponse(CamelModel):
    """Standard error response model."""

    kind: str
    detail: str
    remaining_attempts: int | None = None
