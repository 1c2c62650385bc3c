"""
Domain entities - Verification records, registrations and transactions.

Entities are immutable dataclasses; services derive new versions with
``dataclasses.replace`` and hand them to the repository ports.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from .ports import (
    NotificationChannel,
    NotificationKind,
    PaymentStatus,
    RegistrationStatus,
    VerificationState,
    WizardStep,
)
from .sections import AttendeeCounts, StructuredForm

PURPOSE_REGISTRATION = "registration"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str | None) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return (email or "").strip().lower()


def normalize_contact(contact_number: str | None) -> str:
    return "".join((contact_number or "").split())


@dataclass(frozen=True)
class VerificationRecord:
    """A pending or completed one-time-code check for an (email, contact) pair."""

    id: str
    email: str
    contact_number: str
    code: str
    created_at: datetime
    verified: bool = False
    verified_at: datetime | None = None
    attempts: int = 0
    token_hash: str | None = None
    requester_ip: str | None = None
    requester_agent: str | None = None

    def expires_at(self, ttl_seconds: int) -> datetime:
        return self.created_at + timedelta(seconds=ttl_seconds)

    def state(self, now: datetime, ttl_seconds: int) -> VerificationState:
        if self.verified:
            return VerificationState.VERIFIED
        if now > self.expires_at(ttl_seconds):
            return VerificationState.EXPIRED
        return VerificationState.ISSUED


@dataclass(frozen=True)
class Registration:
    """
    Aggregate of record for one attendee.

    Only ``email`` and ``contact_number`` are stored beside the form, as the
    identity bound at creation. Every other flat field is a read view
    computed from the structured form.
    """

    id: str
    email: str
    contact_number: str
    form: StructuredForm
    registration_date: datetime
    last_updated: datetime
    current_step: int = WizardStep.PERSONAL_INFO
    completed_steps: frozenset[int] = frozenset({WizardStep.VERIFYING, WizardStep.PERSONAL_INFO})
    form_submission_complete: bool = False
    registration_status: RegistrationStatus = RegistrationStatus.INCOMPLETE
    payment_status: PaymentStatus = PaymentStatus.PENDING
    contribution_amount: int = 0
    payment_id: str | None = None
    applied_transaction_ids: tuple[str, ...] = ()
    version: int = 1

    @property
    def name(self) -> str | None:
        return self.form.personal_info.full_name

    @property
    def country(self) -> str | None:
        return self.form.personal_info.country

    @property
    def school(self) -> str | None:
        return self.form.personal_info.school

    @property
    def year_of_passing(self) -> int | None:
        return self.form.personal_info.year_of_passing

    @property
    def is_attending(self) -> bool:
        return bool(self.form.event_attendance.is_attending)

    @property
    def attendees(self) -> AttendeeCounts:
        return self.form.event_attendance.attendees or AttendeeCounts()

    @property
    def will_contribute(self) -> bool:
        return bool(self.form.financial.will_contribute)

    @property
    def pledged_amount(self) -> int:
        return self.form.financial.contribution_amount or 0

    def is_step_complete(self, step: int) -> bool:
        return step in self.completed_steps


@dataclass(frozen=True)
class Transaction:
    """Immutable record of one completed payment."""

    transaction_id: str
    registration_id: str
    amount: int
    payment_method: str
    completed_at: datetime
    gateway_response: Mapping[str, Any] | None = None
    purpose: str = PURPOSE_REGISTRATION
    is_anonymous: bool = False
    notes: str | None = None
    idempotency_key: str | None = None


@dataclass(frozen=True)
class NotificationIntent:
    """Message handed to the notifier port; rendering and delivery happen outside."""

    channel: NotificationChannel
    recipient: str
    kind: NotificationKind
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RegistrationStats:
    total_registrations: int = 0
    attending: int = 0
    not_attending: int = 0
    payment_counts: Mapping[str, int] = field(default_factory=dict)
    total_amount_collected: int = 0
