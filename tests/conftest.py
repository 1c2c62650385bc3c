"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory repositories and a controllable clock
- A notifier that records published intents
- Wired domain services (cheap bcrypt cost for speed)
- Helpers that walk an identity through verification and step 1
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from src.adapters.repository.memory import (
    InMemoryRegistrationRepository,
    InMemoryTransactionRepository,
    InMemoryVerificationRepository,
)
from src.domain.contribution import ContributionRates
from src.domain.models import NotificationIntent
from src.domain.payments import PaymentService
from src.domain.registration import RegistrationService
from src.domain.verification import VerificationService

from payloads import CONTACT, EMAIL, personal_info


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingNotifier:
    """Notifier that keeps every published intent; optionally refuses them."""

    def __init__(self) -> None:
        self.intents: list[NotificationIntent] = []
        self.fail = False

    def publish(self, intent: NotificationIntent) -> None:
        if self.fail:
            raise RuntimeError("gateway unavailable")
        self.intents.append(intent)

    def of_kind(self, kind: str) -> list[NotificationIntent]:
        return [intent for intent in self.intents if intent.kind.value == kind]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def verification_repo() -> InMemoryVerificationRepository:
    return InMemoryVerificationRepository()


@pytest.fixture
def registration_repo() -> InMemoryRegistrationRepository:
    return InMemoryRegistrationRepository()


@pytest.fixture
def transaction_repo() -> InMemoryTransactionRepository:
    return InMemoryTransactionRepository()


@pytest.fixture
def rates() -> ContributionRates:
    return ContributionRates()


@pytest.fixture
def verification_service(
    verification_repo: InMemoryVerificationRepository,
    registration_repo: InMemoryRegistrationRepository,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> VerificationService:
    return VerificationService(
        repository=verification_repo,
        registrations=registration_repo,
        notifier=notifier,
        token_cost=4,
        clock=clock,
    )


@pytest.fixture
def registration_service(
    registration_repo: InMemoryRegistrationRepository,
    verification_service: VerificationService,
    notifier: RecordingNotifier,
    rates: ContributionRates,
    clock: FakeClock,
) -> RegistrationService:
    return RegistrationService(
        repository=registration_repo,
        verification=verification_service,
        notifier=notifier,
        rates=rates,
        clock=clock,
    )


@pytest.fixture
def payment_service(
    registration_repo: InMemoryRegistrationRepository,
    transaction_repo: InMemoryTransactionRepository,
    notifier: RecordingNotifier,
    rates: ContributionRates,
    clock: FakeClock,
) -> PaymentService:
    return PaymentService(
        registrations=registration_repo,
        transactions=transaction_repo,
        notifier=notifier,
        rates=rates,
        hardship_contact="alumni@example.org",
        clock=clock,
    )


@pytest.fixture
def verified_token(verification_service: VerificationService) -> Callable[..., str]:
    """Request and verify a code, returning the verification token."""

    def _verify(email: str = EMAIL, contact: str = CONTACT) -> str:
        issued = verification_service.request_code(email, contact)
        return verification_service.verify_code(email, contact, issued.code).token

    return _verify


@pytest.fixture
def new_registration(
    registration_service: RegistrationService, verified_token: Callable[..., str]
) -> Callable[..., str]:
    """Create a registration through the verification gate, returning its id."""

    def _create(email: str = EMAIL, contact: str = CONTACT, **personal: Any) -> str:
        token = verified_token(email, contact)
        saved = registration_service.save_step(
            "new", 1, personal_info(email, contact, **personal), verification_token=token
        )
        return saved.registration_id

    return _create
