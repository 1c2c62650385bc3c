"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Depends, Request

from src.adapters.repository import Repositories
from src.config.settings import Settings, get_settings
from src.domain.contribution import ContributionRates
from src.domain.payments import PaymentService
from src.domain.ports import Notifier
from src.domain.registration import RegistrationService
from src.domain.verification import VerificationService


def get_repositories(request: Request) -> Repositories:
    """
    Get the repository bundle from app state.

    The bundle is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.repositories


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def contribution_rates(settings: Settings) -> ContributionRates:
    return ContributionRates(
        adult_rate=settings.adult_rate,
        recent_graduate_adult_rate=settings.recent_graduate_adult_rate,
        youth_rate=settings.youth_rate,
        recent_graduate_from_year=settings.recent_graduate_from_year,
        recent_graduate_to_year=settings.recent_graduate_to_year,
    )


def get_verification_service(
    repositories: Repositories = Depends(get_repositories),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> VerificationService:
    """Create the verification gate with the configured window and limits."""
    return VerificationService(
        repository=repositories.verifications,
        registrations=repositories.registrations,
        notifier=notifier,
        ttl_seconds=settings.verification_ttl_seconds,
        max_attempts=settings.max_verification_attempts,
        code_length=settings.verification_code_length,
        token_cost=settings.bcrypt_cost,
    )


def get_registration_service(
    repositories: Repositories = Depends(get_repositories),
    notifier: Notifier = Depends(get_notifier),
    verification: VerificationService = Depends(get_verification_service),
    settings: Settings = Depends(get_settings),
) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the repository, the verification gate and the notifier.
    """
    return RegistrationService(
        repository=repositories.registrations,
        verification=verification,
        notifier=notifier,
        rates=contribution_rates(settings),
        max_write_retries=settings.max_write_retries,
    )


def get_payment_service(
    repositories: Repositories = Depends(get_repositories),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> PaymentService:
    return PaymentService(
        registrations=repositories.registrations,
        transactions=repositories.transactions,
        notifier=notifier,
        rates=contribution_rates(settings),
        max_write_retries=settings.max_write_retries,
        hardship_contact=settings.hardship_contact_email,
    )
