"""
Domain layer - Pure business logic with zero framework imports.

This package contains the registration workflow engine: the verification
gate, the step merge engine over the structured form, the contribution
policy and payment reconciliation. It defines its own port interfaces for
infrastructure abstraction, ensuring true hexagonal architecture decoupling.
"""

from .contribution import ContributionAssessment, ContributionRates, minimum_contribution, requires_hardship_flow
from .exceptions import (
    AttemptsExhausted,
    ConcurrentModification,
    DuplicateIdentity,
    Expired,
    InvalidCode,
    NotFound,
    NotificationFailure,
    RegistrationError,
    Unauthorized,
    ValidationError,
)
from .payments import PaymentReceipt, PaymentService
from .ports import (
    NotificationChannel,
    NotificationKind,
    Notifier,
    PaymentStatus,
    RegistrationRepository,
    RegistrationStatus,
    TransactionRepository,
    VerificationRepository,
    VerificationState,
    WizardStep,
)
from .registration import RegistrationService, StepSaved
from .verification import CodeIssued, VerificationOutcome, VerificationService

__all__ = [
    "AttemptsExhausted",
    "CodeIssued",
    "ConcurrentModification",
    "ContributionAssessment",
    "ContributionRates",
    "DuplicateIdentity",
    "Expired",
    "InvalidCode",
    "NotFound",
    "NotificationChannel",
    "NotificationFailure",
    "NotificationKind",
    "Notifier",
    "PaymentReceipt",
    "PaymentService",
    "PaymentStatus",
    "RegistrationError",
    "RegistrationRepository",
    "RegistrationService",
    "RegistrationStatus",
    "StepSaved",
    "TransactionRepository",
    "Unauthorized",
    "ValidationError",
    "VerificationOutcome",
    "VerificationRepository",
    "VerificationService",
    "VerificationState",
    "WizardStep",
    "minimum_contribution",
    "requires_hardship_flow",
]
