"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, along with the state enums shared by domain and
adapters. Adapters implement these protocols structurally.
"""

from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import NotificationIntent, Registration, RegistrationStats, Transaction, VerificationRecord


class VerificationState(str, Enum):
    """
    Verification Gate states.

    State Transitions:
    - UNISSUED -> ISSUED (code requested)
    - ISSUED -> VERIFIED (correct code within the validity window)
    - ISSUED -> EXPIRED (validity window exceeded)
    - ISSUED -> ATTEMPTS_EXHAUSTED (attempt limit exceeded, record deleted)

    A fresh code request re-enters ISSUED from any state except VERIFIED
    records already consumed by a registration.
    """

    UNISSUED = "unissued"
    ISSUED = "issued"
    VERIFIED = "verified"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"


class RegistrationStatus(str, Enum):
    """Terminal split decided when the financial step is saved."""

    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FINANCIAL_DIFFICULTY = "financial-difficulty"


class WizardStep(IntEnum):
    """
    Registration wizard steps, in the order the client walks them.

    Transitions are forward-only on the server: saving an earlier step
    never lowers the stored current step.
    """

    VERIFYING = 0
    PERSONAL_INFO = 1
    PROFESSIONAL = 2
    ATTENDANCE = 3
    SPONSORSHIP = 4
    TRANSPORT = 5
    ACCOMMODATION = 6
    OPTIONAL = 7
    FINANCIAL = 8


class NotificationChannel(str, Enum):
    EMAIL = "email"
    MESSAGING = "messaging"


class NotificationKind(str, Enum):
    VERIFICATION_CODE = "verification_code"
    REGISTRATION_CONFIRMATION = "registration_confirmation"
    PAYMENT_CONFIRMATION = "payment_confirmation"
    HARDSHIP_FOLLOW_UP = "hardship_follow_up"


class VerificationRepository(Protocol):
    """Port interface for verification record persistence."""

    def replace(self, record: "VerificationRecord") -> None:
        """
        Store a freshly issued record.

        Any record sharing the email or the contact number is removed,
        so at most one active record exists per identity.
        """
        ...

    def find(self, email: str, contact_number: str) -> "VerificationRecord | None":
        """Find the record matching either identifier, preferring an exact pair."""
        ...

    def find_pair(self, email: str, contact_number: str) -> "VerificationRecord | None":
        """Find the record matching both identifiers."""
        ...

    def increment_attempts(self, record_id: str) -> int | None:
        """
        Atomically increment the attempt counter.

        Returns:
            The new attempt count, or None if the record no longer exists
        """
        ...

    def mark_verified(self, record_id: str, verified_at, token_hash: str) -> None:
        """Mark the record verified and store the verification token hash."""
        ...

    def delete(self, record_id: str) -> None:
        ...


class RegistrationRepository(Protocol):
    """Port interface for the registration aggregate store."""

    def add(self, registration: "Registration") -> None:
        """
        Persist a new registration.

        Raises:
            DuplicateIdentity: If the email or contact number is taken
        """
        ...

    def get(self, registration_id: str) -> "Registration | None":
        ...

    def find_by_identity(self, email: str, contact_number: str) -> "Registration | None":
        """Find the registration holding either identifier."""
        ...

    def update(self, registration: "Registration") -> "Registration":
        """
        Write the registration if its version still matches the stored one.

        Returns:
            The stored registration with its version incremented

        Raises:
            ConcurrentModification: If the stored version moved on
        """
        ...

    def stats(self) -> "RegistrationStats":
        ...


class TransactionRepository(Protocol):
    """Port interface for the append-only transaction log."""

    def add(self, transaction: "Transaction") -> bool:
        """
        Append a transaction.

        Returns:
            True if stored, False if the transaction id or idempotency
            key already exists
        """
        ...

    def get_by_idempotency_key(self, key: str) -> "Transaction | None":
        ...

    def list_for_registration(self, registration_id: str) -> list["Transaction"]:
        """Transactions referencing the registration, oldest first."""
        ...


class Notifier(Protocol):
    """Outbound notification port. Delivery and retries belong to the adapter."""

    def publish(self, intent: "NotificationIntent") -> object:
        ...


class ChannelSender(Protocol):
    """Delivery channel used by notifier adapters."""

    def send(self, intent: "NotificationIntent", timeout: float) -> None:
        ...
