"""
Payment reconciliation - Transactions against the registration aggregate.

A payment is recorded in two writes: the immutable Transaction first,
then the aggregate's cumulative fields. Applying a transaction is keyed
by its id (``applied_transaction_ids``), so a crash between the two
writes leaves a transaction that ``reconcile`` can replay without ever
counting it twice.
"""

import logging
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from .contribution import ContributionAssessment, ContributionRates, assess, terminal_status
from .exceptions import NotFound, ValidationError
from .models import PURPOSE_REGISTRATION, Registration, Transaction, utcnow
from .notifications import hardship_follow_up_intent, payment_confirmation_intent, publish_best_effort
from .ports import Notifier, PaymentStatus, RegistrationRepository, RegistrationStatus, TransactionRepository
from .registration import apply_with_retry

logger = logging.getLogger(__name__)

_ID_ATTEMPTS = 5


@dataclass(frozen=True)
class PaymentReceipt:
    transaction_id: str
    registration_id: str
    amount: int
    completed_at: datetime
    status: str = "completed"


@dataclass
class PaymentService:
    """Domain service recording payments and the hardship fallback."""

    registrations: RegistrationRepository
    transactions: TransactionRepository
    notifier: Notifier
    rates: ContributionRates = field(default_factory=ContributionRates)
    max_write_retries: int = 3
    hardship_contact: str | None = None
    clock: Callable[[], datetime] = field(default=utcnow)

    def record_payment(
        self,
        registration_id: str,
        amount: int,
        payment_method: str,
        gateway_response: Mapping[str, Any] | None = None,
        purpose: str = PURPOSE_REGISTRATION,
        is_anonymous: bool = False,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentReceipt:
        """
        Record one completed gateway payment.

        Registration-purpose payments add to the cumulative contribution and
        mark the payment completed. A replay carrying a known idempotency key
        returns the original transaction instead of recording a new one.

        Raises:
            ValidationError: Non-positive amount or missing payment method
            NotFound: Unknown registration id
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Amount must be a positive whole number")
        if not (payment_method or "").strip():
            raise ValidationError("Payment method is required")
        purpose = (purpose or PURPOSE_REGISTRATION).strip()

        if self.registrations.get(registration_id) is None:
            raise NotFound("Registration not found")

        if idempotency_key:
            existing = self.transactions.get_by_idempotency_key(idempotency_key)
            if existing is not None:
                return self._replay(existing, registration_id)

        transaction, created = self._append(
            Transaction(
                transaction_id="",
                registration_id=registration_id,
                amount=amount,
                payment_method=payment_method.strip(),
                completed_at=self.clock(),
                gateway_response=dict(gateway_response) if gateway_response else None,
                purpose=purpose,
                is_anonymous=is_anonymous,
                notes=notes,
                idempotency_key=idempotency_key,
            )
        )
        if not created:
            return self._replay(transaction, registration_id)
        logger.info(
            "Payment %s of %d recorded for registration %s",
            transaction.transaction_id,
            amount,
            registration_id,
        )

        registration = self._apply(transaction)
        if not is_anonymous and registration is not None:
            publish_best_effort(self.notifier, payment_confirmation_intent(registration, transaction))

        return self._receipt(transaction)

    def decline_contribution(self, registration_id: str) -> ContributionAssessment:
        """
        Take the hardship fallback: submit without paying the minimum.

        The registration becomes incomplete with a financial-difficulty
        payment status, pending manual follow-up. No transaction is created.

        Raises:
            NotFound: Unknown registration id
            ValidationError: The pledge does not qualify for the hardship flow
        """
        registration = self.registrations.get(registration_id)
        if registration is None:
            raise NotFound("Registration not found")
        if registration.payment_status == PaymentStatus.COMPLETED:
            raise ValidationError("Payment already completed for this registration")
        assessment = assess(registration, self.rates)
        if not assessment.requires_hardship:
            raise ValidationError("Contribution does not qualify for the financial difficulty flow")

        def change(current: Registration) -> Registration:
            if (
                current.registration_status == RegistrationStatus.INCOMPLETE
                and current.payment_status == PaymentStatus.FINANCIAL_DIFFICULTY
            ):
                return current
            return replace(
                current,
                registration_status=RegistrationStatus.INCOMPLETE,
                payment_status=PaymentStatus.FINANCIAL_DIFFICULTY,
                last_updated=self.clock(),
            )

        before, after = apply_with_retry(self.registrations, registration_id, change, self.max_write_retries)
        logger.info(
            "Registration %s declined the minimum contribution (%d of %d)",
            registration_id,
            assessment.pledged,
            assessment.minimum,
        )
        if after is not before and self.hardship_contact:
            publish_best_effort(
                self.notifier, hardship_follow_up_intent(self.hardship_contact, after, assessment.minimum)
            )
        return assessment

    def reconcile(self, registration_id: str) -> int:
        """
        Apply registration-purpose transactions the aggregate has not seen.

        Returns:
            Number of transactions applied
        """
        registration = self.registrations.get(registration_id)
        if registration is None:
            raise NotFound("Registration not found")

        applied = 0
        for transaction in self.transactions.list_for_registration(registration_id):
            if transaction.purpose != PURPOSE_REGISTRATION:
                continue
            if transaction.transaction_id in registration.applied_transaction_ids:
                continue
            registration = self._apply(transaction) or registration
            applied += 1
        if applied:
            logger.warning("Reconciled %d pending transaction(s) for registration %s", applied, registration_id)
        return applied

    def list_transactions(self, registration_id: str) -> list[Transaction]:
        if self.registrations.get(registration_id) is None:
            raise NotFound("Registration not found")
        return self.transactions.list_for_registration(registration_id)

    def _append(self, draft: Transaction) -> tuple[Transaction, bool]:
        for _ in range(_ID_ATTEMPTS):
            transaction = replace(draft, transaction_id=self._generate_transaction_id())
            if self.transactions.add(transaction):
                return transaction, True
            if draft.idempotency_key:
                existing = self.transactions.get_by_idempotency_key(draft.idempotency_key)
                if existing is not None:
                    return existing, False
            logger.warning("Transaction id collision on %s, regenerating", transaction.transaction_id)
        raise RuntimeError("Could not allocate a unique transaction id")

    def _apply(self, transaction: Transaction) -> Registration | None:
        if transaction.purpose != PURPOSE_REGISTRATION:
            return self.registrations.get(transaction.registration_id)

        def change(current: Registration) -> Registration:
            if transaction.transaction_id in current.applied_transaction_ids:
                return current
            updated = replace(
                current,
                contribution_amount=current.contribution_amount + transaction.amount,
                payment_status=PaymentStatus.COMPLETED,
                payment_id=transaction.transaction_id,
                applied_transaction_ids=current.applied_transaction_ids + (transaction.transaction_id,),
                last_updated=self.clock(),
            )
            if updated.form_submission_complete:
                updated = replace(updated, registration_status=terminal_status(updated, self.rates))
            return updated

        _, after = apply_with_retry(
            self.registrations, transaction.registration_id, change, self.max_write_retries
        )
        return after

    def _replay(self, transaction: Transaction, registration_id: str) -> PaymentReceipt:
        if transaction.registration_id != registration_id:
            raise ValidationError("Idempotency key already used for another registration")
        self._apply(transaction)
        logger.info("Replayed payment %s for registration %s", transaction.transaction_id, registration_id)
        return self._receipt(transaction)

    def _receipt(self, transaction: Transaction) -> PaymentReceipt:
        return PaymentReceipt(
            transaction_id=transaction.transaction_id,
            registration_id=transaction.registration_id,
            amount=transaction.amount,
            completed_at=transaction.completed_at,
        )

    def _generate_transaction_id(self) -> str:
        """
        Time-based id with a random suffix.

        Collisions are unlikely but possible; the store's uniqueness
        constraint rejects them and a new id is drawn.
        """
        millis = int(self.clock().timestamp() * 1000)
        return f"TXN-{millis}-{secrets.randbelow(10**6):06d}"
