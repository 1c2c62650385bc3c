"""
In-memory repository adapters - Implement the domain repository protocols.

Used for local development (``STORE_BACKEND=memory``) and tests. Each
repository guards its state with a lock so the same uniqueness and
version guarantees hold as in the PostgreSQL adapter.
"""

import threading
from dataclasses import replace
from datetime import datetime

from src.domain.exceptions import ConcurrentModification, DuplicateIdentity
from src.domain.models import Registration, RegistrationStats, Transaction, VerificationRecord
from src.domain.ports import PaymentStatus


class InMemoryVerificationRepository:
    """Implements VerificationRepository protocol with a dict keyed by record id."""

    def __init__(self) -> None:
        self._records: dict[str, VerificationRecord] = {}
        self._lock = threading.Lock()

    def replace(self, record: VerificationRecord) -> None:
        with self._lock:
            stale = [
                key
                for key, existing in self._records.items()
                if existing.email == record.email or existing.contact_number == record.contact_number
            ]
            for key in stale:
                del self._records[key]
            self._records[record.id] = record

    def find(self, email: str, contact_number: str) -> VerificationRecord | None:
        with self._lock:
            matches = [
                record
                for record in self._records.values()
                if record.email == email or record.contact_number == contact_number
            ]
        if not matches:
            return None
        return max(
            matches,
            key=lambda r: (r.email == email and r.contact_number == contact_number, r.created_at),
        )

    def find_pair(self, email: str, contact_number: str) -> VerificationRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.email == email and record.contact_number == contact_number:
                    return record
        return None

    def increment_attempts(self, record_id: str) -> int | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return None
            record = replace(record, attempts=record.attempts + 1)
            self._records[record_id] = record
            return record.attempts

    def mark_verified(self, record_id: str, verified_at: datetime, token_hash: str) -> None:
        with self._lock:
            record = self._records.get(record_id)
            if record is not None:
                self._records[record_id] = replace(
                    record, verified=True, verified_at=verified_at, token_hash=token_hash
                )

    def delete(self, record_id: str) -> None:
        with self._lock:
            self._records.pop(record_id, None)


class InMemoryRegistrationRepository:
    """Implements RegistrationRepository protocol with version-checked writes."""

    def __init__(self) -> None:
        self._registrations: dict[str, Registration] = {}
        self._lock = threading.Lock()

    def add(self, registration: Registration) -> None:
        with self._lock:
            for existing in self._registrations.values():
                if (
                    existing.email == registration.email
                    or existing.contact_number == registration.contact_number
                ):
                    raise DuplicateIdentity("A registration with this email or contact number already exists")
            if registration.id in self._registrations:
                raise DuplicateIdentity("Registration id already exists")
            self._registrations[registration.id] = registration

    def get(self, registration_id: str) -> Registration | None:
        with self._lock:
            return self._registrations.get(registration_id)

    def find_by_identity(self, email: str, contact_number: str) -> Registration | None:
        with self._lock:
            for registration in self._registrations.values():
                if registration.email == email or registration.contact_number == contact_number:
                    return registration
        return None

    def update(self, registration: Registration) -> Registration:
        with self._lock:
            stored = self._registrations.get(registration.id)
            if stored is None or stored.version != registration.version:
                raise ConcurrentModification("Registration was modified concurrently")
            updated = replace(
                registration,
                email=stored.email,
                contact_number=stored.contact_number,
                version=stored.version + 1,
            )
            self._registrations[registration.id] = updated
            return updated

    def stats(self) -> RegistrationStats:
        with self._lock:
            registrations = list(self._registrations.values())
        counts: dict[str, int] = {}
        for registration in registrations:
            status = registration.payment_status.value
            counts[status] = counts.get(status, 0) + 1
        attending = sum(1 for registration in registrations if registration.is_attending)
        collected = sum(
            registration.contribution_amount
            for registration in registrations
            if registration.payment_status == PaymentStatus.COMPLETED
        )
        return RegistrationStats(
            total_registrations=len(registrations),
            attending=attending,
            not_attending=len(registrations) - attending,
            payment_counts=counts,
            total_amount_collected=collected,
        )


class InMemoryTransactionRepository:
    """Implements TransactionRepository protocol as an append-only list."""

    def __init__(self) -> None:
        self._transactions: list[Transaction] = []
        self._lock = threading.Lock()

    def add(self, transaction: Transaction) -> bool:
        with self._lock:
            for existing in self._transactions:
                if existing.transaction_id == transaction.transaction_id:
                    return False
                if transaction.idempotency_key and existing.idempotency_key == transaction.idempotency_key:
                    return False
            self._transactions.append(transaction)
            return True

    def get_by_idempotency_key(self, key: str) -> Transaction | None:
        with self._lock:
            for transaction in self._transactions:
                if transaction.idempotency_key == key:
                    return transaction
        return None

    def list_for_registration(self, registration_id: str) -> list[Transaction]:
        with self._lock:
            return [t for t in self._transactions if t.registration_id == registration_id]
