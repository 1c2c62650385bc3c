"""
Integration tests for the PostgreSQL repository adapters.

Tests repository operations against a real PostgreSQL database.
Requires PostgreSQL to be running (via docker-compose).
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import (
    PostgresRegistrationRepository,
    PostgresTransactionRepository,
    PostgresVerificationRepository,
)
from src.domain.exceptions import ConcurrentModification, DuplicateIdentity
from src.domain.models import Registration, Transaction, VerificationRecord
from src.domain.ports import PaymentStatus
from src.domain.sections import StructuredForm

from payloads import attendance, financial, personal_info

pytestmark = pytest.mark.integration

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def verifications(clean_database: ConnectionPool) -> PostgresVerificationRepository:
    return PostgresVerificationRepository(clean_database)


@pytest.fixture
def registrations(clean_database: ConnectionPool) -> PostgresRegistrationRepository:
    return PostgresRegistrationRepository(clean_database)


@pytest.fixture
def transactions(clean_database: ConnectionPool) -> PostgresTransactionRepository:
    return PostgresTransactionRepository(clean_database)


def record(record_id: str, email: str = "a@x.com", contact: str = "+911") -> VerificationRecord:
    return VerificationRecord(id=record_id, email=email, contact_number=contact, code="123456", created_at=NOW)


def registration(registration_id: str = "r1", email: str = "a@x.com", contact: str = "+911") -> Registration:
    return Registration(
        id=registration_id,
        email=email,
        contact_number=contact,
        form=StructuredForm.from_wire({**personal_info(email, contact), **attendance(), **financial(2000)}),
        registration_date=NOW,
        last_updated=NOW,
    )


def transaction(transaction_id: str, key: str | None = None, minutes: int = 0) -> Transaction:
    return Transaction(
        transaction_id=transaction_id,
        registration_id="r1",
        amount=500,
        payment_method="upi",
        completed_at=NOW + timedelta(minutes=minutes),
        gateway_response={"razorpay_payment_id": "pay_1"},
        idempotency_key=key,
    )


class TestVerificationRecords:
    def test_replace_and_find(self, verifications: PostgresVerificationRepository) -> None:
        verifications.replace(record("v1"))

        found = verifications.find("a@x.com", "+911")
        assert found == record("v1")

    def test_replace_resets_existing_pair(self, verifications: PostgresVerificationRepository) -> None:
        verifications.replace(record("v1"))
        verifications.increment_attempts("v1")
        verifications.mark_verified("v1", NOW, "hash")

        verifications.replace(record("v2"))

        found = verifications.find_pair("a@x.com", "+911")
        assert found.id == "v2"
        assert found.attempts == 0
        assert found.verified is False
        assert found.token_hash is None

    def test_replace_removes_records_sharing_one_identifier(
        self, verifications: PostgresVerificationRepository
    ) -> None:
        verifications.replace(record("v1", "a@x.com", "+911"))

        verifications.replace(record("v2", "a@x.com", "+912"))

        assert verifications.find_pair("a@x.com", "+911") is None

    def test_concurrent_attempts_all_counted(self, verifications: PostgresVerificationRepository) -> None:
        verifications.replace(record("v1"))

        with ThreadPoolExecutor(max_workers=5) as executor:
            counts = list(executor.map(lambda _: verifications.increment_attempts("v1"), range(10)))

        assert sorted(counts) == list(range(1, 11))

    def test_delete(self, verifications: PostgresVerificationRepository) -> None:
        verifications.replace(record("v1"))
        verifications.delete("v1")
        assert verifications.find("a@x.com", "+911") is None


class TestRegistrations:
    def test_add_and_get_round_trips_form(self, registrations: PostgresRegistrationRepository) -> None:
        registrations.add(registration())

        stored = registrations.get("r1")

        assert stored == registration()
        assert stored.attendees.adults.total == 2

    def test_duplicate_identity(self, registrations: PostgresRegistrationRepository) -> None:
        registrations.add(registration())
        with pytest.raises(DuplicateIdentity):
            registrations.add(registration("r2", "a@x.com", "+999"))

    def test_update_is_version_checked(self, registrations: PostgresRegistrationRepository) -> None:
        registrations.add(registration())
        stale = registrations.get("r1")

        updated = registrations.update(replace(stale, current_step=3, completed_steps=frozenset({0, 1, 3})))
        assert updated.version == 2
        assert registrations.get("r1").completed_steps == frozenset({0, 1, 3})

        with pytest.raises(ConcurrentModification):
            registrations.update(replace(stale, current_step=4))

    def test_stats(self, registrations: PostgresRegistrationRepository) -> None:
        registrations.add(registration())
        registrations.add(registration("r2", "b@x.com", "+912"))
        paid = registrations.get("r1")
        registrations.update(replace(paid, payment_status=PaymentStatus.COMPLETED, contribution_amount=2000))

        stats = registrations.stats()

        assert stats.total_registrations == 2
        assert stats.attending == 2
        assert stats.payment_counts == {"Completed": 1, "Pending": 1}
        assert stats.total_amount_collected == 2000


class TestTransactions:
    def test_append_and_list_in_order(
        self, registrations: PostgresRegistrationRepository, transactions: PostgresTransactionRepository
    ) -> None:
        registrations.add(registration())

        assert transactions.add(transaction("t2", minutes=5)) is True
        assert transactions.add(transaction("t1")) is True

        listed = transactions.list_for_registration("r1")
        assert [t.transaction_id for t in listed] == ["t1", "t2"]
        assert listed[0].gateway_response == {"razorpay_payment_id": "pay_1"}

    def test_conflicts_return_false(
        self, registrations: PostgresRegistrationRepository, transactions: PostgresTransactionRepository
    ) -> None:
        registrations.add(registration())
        transactions.add(transaction("t1", key="k1"))

        assert transactions.add(transaction("t1")) is False
        assert transactions.add(transaction("t2", key="k1")) is False
        assert transactions.get_by_idempotency_key("k1").transaction_id == "t1"
