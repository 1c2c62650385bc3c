"""
Adversarial tests for race condition prevention.

Verifies that concurrent operations on the same registration are
serialized by the version check, preventing:
- Lost updates between parallel step saves
- Double counting of payments
- Duplicate registrations for one identity

Security rationale:
- Clients retry and users open several tabs; every write races
- Version-checked writes plus field-level patches make retries safe
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.domain.exceptions import RegistrationError
from src.domain.payments import PaymentService

from payloads import CONTACT, EMAIL, personal_info

# Apply adversarial marker to all tests in this module
pytestmark = pytest.mark.adversarial

SECTION_STEPS = [
    (2, {"professional": {"profession": "Engineer"}}),
    (4, {"sponsorship": {"interestedInSponsorship": True}}),
    (5, {"transportation": {"startingLocation": "Kochi"}}),
    (6, {"accommodation": {"planAccommodation": True}}),
    (7, {"optional": {"tshirtInterest": "yes"}}),
]


class TestRaceConditionAttacks:
    """Concurrent writers against one aggregate."""

    def test_parallel_step_saves_lose_no_section(
        self, registration_service, registration_repo, new_registration
    ) -> None:
        """
        Five wizard pages saved at the same moment.

        Expected defense: conflicting writes re-read and re-apply their
        patch, so every section lands and current_step is the maximum.
        """
        registration_id = new_registration()
        registration_service.max_write_retries = 20
        barrier = threading.Barrier(len(SECTION_STEPS))

        def save(item):
            step, payload = item
            barrier.wait()
            return registration_service.save_step(registration_id, step, payload)

        with ThreadPoolExecutor(max_workers=len(SECTION_STEPS)) as executor:
            list(executor.map(save, SECTION_STEPS))

        registration = registration_repo.get(registration_id)
        assert registration.form.professional.profession == "Engineer"
        assert registration.form.sponsorship.interested_in_sponsorship is True
        assert registration.form.transportation.starting_location == "Kochi"
        assert registration.form.accommodation.plan_accommodation is True
        assert registration.form.optional.tshirt_interest == "yes"
        assert registration.current_step == 7
        assert {2, 4, 5, 6, 7} <= registration.completed_steps

    def test_parallel_payments_all_counted(
        self, payment_service: PaymentService, registration_repo, new_registration
    ) -> None:
        """
        Ten gateway callbacks arrive together.

        Expected defense: each transaction is applied exactly once, so the
        cumulative amount equals the sum of payments.
        """
        registration_id = new_registration()
        payment_service.max_write_retries = 50

        with ThreadPoolExecutor(max_workers=10) as executor:
            list(executor.map(lambda _: payment_service.record_payment(registration_id, 100, "upi"), range(10)))

        registration = registration_repo.get(registration_id)
        assert registration.contribution_amount == 1000
        assert len(registration.applied_transaction_ids) == 10
        assert payment_service.reconcile(registration_id) == 0

    def test_parallel_replays_record_one_transaction(
        self, payment_service: PaymentService, registration_repo, new_registration
    ) -> None:
        """The same callback delivered many times at once is counted once."""
        registration_id = new_registration()
        payment_service.max_write_retries = 50

        def replay(_: int) -> str:
            return payment_service.record_payment(registration_id, 700, "upi", idempotency_key="gw-1").transaction_id

        with ThreadPoolExecutor(max_workers=8) as executor:
            ids = set(executor.map(replay, range(8)))

        assert len(ids) == 1
        assert registration_repo.get(registration_id).contribution_amount == 700
        assert len(payment_service.list_transactions(registration_id)) == 1

    def test_concurrent_creation_exactly_one_succeeds(
        self, registration_service, verified_token, registration_repo
    ) -> None:
        """
        Attacker replays a verified step 1 from several clients.

        Expected defense: one registration is created; the rest are
        refused (duplicate identity or consumed verification).
        """
        token = verified_token()
        barrier = threading.Barrier(5)

        def create(_: int) -> str:
            barrier.wait()
            try:
                registration_service.save_step("new", 1, personal_info(), verification_token=token)
            except RegistrationError as e:
                return e.kind
            return "created"

        with ThreadPoolExecutor(max_workers=5) as executor:
            outcomes = list(executor.map(create, range(5)))

        assert outcomes.count("created") == 1
        assert set(outcomes) - {"created"} <= {"duplicate_identity", "unauthorized"}
        assert registration_repo.find_by_identity(EMAIL, CONTACT) is not None
