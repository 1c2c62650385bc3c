"""
Adversarial tests for brute force attack prevention.

Verifies that the attempt limit on verification codes makes guessing
infeasible: with a 6-digit code and 5 attempts per issued code, a
guesser succeeds with probability 5/1,000,000 per code, and every
re-request replaces the code being guessed.

Security rationale:
- Attempts are counted before the comparison, so a correct guess after
  the limit still fails
- Exhaustion deletes the record; the next guess finds nothing
- Parallel guesses each consume an attempt (atomic increment)
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.domain.exceptions import AttemptsExhausted, InvalidCode, NotFound, RegistrationError

from payloads import CONTACT, EMAIL, personal_info

# Apply adversarial marker to all tests in this module
pytestmark = pytest.mark.adversarial


def wrong_code(code: str) -> str:
    return "999999" if code != "999999" else "000000"


class TestBruteForceAttacks:
    """Adversarial tests simulating code guessing."""

    def test_sequential_guessing_exhausts_attempts(self, verification_service) -> None:
        """
        Attacker enumerates codes one by one.

        Expected defense: five wrong guesses, then the record is gone and
        even the correct code is refused.
        """
        issued = verification_service.request_code(EMAIL, CONTACT)
        bad = wrong_code(issued.code)
        remaining = []
        for _ in range(5):
            with pytest.raises(InvalidCode) as exc_info:
                verification_service.verify_code(EMAIL, CONTACT, bad)
            remaining.append(exc_info.value.remaining_attempts)

        assert remaining == [4, 3, 2, 1, 0]
        with pytest.raises(AttemptsExhausted):
            verification_service.verify_code(EMAIL, CONTACT, issued.code)
        with pytest.raises(NotFound):
            verification_service.verify_code(EMAIL, CONTACT, issued.code)

    def test_parallel_guessing_cannot_exceed_limit(self, verification_service, verification_repo) -> None:
        """
        Attacker fires many guesses at once hoping to slip past the counter.

        Expected defense: the atomic increment hands out each attempt
        number once, so at most five guesses are compared.
        """
        issued = verification_service.request_code(EMAIL, CONTACT)
        bad = wrong_code(issued.code)

        def guess(_: int) -> str:
            try:
                verification_service.verify_code(EMAIL, CONTACT, bad)
            except RegistrationError as e:
                return e.kind
            return "verified"

        with ThreadPoolExecutor(max_workers=10) as executor:
            outcomes = list(executor.map(guess, range(20)))

        assert outcomes.count("invalid_code") == 5
        assert "verified" not in outcomes
        assert verification_repo.find_pair(EMAIL, CONTACT) is None

    def test_guessing_with_other_identifier_shares_the_counter(self, verification_service) -> None:
        """Switching the contact number does not buy fresh attempts."""
        issued = verification_service.request_code(EMAIL, CONTACT)
        bad = wrong_code(issued.code)
        for index in range(5):
            with pytest.raises(InvalidCode):
                verification_service.verify_code(EMAIL, f"+91000000000{index}", bad)

        with pytest.raises(AttemptsExhausted):
            verification_service.verify_code(EMAIL, CONTACT, issued.code)

    def test_forged_token_cannot_create_registration(self, registration_service, verification_service) -> None:
        """A verified identity with a guessed token is still refused."""
        issued = verification_service.request_code(EMAIL, CONTACT)
        verification_service.verify_code(EMAIL, CONTACT, issued.code)

        with pytest.raises(RegistrationError) as exc_info:
            registration_service.save_step("new", 1, personal_info(), verification_token="f" * 64)

        assert exc_info.value.kind == "unauthorized"
