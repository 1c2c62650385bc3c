"""
Unit tests for domain ports and exceptions.

Tests verify:
- Enum values match the persisted and wire representations
- Exceptions are properly structured
- Domain purity (zero framework imports)
"""

import json
import subprocess
from enum import Enum

import pytest

from src.domain.exceptions import (
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
from src.domain.ports import PaymentStatus, RegistrationStatus, VerificationState, WizardStep


class TestEnums:
    def test_payment_status_values(self) -> None:
        assert [status.value for status in PaymentStatus] == ["Pending", "Completed", "financial-difficulty"]

    def test_registration_status_values(self) -> None:
        assert {status.value for status in RegistrationStatus} == {"complete", "incomplete"}

    def test_status_enums_json_serializable(self) -> None:
        """str mixin allows direct JSON serialization."""
        assert json.dumps(PaymentStatus.FINANCIAL_DIFFICULTY) == '"financial-difficulty"'
        assert issubclass(RegistrationStatus, str)

    def test_verification_states(self) -> None:
        assert issubclass(VerificationState, Enum)
        assert {state.value for state in VerificationState} == {
            "unissued",
            "issued",
            "verified",
            "expired",
            "attempts_exhausted",
        }

    def test_wizard_steps_in_order(self) -> None:
        assert [step.value for step in WizardStep] == list(range(9))
        assert WizardStep.PERSONAL_INFO == 1
        assert WizardStep.FINANCIAL == 8


class TestExceptions:
    @pytest.mark.parametrize(
        "exc_class, kind",
        [
            (ValidationError, "validation_error"),
            (Unauthorized, "unauthorized"),
            (NotFound, "not_found"),
            (DuplicateIdentity, "duplicate_identity"),
            (Expired, "expired"),
            (AttemptsExhausted, "attempts_exhausted"),
            (ConcurrentModification, "concurrent_modification"),
            (NotificationFailure, "notification_failure"),
        ],
    )
    def test_kinds(self, exc_class: type[RegistrationError], kind: str) -> None:
        error = exc_class("boom")

        assert isinstance(error, RegistrationError)
        assert error.kind == kind
        assert error.message == "boom"

    def test_default_message_from_docstring(self) -> None:
        assert NotFound().message == NotFound.__doc__

    def test_invalid_code_carries_remaining_attempts(self) -> None:
        error = InvalidCode(remaining_attempts=3)

        assert error.kind == "invalid_code"
        assert error.remaining_attempts == 3
        assert str(error) == "Invalid code. 3 attempts remaining."


class TestDomainPurity:
    """Tests for domain purity - zero framework imports."""

    @pytest.mark.parametrize(
        "pattern",
        ["from fastapi", "import fastapi", "from pydantic", "import pydantic", "from psycopg", "import psycopg"],
    )
    def test_no_framework_imports_in_domain(self, pattern: str) -> None:
        result = subprocess.run(
            ["grep", "-r", pattern, "src/domain/"],
            capture_output=True,
            text=True,
        )
        assert result.returncode != 0, f"Framework import found: {result.stdout}"
