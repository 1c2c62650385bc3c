"""
Verification Gate - One-time codes bound to an (email, contact) pair.

Verification State Machine
==========================

States:
- UNISSUED: No record for the identity
- ISSUED: Code generated and dispatched, awaiting verification
- VERIFIED: Correct code submitted within the validity window
- EXPIRED: Validity window exceeded
- ATTEMPTS_EXHAUSTED: Attempt limit exceeded, record deleted

Transitions:
    UNISSUED -> ISSUED              (request_code)
    ISSUED   -> VERIFIED            (verify_code, matching code)
    ISSUED   -> EXPIRED             (verify_code after the window)
    ISSUED   -> ATTEMPTS_EXHAUSTED  (verify_code beyond the attempt limit)
    any      -> ISSUED              (request_code replaces the record)

A VERIFIED record gates exactly one registration: it is consumed when the
registration is created.
"""

import logging
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import bcrypt

from .exceptions import AttemptsExhausted, Expired, InvalidCode, NotFound, Unauthorized, ValidationError
from .models import VerificationRecord, normalize_contact, normalize_email, utcnow
from .notifications import publish_best_effort, verification_code_intents
from .ports import Notifier, RegistrationRepository, VerificationRepository, VerificationState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodeIssued:
    record_id: str
    code: str
    expires_in_seconds: int


@dataclass(frozen=True)
class VerificationOutcome:
    verified: bool
    token: str
    existing_registration: bool
    registration_id: str | None = None


@dataclass
class VerificationService:
    """
    Domain service for the identity gate.

    Issues codes, checks them with bounded attempts and hands out an opaque
    token whose bcrypt hash is kept on the record for the step-1 check.
    """

    repository: VerificationRepository
    registrations: RegistrationRepository
    notifier: Notifier
    ttl_seconds: int = 300
    max_attempts: int = 5
    code_length: int = 6
    token_cost: int = 10
    clock: Callable[[], datetime] = field(default=utcnow)

    def request_code(
        self,
        email: str,
        contact_number: str,
        requester_ip: str | None = None,
        requester_agent: str | None = None,
    ) -> CodeIssued:
        """
        Issue a fresh code for the identity, replacing any earlier one.

        Args:
            email: Email address (will be normalized)
            contact_number: Phone number (whitespace removed)
            requester_ip: Client address, kept for audit
            requester_agent: Client user agent, kept for audit

        Returns:
            CodeIssued with the record id, the code and its validity window

        Raises:
            ValidationError: If either identifier is missing
        """
        email, contact_number = self._require_identity(email, contact_number)
        record = VerificationRecord(
            id=uuid.uuid4().hex,
            email=email,
            contact_number=contact_number,
            code=self._generate_code(),
            created_at=self.clock(),
            requester_ip=requester_ip,
            requester_agent=requester_agent,
        )
        self.repository.replace(record)
        logger.info("Verification code issued for %s and %s", email, contact_number)

        for intent in verification_code_intents(record, self.ttl_seconds):
            publish_best_effort(self.notifier, intent)

        return CodeIssued(record_id=record.id, code=record.code, expires_in_seconds=self.ttl_seconds)

    def verify_code(self, email: str, contact_number: str, code: str) -> VerificationOutcome:
        """
        Check a submitted code.

        The attempt counter is incremented before the comparison, so a
        correct code submitted after the limit still fails.

        Raises:
            ValidationError: If any input is missing
            NotFound: If no record matches either identifier
            Expired: If the code is older than the validity window
            AttemptsExhausted: If the attempt limit was exceeded (record deleted)
            InvalidCode: If the code does not match
        """
        email, contact_number = self._require_identity(email, contact_number)
        submitted = (code or "").strip()
        if not submitted:
            raise ValidationError("Email, contact number and code are required")

        record = self.repository.find(email, contact_number)
        if record is None:
            raise NotFound("No verification found with this email or contact number")

        now = self.clock()
        if record.state(now, self.ttl_seconds) == VerificationState.EXPIRED:
            raise Expired("Verification code has expired")

        attempts = self.repository.increment_attempts(record.id)
        if attempts is None:
            raise NotFound("No verification found with this email or contact number")

        if attempts > self.max_attempts:
            self.repository.delete(record.id)
            logger.warning("Verification attempts exhausted for %s", record.email)
            raise AttemptsExhausted("Maximum attempts exceeded. Please request a new code.")

        if not secrets.compare_digest(record.code.encode(), submitted.encode()):
            logger.warning("Invalid verification code for %s (attempt %d)", record.email, attempts)
            raise InvalidCode(remaining_attempts=self.max_attempts - attempts)

        token = secrets.token_hex(32)
        self.repository.mark_verified(record.id, now, self._hash_token(token))
        logger.info("Verification succeeded for %s", record.email)

        existing = self.registrations.find_by_identity(email, contact_number)
        return VerificationOutcome(
            verified=True,
            token=token,
            existing_registration=existing is not None,
            registration_id=existing.id if existing else None,
        )

    def authorize(self, email: str, contact_number: str, token: str | None) -> VerificationRecord:
        """
        Check that the identity was verified and the token belongs to it.

        Raises:
            Unauthorized: If no verified record for the exact pair exists or
                the token does not match, or the verification is older than
                the validity window
        """
        record = self.repository.find_pair(normalize_email(email), normalize_contact(contact_number))
        if record is None or not record.verified or not record.token_hash or not token:
            raise Unauthorized("Verification required before creating a registration")
        if not bcrypt.checkpw(token.encode(), record.token_hash.encode()):
            raise Unauthorized("Verification required before creating a registration")
        if record.verified_at and self.clock() > record.verified_at + timedelta(seconds=self.ttl_seconds):
            raise Unauthorized("Verification has expired, request a new code")
        return record

    def consume(self, record: VerificationRecord) -> None:
        """Invalidate a verified record once it has gated a registration."""
        self.repository.delete(record.id)

    def _require_identity(self, email: str | None, contact_number: str | None) -> tuple[str, str]:
        normalized_email = normalize_email(email)
        normalized_contact = normalize_contact(contact_number)
        if not normalized_email or not normalized_contact:
            raise ValidationError("Email and contact number are required")
        return normalized_email, normalized_contact

    def _generate_code(self) -> str:
        """
        Generate a cryptographically secure numeric code.

        Uses secrets module for cryptographic randomness.
        Returns string to preserve leading zeros.
        """
        return "".join(secrets.choice("0123456789") for _ in range(self.code_length))

    def _hash_token(self, token: str) -> str:
        return bcrypt.hashpw(token.encode(), bcrypt.gensalt(rounds=self.token_cost)).decode()
