"""
Registration domain service - Step-wise wizard persistence.

This module contains the Step Merge Engine: every wizard page submits a
sectioned payload that is patched into the registration's structured
form without disturbing previously saved sections.

Registration State Machine (forward-only)
=========================================

    Verifying(0) -> PersonalInfo(1) -> Professional(2) -> Attendance(3)
      -> Sponsorship(4) -> Transport(5) -> Accommodation(6) -> Optional(7)
      -> Financial(8) -> {Complete | Incomplete}

- Step 1 with no registration id creates the aggregate, gated by a
  verified identity. The verification record is consumed on success.
- Later saves address the aggregate by id. ``current_step`` only moves
  forward; saving an earlier page again merges its data but does not
  rewind the wizard.
- Saving step 8 marks the submission complete and decides the terminal
  split from the contribution policy.

Writes are conditional on the aggregate version. On a conflict the
patch is re-applied to a fresh read, which is safe because patches are
field-level and idempotent.
"""

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from .contribution import ContributionAssessment, ContributionRates, assess, terminal_status
from .exceptions import ConcurrentModification, DuplicateIdentity, NotFound, NotificationFailure, ValidationError
from .models import Registration, RegistrationStats, normalize_contact, normalize_email, utcnow
from .notifications import publish_best_effort, registration_confirmation_intent
from .ports import Notifier, PaymentStatus, RegistrationRepository, WizardStep
from .sections import StructuredForm
from .verification import VerificationService

logger = logging.getLogger(__name__)

NEW_REGISTRATION = "new"


@dataclass(frozen=True)
class StepSaved:
    registration_id: str
    current_step: int
    is_complete: bool
    created: bool = False


def apply_with_retry(
    repository: RegistrationRepository,
    registration_id: str,
    change: Callable[[Registration], Registration],
    max_retries: int,
) -> tuple[Registration, Registration]:
    """
    Read-modify-write a registration under optimistic concurrency.

    ``change`` must be a pure function of the registration it receives; it
    is re-run against a fresh read after every version conflict. When it
    returns its argument unchanged nothing is written.

    Returns:
        (registration as read, registration as stored)

    Raises:
        NotFound: If the registration does not exist
        ConcurrentModification: If every attempt lost the race
    """
    for attempt in range(max_retries + 1):
        current = repository.get(registration_id)
        if current is None:
            raise NotFound("Registration not found")
        updated = change(current)
        if updated == current:
            return current, current
        try:
            return current, repository.update(updated)
        except ConcurrentModification:
            logger.warning(
                "Version conflict on registration %s (attempt %d of %d)",
                registration_id,
                attempt + 1,
                max_retries + 1,
            )
    raise ConcurrentModification("Registration was modified concurrently, please retry")


@dataclass
class RegistrationService:
    """
    Domain service for the registration wizard.

    Orchestrates the step flow: identity binding at step 1, per-section
    merges for every later step, and the terminal decision at step 8.
    """

    repository: RegistrationRepository
    verification: VerificationService
    notifier: Notifier
    rates: ContributionRates = field(default_factory=ContributionRates)
    max_write_retries: int = 3
    clock: Callable[[], datetime] = field(default=utcnow)

    def save_step(
        self,
        registration_id: str | None,
        step: int,
        payload: Mapping[str, Any] | None,
        verification_token: str | None = None,
    ) -> StepSaved:
        """
        Save one wizard page.

        Args:
            registration_id: Aggregate id, or "new"/None to create at step 1
            step: Wizard step number, 1 to 8
            payload: Sectioned form data keyed by section name
            verification_token: Token from verify_code, required to create

        Returns:
            StepSaved with the aggregate id, current step and completion flag

        Raises:
            ValidationError: Bad step number, missing or malformed payload
            Unauthorized: Creation without a verified identity
            DuplicateIdentity: Creation for an email/contact already registered
            NotFound: Unknown registration id
            ConcurrentModification: Lost every retry against concurrent writers
        """
        step = self._validate_step(step)
        if payload is None:
            raise ValidationError("No data provided for this step")

        if registration_id in (None, "", NEW_REGISTRATION):
            if step != WizardStep.PERSONAL_INFO:
                raise ValidationError("Cannot create registration starting from step other than 1")
            return self._create(payload, verification_token)

        before, after = apply_with_retry(
            self.repository,
            registration_id,
            lambda current: self._apply_step(current, step, payload),
            self.max_write_retries,
        )
        if after is not before:
            logger.info("Step %d saved for registration %s", step, after.id)
        if after.form_submission_complete and not before.form_submission_complete:
            publish_best_effort(self.notifier, registration_confirmation_intent(after))

        return StepSaved(
            registration_id=after.id,
            current_step=after.current_step,
            is_complete=after.form_submission_complete,
        )

    def get_registration(self, registration_id: str) -> Registration:
        registration = self.repository.get(registration_id)
        if registration is None:
            raise NotFound("Registration not found")
        return registration

    def assess_contribution(self, registration_id: str) -> ContributionAssessment:
        return assess(self.get_registration(registration_id), self.rates)

    def registration_stats(self) -> RegistrationStats:
        return self.repository.stats()

    def resend_confirmation(self, registration_id: str) -> Registration:
        """
        Re-send the registration confirmation for a paid registration.

        Here the notification is the operation itself, so a publish failure
        is reported instead of swallowed.

        Raises:
            NotFound: Unknown registration id
            ValidationError: Payment not completed
            NotificationFailure: Notifier refused the intent
        """
        registration = self.get_registration(registration_id)
        if registration.payment_status != PaymentStatus.COMPLETED:
            raise ValidationError("Cannot send confirmation for an incomplete registration")
        if not publish_best_effort(self.notifier, registration_confirmation_intent(registration)):
            raise NotificationFailure("Confirmation could not be queued")
        logger.info("Confirmation re-sent for registration %s", registration.id)
        return registration

    def _create(self, payload: Mapping[str, Any], verification_token: str | None) -> StepSaved:
        form = StructuredForm.from_wire(payload)
        personal = form.personal_info
        email = normalize_email(personal.email)
        contact_number = normalize_contact(personal.contact_number)
        if not email or not contact_number:
            raise ValidationError("Email and contact number are required for the first step")

        record = self.verification.authorize(email, contact_number, verification_token)
        if self.repository.find_by_identity(email, contact_number) is not None:
            raise DuplicateIdentity("A registration with this email or contact number already exists")

        form = replace(
            form,
            personal_info=replace(personal, email=email, contact_number=contact_number).normalized(),
            verification=replace(form.verification, email_verified=True),
        )
        now = self.clock()
        registration = Registration(
            id=uuid.uuid4().hex,
            email=email,
            contact_number=contact_number,
            form=form,
            registration_date=now,
            last_updated=now,
        )
        self.repository.add(registration)
        self.verification.consume(record)
        logger.info("Registration %s created for %s", registration.id, email)

        return StepSaved(
            registration_id=registration.id,
            current_step=registration.current_step,
            is_complete=False,
            created=True,
        )

    def _apply_step(self, current: Registration, step: int, payload: Mapping[str, Any]) -> Registration:
        form = current.form.patch(payload)
        personal = form.personal_info
        if normalize_email(personal.email) != current.email or (
            normalize_contact(personal.contact_number) != current.contact_number
        ):
            raise ValidationError("Email and contact number cannot be changed after registration")
        form = replace(
            form,
            personal_info=replace(
                personal, email=current.email, contact_number=current.contact_number
            ).normalized(),
            verification=replace(form.verification, email_verified=True),
        )

        updated = replace(
            current,
            form=form,
            completed_steps=current.completed_steps | {step},
            current_step=max(current.current_step, step),
        )
        if step == WizardStep.FINANCIAL:
            updated = replace(updated, form_submission_complete=True)
        if updated.form_submission_complete:
            # Earlier pages can change the minimum after submission
            updated = replace(updated, registration_status=terminal_status(updated, self.rates))

        if updated == current:
            return current
        return replace(updated, last_updated=self.clock())

    def _validate_step(self, step: Any) -> int:
        if isinstance(step, bool) or not isinstance(step, int):
            raise ValidationError("Invalid step number")
        if not WizardStep.PERSONAL_INFO <= step <= WizardStep.FINANCIAL:
            raise ValidationError("Invalid step number")
        return step
