"""
Notification intents emitted by the workflow.

The domain never renders or delivers messages. It builds intents and
hands them to the ``Notifier`` port; a failure to hand one over is logged
and never fails the primary operation.
"""

import logging

from .models import NotificationIntent, Registration, Transaction, VerificationRecord
from .ports import NotificationChannel, NotificationKind, Notifier

logger = logging.getLogger(__name__)


def publish_best_effort(notifier: Notifier, intent: NotificationIntent) -> bool:
    """
    Publish an intent, logging instead of raising on failure.

    Returns:
        True if the notifier accepted the intent
    """
    try:
        notifier.publish(intent)
    except Exception:
        logger.exception(
            "Notification %s via %s to %s failed",
            intent.kind.value,
            intent.channel.value,
            intent.recipient,
        )
        return False
    return True


def verification_code_intents(record: VerificationRecord, ttl_seconds: int) -> list[NotificationIntent]:
    payload = {"code": record.code, "expires_in_seconds": ttl_seconds}
    return [
        NotificationIntent(
            channel=NotificationChannel.EMAIL,
            recipient=record.email,
            kind=NotificationKind.VERIFICATION_CODE,
            payload=payload,
        ),
        NotificationIntent(
            channel=NotificationChannel.MESSAGING,
            recipient=record.contact_number,
            kind=NotificationKind.VERIFICATION_CODE,
            payload=payload,
        ),
    ]


def registration_confirmation_intent(registration: Registration) -> NotificationIntent:
    return NotificationIntent(
        channel=NotificationChannel.EMAIL,
        recipient=registration.email,
        kind=NotificationKind.REGISTRATION_CONFIRMATION,
        payload={
            "registration_id": registration.id,
            "name": registration.name,
            "school": registration.school,
            "is_attending": registration.is_attending,
            "attendees": registration.attendees.to_wire(),
            "registration_status": registration.registration_status.value,
            "payment_status": registration.payment_status.value,
            "contribution_amount": registration.contribution_amount,
        },
    )


def payment_confirmation_intent(registration: Registration, transaction: Transaction) -> NotificationIntent:
    return NotificationIntent(
        channel=NotificationChannel.EMAIL,
        recipient=registration.email,
        kind=NotificationKind.PAYMENT_CONFIRMATION,
        payload={
            "registration_id": registration.id,
            "name": registration.name,
            "transaction_id": transaction.transaction_id,
            "amount": transaction.amount,
            "total_contribution": registration.contribution_amount,
        },
    )


def hardship_follow_up_intent(
    contact_email: str, registration: Registration, minimum: int
) -> NotificationIntent:
    return NotificationIntent(
        channel=NotificationChannel.EMAIL,
        recipient=contact_email,
        kind=NotificationKind.HARDSHIP_FOLLOW_UP,
        payload={
            "registration_id": registration.id,
            "name": registration.name,
            "email": registration.email,
            "contact_number": registration.contact_number,
            "school": registration.school,
            "pledged_amount": registration.pledged_amount,
            "minimum_contribution": minimum,
        },
    )
