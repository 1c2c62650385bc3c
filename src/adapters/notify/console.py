"""
Console channel adapters - Implement the ChannelSender protocol.

These senders log each notification intent instead of delivering it,
for local development and demos. Production deployments plug a real
email or messaging gateway in behind the same protocol.
"""

import logging

from src.domain.models import NotificationIntent

logger = logging.getLogger(__name__)


class ConsoleEmailChannel:
    """
    Implements ChannelSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    The intent is logged at INFO level to be visible in container logs.
    """

    def send(self, intent: NotificationIntent, timeout: float) -> None:
        logger.info(
            "[EMAIL] To: %s Kind: %s Payload: %s",
            intent.recipient,
            intent.kind.value,
            dict(intent.payload),
        )


class ConsoleMessagingChannel:
    """Implements ChannelSender protocol for the messaging channel."""

    def send(self, intent: NotificationIntent, timeout: float) -> None:
        logger.info(
            "[MESSAGING] To: %s Kind: %s Payload: %s",
            intent.recipient,
            intent.kind.value,
            dict(intent.payload),
        )
