"""
Thread pool notifier - Implements the Notifier protocol.

Intents are handed to a bounded worker pool and delivered by the sender
registered for their channel. ``publish`` returns as soon as the intent
is queued, so a slow or failing gateway never holds up the request that
produced it.
"""

import logging
import time
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor

from src.domain.exceptions import NotificationFailure
from src.domain.models import NotificationIntent
from src.domain.ports import ChannelSender, NotificationChannel

logger = logging.getLogger(__name__)


class ThreadPoolNotifier:
    """
    Implements Notifier protocol over per-channel senders.

    Delivery errors are logged by the worker; they never reach the caller.
    """

    def __init__(
        self,
        senders: Mapping[NotificationChannel, ChannelSender],
        max_workers: int = 4,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._senders = dict(senders)
        self._timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    def publish(self, intent: NotificationIntent) -> Future:
        """
        Queue an intent for delivery.

        Raises:
            NotificationFailure: If no sender handles the channel or the
                pool is shut down
        """
        sender = self._senders.get(intent.channel)
        if sender is None:
            raise NotificationFailure(f"No sender configured for channel {intent.channel.value}")
        try:
            return self._executor.submit(self._deliver, sender, intent)
        except RuntimeError as e:
            raise NotificationFailure("Notifier is shut down") from e

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _deliver(self, sender: ChannelSender, intent: NotificationIntent) -> None:
        started = time.monotonic()
        try:
            sender.send(intent, self._timeout)
        except Exception:
            logger.exception(
                "Delivery of %s via %s to %s failed",
                intent.kind.value,
                intent.channel.value,
                intent.recipient,
            )
            return
        elapsed = time.monotonic() - started
        if elapsed > self._timeout:
            logger.warning(
                "Delivery of %s via %s took %.1fs (timeout %.1fs)",
                intent.kind.value,
                intent.channel.value,
                elapsed,
                self._timeout,
            )
