"""Notification adapters - Channel senders and the dispatching notifier."""

from src.domain.ports import NotificationChannel

from .console import ConsoleEmailChannel, ConsoleMessagingChannel
from .dispatcher import ThreadPoolNotifier


def build_console_notifier(max_workers: int = 4, timeout_seconds: float = 10.0) -> ThreadPoolNotifier:
    return ThreadPoolNotifier(
        senders={
            NotificationChannel.EMAIL: ConsoleEmailChannel(),
            NotificationChannel.MESSAGING: ConsoleMessagingChannel(),
        },
        max_workers=max_workers,
        timeout_seconds=timeout_seconds,
    )


__all__ = ["ConsoleEmailChannel", "ConsoleMessagingChannel", "ThreadPoolNotifier", "build_console_notifier"]
