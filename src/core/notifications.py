"""User-facing notifications (the client's equivalent of toast messages)."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

NotificationLevel = Literal["success", "error"]


@dataclass(frozen=True)
class Notification:
    """A transient, dismissable message for the user."""

    level: NotificationLevel
    message: str
    kind: str | None = None


Subscriber = Callable[[Notification], None]


class Notifier:
    """
    Fan-out point for notifications.

    Every notification is logged, kept in history, and passed to each
    subscriber. A failing subscriber is logged and skipped so one broken UI
    hook cannot block the others.
    """

    def __init__(self) -> None:
        self._history: list[Notification] = []
        self._subscribers: list[Subscriber] = []

    @property
    def history(self) -> tuple[Notification, ...]:
        return tuple(self._history)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a callable that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def success(self, message: str, kind: str | None = None) -> Notification:
        return self._emit(Notification("success", message, kind))

    def error(self, message: str, kind: str | None = None) -> Notification:
        return self._emit(Notification("error", message, kind))

    def clear(self) -> None:
        self._history.clear()

    def _emit(self, notification: Notification) -> Notification:
        log_level = logging.INFO if notification.level == "success" else logging.WARNING
        logger.log(log_level, "Notification [%s]: %s", notification.kind or "-", notification.message)
        self._history.append(notification)
        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception:
                logger.exception("Notification subscriber %r failed", subscriber)
        return notification
