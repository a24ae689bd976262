"""
Board Notifications

Transient success/error messages ("toasts") raised by the order board.

    - LoggingNotifier: writes every notification to the log (default)
    - InMemoryNotifier: keeps the visible notifications, for embedding a
      board in another UI and for tests
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """One toast."""
    kind: str  # "success" | "error"
    message: str
    key: Optional[str] = None
    duration: Optional[float] = None
    created_at: float = field(default_factory=time.monotonic)


class BaseNotifier(ABC):
    """Abstract base class for notification sinks."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Show a notification."""
        pass

    def success(self, message: str, key: Optional[str] = None, duration: Optional[float] = None) -> None:
        self.notify(Notification("success", message, key=key, duration=duration))

    def error(self, message: str, key: Optional[str] = None) -> None:
        self.notify(Notification("error", message, key=key))


class LoggingNotifier(BaseNotifier):
    """Notifications go to the log."""

    @property
    def provider_name(self) -> str:
        return "logging"

    def notify(self, notification: Notification) -> None:
        if notification.kind == "error":
            logger.warning(f"✖ {notification.message}")
        else:
            logger.info(f"✔ {notification.message}")


class InMemoryNotifier(BaseNotifier):
    """
    Keeps notifications in a list.

    A notification with a key replaces the earlier one carrying the same key,
    so repeated updates of one order show a single toast.
    """

    def __init__(self):
        self.notifications: list[Notification] = []

    @property
    def provider_name(self) -> str:
        return "memory"

    def notify(self, notification: Notification) -> None:
        if notification.key is not None:
            self.notifications = [n for n in self.notifications if n.key != notification.key]
        self.notifications.append(notification)

    @property
    def messages(self) -> list[str]:
        return [n.message for n in self.notifications]

    def of_kind(self, kind: str) -> list[Notification]:
        return [n for n in self.notifications if n.kind == kind]

    def clear(self) -> None:
        self.notifications.clear()
