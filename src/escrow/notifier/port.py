"""Notification port — fire-and-forget messages to marketplace members."""

from abc import ABC, abstractmethod


class NotificationError(Exception):
    """The notifier could not hand the message off."""


class Notifier(ABC):
    @abstractmethod
    def notify(self, recipient: str, subject: str, body: str) -> None:
        """Send a message. Raises NotificationError when delivery fails."""
        ...
