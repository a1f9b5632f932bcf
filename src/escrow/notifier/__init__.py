"""Notifier factory.

Singleton access to the configured notifier. NOTIFIER_ADAPTER selects
"fake" (in-memory, default) or "log" (structured log lines).
"""

from escrow import settings
from escrow.notifier.port import NotificationError, Notifier

_current_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    global _current_notifier
    if _current_notifier is None:
        name = settings.notifier_name()
        if name == "fake":
            from escrow.notifier.fake_notifier import FakeNotifier

            _current_notifier = FakeNotifier()
        elif name == "log":
            from escrow.notifier.log_notifier import LogNotifier

            _current_notifier = LogNotifier()
        else:
            raise ValueError(f"Unknown notifier adapter: {name}")
    return _current_notifier


def set_notifier(notifier: Notifier) -> None:
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    """Drop the singleton (useful for testing)."""
    global _current_notifier
    _current_notifier = None


__all__ = ["NotificationError", "Notifier", "get_notifier", "set_notifier", "reset_notifier"]
