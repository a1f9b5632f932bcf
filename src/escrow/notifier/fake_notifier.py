"""In-memory notifier — records messages for test assertions."""

from escrow.notifier.port import NotificationError, Notifier


class FakeNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, recipient: str, subject: str, body: str) -> None:
        if not self.should_succeed:
            raise NotificationError(self.failure_reason)
        self.sent.append({"recipient": recipient, "subject": subject, "body": body})

    def sent_to(self, recipient: str) -> list[dict]:
        return [m for m in self.sent if m["recipient"] == recipient]

    def reset(self) -> None:
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
