"""Notifier that writes each message to the structured log.

Useful when running the sweeper from cron without a mail relay.
"""

import structlog

from escrow.notifier.port import Notifier

logger = structlog.get_logger(__name__)


class LogNotifier(Notifier):
    def notify(self, recipient: str, subject: str, body: str) -> None:
        logger.info("notification", recipient=recipient, subject=subject, body_length=len(body))
