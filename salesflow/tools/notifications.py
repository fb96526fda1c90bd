"""
Handoff notification sink.

In production this pushes an alert to the sales team's dashboard and
phones. Delivery is at-least-once: an alert may be repeated for the same
reason, which the team tolerates.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify(self, conversation_id: str, reason: str) -> None: ...


@dataclass
class SentNotification:
    conversation_id: str
    reason: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryNotificationSink:
    """Records alerts instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[SentNotification] = []
        self.fail = False

    async def notify(self, conversation_id: str, reason: str) -> None:
        if self.fail:
            raise ConnectionError("notification service unavailable")
        self.sent.append(SentNotification(conversation_id, reason))
        logger.info("Handoff alert for %s: %s", conversation_id, reason.splitlines()[0] if reason else "")

    def reasons_for(self, conversation_id: str) -> list[str]:
        return [n.reason for n in self.sent if n.conversation_id == conversation_id]
