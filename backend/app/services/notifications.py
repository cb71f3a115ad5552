"""Notification fan-out to title group subscribers.

Notifications are written inside the caller's transaction, so whether a
failure here aborts the surrounding workflow is the caller's decision. The
result type makes the outcome explicit instead of leaving callers to discard
a return value.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, insert, literal, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification, TitleGroupSubscription

logger = logging.getLogger(__name__)


class NotificationStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class NotificationResult:
    status: NotificationStatus
    recipients: int = 0
    reason: Optional[str] = None

    @classmethod
    def sent(cls, recipients: int) -> "NotificationResult":
        return cls(status=NotificationStatus.SENT, recipients=recipients)

    @classmethod
    def skipped(cls, reason: str) -> "NotificationResult":
        return cls(status=NotificationStatus.SKIPPED, reason=reason)


class NotificationError(Exception):
    """Raised when notifications could not be written."""
    pass


class Notifier(ABC):
    """Delivers an event to everyone subscribed to a title group."""

    @abstractmethod
    async def notify(
        self,
        session: AsyncSession,
        event: str,
        title_group_id: int,
        title: str,
        message: str,
    ) -> NotificationResult:
        ...


class SubscriptionNotifier(Notifier):
    """Writes one notifications row per subscriber of the title group."""

    async def notify(
        self,
        session: AsyncSession,
        event: str,
        title_group_id: int,
        title: str,
        message: str,
    ) -> NotificationResult:
        notifications = Notification.__table__
        subscriptions = TitleGroupSubscription.__table__
        stmt = (
            insert(notifications)
            .from_select(
                ["receiver_id", "event", "title_group_id", "title", "message"],
                select(
                    subscriptions.c.user_id,
                    literal(event),
                    literal(title_group_id, BigInteger),
                    literal(title),
                    literal(message),
                ).where(subscriptions.c.title_group_id == title_group_id),
            )
            .returning(notifications.c.id)
        )
        try:
            result = await session.execute(stmt)
            recipients = len(result.all())
        except SQLAlchemyError as e:
            raise NotificationError(
                f"could not notify subscribers of title group {title_group_id}: {e}"
            ) from e

        if recipients == 0:
            return NotificationResult.skipped("no subscribers")
        logger.info(f"Sent '{event}' notification to {recipients} subscriber(s) of title group {title_group_id}")
        return NotificationResult.sent(recipients)
