"""
Per-user notification center with realtime refresh.
"""

import logging
from typing import List, Optional

from listings_core.error_handling import ErrorHandler, OperationResult
from listings_core.models import Notification
from listings_core.realtime import ChangeEvent, ChangeFeed, ChangeFilter, Unsubscribe
from listings_core.store import Repositories
from listings_core.store.base import NOTIFICATIONS


logger = logging.getLogger(__name__)

NOTIFICATION_LIMIT = 30


class NotificationCenter:
    """
    Holds the latest notifications for one user.

    ``start`` loads the list and subscribes to changes on the user's
    notification rows; ``close`` removes the subscription.
    """

    def __init__(self, repos: Repositories, user_id: str, limit: int = NOTIFICATION_LIMIT):
        self.repos = repos
        self.user_id = user_id
        self.limit = limit
        self.notifications: List[Notification] = []
        self.error: Optional[str] = None
        self.error_handler = ErrorHandler("Failed to load notifications.")
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)

    async def refresh(self) -> OperationResult:
        async def operation() -> OperationResult:
            self.notifications = await self.repos.notifications.latest(self.user_id, self.limit)
            return OperationResult.ok(data=self.notifications)

        result = await self.error_handler.run("fetch_notifications", operation)
        self.error = result.error
        return result

    async def start(self, change_feed: ChangeFeed) -> OperationResult:
        if self._unsubscribe is None:
            self._unsubscribe = change_feed.subscribe(
                ChangeFilter(NOTIFICATIONS, "*", column="user_id", value=self.user_id),
                self._on_change,
            )
        return await self.refresh()

    async def _on_change(self, change: ChangeEvent) -> None:
        logger.debug(f"Notification {change.event} for {self.user_id}")
        await self.refresh()

    async def mark_as_read(self, notification_ids: List[str]) -> OperationResult:
        async def operation() -> OperationResult:
            updated = await self.repos.notifications.mark_read(notification_ids)
            ids = set(notification_ids)
            for notification in self.notifications:
                if notification.id in ids:
                    notification.is_read = True
            return OperationResult.ok(data=updated)

        return await self.error_handler.run(
            "mark_as_read", operation, failure_message="Failed to update notifications."
        )

    async def mark_all_as_read(self) -> OperationResult:
        unread = [n.id for n in self.notifications if not n.is_read]
        return await self.mark_as_read(unread)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
