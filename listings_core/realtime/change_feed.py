"""
Realtime change subscriptions.

Writers publish ``ChangeEvent`` values; readers subscribe with a
``ChangeFilter`` and receive an unsubscribe callable. Handlers may be plain
callables or coroutine functions.
"""

import asyncio
import inspect
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import redis.asyncio as redis


logger = logging.getLogger(__name__)

EVENTS = ("insert", "update", "delete")


@dataclass(frozen=True)
class ChangeEvent:
    """A single row change.

    Attributes:
        table: Table the row belongs to
        event: "insert", "update" or "delete"
        new: Row after the change (None for deletes)
        old: Row before the change (None for inserts)
    """
    table: str
    event: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None

    @property
    def row(self) -> Dict[str, Any]:
        return self.new if self.new is not None else (self.old or {})

    def to_json(self) -> str:
        return json.dumps(
            {"table": self.table, "event": self.event, "new": self.new, "old": self.old},
            default=str,
        )

    @classmethod
    def from_json(cls, payload: Union[str, bytes]) -> 'ChangeEvent':
        data = json.loads(payload)
        return cls(table=data["table"], event=data["event"], new=data.get("new"), old=data.get("old"))


@dataclass(frozen=True)
class ChangeFilter:
    """Subscription filter: table, event ("*" for any) and an optional
    column-equality condition."""
    table: str
    event: str = "*"
    column: Optional[str] = None
    value: Any = None

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if self.event != "*" and change.event != self.event:
            return False
        if self.column is None:
            return True
        return any(
            row is not None and row.get(self.column) == self.value
            for row in (change.new, change.old)
        )


ChangeHandler = Callable[[ChangeEvent], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


async def _dispatch(handler: ChangeHandler, change: ChangeEvent) -> None:
    try:
        result = handler(change)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"Change handler failed for {change.table}/{change.event}: {e}")


class ChangeFeed(ABC):
    """Capability interface for realtime change notifications."""

    @abstractmethod
    def subscribe(self, change_filter: ChangeFilter, handler: ChangeHandler) -> Unsubscribe:
        """Register a handler; returns a callable that removes it."""

    @abstractmethod
    async def publish(self, change: ChangeEvent) -> None:
        """Deliver a change to every matching subscriber."""

    async def close(self) -> None:
        return None


class InMemoryChangeFeed(ChangeFeed):
    """In-process change feed; handlers run in publish order."""

    def __init__(self):
        self._subscriptions: List[Tuple[int, ChangeFilter, ChangeHandler]] = []
        self._next_id = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, change_filter: ChangeFilter, handler: ChangeHandler) -> Unsubscribe:
        subscription_id = self._next_id
        self._next_id += 1
        self._subscriptions.append((subscription_id, change_filter, handler))
        logger.debug(f"Subscribed #{subscription_id} to {change_filter}")

        def unsubscribe() -> None:
            self._subscriptions = [
                entry for entry in self._subscriptions if entry[0] != subscription_id
            ]
            logger.debug(f"Unsubscribed #{subscription_id}")

        return unsubscribe

    async def publish(self, change: ChangeEvent) -> None:
        for _, change_filter, handler in list(self._subscriptions):
            if change_filter.matches(change):
                await _dispatch(handler, change)


class RedisChangeFeed(ChangeFeed):
    """
    Change feed backed by Redis pub/sub.

    Events are published as JSON on ``changes:<table>``. Each subscription
    owns a pub/sub connection and a listener task that is cancelled on
    unsubscribe.
    """

    CHANNEL_PREFIX = "changes:"

    def __init__(self, client: redis.Redis, poll_timeout: float = 1.0):
        self.client = client
        self.poll_timeout = poll_timeout
        self._tasks: List[asyncio.Task] = []

    @classmethod
    def from_url(cls, redis_url: str) -> 'RedisChangeFeed':
        return cls(redis.from_url(redis_url, decode_responses=True))

    def channel_for(self, table: str) -> str:
        return f"{self.CHANNEL_PREFIX}{table}"

    async def publish(self, change: ChangeEvent) -> None:
        await self.client.publish(self.channel_for(change.table), change.to_json())

    def subscribe(self, change_filter: ChangeFilter, handler: ChangeHandler) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(self._listen(change_filter, handler))
        self._tasks.append(task)

        def unsubscribe() -> None:
            task.cancel()
            if task in self._tasks:
                self._tasks.remove(task)

        return unsubscribe

    async def _listen(self, change_filter: ChangeFilter, handler: ChangeHandler) -> None:
        pubsub = self.client.pubsub()
        channel = self.channel_for(change_filter.table)
        await pubsub.subscribe(channel)
        logger.info(f"Listening for changes on {channel}")
        try:
            while True:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=self.poll_timeout
                )
                if message is None or message.get("type") != "message":
                    continue
                change = ChangeEvent.from_json(message["data"])
                if change_filter.matches(change):
                    await _dispatch(handler, change)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    async def close(self) -> None:
        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        # Listeners unsubscribe in their finally blocks, which need the client open
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.client.aclose()
