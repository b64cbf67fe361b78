# cartsync/services/change_feed.py
import asyncio
import contextlib
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Awaitable, Callable

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from cartsync.domain.schemas import ChangeEvent
from cartsync.utils.logging import get_logger
from cartsync.utils.retry import redis_retry
from cartsync.utils.settings import REDIS_URL

logger = get_logger(__name__)

ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]


def channel_name(table: str, owner_id: str) -> str:
    #same shape as a row filter: changes:cart_items:owner_id=eq.<id>
    return f"changes:{table}:owner_id=eq.{owner_id}"


class Subscription(ABC):
    @abstractmethod
    async def close(self) -> None: ...


class ChangeFeed(ABC):
    """
    Push channel for row changes, keyed by table and an equality filter on
    owner_id. Events carry no row data, only "something changed".
    """

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None: ...

    @abstractmethod
    async def subscribe(self, table: str, owner_id: str, callback: ChangeCallback) -> Subscription: ...

    async def close(self) -> None:
        pass


async def _deliver(callback: ChangeCallback, event: ChangeEvent) -> None:
    try:
        await callback(event)
    except Exception:
        logger.exception(f"Change feed callback failed for {event.table} owner {event.owner_id}")


# in-process backend


class _MemorySubscription(Subscription):
    def __init__(self, feed: "MemoryChangeFeed", channel: str, callback: ChangeCallback):
        self.feed = feed
        self.channel = channel
        self.callback = callback

    async def close(self) -> None:
        self.feed._remove(self)


class MemoryChangeFeed(ChangeFeed):
    """
    Feed for a single process: each publish schedules delivery as its own
    task, so subscribers see the change after the publisher has moved on.
    `join()` waits until every scheduled delivery has run.
    """

    def __init__(self):
        self._subscribers: dict[str, list[_MemorySubscription]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()
        self.published: list[ChangeEvent] = []

    async def publish(self, event: ChangeEvent) -> None:
        self.published.append(event)
        for sub in list(self._subscribers.get(channel_name(event.table, event.owner_id), [])):
            task = asyncio.create_task(_deliver(sub.callback, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def subscribe(self, table: str, owner_id: str, callback: ChangeCallback) -> Subscription:
        sub = _MemorySubscription(self, channel_name(table, owner_id), callback)
        self._subscribers[sub.channel].append(sub)
        return sub

    def subscriber_count(self, table: str, owner_id: str) -> int:
        return len(self._subscribers.get(channel_name(table, owner_id), []))

    async def join(self) -> None:
        #deliveries can publish again, keep going until nothing is left
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        await self.join()
        self._subscribers.clear()

    def _remove(self, sub: _MemorySubscription) -> None:
        subs = self._subscribers.get(sub.channel, [])
        if sub in subs:
            subs.remove(sub)


# redis backend


class _RedisSubscription(Subscription):
    """
    One pubsub connection per (table, owner). The listener outlives bad
    payloads and dropped connections: undecodable messages are skipped and
    a lost connection is re-subscribed until it comes back.
    """

    reconnect_delay = 1.0

    def __init__(self, client: redis.Redis, pubsub, channel: str, callback: ChangeCallback):
        self.client = client
        self.pubsub = pubsub
        self.channel = channel
        self.callback = callback
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        self._task = asyncio.create_task(self._listen())
        self._task.add_done_callback(self._on_listener_done)

    @property
    def alive(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _listen(self) -> None:
        while True:
            try:
                message = await self.pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except RedisError as e:
                logger.warning(f"Lost {self.channel}, re-subscribing: {e}")
                await self._reconnect()
                continue

            if message is None or message["type"] != "message":
                continue
            try:
                event = ChangeEvent.model_validate_json(message["data"])
            except ValidationError as e:
                logger.warning(f"Dropping undecodable message on {self.channel}: {e}")
                continue
            await _deliver(self.callback, event)

    async def _reconnect(self) -> None:
        while True:
            try:
                await self._resubscribe()
                logger.info(f"Re-subscribed to {self.channel}")
                return
            except RedisError as e:
                logger.warning(f"Re-subscribing to {self.channel} failed, retrying: {e}")
                await asyncio.sleep(self.reconnect_delay)

    @redis_retry()
    async def _resubscribe(self) -> None:
        with contextlib.suppress(RedisError):
            await self.pubsub.aclose()
        self.pubsub = self.client.pubsub()
        await self.pubsub.subscribe(self.channel)

    def _on_listener_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Listener on {self.channel} stopped: {task.exception()!r}")

    async def close(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        with contextlib.suppress(RedisError):
            await self.pubsub.unsubscribe(self.channel)
            await self.pubsub.aclose()
        logger.info(f"Unsubscribed from {self.channel}")


class RedisChangeFeed(ChangeFeed):
    """
    Change feed over Redis pub/sub, one channel per (table, owner).
    Publishing is retried on transient Redis errors; delivery is
    at-most-once like any pub/sub.
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    async def publish(self, event: ChangeEvent) -> None:
        channel = channel_name(event.table, event.owner_id)
        logger.info(f"Publish {event.type} on {channel}")
        await self.redis.publish(channel, event.model_dump_json())

    @redis_retry()
    async def subscribe(self, table: str, owner_id: str, callback: ChangeCallback) -> Subscription:
        channel = channel_name(table, owner_id)
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(channel)
        logger.info(f"Subscribed to {channel}")

        sub = _RedisSubscription(self.redis, pubsub, channel, callback)
        sub.start()
        return sub

    async def close(self) -> None:
        await self.redis.aclose()
