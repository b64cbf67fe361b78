# cartsync/services/cart_sync.py
import asyncio
from typing import Callable

from cartsync.domain.exceptions import RemoteReadError
from cartsync.domain.schemas import ChangeEvent
from cartsync.services.cart_aggregator import CartAggregator
from cartsync.services.change_feed import ChangeFeed, Subscription
from cartsync.services.event_bus import CART_CHANGED, EventBus
from cartsync.services.session_service import AuthSession
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)

CART_TABLE = "cart_items"

CountListener = Callable[[int], None]


class CartSyncClient:
    """
    Keeps the cart item count of one session fresh.

    Two triggers feed the same refresh():
      - CART_CHANGED on the in-process bus (this session's own writes)
      - the change feed for cart_items rows of the signed-in owner (other
        tabs and devices)

    Every refresh re-reads the count from the store; nothing is counted
    locally. When refreshes overlap, only the one started last may publish
    its result.
    """

    def __init__(
        self,
        session: AuthSession,
        aggregator: CartAggregator,
        bus: EventBus,
        feed: ChangeFeed,
    ):
        self.session = session
        self.aggregator = aggregator
        self.bus = bus
        self.feed = feed

        self.count = 0
        self._owner_id: str | None = None
        self._generation = 0
        self._subscription: Subscription | None = None
        self._unsubscribe_bus: Callable[[], None] | None = None
        self._unsubscribe_session: Callable[[], None] | None = None
        self._listeners: list[CountListener] = []
        self._pending: set[asyncio.Task] = set()
        # owner switches run one at a time, each sees the previous one finished
        self._switching = asyncio.Lock()

    async def start(self) -> None:
        self._unsubscribe_session = self.session.subscribe(self._on_session_changed)
        self._unsubscribe_bus = self.bus.subscribe(CART_CHANGED, self._on_cart_changed)
        if self.session.current_owner is not None:
            async with self._switching:
                await self._attach(self.session.current_owner)

    async def close(self) -> None:
        if self._unsubscribe_session is not None:
            self._unsubscribe_session()
            self._unsubscribe_session = None
        if self._unsubscribe_bus is not None:
            self._unsubscribe_bus()
            self._unsubscribe_bus = None
        # let queued switches finish so none of them can subscribe after the detach below
        await self.wait_idle()
        async with self._switching:
            await self._detach()

    def add_listener(self, listener: CountListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def refresh(self) -> int:
        owner_id = self._owner_id
        if owner_id is None:
            return self.count

        self._generation += 1
        generation = self._generation
        try:
            count = await self.aggregator.count_items(owner_id)
        except RemoteReadError as e:
            logger.warning(f"Cart count refresh failed for {owner_id}, keeping {self.count}: {e}")
            return self.count

        # a newer refresh started meanwhile, or the owner changed
        if generation != self._generation or owner_id != self._owner_id:
            return self.count

        self._set_count(count)
        return count

    async def wait_idle(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # triggers

    def _on_cart_changed(self):
        return self.refresh()

    async def _on_feed_event(self, event: ChangeEvent) -> None:
        logger.info(f"Change feed {event.type} on {event.table} for {event.owner_id}")
        await self.refresh()

    def _on_session_changed(self, owner_id: str | None) -> None:
        self._spawn(self._switch_owner(owner_id))

    # lifecycle

    async def _switch_owner(self, owner_id: str | None) -> None:
        async with self._switching:
            await self._detach()
            if owner_id is not None:
                await self._attach(owner_id)

    async def _attach(self, owner_id: str) -> None:
        self._owner_id = owner_id
        self._subscription = await self.feed.subscribe(CART_TABLE, owner_id, self._on_feed_event)
        await self.refresh()

    async def _detach(self) -> None:
        self._owner_id = None
        self._generation += 1
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        self._set_count(0)

    def _set_count(self, count: int) -> None:
        if count == self.count:
            return
        self.count = count
        for listener in list(self._listeners):
            listener(count)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Session switch failed: {task.exception()!r}")
