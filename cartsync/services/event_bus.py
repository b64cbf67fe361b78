# cartsync/services/event_bus.py
import asyncio
import inspect
from collections import defaultdict
from typing import Any, Callable

from cartsync.utils.logging import get_logger

logger = get_logger(__name__)

CART_CHANGED = "cart-changed"


class EventBus:
    """
    In-process publish/subscribe channel, one per application.

    `emit` calls every handler right away, in subscription order. A handler
    returning a coroutine gets it scheduled as a task, so the emitter never
    waits on (or fails because of) a listener.
    """

    def __init__(self):
        self._handlers: dict[str, list[Callable[[], Any]]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event: str, handler: Callable[[], Any]) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, event: str) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler()
            except Exception:
                logger.exception(f"Handler for {event} failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(self._run(event, result))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @staticmethod
    async def _run(event: str, awaitable) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception(f"Handler for {event} failed")
