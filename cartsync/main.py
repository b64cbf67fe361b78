# cartsync/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from cartsync.api import create_app
from cartsync.data.database import create_tables
from cartsync.data.seed import seed
from cartsync.services.change_feed import ChangeFeed, MemoryChangeFeed, RedisChangeFeed
from cartsync.services.event_bus import EventBus
from cartsync.utils.logging import get_logger
from cartsync.utils.settings import CHANGE_FEED_BACKEND, SEED_PRODUCTS

logger = get_logger(__name__)


def make_change_feed(backend: str = CHANGE_FEED_BACKEND) -> ChangeFeed:
    if backend == "memory":
        return MemoryChangeFeed()
    if backend == "redis":
        return RedisChangeFeed()
    raise ValueError(f"Unknown CHANGE_FEED_BACKEND: {backend}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing database")
    await create_tables()
    if SEED_PRODUCTS:
        await seed()

    app.state.event_bus = EventBus()
    app.state.change_feed = make_change_feed()
    logger.info(f"Change feed backend: {CHANGE_FEED_BACKEND}")

    try:
        yield
    finally:
        await app.state.event_bus.drain()
        await app.state.change_feed.close()


app = create_app(lifespan=lifespan)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
