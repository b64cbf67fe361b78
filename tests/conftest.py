"""
Pytest configuration and fixtures for tests.

Environment is set before any cartsync import so settings pick it up:
in-memory SQLite, in-process change feed, eager Celery.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CHANGE_FEED_BACKEND"] = "memory"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cartsync.data.database import create_tables, make_engine
from cartsync.repos.memory import (
    MemoryCartStore,
    MemoryDatabase,
    MemoryOrderStore,
    MemoryProductStore,
)
from cartsync.services.cart_aggregator import CartAggregator
from cartsync.services.cart_service import CartService
from cartsync.services.change_feed import MemoryChangeFeed
from cartsync.services.checkout_service import CheckoutOrchestrator
from cartsync.services.event_bus import CART_CHANGED, EventBus


# ============================================================================
# In-memory store fixtures
# ============================================================================

@pytest.fixture
def feed():
    return MemoryChangeFeed()


@pytest.fixture
def db(feed):
    return MemoryDatabase(feed)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def carts(db):
    return MemoryCartStore(db)


@pytest.fixture
def products(db):
    return MemoryProductStore(db)


@pytest.fixture
def orders(db):
    return MemoryOrderStore(db)


@pytest.fixture
def cart_service(carts, bus):
    return CartService(carts=carts, bus=bus)


@pytest.fixture
def aggregator(carts, products):
    return CartAggregator(carts, products)


@pytest.fixture
def checkout(aggregator, orders, carts, bus):
    return CheckoutOrchestrator(aggregator=aggregator, orders=orders, carts=carts, bus=bus)


@pytest.fixture
def catalog(db):
    """Three products; prices in KES."""
    return {
        "flour": db.add_product("Maize Flour 2kg", "230.00", stock=50),
        "tea": db.add_product("Kenyan Tea 500g", "350.50", stock=5),
        "lantern": db.add_product("Solar Lantern", "2500.00", stock=2),
    }


@pytest.fixture
def bus_events(bus):
    """Records every CART_CHANGED emitted on the bus."""
    events = []
    bus.subscribe(CART_CHANGED, lambda: events.append(CART_CHANGED))
    return events


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def sql_engine():
    """Fresh in-memory SQLite database per test."""
    engine = make_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def sql_session(sql_engine):
    maker = async_sessionmaker(sql_engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session
