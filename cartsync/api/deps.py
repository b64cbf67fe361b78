# cartsync/api/deps.py
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cartsync.data.database import SessionLocal, get_db
from cartsync.repos.cart_repo import CartRepo
from cartsync.repos.order_repo import OrderRepo
from cartsync.repos.product_repo import ProductRepo
from cartsync.services.cart_aggregator import CartAggregator
from cartsync.services.change_feed import ChangeFeed
from cartsync.services.event_bus import EventBus
from cartsync.services.notification_service import NotificationService


def get_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


def get_cart_repo(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_feed),
) -> CartRepo:
    return CartRepo(db, feed)


def get_product_repo(db: AsyncSession = Depends(get_db)) -> ProductRepo:
    return ProductRepo(db)


def get_order_repo(db: AsyncSession = Depends(get_db)) -> OrderRepo:
    return OrderRepo(db)


def get_aggregator(
    carts: CartRepo = Depends(get_cart_repo),
    products: ProductRepo = Depends(get_product_repo),
) -> CartAggregator:
    return CartAggregator(carts, products)


def get_session_factory():
    """Session maker for handlers that outlive a single request (websockets)."""
    return SessionLocal


async def remote_failure(owner_id: str | None, notice: str, error: Exception) -> HTTPException:
    """502 for a failed store call, with an error notice queued for the owner."""
    if owner_id:
        await NotificationService.error(owner_id, notice)
    return HTTPException(status_code=502, detail=str(error))
