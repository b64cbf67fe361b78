# cartsync/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from cartsync.api.deps import get_aggregator, get_bus, get_cart_repo, get_order_repo, remote_failure
from cartsync.domain.exceptions import (
    CheckoutError,
    EmptyCartError,
    OrderNotFoundError,
    RemoteReadError,
)
from cartsync.domain.schemas import CheckoutResult, OrderOut
from cartsync.repos.cart_repo import CartRepo
from cartsync.repos.order_repo import OrderRepo
from cartsync.services.cart_aggregator import CartAggregator
from cartsync.services.checkout_service import CheckoutOrchestrator
from cartsync.services.event_bus import EventBus
from cartsync.services.notification_service import NotificationService
from cartsync.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])

_CHECKOUT_MESSAGES = {
    "create_order": "Failed to create order",
    "write_order_items": "Failed to create order items",
    "clear_cart": "Failed to clear cart",
}


def get_service(orders: OrderRepo = Depends(get_order_repo)) -> OrderService:
    return OrderService(orders)


def get_checkout(
    aggregator: CartAggregator = Depends(get_aggregator),
    orders: OrderRepo = Depends(get_order_repo),
    carts: CartRepo = Depends(get_cart_repo),
    bus: EventBus = Depends(get_bus),
) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(aggregator=aggregator, orders=orders, carts=carts, bus=bus)


@router.post("/checkout", response_model=CheckoutResult, status_code=201)
async def checkout(
    owner_id: str = Query(...),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout),
):
    """
    Places an order from the owner's cart. Failed steps are not undone:
    the response says which step failed and which order id, if any, exists.
    """
    try:
        result = await orchestrator.place_order(owner_id)
    except EmptyCartError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CheckoutError as e:
        await NotificationService.error(owner_id, _CHECKOUT_MESSAGES[e.step])
        raise HTTPException(
            status_code=502,
            detail={"message": e.message, **e.details},
        )
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load cart", e)

    await NotificationService.success(owner_id, "Order placed successfully!")
    return result


@router.get("/", response_model=List[OrderOut])
async def list_orders(
    owner_id: str = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return await svc.list_orders(owner_id)
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load orders", e)


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: str,
    owner_id: str = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        order = await svc.get_order(order_id, owner_id)
        items = await svc.get_order_items(order_id, owner_id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load order", e)
    return OrderOut(**order.model_dump(), items=items)
