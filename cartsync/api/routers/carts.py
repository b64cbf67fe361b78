#cartsync/api/routers/carts.py
import asyncio
import contextlib

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect

from cartsync.api.deps import (
    get_aggregator,
    get_bus,
    get_cart_repo,
    get_product_repo,
    get_session_factory,
    remote_failure,
)
from cartsync.domain.exceptions import (
    RemoteReadError,
    RemoteWriteError,
    ValidationRefusal,
)
from cartsync.domain.schemas import CartCountOut, CartOut, ItemIn, QuantityIn
from cartsync.repos.cart_repo import CartRepo
from cartsync.repos.product_repo import ProductRepo
from cartsync.services.cart_aggregator import CartAggregator
from cartsync.services.cart_service import CartService
from cartsync.services.cart_sync import CartSyncClient
from cartsync.services.event_bus import EventBus
from cartsync.services.notification_service import NotificationService
from cartsync.services.session_service import AuthSession

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(
    carts: CartRepo = Depends(get_cart_repo),
    bus: EventBus = Depends(get_bus),
) -> CartService:
    return CartService(carts=carts, bus=bus)


async def _summary(owner_id: str, aggregator: CartAggregator) -> CartOut:
    try:
        summary = await aggregator.compute_summary(owner_id)
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load cart", e)
    return CartOut.from_summary(owner_id, summary)


async def _product(owner_id: str, product_id: str, products: ProductRepo):
    try:
        product = await products.get(product_id)
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load product", e)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def _owned_item(owner_id: str, item_id: str, carts: CartRepo):
    try:
        item = await carts.get(item_id)
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load cart", e)
    # someone else's item is reported the same as a missing one
    if not item or item.owner_id != owner_id:
        raise HTTPException(status_code=404, detail="Cart item not found")
    return item


@router.get("/", response_model=CartOut)
async def get_cart(
    owner_id: str = Query(...),
    aggregator: CartAggregator = Depends(get_aggregator),
):
    return await _summary(owner_id, aggregator)


@router.get("/count", response_model=CartCountOut)
async def get_cart_count(
    owner_id: str = Query(...),
    aggregator: CartAggregator = Depends(get_aggregator),
):
    try:
        return CartCountOut(owner_id=owner_id, count=await aggregator.count_items(owner_id))
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load cart", e)


@router.post("/items", response_model=CartOut, status_code=201)
async def add_item(
    payload: ItemIn,
    owner_id: str = Query(...),
    svc: CartService = Depends(get_service),
    products: ProductRepo = Depends(get_product_repo),
    aggregator: CartAggregator = Depends(get_aggregator),
):
    product = await _product(owner_id, payload.product_id, products)

    try:
        #out-of-stock products cannot be added at all
        CartService.check_quantity(product.id, payload.quantity, product.stock)
        await svc.add_to_cart(owner_id, product.id, payload.quantity)
    except ValidationRefusal as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (RemoteReadError, RemoteWriteError) as e:
        raise await remote_failure(owner_id, "Failed to add to cart", e)

    await NotificationService.success(owner_id, f"Added {payload.quantity} item(s) to cart!")
    return await _summary(owner_id, aggregator)


@router.patch("/items/{item_id}", response_model=CartOut)
async def update_item(
    item_id: str,
    payload: QuantityIn,
    owner_id: str = Query(...),
    svc: CartService = Depends(get_service),
    carts: CartRepo = Depends(get_cart_repo),
    products: ProductRepo = Depends(get_product_repo),
    aggregator: CartAggregator = Depends(get_aggregator),
):
    # below 1 is a no-op, the cart is returned unchanged
    if payload.quantity >= 1:
        item = await _owned_item(owner_id, item_id, carts)
        product = await _product(owner_id, item.product_id, products)

        try:
            CartService.check_quantity(product.id, payload.quantity, product.stock)
            await svc.set_quantity(item_id, payload.quantity)
        except ValidationRefusal as e:
            raise HTTPException(status_code=409, detail=str(e))
        except RemoteWriteError as e:
            raise await remote_failure(owner_id, "Failed to update quantity", e)

    return await _summary(owner_id, aggregator)


@router.delete("/items/{item_id}", response_model=CartOut)
async def remove_item(
    item_id: str,
    owner_id: str = Query(...),
    svc: CartService = Depends(get_service),
    carts: CartRepo = Depends(get_cart_repo),
    aggregator: CartAggregator = Depends(get_aggregator),
):
    await _owned_item(owner_id, item_id, carts)
    try:
        await svc.remove_item(item_id)
    except RemoteWriteError as e:
        raise await remote_failure(owner_id, "Failed to remove item", e)

    await NotificationService.success(owner_id, "Item removed from cart")
    return await _summary(owner_id, aggregator)


class _ScopedAggregator:
    """Opens a fresh DB session per count, for long-lived websocket clients."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def count_items(self, owner_id: str) -> int:
        async with self.session_factory() as db:
            return await CartAggregator(CartRepo(db), ProductRepo(db)).count_items(owner_id)


@router.websocket("/ws")
async def cart_badge(
    websocket: WebSocket,
    owner_id: str = Query(...),
    session_factory=Depends(get_session_factory),
):
    """
    Pushes {"count": n} whenever the cart of owner_id changes, from any session.

    The socket is its own session with its own bus: writes made through the
    HTTP routes reach it over the change feed, like any other device.
    """
    await websocket.accept()

    counts: asyncio.Queue[int] = asyncio.Queue()
    client = CartSyncClient(
        session=AuthSession(owner_id),
        aggregator=_ScopedAggregator(session_factory),
        bus=EventBus(),
        feed=websocket.app.state.change_feed,
    )
    client.add_listener(counts.put_nowait)

    async def push():
        while True:
            await websocket.send_json({"count": await counts.get()})

    pusher = None
    try:
        await client.start()
        await websocket.send_json({"count": client.count})
        pusher = asyncio.create_task(push())

        # nothing is expected from the client, reading only detects the disconnect
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        if pusher is not None:
            pusher.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                await pusher
        await client.close()
