# cartsync/services/checkout_service.py
from enum import Enum

from cartsync.domain.exceptions import (
    CartClearError,
    EmptyCartError,
    OrderCreateError,
    OrderItemsError,
    RemoteReadError,
    RemoteWriteError,
)
from cartsync.domain.schemas import CheckoutResult, NewOrderItem, OrderStatus
from cartsync.repos.base import CartStore, OrderStore
from cartsync.services.cart_aggregator import CartAggregator
from cartsync.services.event_bus import CART_CHANGED, EventBus
from cartsync.utils.logging import get_logger
from cartsync.utils.settings import PAYMENT_METHOD

logger = get_logger(__name__)


class CheckoutState(str, Enum):
    IDLE = "idle"
    ORDER_CREATED = "order_created"
    ITEMS_WRITTEN = "items_written"
    CART_CLEARED = "cart_cleared"
    FAILED = "failed"


class CheckoutOrchestrator:
    """
    Turns the owner's cart into an order with three dependent writes:

    1. insert the order (total of the cart, status pending)
    2. bulk insert one order item per cart line, price copied from the product
    3. delete every cart row of the owner

    The writes are not wrapped in a transaction and nothing is undone when a
    later step fails:
      - items fail   -> the order row stays with no items (orphaned order)
      - clear fails  -> order and items stay, cart is still full; running
                        checkout again creates a second order

    Each step has its own error type so the caller can tell them apart.
    """

    def __init__(
        self,
        aggregator: CartAggregator,
        orders: OrderStore,
        carts: CartStore,
        bus: EventBus,
        payment_method: str = PAYMENT_METHOD,
    ):
        self.aggregator = aggregator
        self.orders = orders
        self.carts = carts
        self.bus = bus
        self.payment_method = payment_method
        self.state = CheckoutState.IDLE

    async def place_order(self, owner_id: str) -> CheckoutResult:
        self.state = CheckoutState.IDLE

        try:
            summary = await self.aggregator.compute_summary(owner_id)
        except RemoteReadError as e:
            self._fail(f"Checkout for {owner_id} could not read the cart: {e}")
            raise
        if summary.is_empty:
            raise EmptyCartError(owner_id)

        logger.info(
            f"Checkout for {owner_id}: {len(summary.items)} lines, total {summary.total}"
        )

        # 1. order
        try:
            order = await self.orders.create_order(
                owner_id=owner_id,
                total_amount=summary.total,
                status=OrderStatus.PENDING.value,
            )
        except RemoteWriteError as e:
            self._fail(f"Order creation failed for {owner_id}: {e}")
            raise OrderCreateError("Failed to create order", reached=CheckoutState.IDLE.value) from e
        self.state = CheckoutState.ORDER_CREATED

        # 2. items, price snapshot taken now
        items = [
            NewOrderItem(
                product_id=line.product.id,
                quantity=line.quantity,
                price=line.product.price,
            )
            for line in summary.items
        ]
        try:
            await self.orders.add_items(order.id, items)
        except RemoteWriteError as e:
            self._fail(f"Order {order.id} has no items, writing them failed: {e}")
            raise OrderItemsError(
                "Failed to create order items",
                reached=CheckoutState.ORDER_CREATED.value,
                order_id=order.id,
            ) from e
        self.state = CheckoutState.ITEMS_WRITTEN

        # 3. cart
        try:
            await self.carts.delete_by_owner(owner_id)
        except RemoteWriteError as e:
            self._fail(f"Order {order.id} placed but cart of {owner_id} was not cleared: {e}")
            raise CartClearError(
                "Failed to clear cart",
                reached=CheckoutState.ITEMS_WRITTEN.value,
                order_id=order.id,
            ) from e
        self.state = CheckoutState.CART_CLEARED

        logger.info(f"Order {order.id} placed for {owner_id}")
        self.bus.emit(CART_CHANGED)

        return CheckoutResult(
            order_id=order.id,
            total_amount=order.total_amount,
            item_count=len(items),
            payment_method=self.payment_method,
        )

    def _fail(self, message: str) -> None:
        self.state = CheckoutState.FAILED
        logger.error(message)
