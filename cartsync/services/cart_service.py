# cartsync/services/cart_service.py
from cartsync.domain.exceptions import InvalidQuantityError, StockExceededError
from cartsync.repos.base import CartStore
from cartsync.services.event_bus import CART_CHANGED, EventBus
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Commands on a user's cart (add, set quantity, remove).

    Reads are done by CartAggregator, this class only writes. Every write
    that succeeds emits CART_CHANGED on the bus, which is the only link to
    whatever displays the cart.

    Merge-or-insert is a plain read followed by a write with nothing in
    between to stop another caller: two concurrent adds of the same product
    can both read the old row and the later write wins (or, on an empty
    cart, both insert). That race is kept as-is.
    """

    def __init__(self, carts: CartStore, bus: EventBus):
        self.carts = carts
        self.bus = bus

    async def add_to_cart(self, owner_id: str, product_id: str, quantity: int = 1) -> str:
        if quantity < 1:
            raise InvalidQuantityError(quantity)

        # RemoteReadError from the lookup propagates, it is never "not in cart"
        existing = await self.carts.find(owner_id, product_id)

        if existing:
            new_quantity = existing.quantity + quantity
            logger.info(
                f"Product {product_id} already in cart of {owner_id}, "
                f"quantity {existing.quantity} -> {new_quantity}"
            )
            await self.carts.update_quantity(existing.id, new_quantity)
            item_id = existing.id
        else:
            logger.info(f"Adding product {product_id} x{quantity} to cart of {owner_id}")
            created = await self.carts.insert(owner_id, product_id, quantity)
            item_id = created.id

        self.bus.emit(CART_CHANGED)
        return item_id

    async def set_quantity(self, item_id: str, quantity: int) -> bool:
        """
        Overwrite the stored quantity. Anything below 1 is ignored and
        returns False without calling the store. Stock is not checked here.
        """
        if quantity < 1:
            return False

        await self.carts.update_quantity(item_id, quantity)
        logger.info(f"Cart item {item_id} quantity set to {quantity}")

        self.bus.emit(CART_CHANGED)
        return True

    async def remove_item(self, item_id: str) -> None:
        await self.carts.delete(item_id)
        logger.info(f"Cart item {item_id} removed")

        self.bus.emit(CART_CHANGED)

    @staticmethod
    def check_quantity(product_id: str, quantity: int, stock: int) -> None:
        """Boundary rule for quantity edits: 1 <= quantity <= current stock."""
        if quantity < 1:
            raise InvalidQuantityError(quantity)
        if quantity > stock:
            raise StockExceededError(product_id, quantity, stock)
