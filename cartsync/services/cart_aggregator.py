# cartsync/services/cart_aggregator.py
from decimal import Decimal

from cartsync.domain.schemas import CartLine, CartSummary
from cartsync.repos.base import CartStore, ProductStore
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)


class CartAggregator:
    """Read side of the cart: lines joined with their product, total and count."""

    def __init__(self, carts: CartStore, products: ProductStore):
        self.carts = carts
        self.products = products

    async def compute_summary(self, owner_id: str) -> CartSummary:
        rows = await self.carts.list_by_owner(owner_id)
        if not rows:
            return CartSummary()

        products = await self.products.get_many(list({row.product_id for row in rows}))

        lines = []
        for row in rows:
            product = products.get(row.product_id)
            if product is None:
                logger.warning(f"Cart item {row.id} points at missing product {row.product_id}")
                continue
            lines.append(CartLine(item_id=row.id, quantity=row.quantity, product=product))

        return CartSummary(
            items=lines,
            total=sum((line.line_total for line in lines), Decimal("0")),
            count=sum(line.quantity for line in lines),
        )

    async def count_items(self, owner_id: str) -> int:
        # same lines as the summary, rows of missing products are not counted
        return (await self.compute_summary(owner_id)).count
