# cartsync/services/order_service.py
from typing import List

from cartsync.domain.exceptions import OrderNotFoundError
from cartsync.domain.schemas import OrderItemRow, OrderRow
from cartsync.repos.base import OrderStore


class OrderService:
    """
    Queries over placed orders (history and confirmation).
    Orders are only written by CheckoutOrchestrator.
    """

    def __init__(self, orders: OrderStore):
        self.orders = orders

    async def list_orders(self, owner_id: str) -> List[OrderRow]:
        return await self.orders.list_by_owner(owner_id)

    async def get_order(self, order_id: str, owner_id: str) -> OrderRow:
        # other owners' orders look exactly like missing ones
        order = await self.orders.get_order(order_id, owner_id)
        if not order:
            raise OrderNotFoundError(order_id)
        return order

    async def get_order_items(self, order_id: str, owner_id: str) -> List[OrderItemRow]:
        await self.get_order(order_id, owner_id)
        return await self.orders.list_items(order_id)
