# cartsync/repos/memory.py
"""
In-process store for the four collections.

Every call yields to the event loop before it touches the data, the same
way a network round trip would, so concurrent callers interleave exactly
like they do against the real store. Failures can be armed per operation
("cart_items.insert", "order_items.insert", ...) to reproduce partial
writes.
"""
import asyncio
import itertools
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from cartsync.domain.exceptions import RemoteReadError, RemoteWriteError
from cartsync.domain.schemas import (
    CartItemRow,
    ChangeEvent,
    NewOrderItem,
    OrderItemRow,
    OrderRow,
    ProductRow,
)
from cartsync.repos.base import CartStore, OrderStore, ProductStore
from cartsync.services.change_feed import ChangeFeed

_WRITE_OPS = ("insert", "update", "delete")


class MemoryDatabase:
    def __init__(self, feed: ChangeFeed | None = None):
        self.feed = feed
        self.products: dict[str, ProductRow] = {}
        self.cart_items: dict[str, CartItemRow] = {}
        self.orders: dict[str, OrderRow] = {}
        self.order_items: dict[str, OrderItemRow] = {}
        self.calls: list[str] = []
        self._failures: dict[str, int | None] = {}
        self._seq = itertools.count()
        self._order_seq: dict[str, int] = {}

    def fail(self, op: str, times: int | None = 1) -> None:
        """Make the next `times` calls of `op` fail; None fails every call."""
        self._failures[op] = times

    def add_product(self, name: str, price, stock: int = 10, **fields) -> ProductRow:
        product = ProductRow(
            id=fields.pop("id", None) or str(uuid.uuid4()),
            name=name,
            price=Decimal(str(price)),
            stock=stock,
            created_at=fields.pop("created_at", None) or datetime.now(timezone.utc),
            **fields,
        )
        self.products[product.id] = product
        return product

    def set_price(self, product_id: str, price) -> None:
        self.products[product_id] = self.products[product_id].model_copy(
            update={"price": Decimal(str(price))}
        )

    async def io(self, op: str) -> None:
        self.calls.append(op)
        await asyncio.sleep(0)

        if op not in self._failures:
            return
        remaining = self._failures[op]
        if remaining is not None:
            if remaining <= 1:
                del self._failures[op]
            else:
                self._failures[op] = remaining - 1

        if op.split(".", 1)[1] in _WRITE_OPS:
            raise RemoteWriteError(f"{op} failed", {"op": op})
        raise RemoteReadError(f"{op} failed", {"op": op})

    async def notify(self, table: str, event_type: str, owner_id: str) -> None:
        if self.feed is not None:
            await self.feed.publish(ChangeEvent(table=table, type=event_type, owner_id=owner_id))


class MemoryProductStore(ProductStore):
    def __init__(self, db: MemoryDatabase):
        self.db = db

    async def get(self, product_id: str) -> ProductRow | None:
        await self.db.io("products.select")
        return self.db.products.get(product_id)

    async def get_many(self, product_ids: List[str]) -> dict[str, ProductRow]:
        await self.db.io("products.select")
        return {pid: self.db.products[pid] for pid in product_ids if pid in self.db.products}

    async def list_latest(self, limit: int) -> List[ProductRow]:
        await self.db.io("products.select")
        rows = sorted(self.db.products.values(), key=lambda p: p.created_at, reverse=True)
        return rows[:limit]


class MemoryCartStore(CartStore):
    def __init__(self, db: MemoryDatabase):
        self.db = db

    async def list_by_owner(self, owner_id: str) -> List[CartItemRow]:
        await self.db.io("cart_items.select")
        return [row for row in self.db.cart_items.values() if row.owner_id == owner_id]

    async def find(self, owner_id: str, product_id: str) -> CartItemRow | None:
        await self.db.io("cart_items.select")
        rows = [
            row for row in self.db.cart_items.values()
            if row.owner_id == owner_id and row.product_id == product_id
        ]
        if len(rows) > 1:
            raise RemoteReadError(
                f"Cart of {owner_id} holds {len(rows)} rows for product {product_id}",
                {"owner_id": owner_id, "product_id": product_id, "rows": len(rows)},
            )
        return rows[0] if rows else None

    async def get(self, item_id: str) -> CartItemRow | None:
        await self.db.io("cart_items.select")
        return self.db.cart_items.get(item_id)

    async def insert(self, owner_id: str, product_id: str, quantity: int) -> CartItemRow:
        await self.db.io("cart_items.insert")
        row = CartItemRow(id=str(uuid.uuid4()), owner_id=owner_id, product_id=product_id, quantity=quantity)
        self.db.cart_items[row.id] = row
        await self.db.notify("cart_items", "INSERT", owner_id)
        return row

    async def update_quantity(self, item_id: str, quantity: int) -> None:
        await self.db.io("cart_items.update")
        row = self.db.cart_items.get(item_id)
        if row is None:
            return
        self.db.cart_items[item_id] = row.model_copy(update={"quantity": quantity})
        await self.db.notify("cart_items", "UPDATE", row.owner_id)

    async def delete(self, item_id: str) -> None:
        await self.db.io("cart_items.delete")
        row = self.db.cart_items.pop(item_id, None)
        if row is not None:
            await self.db.notify("cart_items", "DELETE", row.owner_id)

    async def delete_by_owner(self, owner_id: str) -> None:
        await self.db.io("cart_items.delete")
        doomed = [key for key, row in self.db.cart_items.items() if row.owner_id == owner_id]
        for key in doomed:
            del self.db.cart_items[key]
        if doomed:
            await self.db.notify("cart_items", "DELETE", owner_id)


class MemoryOrderStore(OrderStore):
    def __init__(self, db: MemoryDatabase):
        self.db = db

    async def create_order(self, owner_id: str, total_amount, status: str) -> OrderRow:
        await self.db.io("orders.insert")
        order = OrderRow(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            total_amount=total_amount,
            status=status,
            created_at=datetime.now(timezone.utc),
        )
        self.db.orders[order.id] = order
        self.db._order_seq[order.id] = next(self.db._seq)
        return order

    async def add_items(self, order_id: str, items: List[NewOrderItem]) -> List[OrderItemRow]:
        await self.db.io("order_items.insert")
        rows = [
            OrderItemRow(id=str(uuid.uuid4()), order_id=order_id, **item.model_dump())
            for item in items
        ]
        for row in rows:
            self.db.order_items[row.id] = row
        return rows

    async def get_order(self, order_id: str, owner_id: str) -> OrderRow | None:
        await self.db.io("orders.select")
        order = self.db.orders.get(order_id)
        if order is None or order.owner_id != owner_id:
            return None
        return order

    async def list_by_owner(self, owner_id: str) -> List[OrderRow]:
        await self.db.io("orders.select")
        rows = [order for order in self.db.orders.values() if order.owner_id == owner_id]
        return sorted(
            rows,
            key=lambda o: (o.created_at, self.db._order_seq[o.id]),
            reverse=True,
        )

    async def list_items(self, order_id: str) -> List[OrderItemRow]:
        await self.db.io("order_items.select")
        return [row for row in self.db.order_items.values() if row.order_id == order_id]
