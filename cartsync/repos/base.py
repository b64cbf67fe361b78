# cartsync/repos/base.py
"""
Store interfaces for the four collections the cart core reads and writes.

Implementations raise RemoteReadError / RemoteWriteError on failure and
never return None for a failed call. "Not found" is only ever a real
empty answer.
"""
from abc import ABC, abstractmethod
from typing import List

from cartsync.domain.schemas import (
    CartItemRow,
    NewOrderItem,
    OrderItemRow,
    OrderRow,
    ProductRow,
)


class ProductStore(ABC):
    @abstractmethod
    async def get(self, product_id: str) -> ProductRow | None: ...

    @abstractmethod
    async def get_many(self, product_ids: List[str]) -> dict[str, ProductRow]: ...

    @abstractmethod
    async def list_latest(self, limit: int) -> List[ProductRow]: ...


class CartStore(ABC):
    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[CartItemRow]: ...

    @abstractmethod
    async def find(self, owner_id: str, product_id: str) -> CartItemRow | None:
        """Single row for (owner, product); more than one row is a read failure."""

    @abstractmethod
    async def get(self, item_id: str) -> CartItemRow | None: ...

    @abstractmethod
    async def insert(self, owner_id: str, product_id: str, quantity: int) -> CartItemRow: ...

    @abstractmethod
    async def update_quantity(self, item_id: str, quantity: int) -> None: ...

    @abstractmethod
    async def delete(self, item_id: str) -> None: ...

    @abstractmethod
    async def delete_by_owner(self, owner_id: str) -> None: ...


class OrderStore(ABC):
    @abstractmethod
    async def create_order(self, owner_id: str, total_amount, status: str) -> OrderRow: ...

    @abstractmethod
    async def add_items(self, order_id: str, items: List[NewOrderItem]) -> List[OrderItemRow]:
        """Bulk insert: all lines are written or none are."""

    @abstractmethod
    async def get_order(self, order_id: str, owner_id: str) -> OrderRow | None: ...

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[OrderRow]:
        """Newest first."""

    @abstractmethod
    async def list_items(self, order_id: str) -> List[OrderItemRow]: ...
