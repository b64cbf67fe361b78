# cartsync/repos/order_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cartsync.data.models.order import OrderModel
from cartsync.data.models.order_item import OrderItemModel
from cartsync.domain.exceptions import RemoteReadError, RemoteWriteError
from cartsync.domain.schemas import NewOrderItem, OrderItemRow, OrderRow
from cartsync.repos.base import OrderStore


class OrderRepo(OrderStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_order(self, owner_id: str, total_amount, status: str) -> OrderRow:
        order = OrderModel(owner_id=owner_id, total_amount=total_amount, status=status)
        try:
            self.db.add(order)
            await self.db.commit()
            await self.db.refresh(order)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RemoteWriteError(f"Failed to create order for {owner_id}", {"owner_id": owner_id}) from e
        return OrderRow.model_validate(order)

    async def add_items(self, order_id: str, items: List[NewOrderItem]) -> List[OrderItemRow]:
        rows = [
            OrderItemModel(
                order_id=order_id,
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
            )
            for item in items
        ]
        try:
            self.db.add_all(rows)
            await self.db.commit()
            for row in rows:
                await self.db.refresh(row)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RemoteWriteError(f"Failed to write items of order {order_id}", {"order_id": order_id}) from e
        return [OrderItemRow.model_validate(row) for row in rows]

    async def get_order(self, order_id: str, owner_id: str) -> OrderRow | None:
        try:
            row = await self.db.scalar(
                select(OrderModel).where(OrderModel.id == order_id, OrderModel.owner_id == owner_id)
            )
        except SQLAlchemyError as e:
            raise RemoteReadError(f"Failed to read order {order_id}", {"order_id": order_id}) from e
        return OrderRow.model_validate(row) if row else None

    async def list_by_owner(self, owner_id: str) -> List[OrderRow]:
        try:
            result = await self.db.execute(
                select(OrderModel)
                .where(OrderModel.owner_id == owner_id)
                .order_by(OrderModel.created_at.desc())
            )
        except SQLAlchemyError as e:
            raise RemoteReadError(f"Failed to list orders of {owner_id}", {"owner_id": owner_id}) from e
        return [OrderRow.model_validate(row) for row in result.scalars().all()]

    async def list_items(self, order_id: str) -> List[OrderItemRow]:
        try:
            result = await self.db.execute(
                select(OrderItemModel).where(OrderItemModel.order_id == order_id)
            )
        except SQLAlchemyError as e:
            raise RemoteReadError(f"Failed to read items of order {order_id}", {"order_id": order_id}) from e
        return [OrderItemRow.model_validate(row) for row in result.scalars().all()]
