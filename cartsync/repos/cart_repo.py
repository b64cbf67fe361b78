# cartsync/repos/cart_repo.py
from typing import List

from redis.exceptions import RedisError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cartsync.data.models.cart_item import CartItemModel
from cartsync.domain.exceptions import RemoteReadError, RemoteWriteError
from cartsync.domain.schemas import CartItemRow, ChangeEvent
from cartsync.repos.base import CartStore
from cartsync.services.change_feed import ChangeFeed
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)

TABLE = "cart_items"


class CartRepo(CartStore):
    """
    cart_items on SQLAlchemy. Every committed write is announced on the
    change feed, scoped to the owner of the row.
    """

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed

    async def list_by_owner(self, owner_id: str) -> List[CartItemRow]:
        try:
            result = await self.db.execute(
                select(CartItemModel).where(CartItemModel.owner_id == owner_id)
            )
        except SQLAlchemyError as e:
            raise RemoteReadError(f"Failed to read cart of {owner_id}", {"owner_id": owner_id}) from e
        return [CartItemRow.model_validate(row) for row in result.scalars().unique().all()]

    async def find(self, owner_id: str, product_id: str) -> CartItemRow | None:
        try:
            result = await self.db.execute(
                select(CartItemModel).where(
                    CartItemModel.owner_id == owner_id,
                    CartItemModel.product_id == product_id,
                )
            )
            rows = result.scalars().unique().all()
        except SQLAlchemyError as e:
            raise RemoteReadError(
                f"Failed to look up product {product_id} in cart of {owner_id}",
                {"owner_id": owner_id, "product_id": product_id},
            ) from e

        if len(rows) > 1:
            raise RemoteReadError(
                f"Cart of {owner_id} holds {len(rows)} rows for product {product_id}",
                {"owner_id": owner_id, "product_id": product_id, "rows": len(rows)},
            )
        return CartItemRow.model_validate(rows[0]) if rows else None

    async def get(self, item_id: str) -> CartItemRow | None:
        try:
            row = await self.db.get(CartItemModel, item_id)
        except SQLAlchemyError as e:
            raise RemoteReadError(f"Failed to read cart item {item_id}", {"item_id": item_id}) from e
        return CartItemRow.model_validate(row) if row else None

    async def insert(self, owner_id: str, product_id: str, quantity: int) -> CartItemRow:
        item = CartItemModel(owner_id=owner_id, product_id=product_id, quantity=quantity)
        try:
            self.db.add(item)
            await self.db.commit()
            await self.db.refresh(item)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RemoteWriteError(
                f"Failed to add product {product_id} to cart of {owner_id}",
                {"owner_id": owner_id, "product_id": product_id},
            ) from e

        await self._notify("INSERT", owner_id)
        return CartItemRow.model_validate(item)

    async def update_quantity(self, item_id: str, quantity: int) -> None:
        try:
            owner_id = await self.db.scalar(
                update(CartItemModel)
                .where(CartItemModel.id == item_id)
                .values(quantity=quantity)
                .returning(CartItemModel.owner_id)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RemoteWriteError(f"Failed to update cart item {item_id}", {"item_id": item_id}) from e

        #update of a missing row is not an error, it just changes nothing
        if owner_id is not None:
            await self._notify("UPDATE", owner_id)

    async def delete(self, item_id: str) -> None:
        try:
            owner_id = await self.db.scalar(
                delete(CartItemModel)
                .where(CartItemModel.id == item_id)
                .returning(CartItemModel.owner_id)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RemoteWriteError(f"Failed to remove cart item {item_id}", {"item_id": item_id}) from e

        if owner_id is not None:
            await self._notify("DELETE", owner_id)

    async def delete_by_owner(self, owner_id: str) -> None:
        try:
            result = await self.db.execute(
                delete(CartItemModel).where(CartItemModel.owner_id == owner_id)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RemoteWriteError(f"Failed to clear cart of {owner_id}", {"owner_id": owner_id}) from e

        if result.rowcount:
            await self._notify("DELETE", owner_id)

    async def _notify(self, event_type: str, owner_id: str) -> None:
        if self.feed is None:
            return
        try:
            await self.feed.publish(ChangeEvent(table=TABLE, type=event_type, owner_id=owner_id))
        except RedisError as e:
            #the write is committed, only other sessions miss this change
            logger.warning(f"Change feed publish failed for {TABLE} owner {owner_id}: {e}")
