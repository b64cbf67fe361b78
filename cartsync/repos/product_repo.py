# cartsync/repos/product_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cartsync.data.models.product import ProductModel
from cartsync.domain.exceptions import RemoteReadError
from cartsync.domain.schemas import ProductRow
from cartsync.repos.base import ProductStore


class ProductRepo(ProductStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, product_id: str) -> ProductRow | None:
        try:
            row = await self.db.get(ProductModel, product_id)
        except SQLAlchemyError as e:
            raise RemoteReadError(f"Failed to read product {product_id}", {"product_id": product_id}) from e
        return ProductRow.model_validate(row) if row else None

    async def get_many(self, product_ids: List[str]) -> dict[str, ProductRow]:
        if not product_ids:
            return {}
        try:
            result = await self.db.execute(
                select(ProductModel).where(ProductModel.id.in_(product_ids))
            )
        except SQLAlchemyError as e:
            raise RemoteReadError("Failed to read products", {"product_ids": product_ids}) from e
        return {row.id: ProductRow.model_validate(row) for row in result.scalars().all()}

    async def list_latest(self, limit: int) -> List[ProductRow]:
        try:
            result = await self.db.execute(
                select(ProductModel).order_by(ProductModel.created_at.desc()).limit(limit)
            )
        except SQLAlchemyError as e:
            raise RemoteReadError("Failed to list products") from e
        return [ProductRow.model_validate(row) for row in result.scalars().all()]
