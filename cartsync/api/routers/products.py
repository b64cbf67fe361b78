# cartsync/api/routers/products.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from cartsync.api.deps import get_product_repo, remote_failure
from cartsync.domain.exceptions import RemoteReadError
from cartsync.domain.schemas import ProductRow
from cartsync.repos.product_repo import ProductRepo
from cartsync.utils.settings import FEATURED_PRODUCTS_LIMIT

router = APIRouter(prefix="/products", tags=["products"])


# owner_id is optional here: the catalog is public, it only decides who gets the error notice


@router.get("/", response_model=List[ProductRow])
async def list_products(
    limit: int = Query(FEATURED_PRODUCTS_LIMIT, gt=0, le=100),
    owner_id: str | None = Query(None),
    products: ProductRepo = Depends(get_product_repo),
):
    try:
        return await products.list_latest(limit)
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load products", e)


@router.get("/{product_id}", response_model=ProductRow)
async def get_product(
    product_id: str,
    owner_id: str | None = Query(None),
    products: ProductRepo = Depends(get_product_repo),
):
    try:
        product = await products.get(product_id)
    except RemoteReadError as e:
        raise await remote_failure(owner_id, "Failed to load product", e)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
