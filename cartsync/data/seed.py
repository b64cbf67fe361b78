# cartsync/data/seed.py
from decimal import Decimal

from sqlalchemy import select

from cartsync.data.database import SessionLocal
from cartsync.data.models.product import ProductModel
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)

CATALOG = [
    {"name": "Maize Flour 2kg", "price": Decimal("230.00"), "stock": 120, "category": "Groceries",
     "description": "Finely milled sifted maize flour."},
    {"name": "Kenyan Tea Leaves 500g", "price": Decimal("350.00"), "stock": 80, "category": "Groceries",
     "description": "Black tea from the highlands."},
    {"name": "Kikoy Beach Wrap", "price": Decimal("1200.00"), "stock": 15, "category": "Fashion",
     "description": "Hand-woven cotton kikoy."},
    {"name": "Solar Lantern", "price": Decimal("2500.00"), "stock": 6, "category": "Electronics",
     "description": "Rechargeable lantern with USB port."},
    {"name": "Sisal Basket", "price": Decimal("1800.00"), "stock": 0, "category": "Home",
     "description": "Hand-made kiondo basket."},
]


async def seed() -> None:
    async with SessionLocal() as db:
        # not forcing: only seed if empty
        if await db.scalar(select(ProductModel.id).limit(1)):
            return
        db.add_all(ProductModel(**fields) for fields in CATALOG)
        await db.commit()
        logger.info(f"Seeded {len(CATALOG)} products")
