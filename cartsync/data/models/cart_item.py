import uuid

from sqlalchemy import Column, Integer, ForeignKey, String

from cartsync.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    # no unique (owner_id, product_id): merge-or-insert relies on the lookup alone
    quantity = Column(Integer, nullable=False, default=1)
