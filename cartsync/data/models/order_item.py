import uuid

from sqlalchemy import Column, Integer, ForeignKey, String, Numeric

from cartsync.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)

    quantity = Column(Integer, nullable=False)
    # snapshot of the product price when the order was placed
    price = Column(Numeric(10, 2), nullable=False)
