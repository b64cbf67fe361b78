from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime, Numeric

from cartsync.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), nullable=False, index=True)

    status = Column(String, nullable=False, default="pending")  # pending, confirmed, delivered
    total_amount = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
