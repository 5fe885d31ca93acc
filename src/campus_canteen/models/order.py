import enum
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum as SAEnum, UniqueConstraint, func
from sqlalchemy.orm import relationship
from ..db.base import Base, utcnow
from .user import RoleEnum


class OrderStatusEnum(str, enum.Enum):
    pending = "pending"
    preparing = "preparing"
    ready = "ready"
    completed = "completed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatusEnum.completed, OrderStatusEnum.cancelled)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    user_name = Column(String(128), nullable=False)
    role = Column(SAEnum(RoleEnum, name="user_role"), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)  # never recomputed from live prices
    status = Column(SAEnum(OrderStatusEnum, name="order_status"), nullable=False, default=OrderStatusEnum.pending)
    idempotency_key = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
