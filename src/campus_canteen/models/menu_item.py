from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from ..db.base import Base, utcnow


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(64), nullable=True)  # pizza, sides, drinks...
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(512), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    order_items = relationship("OrderItem", back_populates="menu_item")
