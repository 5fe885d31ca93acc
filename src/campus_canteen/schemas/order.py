from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from campus_canteen.config import settings

# ids are INTEGER columns
MAX_ID = 2**31 - 1


class OrderItemRead(BaseModel):
    item_ref: Optional[int] = Field(None, serialization_alias="itemRef")
    quantity: int
    price: Decimal
    name: Optional[str] = None

    @classmethod
    def from_orm_with_name(cls, item):
        return cls(
            item_ref=item.menu_item_id,
            quantity=item.quantity,
            price=item.price,
            name=item.menu_item.name if item.menu_item else None,
        )


class OrderRead(BaseModel):
    id: int
    user_id: str = Field(..., serialization_alias="userId")
    user_name: str = Field(..., serialization_alias="userName")
    role: str
    items: List[OrderItemRead] = []
    total_amount: Decimal = Field(..., serialization_alias="totalAmount")
    status: str
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    @classmethod
    def from_orm_with_name(cls, order):
        return cls(
            id=order.id,
            user_id=order.user_id,
            user_name=order.user_name,
            role=order.role.value if hasattr(order.role, "value") else order.role,
            items=[OrderItemRead.from_orm_with_name(i) for i in order.items],
            total_amount=Decimal(order.total_amount).quantize(Decimal("0.01")),
            status=order.status.value if hasattr(order.status, "value") else order.status,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderItemCreate(BaseModel):
    item_ref: int = Field(..., alias="itemRef", ge=1, le=MAX_ID)
    quantity: int = Field(..., ge=1, le=settings.CART_MAX_QUANTITY)

    class Config:
        populate_by_name = True


class OrderCreate(BaseModel):
    # Prices are looked up server-side; a client-supplied total is ignored.
    items: List[OrderItemCreate]

    class Config:
        extra = "ignore"


class OrderStatusUpdate(BaseModel):
    # plain string: unknown values must reach the service and fail as InvalidStatus
    status: str

    class Config:
        extra = "forbid"
