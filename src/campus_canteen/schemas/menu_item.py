from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class MenuItemRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = Field(None, serialization_alias="imageUrl")
    is_available: bool = Field(..., serialization_alias="available")
    created_at: datetime = Field(..., serialization_alias="createdAt")

    class Config:
        from_attributes = True


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=64)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, alias="imageUrl", max_length=512)
    is_available: bool = Field(True, alias="available")

    class Config:
        populate_by_name = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=64)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, alias="imageUrl", max_length=512)
    is_available: Optional[bool] = Field(None, alias="available")

    class Config:
        populate_by_name = True
        extra = "forbid"
