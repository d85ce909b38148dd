from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .status import OrderStatus


MAX_QUANTITY = 1000


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case accepted too.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItemCreate(CamelModel):
    menu_item_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY)


class OrderCreate(CamelModel):
    customer_name: Optional[str] = None
    items: List[OrderItemCreate] = Field(default_factory=list)

    @field_validator("customer_name", mode="before")
    @classmethod
    def blank_name_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class OrderItemRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    menu_item_id: str
    menu_item_name: str
    quantity: int
    price: Decimal


class OrderRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: int
    customer_name: Optional[str] = None
    total_price: Decimal
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemRead]


class StatusUpdate(BaseModel):
    # Left as a plain string so unknown values reach the status check.
    status: str


class QueuePosition(CamelModel):
    position: Optional[int]
    queue_length: int
    eta_minutes: int


class MessageResponse(BaseModel):
    message: str


class MenuItemBase(CamelModel):
    name: str
    slug: Optional[str] = None
    price: Decimal = Field(ge=0)
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True


class MenuItemCreate(MenuItemBase):
    pass


class MenuItemUpdate(CamelModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class MenuItemRead(MenuItemBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    created_at: datetime
    updated_at: datetime


class Credentials(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class Registration(Credentials):
    password: str = Field(min_length=6)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    role: str


class UserResponse(BaseModel):
    user: UserRead
