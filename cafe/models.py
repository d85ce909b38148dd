import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel

from .status import OrderStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MenuItem(SQLModel, table=True):
    __tablename__ = "menu_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(index=True, sa_column_kwargs={"unique": True})
    name: str = Field(index=True)
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, index=True)
    image_url: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True, max_length=32)
    order_number: int = Field(index=True, sa_column_kwargs={"unique": True})
    customer_name: Optional[str] = Field(default=None, index=True)
    total_price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    status: str = Field(default=OrderStatus.NEW.value, index=True, max_length=16)
    created_at: datetime = Field(default_factory=_utcnow, index=True)
    updated_at: datetime = Field(default_factory=_utcnow)

    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "lazy": "selectin",
            "order_by": "OrderItem.id",
        },
    )


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: str = Field(foreign_key="orders.id", index=True, max_length=32)
    # Snapshot of the menu item at order time, no foreign key to menu_items.
    menu_item_id: str
    menu_item_name: str
    quantity: int = Field(default=1, ge=1)
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)

    order: Optional[Order] = Relationship(back_populates="items")


class OrderSequence(SQLModel, table=True):
    __tablename__ = "order_sequence"

    id: int = Field(default=1, primary_key=True)
    value: int = Field(default=0, ge=0)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, sa_column_kwargs={"unique": True})
    password_hash: str
    role: str = Field(default="admin")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = ["MenuItem", "Order", "OrderItem", "OrderSequence", "User"]
