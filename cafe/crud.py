from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Sequence

from sqlalchemy import func, update
from sqlmodel import Session, select

from .menu_data import DEFAULT_MENU_ITEMS
from .models import MenuItem, Order, OrderItem, OrderSequence, User
from .status import ACTIVE_STATUSES, OrderStatus

SEQUENCE_ID = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------
# Order operations
# -------------------------

def list_orders(session: Session, *, status: str | None = None) -> List[Order]:
    statement = select(Order)
    if status is not None:
        statement = statement.where(Order.status == status)
    statement = statement.order_by(Order.created_at.asc(), Order.order_number.asc())
    return list(session.exec(statement).all())


def list_active_orders(session: Session) -> List[Order]:
    statement = (
        select(Order)
        .where(Order.status.in_([status.value for status in ACTIVE_STATUSES]))
        .order_by(Order.created_at.asc(), Order.order_number.asc())
    )
    return list(session.exec(statement).all())


def get_order(session: Session, order_id: str) -> Order | None:
    return session.get(Order, order_id)


def get_order_by_number(session: Session, order_number: int) -> Order | None:
    statement = select(Order).where(Order.order_number == order_number)
    return session.exec(statement).first()


def create_order(
    session: Session,
    *,
    customer_name: str | None,
    total_price: Decimal,
    items: Sequence[dict],
) -> Order:
    """Insert an order and its items in one transaction, numbering it on the way."""
    now = _utcnow()
    order = Order(
        order_number=next_order_number(session),
        customer_name=customer_name,
        total_price=total_price,
        status=OrderStatus.NEW.value,
        created_at=now,
        updated_at=now,
    )
    order.items = [OrderItem(**item) for item in items]
    session.add(order)
    session.commit()
    session.refresh(order)
    return order


def update_order_status(session: Session, order: Order, status: OrderStatus) -> Order:
    order.status = status.value
    order.updated_at = _utcnow()
    session.add(order)
    session.commit()
    session.refresh(order)
    return order


def delete_order(session: Session, order: Order) -> None:
    session.delete(order)
    session.commit()


# -------------------------
# Order numbering
# -------------------------

def max_order_number(session: Session) -> int:
    return session.exec(select(func.coalesce(func.max(Order.order_number), 0))).one()


def next_order_number(session: Session) -> int:
    """Claim the next order number inside the caller's transaction.

    The counter row is bumped with a single UPDATE so concurrent callers queue
    on its row lock; the number is only consumed if the caller commits.
    """
    result = session.connection().execute(
        update(OrderSequence)
        .where(OrderSequence.id == SEQUENCE_ID)
        .values(value=OrderSequence.value + 1)
    )
    if result.rowcount == 0:
        value = max_order_number(session) + 1
        session.add(OrderSequence(id=SEQUENCE_ID, value=value))
        session.flush()
        return value
    return session.exec(
        select(OrderSequence.value).where(OrderSequence.id == SEQUENCE_ID)
    ).one()


def ensure_order_sequence(session: Session) -> None:
    if session.get(OrderSequence, SEQUENCE_ID) is not None:
        return
    session.add(OrderSequence(id=SEQUENCE_ID, value=max_order_number(session)))
    session.commit()


# -------------------------
# Menu operations
# -------------------------

def list_menu_items(session: Session, *, active_only: bool = False) -> List[MenuItem]:
    statement = select(MenuItem)
    if active_only:
        statement = statement.where(MenuItem.is_active.is_(True))
    statement = statement.order_by(MenuItem.name.asc(), MenuItem.id.asc())
    return list(session.exec(statement).all())


def get_menu_item_by_slug(session: Session, slug: str) -> MenuItem | None:
    statement = select(MenuItem).where(MenuItem.slug == slug)
    return session.exec(statement).first()


def get_menu_items_by_slugs(session: Session, slugs: Iterable[str]) -> List[MenuItem]:
    wanted = set(slugs)
    if not wanted:
        return []
    statement = select(MenuItem).where(MenuItem.slug.in_(wanted))
    return list(session.exec(statement).all())


def create_menu_item(session: Session, data: dict) -> MenuItem:
    slug = data.get("slug") or data.get("name") or ""
    slug = _generate_unique_slug(session, slug)
    now = _utcnow()
    item = MenuItem(
        slug=slug,
        name=data["name"],
        price=data.get("price", Decimal("0")),
        description=data.get("description"),
        category=data.get("category"),
        image_url=data.get("image_url"),
        is_active=data.get("is_active", True),
        created_at=now,
        updated_at=now,
    )
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def update_menu_item(session: Session, menu_item: MenuItem, updates: dict) -> MenuItem:
    if "slug" in updates and updates["slug"]:
        updates["slug"] = _generate_unique_slug(session, updates["slug"], current_id=menu_item.id)
    for key, value in updates.items():
        if value is None:
            continue
        setattr(menu_item, key, value)
    menu_item.updated_at = _utcnow()
    session.add(menu_item)
    session.commit()
    session.refresh(menu_item)
    return menu_item


def delete_menu_item(session: Session, menu_item: MenuItem) -> None:
    # Order items keep their own snapshot, so existing orders are unaffected.
    session.delete(menu_item)
    session.commit()


def ensure_default_menu_items(session: Session) -> None:
    existing_count = session.exec(select(func.count(MenuItem.id))).one()
    if existing_count:
        return
    now = _utcnow()
    for item in DEFAULT_MENU_ITEMS:
        session.add(
            MenuItem(
                slug=item["slug"],
                name=item["name"],
                price=Decimal(item["price"]),
                description=item.get("description"),
                category=item.get("category"),
                image_url=item.get("image_url"),
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )
    session.commit()


def _generate_unique_slug(session: Session, base: str, current_id: int | None = None) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", base.strip().lower()).strip("-")
    slug = slug or "menu-item"
    candidate = slug
    suffix = 1
    while True:
        statement = select(MenuItem).where(MenuItem.slug == candidate)
        existing = session.exec(statement).first()
        if existing is None or (current_id is not None and existing.id == current_id):
            return candidate
        suffix += 1
        candidate = f"{slug}-{suffix}"


# -------------------------
# User operations
# -------------------------

def get_user_by_username(session: Session, username: str) -> User | None:
    statement = select(User).where(User.username == username)
    return session.exec(statement).first()


def create_user(session: Session, *, username: str, password_hash: str, role: str) -> User:
    now = _utcnow()
    user = User(
        username=username,
        password_hash=password_hash,
        role=role,
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
