"""Order lifecycle: validation, persistence and event fan-out."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from . import crud, queue_position
from .broadcast import ORDER_CREATE, ORDER_DELETE, ORDER_UPDATE, BroadcastHub
from .exceptions import InternalError, NotFound, ValidationError
from .models import Order
from .schemas import OrderItemCreate, OrderRead
from .status import check_transition, next_status, parse_status

logger = logging.getLogger(__name__)

# Largest value an order total column (Numeric(10, 2)) can hold.
MAX_ORDER_TOTAL = Decimal("99999999.99")


class OrderService:
    def __init__(
        self,
        session: Session,
        hub: BroadcastHub,
        *,
        strict_transitions: bool = False,
        eta_base_minutes: int = queue_position.BASE_MINUTES,
        eta_per_item_minutes: int = queue_position.PER_ITEM_MINUTES,
    ) -> None:
        self.session = session
        self.hub = hub
        self.strict_transitions = strict_transitions
        self.eta_base_minutes = eta_base_minutes
        self.eta_per_item_minutes = eta_per_item_minutes

    # -------------------------
    # Mutations
    # -------------------------

    def create_order(self, customer_name: Optional[str], items: Iterable[object]) -> OrderRead:
        requested = _parse_items(items)
        with self._store_guard("Failed to create order"):
            slugs = [item.menu_item_id for item in requested]
            menu = {entry.slug: entry for entry in crud.get_menu_items_by_slugs(self.session, slugs)}
            if len(menu) != len(set(slugs)):
                raise ValidationError("Some menu items not found")

            total = Decimal("0")
            lines = []
            for item in requested:
                menu_item = menu[item.menu_item_id]
                total += menu_item.price * item.quantity
                lines.append(
                    {
                        "menu_item_id": menu_item.slug,
                        "menu_item_name": menu_item.name,
                        "quantity": item.quantity,
                        "price": menu_item.price,
                    }
                )
            if total > MAX_ORDER_TOTAL:
                raise ValidationError("Order total is too large")
            order = crud.create_order(
                self.session,
                customer_name=customer_name,
                total_price=total,
                items=lines,
            )
            result = OrderRead.model_validate(order)

        logger.info("Created order #%s (%s) total=%s", result.order_number, result.id, result.total_price)
        payload = result.model_dump(mode="json", by_alias=True)
        self.hub.publish_admin(ORDER_CREATE, payload)
        self.hub.publish_order(result.id, ORDER_UPDATE, payload)
        return result

    def update_status(self, order_id: str, status: object) -> OrderRead:
        target = parse_status(status)
        with self._store_guard("Failed to update order status"):
            order = self._require(order_id)
            previous = order.status
            target = check_transition(previous, target, strict=self.strict_transitions)
            order = crud.update_order_status(self.session, order, target)
            result = OrderRead.model_validate(order)

        logger.info("Order #%s status %s -> %s", result.order_number, previous, result.status.value)
        payload = result.model_dump(mode="json", by_alias=True)
        self.hub.publish_admin(ORDER_UPDATE, payload)
        self.hub.publish_order(result.id, ORDER_UPDATE, payload)
        return result

    def advance(self, order_id: str) -> OrderRead:
        """Move an order to the stage after its current one."""
        with self._store_guard("Failed to update order status"):
            order = self._require(order_id)
            following = next_status(order.status)
        if following is None:
            raise ValidationError("Order is already completed")
        return self.update_status(order_id, following)

    def delete_order(self, order_id: str) -> OrderRead:
        with self._store_guard("Failed to delete order"):
            order = self._require(order_id)
            snapshot = OrderRead.model_validate(order)
            crud.delete_order(self.session, order)

        logger.info("Deleted order #%s (%s)", snapshot.order_number, snapshot.id)
        payload = snapshot.model_dump(mode="json", by_alias=True)
        self.hub.publish_admin(ORDER_DELETE, payload)
        self.hub.publish_order(snapshot.id, ORDER_DELETE, payload)
        return snapshot

    # -------------------------
    # Queries
    # -------------------------

    def list_orders(self, status: Optional[str] = None) -> List[OrderRead]:
        with self._store_guard("Failed to fetch orders"):
            orders = crud.list_orders(self.session, status=status)
            return [OrderRead.model_validate(order) for order in orders]

    def get_order(self, order_id: str) -> OrderRead:
        with self._store_guard("Failed to fetch order"):
            return OrderRead.model_validate(self._require(order_id))

    def get_order_by_number(self, order_number: int) -> OrderRead:
        with self._store_guard("Failed to fetch order"):
            order = crud.get_order_by_number(self.session, order_number)
            if order is None:
                raise NotFound("Order not found")
            return OrderRead.model_validate(order)

    def queue_position(self, order_id: str) -> queue_position.QueueEstimate:
        with self._store_guard("Failed to compute queue position"):
            self._require(order_id)
            active = [
                queue_position.QueueEntry(order_id=order.id, item_count=len(order.items))
                for order in crud.list_active_orders(self.session)
            ]
        return queue_position.estimate(
            order_id,
            active,
            base_minutes=self.eta_base_minutes,
            per_item_minutes=self.eta_per_item_minutes,
        )

    # -------------------------
    # Helpers
    # -------------------------

    def _require(self, order_id: str) -> Order:
        order = crud.get_order(self.session, order_id)
        if order is None:
            raise NotFound("Order not found")
        return order

    @contextmanager
    def _store_guard(self, message: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(message)
            raise InternalError(message) from exc
        except Exception:
            self.session.rollback()
            raise


def _parse_items(items: Iterable[object]) -> List[OrderItemCreate]:
    if items is None or isinstance(items, (str, bytes, dict)):
        raise ValidationError("Items are required")
    parsed = []
    for raw in items:
        try:
            parsed.append(OrderItemCreate.model_validate(raw, from_attributes=True))
        except PydanticValidationError as exc:
            raise ValidationError("Invalid order item") from exc
    if not parsed:
        raise ValidationError("Items are required")
    return parsed
