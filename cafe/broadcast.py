"""In-process fan-out of order events to Server-Sent Events subscribers.

There are two scopes: the admin scope, which sees every order event, and one
scope per order id. Nothing is stored or replayed; a subscriber only sees
events published while it is registered.
"""
from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)

INIT_EVENT = "init"
PING_EVENT = "ping"
ORDER_CREATE = "order-create"
ORDER_UPDATE = "order-update"
ORDER_DELETE = "order-delete"

DEFAULT_HEARTBEAT_INTERVAL = 15.0

# Queued by BroadcastHub.close; a stream ends when it reads this.
END_OF_STREAM = None


def format_event(event: str, payload: Any) -> str:
    data = json.dumps(payload, separators=(",", ":"), default=str)
    return f"event: {event}\ndata: {data}\n\n"


def _now_ms() -> int:
    return int(time.time() * 1000)


class Subscriber:
    """One live stream. Frames are queued on the loop that opened it."""

    def __init__(self, loop: asyncio.AbstractEventLoop, order_id: Optional[str] = None) -> None:
        self.loop = loop
        self.order_id = order_id
        self.queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self.heartbeat: Optional[asyncio.Task] = None

    def deliver(self, frame: str) -> None:
        # Publishers may run in worker threads.
        self.loop.call_soon_threadsafe(self.queue.put_nowait, frame)

    def end(self) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, END_OF_STREAM)

    async def next_frame(self) -> Optional[str]:
        return await self.queue.get()


class BroadcastHub:
    def __init__(self, heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL) -> None:
        self.heartbeat_interval = heartbeat_interval
        self._lock = threading.Lock()
        self._admin: Set[Subscriber] = set()
        self._orders: Dict[str, Set[Subscriber]] = {}

    # -------------------------
    # Registration
    # -------------------------

    def subscribe_admin(self) -> Subscriber:
        return self._subscribe(None)

    def subscribe_order(self, order_id: str) -> Subscriber:
        return self._subscribe(order_id)

    def _subscribe(self, order_id: Optional[str]) -> Subscriber:
        loop = asyncio.get_running_loop()
        subscriber = Subscriber(loop, order_id)
        # Queued before registration so "init" always comes first.
        subscriber.queue.put_nowait(format_event(INIT_EVENT, {"ok": True}))
        with self._lock:
            if order_id is None:
                self._admin.add(subscriber)
            else:
                self._orders.setdefault(order_id, set()).add(subscriber)
        subscriber.heartbeat = loop.create_task(self._heartbeat(subscriber))
        logger.debug("Subscribed to %s", order_id or "admin stream")
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber.order_id is None:
                self._admin.discard(subscriber)
            else:
                members = self._orders.get(subscriber.order_id)
                if members is not None:
                    members.discard(subscriber)
                    if not members:
                        del self._orders[subscriber.order_id]
        if subscriber.heartbeat is not None:
            subscriber.heartbeat.cancel()
            subscriber.heartbeat = None
        logger.debug("Unsubscribed from %s", subscriber.order_id or "admin stream")

    async def _heartbeat(self, subscriber: Subscriber) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            subscriber.queue.put_nowait(format_event(PING_EVENT, {"t": _now_ms()}))

    # -------------------------
    # Publishing
    # -------------------------

    def publish_admin(self, event: str, payload: Any) -> int:
        with self._lock:
            targets = list(self._admin)
        return self._send(targets, event, payload)

    def publish_order(self, order_id: str, event: str, payload: Any) -> int:
        with self._lock:
            targets = list(self._orders.get(order_id, ()))
        return self._send(targets, event, payload)

    def _send(self, targets, event: str, payload: Any) -> int:
        if not targets:
            return 0
        frame = format_event(event, payload)
        delivered = 0
        for subscriber in targets:
            try:
                subscriber.deliver(frame)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Dropped %s event for a closed subscriber: %s", event, exc)
                continue
            delivered += 1
        return delivered

    # -------------------------
    # Introspection and teardown
    # -------------------------

    def admin_count(self) -> int:
        with self._lock:
            return len(self._admin)

    def order_count(self, order_id: str) -> int:
        with self._lock:
            return len(self._orders.get(order_id, ()))

    def tracked_orders(self) -> Set[str]:
        with self._lock:
            return set(self._orders)

    def close(self) -> None:
        with self._lock:
            subscribers = list(self._admin)
            for members in self._orders.values():
                subscribers.extend(members)
            self._admin.clear()
            self._orders.clear()
        for subscriber in subscribers:
            if subscriber.heartbeat is not None:
                subscriber.heartbeat.cancel()
                subscriber.heartbeat = None
            try:
                subscriber.end()
            except RuntimeError as exc:
                logger.debug("Could not end a stream on a closed loop: %s", exc)
        logger.info("Broadcast hub closed, %d subscriber(s) released", len(subscribers))
