"""Order events flowing from OrderService through a real hub to the SSE routes."""

import asyncio
import json
from decimal import Decimal

from cafe.broadcast import BroadcastHub
from cafe.main import admin_stream, order_stream
from cafe.service import OrderService


def _parse(frame: str) -> tuple[str, dict]:
    event_line, data_line = frame.strip().split("\n")
    return event_line[len("event: "):], json.loads(data_line[len("data: "):])


async def _settle() -> None:
    await asyncio.sleep(0)
    await asyncio.sleep(0)


def _pending(subscriber) -> list[tuple[str, dict]]:
    frames = []
    while not subscriber.queue.empty():
        frames.append(_parse(subscriber.queue.get_nowait()))
    return frames


class TestServiceToHub:

    def test_admin_gets_one_create_per_order_and_no_history(self, session):
        async def scenario():
            hub = BroadcastHub(heartbeat_interval=60)
            service = OrderService(session, hub)
            service.create_order("Early", [{"menu_item_id": "chai", "quantity": 1}])
            subscriber = hub.subscribe_admin()
            first = service.create_order("Asha", [{"menu_item_id": "chai", "quantity": 2}])
            second = service.create_order("Ravi", [{"menu_item_id": "dosa", "quantity": 1}])
            await _settle()
            frames = _pending(subscriber)
            hub.unsubscribe(subscriber)
            return frames, first, second

        frames, first, second = asyncio.run(scenario())
        assert [event for event, _ in frames] == ["init", "order-create", "order-create"]
        assert [payload["id"] for _, payload in frames[1:]] == [first.id, second.id]
        assert frames[1][1]["orderNumber"] == 2
        assert Decimal(frames[1][1]["totalPrice"]) == Decimal("50.00")

    def test_order_subscriber_follows_its_order_only(self, session):
        async def scenario():
            hub = BroadcastHub(heartbeat_interval=60)
            service = OrderService(session, hub)
            mine = service.create_order("Asha", [{"menu_item_id": "chai", "quantity": 1}])
            other = service.create_order("Ravi", [{"menu_item_id": "chai", "quantity": 1}])
            subscriber = hub.subscribe_order(mine.id)
            service.update_status(other.id, "PREPARING")
            service.update_status(mine.id, "READY")
            service.delete_order(mine.id)
            await _settle()
            frames = _pending(subscriber)
            hub.unsubscribe(subscriber)
            return frames

        frames = asyncio.run(scenario())
        assert [(event, payload.get("status")) for event, payload in frames] == [
            ("init", None),
            ("order-update", "READY"),
            ("order-delete", "READY"),
        ]


class TestStreamRoutes:

    def test_order_stream_starts_with_init_and_unsubscribes_on_close(self):
        async def scenario():
            hub = BroadcastHub(heartbeat_interval=60)
            response = await order_stream("abc", hub)
            body = response.body_iterator
            first = await body.__anext__()
            registered = hub.order_count("abc")
            await body.aclose()
            return response, first, registered, hub.order_count("abc"), hub.tracked_orders()

        response, first, registered, remaining, tracked = asyncio.run(scenario())
        assert response.media_type == "text/event-stream"
        assert response.headers["cache-control"] == "no-cache"
        assert _parse(first) == ("init", {"ok": True})
        assert registered == 1
        assert remaining == 0
        assert tracked == set()

    def test_admin_stream_delivers_published_events(self):
        async def scenario():
            hub = BroadcastHub(heartbeat_interval=60)
            response = await admin_stream({"role": "admin"}, hub)
            body = response.body_iterator
            frames = [await body.__anext__()]
            hub.publish_admin("order-delete", {"id": "x"})
            frames.append(await asyncio.wait_for(body.__anext__(), timeout=1))
            await body.aclose()
            return [_parse(frame) for frame in frames], hub.admin_count()

        frames, remaining = asyncio.run(scenario())
        assert frames == [("init", {"ok": True}), ("order-delete", {"id": "x"})]
        assert remaining == 0

    def test_hub_close_ends_open_streams(self):
        async def scenario():
            hub = BroadcastHub(heartbeat_interval=60)
            response = await order_stream("abc", hub)
            body = response.body_iterator
            first = await body.__anext__()
            hub.close()
            rest = [frame async for frame in body]
            return first, rest

        first, rest = asyncio.run(asyncio.wait_for(scenario(), timeout=5))
        assert _parse(first)[0] == "init"
        assert rest == []
